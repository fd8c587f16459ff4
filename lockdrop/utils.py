import re
import secrets
import string

# URL-safe alphabet (64 symbols), same set nanoid uses
SHORT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
SHORT_ID_LENGTH = 8
SHORT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{8}$')

_EXTENSION_PATTERN = re.compile(r'^\.[a-z0-9]{1,10}$')


def parse_file_size(size_str: str) -> int:
    """Parse file size string with units (B, KB, MB, GB) to bytes.

    Examples:
        "10" -> 10 bytes
        "10mb" or "10MB" -> 10485760 bytes
        "500kb" or "500KB" -> 512000 bytes
    """
    size_str = str(size_str).strip()

    if size_str.isdigit():
        return int(size_str)

    match = re.match(r'^(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)$', size_str, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid file size format: {size_str}")

    value = float(match.group(1))
    unit = match.group(2).lower()

    multipliers = {
        'b': 1,
        'kb': 1024 ** 1,
        'mb': 1024 ** 2,
        'gb': 1024 ** 3
    }

    return int(value * multipliers[unit])


def parse_time(time_str: str) -> int:
    """Parse time string with units (m, h, d) to seconds.

    Examples:
        "60" -> 60 seconds
        "15m" -> 900 seconds
        "24h" -> 86400 seconds
    """
    time_str = str(time_str).strip()

    if time_str.isdigit():
        return int(time_str)

    match = re.match(r'^(\d+(?:\.\d+)?)\s*(m|h|d)$', time_str, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid time format: {time_str}")

    value = float(match.group(1))
    unit = match.group(2).lower()

    multipliers = {
        'm': 60,
        'h': 3600,
        'd': 86400
    }

    return int(value * multipliers[unit])


def parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def format_bytes(n: float) -> str:
    """Human-readable byte size."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}" if n != int(n) else f"{int(n)} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def new_short_id() -> str:
    """Generate a public drop identifier (8 URL-safe characters, 48 bits)."""
    return ''.join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(SHORT_ID_LENGTH))


def new_storage_name(extension: str = "") -> str:
    """Generate a random on-disk file name.

    Only the extension comes from the client, and only when it looks like an
    extension. The token itself never contains a path separator.
    """
    extension = (extension or "").lower()
    if not _EXTENSION_PATTERN.match(extension):
        extension = ""
    return f"{secrets.token_urlsafe(12)}{extension}"

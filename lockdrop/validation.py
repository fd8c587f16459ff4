"""
Input validation for drop and admin requests.

Each check is a pure function taking the (already trimmed) field values and
returning ``None`` on success or a rejection message. Pipelines are ordered
tuples of checks; the first rejection wins and is raised as a
``ValidationError`` before any controller logic runs.
"""

from collections.abc import Callable, Iterable

from .errors import ValidationError

PASSWORD_MIN_LENGTH = 4
PASSWORD_MAX_LENGTH = 128
TEXT_MAX_LENGTH = 10_000
LABEL_MAX_LENGTH = 100

Check = Callable[[dict], str | None]


def clean(value) -> str | None:
    """Trim string input; anything that isn't a string counts as missing."""
    if not isinstance(value, str):
        return None
    return value.strip()


def required(field: str, message: str) -> Check:
    def check(data: dict) -> str | None:
        if not data.get(field):
            return message
        return None
    return check


def min_length(field: str, length: int, message: str) -> Check:
    def check(data: dict) -> str | None:
        value = data.get(field)
        if value is not None and len(value) < length:
            return message
        return None
    return check


def max_length(field: str, length: int, message: str) -> Check:
    def check(data: dict) -> str | None:
        value = data.get(field)
        if value is not None and len(value) > length:
            return message
        return None
    return check


def run(data: dict, checks: Iterable[Check]) -> dict:
    """Run *checks* in order and raise the first rejection."""
    for check in checks:
        message = check(data)
        if message:
            raise ValidationError(message)
    return data


PASSWORD_CHECKS = (
    required("password", "Password is required."),
    min_length("password", PASSWORD_MIN_LENGTH, f"Password must be at least {PASSWORD_MIN_LENGTH} characters."),
    max_length("password", PASSWORD_MAX_LENGTH, f"Password must not exceed {PASSWORD_MAX_LENGTH} characters."),
)

TEXT_CHECKS = (
    required("text_content", "Text content is required."),
    max_length("text_content", TEXT_MAX_LENGTH, f"Text content must not exceed {TEXT_MAX_LENGTH:,} characters."),
)

LABEL_CHECKS = (
    max_length("label", LABEL_MAX_LENGTH, f"Label must not exceed {LABEL_MAX_LENGTH} characters."),
)

SHORTEN_PIPELINE = PASSWORD_CHECKS + TEXT_CHECKS + LABEL_CHECKS

VERIFY_PIPELINE = (
    required("password", "Password is required."),
)

LOGIN_PIPELINE = (
    required("username", "Username is required."),
    required("password", "Password is required."),
)


def validate_shorten(password, text_content, label=None) -> dict:
    data = {
        "password": clean(password),
        "text_content": clean(text_content),
        "label": clean(label) or "",
    }
    return run(data, SHORTEN_PIPELINE)


def validate_verify(password) -> dict:
    return run({"password": clean(password)}, VERIFY_PIPELINE)


def validate_login(username, password) -> dict:
    return run({"username": clean(username), "password": clean(password)}, LOGIN_PIPELINE)


def validate_update(label=None, text_content=None) -> dict:
    """Validate only the fields that are present in an admin edit."""
    data = {}
    checks: list[Check] = []
    if label is not None:
        data["label"] = clean(label)
        checks += LABEL_CHECKS
    if text_content is not None:
        data["text_content"] = clean(text_content)
        checks += TEXT_CHECKS
    return run(data, checks)

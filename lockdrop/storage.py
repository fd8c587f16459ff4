"""
Upload storage for drop attachments.

Files live flat under a single root and are named with a random token plus
the (allow-listed) extension. The client filename is kept in the database
for display only and never takes part in building a path.
"""

import logging
from pathlib import Path, PurePosixPath

from .errors import PersistenceError, StorageRejected
from .utils import format_bytes

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ('.pdf', '.png', '.jpg', '.jpeg', '.gif', '.zip', '.txt', '.docx', '.xlsx', '.csv')
CHUNK_SIZE = 1024 * 1024  # 1MB
MAX_DISPLAY_NAME_LENGTH = 255


def file_extension(filename: str) -> str:
    """Lower-cased extension of the last path component, e.g. ``.pdf``."""
    return PurePosixPath(filename.replace("\\", "/")).suffix.lower()


def display_name(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    return name[:MAX_DISPLAY_NAME_LENGTH]


class StorageGuard:
    def __init__(self, files_dir: Path, max_file_size: int, allowed_extensions=ALLOWED_EXTENSIONS):
        self.files_dir = Path(files_dir)
        self.max_file_size = max_file_size
        self.allowed_extensions = tuple(allowed_extensions)

    def _limit_message(self, limit: int) -> str:
        return f"File size exceeds the {format_bytes(limit)} limit."

    def accept(self, filename: str | None, size: int | None = None, max_size: int | None = None) -> str:
        """Check an upload before anything is written. Returns its extension."""
        if not filename or not display_name(filename):
            raise StorageRejected("A file name is required.")
        extension = file_extension(filename)
        if extension not in self.allowed_extensions:
            shown = extension or "(none)"
            logger.warning("Rejected upload with file type %s", shown)
            raise StorageRejected(
                f"File type '{shown}' is not allowed. Allowed types: {', '.join(self.allowed_extensions)}"
            )
        limit = max_size or self.max_file_size
        if size is not None and size > limit:
            logger.warning("Rejected upload of %s (limit %s)", format_bytes(size), format_bytes(limit))
            raise StorageRejected(self._limit_message(limit))
        return extension

    def path_for(self, storage_name: str) -> Path:
        """Resolve a stored name, refusing anything that could leave the upload root."""
        if not storage_name or "/" in storage_name or "\\" in storage_name or storage_name in (".", ".."):
            raise StorageRejected("Invalid storage name.")
        root = self.files_dir.resolve()
        path = (root / storage_name).resolve()
        if path.parent != root:
            raise StorageRejected("Invalid storage name.")
        return path

    async def persist(self, upload, storage_name: str, max_size: int | None = None) -> Path:
        """Stream *upload* to disk under *storage_name*.

        The size ceiling is enforced while streaming since the declared size
        can be missing or wrong. On overflow the partial file is removed.
        """
        limit = max_size or self.max_file_size
        self.files_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.path_for(storage_name)

        try:
            out = open(file_path, "xb")
        except OSError as e:
            raise PersistenceError(f"Failed to create {storage_name}: {e}") from e

        file_size = 0
        try:
            with out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    file_size += len(chunk)
                    if file_size > limit:
                        break
                    out.write(chunk)
        except OSError as e:
            file_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write {storage_name}: {e}") from e

        if file_size > limit:
            file_path.unlink(missing_ok=True)
            logger.warning("Rejected upload over %s while streaming", format_bytes(limit))
            raise StorageRejected(self._limit_message(limit))

        logger.info("Stored upload %s (%s)", storage_name, format_bytes(file_size))
        return file_path

    def exists(self, storage_name: str | None) -> bool:
        if not storage_name:
            return False
        try:
            return self.path_for(storage_name).is_file()
        except StorageRejected:
            return False

    def delete(self, storage_name: str | None) -> None:
        """Remove a stored file. Missing files and disk errors are not fatal."""
        if not storage_name:
            return
        try:
            self.path_for(storage_name).unlink(missing_ok=True)
        except StorageRejected:
            logger.warning("Refusing to delete invalid storage name %r", storage_name)
        except OSError as e:
            logger.warning("Could not delete %s: %s", storage_name, e)

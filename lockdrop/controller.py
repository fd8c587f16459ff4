"""
Access control for drops.

Creation, password-gated retrieval, download authorization, serial lookup
and the admin mutation path. HTTP concerns stay in ``routes``; this module
only raises ``DropError`` subclasses.

Ordering rules on the write paths:

* an attachment is written before the record that references it, and is
  removed again if the record cannot be written;
* on admin delete the record goes first, then the file (best effort);
* a replaced attachment is removed only after the record points at the new one.

A crash between steps can therefore leave an orphaned file on disk (swept by
``cleanup``) but never a record pointing at a missing file.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi.concurrency import run_in_threadpool

from . import database as db
from .errors import (
    DropError,
    InvalidCredentials,
    NoFileAttached,
    NotFound,
    PersistenceError,
    Unauthorized,
    ValidationError,
    WrongPassword,
)
from .models import DropUpdate, FileAction
from .security import PasswordHasher
from .sessions import TokenIssuer
from .storage import StorageGuard, display_name
from .utils import SHORT_ID_PATTERN, new_short_id, new_storage_name
from .validation import validate_login, validate_shorten, validate_update, validate_verify

logger = logging.getLogger(__name__)


@dataclass
class Created:
    short_id: str
    serial_number: int


@dataclass
class Retrieved:
    text_content: str
    has_file: bool
    file_name: str | None
    download_token: str | None = None


@dataclass
class Download:
    path: Path
    file_name: str


def _has_upload(upload) -> bool:
    return upload is not None and bool(getattr(upload, "filename", None))


def parse_serial(value) -> int:
    try:
        serial = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("A valid serial number is required.")
    if serial <= 0:
        raise ValidationError("A valid serial number is required.")
    return serial


class AccessController:
    def __init__(
        self,
        storage: StorageGuard,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        max_retries: int = 5,
        admin_max_file_size: int | None = None,
        legacy_password_downloads: bool = False,
    ):
        self.storage = storage
        self.hasher = hasher
        self.tokens = tokens
        self.MAX_RETRIES = max_retries
        self.ADMIN_MAX_FILE_SIZE = admin_max_file_size
        self.LEGACY_PASSWORD_DOWNLOADS = legacy_password_downloads

    async def _get_drop(self, short_id: str) -> dict:
        if not short_id or not SHORT_ID_PATTERN.match(short_id):
            raise NotFound()
        drop = await db.get_drop_by_short_id(short_id)
        if drop is None:
            raise NotFound()
        return drop

    async def _insert_with_retries(self, **fields) -> dict:
        for attempt in range(self.MAX_RETRIES):
            short_id = new_short_id()
            try:
                return await db.insert_drop(short_id=short_id, **fields)
            except db.ShortIdTaken:
                logger.warning("Short id collision on attempt %d, retrying", attempt + 1)
        raise PersistenceError(f"Failed to generate a unique short id after {self.MAX_RETRIES} attempts")

    async def _store_upload(self, upload, max_size: int | None = None) -> tuple[str, str]:
        """Check and write an upload. Returns ``(display name, storage name)``."""
        extension = self.storage.accept(upload.filename, getattr(upload, "size", None), max_size)
        stored_name = new_storage_name(extension)
        await self.storage.persist(upload, stored_name, max_size)
        return display_name(upload.filename), stored_name

    # ---- Public surface ----

    async def create(self, password, text_content, label=None, upload=None) -> Created:
        data = validate_shorten(password, text_content, label)
        if _has_upload(upload):
            self.storage.accept(upload.filename, getattr(upload, "size", None))

        password_hash = await run_in_threadpool(self.hasher.hash, data["password"])

        file_name = stored_name = None
        if _has_upload(upload):
            file_name, stored_name = await self._store_upload(upload)

        try:
            drop = await self._insert_with_retries(
                password_hash=password_hash,
                text_content=data["text_content"],
                label=data["label"],
                file_name=file_name,
                file_storage_name=stored_name,
            )
        except DropError:
            self.storage.delete(stored_name)
            raise
        except Exception as e:
            self.storage.delete(stored_name)
            raise PersistenceError(f"Failed to create drop: {e}") from e

        logger.info("Created drop #%d (%s)%s", drop["serial_number"], drop["short_id"],
                    " with attachment" if stored_name else "")
        return Created(short_id=drop["short_id"], serial_number=drop["serial_number"])

    async def exists(self, short_id: str) -> bool:
        try:
            await self._get_drop(short_id)
        except NotFound:
            return False
        return True

    async def lookup_by_serial(self, serial) -> dict:
        found = await db.find_by_serial(parse_serial(serial))
        if found is None:
            raise NotFound("No URL found with that serial number.")
        return found

    async def verify_and_retrieve(self, short_id: str, password) -> Retrieved:
        data = validate_verify(password)
        drop = await self._get_drop(short_id)

        if not await run_in_threadpool(self.hasher.verify, data["password"], drop["password_hash"]):
            logger.warning("Wrong password for drop %s", short_id)
            raise WrongPassword()

        has_file = drop["file_storage_name"] is not None
        return Retrieved(
            text_content=drop["text_content"],
            has_file=has_file,
            file_name=drop["file_name"],
            download_token=self.tokens.issue_download_token(short_id) if has_file else None,
        )

    async def _download_allowed(self, drop: dict, authorization: str) -> bool:
        if self.tokens.check_download_token(authorization, drop["short_id"]):
            return True
        if self.LEGACY_PASSWORD_DOWNLOADS:
            return await run_in_threadpool(self.hasher.verify, authorization, drop["password_hash"])
        return False

    async def download(self, short_id: str, authorization: str | None) -> Download:
        if not authorization:
            raise Unauthorized()
        drop = await self._get_drop(short_id)

        if not await self._download_allowed(drop, authorization):
            logger.warning("Rejected download authorization for drop %s", short_id)
            raise Unauthorized("Invalid or expired download token.")

        if not self.storage.exists(drop["file_storage_name"]):
            raise NoFileAttached()

        await db.increment_downloads(short_id)
        return Download(path=self.storage.path_for(drop["file_storage_name"]), file_name=drop["file_name"])

    # ---- Admin surface ----

    async def login(self, username, password) -> str:
        data = validate_login(username, password)
        admin = await db.get_admin(data["username"])
        if admin is None or not await run_in_threadpool(self.hasher.verify, data["password"], admin["password_hash"]):
            logger.warning("Failed admin login for %r", data["username"])
            raise InvalidCredentials()
        logger.info("Admin %s logged in", admin["username"])
        return self.tokens.issue_admin_token(admin)

    def authorize(self, token: str | None) -> dict:
        return self.tokens.authorize_admin(token)

    async def admin_list(self) -> list[dict]:
        return await db.list_drops()

    async def admin_update(self, drop_id: int, update: DropUpdate, upload=None) -> dict:
        drop = await db.get_drop(drop_id)
        if drop is None:
            raise NotFound("URL not found.")

        changes = validate_update(update.label, update.text_content)

        stored_name = None
        if update.file_action == FileAction.REPLACE:
            if not _has_upload(upload):
                raise ValidationError("A replacement file is required.")
            changes["file_name"], stored_name = await self._store_upload(upload, self.ADMIN_MAX_FILE_SIZE)
            changes["file_storage_name"] = stored_name
        elif update.file_action == FileAction.REMOVE:
            changes["file_name"] = None
            changes["file_storage_name"] = None

        if not changes:
            return drop

        try:
            updated = await db.update_drop(drop_id, changes)
        except Exception:
            self.storage.delete(stored_name)
            raise
        if updated is None:
            self.storage.delete(stored_name)
            raise NotFound("URL not found.")

        old_name = drop["file_storage_name"]
        if "file_storage_name" in changes and old_name and old_name != stored_name:
            self.storage.delete(old_name)

        logger.info("Updated drop #%d (%s): %s", updated["serial_number"], updated["short_id"],
                    ", ".join(sorted(changes)))
        return updated

    async def admin_delete(self, drop_id: int) -> None:
        drop = await db.delete_drop(drop_id)
        if drop is None:
            raise NotFound("URL not found.")
        self.storage.delete(drop["file_storage_name"])
        logger.info("Deleted drop #%d (%s)", drop["serial_number"], drop["short_id"])

"""
SQLite database module for drop and admin records.

Stores drop metadata (password hash, text, label, attachment names,
download counter) while attachment bytes remain on disk under the upload
root, keyed by their random storage name.
"""

import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from .errors import PersistenceError

DATABASE_DIR = Path(os.getenv("DATA_DIR", "/lockdrop/data"))
DATABASE_PATH = DATABASE_DIR / "lockdrop.db"
FILES_DIR = DATABASE_DIR / "files"

FIRST_SERIAL_NUMBER = 1001

SCHEMA = """
CREATE TABLE IF NOT EXISTS drops (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    short_id          TEXT    NOT NULL UNIQUE,
    serial_number     INTEGER NOT NULL UNIQUE,
    password_hash     TEXT    NOT NULL,
    text_content      TEXT    NOT NULL,
    label             TEXT    NOT NULL DEFAULT '',
    file_name         TEXT,
    file_storage_name TEXT,
    download_count    INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    CHECK ((file_name IS NULL) = (file_storage_name IS NULL))
);

CREATE TABLE IF NOT EXISTS admins (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    username      TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS counters (
    name  TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
"""


class ShortIdTaken(Exception):
    """The generated short id collided with an existing drop."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _drop_row(row) -> dict:
    return dict(row)


def _connect():
    return aiosqlite.connect(DATABASE_PATH)


async def init_db() -> None:
    """Create the database directory, tables and the serial counter if they don't exist."""
    DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
    async with _connect() as db:
        await db.executescript(SCHEMA)
        # Seed the counter just below the first serial, or above any existing drop
        await db.execute(
            """
            INSERT OR IGNORE INTO counters (name, value)
            SELECT 'serial_number', MAX(COALESCE(MAX(serial_number), 0), ?) FROM drops
            """,
            (FIRST_SERIAL_NUMBER - 1,),
        )
        await db.commit()


# ---------------------------------------------------------------------------
# Drop CRUD operations
# ---------------------------------------------------------------------------

async def insert_drop(
    short_id: str,
    password_hash: str,
    text_content: str,
    label: str = "",
    file_name: str | None = None,
    file_storage_name: str | None = None,
) -> dict:
    """Insert a new drop, assigning the next serial number in the same transaction.

    Raises ``ShortIdTaken`` on a short id collision (nothing is consumed from
    the counter in that case) and ``PersistenceError`` on any other failure.
    """
    now = _now()
    try:
        async with _connect() as db:
            db.row_factory = aiosqlite.Row
            try:
                cursor = await db.execute(
                    "UPDATE counters SET value = value + 1 WHERE name = 'serial_number' RETURNING value"
                )
                row = await cursor.fetchone()
                if row is None:
                    raise PersistenceError("Serial number counter missing; was init_db() run?")
                serial_number = row["value"]

                cursor = await db.execute(
                    """
                    INSERT INTO drops
                        (short_id, serial_number, password_hash, text_content, label,
                         file_name, file_storage_name, download_count, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (short_id, serial_number, password_hash, text_content, label,
                     file_name, file_storage_name, now, now),
                )
                drop_id = cursor.lastrowid
                await db.commit()
            except sqlite3.IntegrityError as e:
                await db.rollback()
                if "drops.short_id" in str(e):
                    raise ShortIdTaken(short_id) from e
                raise PersistenceError(f"Failed to insert drop: {e}") from e
    except (ShortIdTaken, PersistenceError):
        raise
    except Exception as e:
        raise PersistenceError(f"Failed to insert drop: {e}") from e

    return {
        "id": drop_id,
        "short_id": short_id,
        "serial_number": serial_number,
        "password_hash": password_hash,
        "text_content": text_content,
        "label": label,
        "file_name": file_name,
        "file_storage_name": file_storage_name,
        "download_count": 0,
        "created_at": now,
        "updated_at": now,
    }


async def get_drop_by_short_id(short_id: str) -> dict | None:
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT * FROM drops WHERE short_id = ?", (short_id,))
        row = await cursor.fetchone()
    return _drop_row(row) if row else None


async def get_drop(drop_id: int) -> dict | None:
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT * FROM drops WHERE id = ?", (drop_id,))
        row = await cursor.fetchone()
    return _drop_row(row) if row else None


async def find_by_serial(serial_number: int) -> dict | None:
    """Look up the public pointer for a serial number (no content, no hash)."""
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            "SELECT short_id, serial_number, label FROM drops WHERE serial_number = ?",
            (serial_number,),
        )
        row = await cursor.fetchone()
    return dict(row) if row else None


async def list_drops() -> list[dict]:
    """Return all drops, newest first."""
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT * FROM drops ORDER BY created_at DESC, id DESC")
        rows = await cursor.fetchall()
    return [_drop_row(r) for r in rows]


async def increment_downloads(short_id: str) -> int:
    """Increment the download count for a drop. Returns the new count."""
    async with _connect() as db:
        cursor = await db.execute(
            "UPDATE drops SET download_count = download_count + 1, updated_at = ? "
            "WHERE short_id = ? RETURNING download_count",
            (_now(), short_id),
        )
        row = await cursor.fetchone()
        await db.commit()
        return row[0] if row else 0


async def update_drop(drop_id: int, changes: dict) -> dict | None:
    """Apply column changes to a drop and return the updated row.

    ``file_name`` and ``file_storage_name`` must be passed together.
    """
    allowed = {"label", "text_content", "file_name", "file_storage_name"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
    if ("file_name" in changes) != ("file_storage_name" in changes):
        raise ValueError("file_name and file_storage_name must be updated together")

    columns = dict(changes)
    columns["updated_at"] = _now()
    assignments = ", ".join(f"{column} = ?" for column in columns)
    try:
        async with _connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"UPDATE drops SET {assignments} WHERE id = ? RETURNING *",
                (*columns.values(), drop_id),
            )
            row = await cursor.fetchone()
            await db.commit()
    except Exception as e:
        raise PersistenceError(f"Failed to update drop {drop_id}: {e}") from e
    return _drop_row(row) if row else None


async def delete_drop(drop_id: int) -> dict | None:
    """Delete a drop. Returns the deleted row, or None if it didn't exist."""
    try:
        async with _connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("DELETE FROM drops WHERE id = ? RETURNING *", (drop_id,))
            row = await cursor.fetchone()
            await db.commit()
    except Exception as e:
        raise PersistenceError(f"Failed to delete drop {drop_id}: {e}") from e
    return _drop_row(row) if row else None


async def referenced_storage_names() -> set[str]:
    """All storage names currently referenced by a drop (used by the orphan sweep)."""
    async with _connect() as db:
        cursor = await db.execute("SELECT file_storage_name FROM drops WHERE file_storage_name IS NOT NULL")
        rows = await cursor.fetchall()
    return {r[0] for r in rows}


# ---------------------------------------------------------------------------
# Admin operations
# ---------------------------------------------------------------------------

async def get_admin(username: str) -> dict | None:
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("SELECT * FROM admins WHERE username = ?", (username,))
        row = await cursor.fetchone()
    return dict(row) if row else None


async def upsert_admin(username: str, password_hash: str) -> dict:
    """Create the admin, or replace its password hash if it already exists."""
    now = _now()
    async with _connect() as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute(
            """
            INSERT INTO admins (username, password_hash, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(username) DO UPDATE SET
                password_hash = excluded.password_hash,
                updated_at = excluded.updated_at
            RETURNING id, username, created_at, updated_at
            """,
            (username, password_hash, now, now),
        )
        row = await cursor.fetchone()
        await db.commit()
    return dict(row)

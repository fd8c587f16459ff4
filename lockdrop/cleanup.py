import asyncio
import logging
import time
from pathlib import Path

from . import database as db
from .utils import format_bytes

logger = logging.getLogger(__name__)


async def sweep_orphans(files_dir: Path, max_age: int) -> tuple[int, int]:
    """Delete upload files no drop references and that are older than *max_age* seconds.

    Such files are left behind when a process dies between writing an upload
    and inserting its record. Young files are skipped since a create may be
    in flight. Returns ``(files removed, bytes reclaimed)``.
    """
    if not files_dir.exists():
        return 0, 0

    referenced = await db.referenced_storage_names()
    now = time.time()
    removed = 0
    reclaimed = 0
    for path in files_dir.iterdir():
        if not path.is_file() or path.name in referenced:
            continue
        try:
            stat = path.stat()
            if now - stat.st_mtime <= max_age:
                continue
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("[Cleanup] Could not remove orphaned file %s: %s", path.name, e)
            continue
        removed += 1
        reclaimed += stat.st_size
    return removed, reclaimed


async def cleanup_orphans(files_dir: Path, interval: int = 3600, max_age: int = 86400):
    """
    Background task that periodically removes orphaned upload files.

    Runs every ``interval`` seconds (default: 1 hour).
    """
    while True:
        try:
            await asyncio.sleep(interval)
            removed, reclaimed = await sweep_orphans(files_dir, max_age)
            if removed:
                logger.info("[Cleanup] Removed %d orphaned file(s), reclaimed %s", removed, format_bytes(reclaimed))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[Cleanup] Error in cleanup task")
            continue

import asyncio
import os
import time

import pytest

from lockdrop import database as db
from lockdrop.cleanup import cleanup_orphans, sweep_orphans

DAY = 86400


@pytest.fixture
def files_dir(data_dir):
    asyncio.run(db.init_db())
    path = data_dir / "files"
    path.mkdir()
    return path


def _write(files_dir, name, content=b"data", age=0):
    path = files_dir / name
    path.write_bytes(content)
    if age:
        then = time.time() - age
        os.utime(path, (then, then))
    return path


def test_old_orphans_are_removed(files_dir):
    orphan = _write(files_dir, "orphan.pdf", b"x" * 100, age=2 * DAY)
    removed, reclaimed = asyncio.run(sweep_orphans(files_dir, DAY))
    assert (removed, reclaimed) == (1, 100)
    assert not orphan.exists()


def test_young_orphans_are_kept(files_dir):
    young = _write(files_dir, "in-flight.pdf", age=60)
    assert asyncio.run(sweep_orphans(files_dir, DAY)) == (0, 0)
    assert young.exists()


def test_referenced_files_are_kept(files_dir):
    kept = _write(files_dir, "stored.txt", age=2 * DAY)
    asyncio.run(db.insert_drop(
        short_id="AAAAAAAA", password_hash="h", text_content="t",
        file_name="a.txt", file_storage_name="stored.txt",
    ))
    assert asyncio.run(sweep_orphans(files_dir, DAY)) == (0, 0)
    assert kept.exists()


def test_missing_directory(data_dir):
    asyncio.run(db.init_db())
    assert asyncio.run(sweep_orphans(data_dir / "nowhere", DAY)) == (0, 0)


def test_background_task_sweeps_and_cancels(files_dir):
    orphan = _write(files_dir, "orphan.zip", age=2 * DAY)

    async def run_briefly():
        task = asyncio.create_task(cleanup_orphans(files_dir, interval=0, max_age=DAY))
        for _ in range(50):
            if not orphan.exists():
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run_briefly())
    assert not orphan.exists()

import asyncio
import io

import pytest

from lockdrop.errors import PersistenceError, StorageRejected
from lockdrop.storage import StorageGuard, display_name, file_extension


class FakeUpload:
    """Stands in for ``UploadFile``: async ``read`` over an in-memory buffer."""

    def __init__(self, filename, content, size=None):
        self.filename = filename
        self.size = size
        self._buffer = io.BytesIO(content)

    async def read(self, n=-1):
        return self._buffer.read(n)


@pytest.fixture
def guard(tmp_path):
    return StorageGuard(tmp_path / "files", max_file_size=16)


class TestNames:

    @pytest.mark.parametrize("filename,expected", [
        ("report.PDF", ".pdf"),
        ("archive.tar.zip", ".zip"),
        ("C:\\Users\\me\\photo.JPEG", ".jpeg"),
        ("no-extension", ""),
        (".hidden", ""),
    ])
    def test_file_extension(self, filename, expected):
        assert file_extension(filename) == expected

    @pytest.mark.parametrize("filename,expected", [
        ("../../etc/passwd.txt", "passwd.txt"),
        ("C:\\temp\\notes.txt", "notes.txt"),
        ("plain.csv", "plain.csv"),
    ])
    def test_display_name_drops_directories(self, filename, expected):
        assert display_name(filename) == expected

    def test_display_name_is_capped(self):
        assert len(display_name("a" * 400 + ".txt")) == 255


class TestAccept:

    def test_allowed_upload(self, guard):
        assert guard.accept("Photo.PNG", size=10) == ".png"

    @pytest.mark.parametrize("filename", ["run.exe", "page.html", "script.sh", "noext"])
    def test_disallowed_types(self, guard, filename):
        with pytest.raises(StorageRejected, match="is not allowed"):
            guard.accept(filename)

    @pytest.mark.parametrize("filename", [None, "", "   "])
    def test_missing_name(self, guard, filename):
        with pytest.raises(StorageRejected, match="file name is required"):
            guard.accept(filename)

    def test_declared_size_over_limit(self, guard):
        with pytest.raises(StorageRejected, match="16 B limit"):
            guard.accept("a.txt", size=17)

    def test_override_limit(self, guard):
        assert guard.accept("a.txt", size=17, max_size=32) == ".txt"
        with pytest.raises(StorageRejected, match="4 B limit"):
            guard.accept("a.txt", size=5, max_size=4)


class TestPaths:

    @pytest.mark.parametrize("name", ["../escape.txt", "a/b.txt", "a\\b.txt", "..", ".", ""])
    def test_escaping_names_are_refused(self, guard, name):
        with pytest.raises(StorageRejected):
            guard.path_for(name)

    def test_path_stays_in_root(self, guard):
        path = guard.path_for("abc.pdf")
        assert path.parent == guard.files_dir.resolve()


class TestPersist:

    def test_persist_and_delete(self, guard):
        path = asyncio.run(guard.persist(FakeUpload("a.txt", b"0123456789"), "stored.txt"))
        assert path.read_bytes() == b"0123456789"
        assert guard.exists("stored.txt")

        guard.delete("stored.txt")
        assert not guard.exists("stored.txt")
        # Idempotent
        guard.delete("stored.txt")
        guard.delete(None)

    def test_overflow_while_streaming_removes_partial_file(self, guard):
        # Declared size is absent, so only the streaming check can catch it
        upload = FakeUpload("a.txt", b"x" * 40)
        with pytest.raises(StorageRejected, match="16 B limit"):
            asyncio.run(guard.persist(upload, "big.txt"))
        assert not (guard.files_dir / "big.txt").exists()

    def test_existing_file_is_never_overwritten(self, guard):
        asyncio.run(guard.persist(FakeUpload("a.txt", b"first"), "same.txt"))
        with pytest.raises(PersistenceError):
            asyncio.run(guard.persist(FakeUpload("b.txt", b"second"), "same.txt"))
        assert (guard.files_dir / "same.txt").read_bytes() == b"first"

    def test_exists_rejects_invalid_names(self, guard):
        assert guard.exists("../outside.txt") is False
        assert guard.exists(None) is False

"""
Shared fixtures: a fresh database and upload root per test, cleared
rate-limit counters, and a seeded admin account.
"""

import asyncio
import os
import tempfile

# Must be set before lockdrop is imported
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="lockdrop-tests-"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-for-lockdrop-suite-0123456789")

import pytest
from fastapi.testclient import TestClient

from lockdrop import database as db
from lockdrop import main
from lockdrop.ratelimit import limiter
from lockdrop.security import PasswordHasher

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse"


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DATABASE_PATH", tmp_path / "lockdrop.db")
    monkeypatch.setattr(main.storage, "files_dir", tmp_path / "files")
    limiter.reset()
    return tmp_path


@pytest.fixture
def files_dir(data_dir):
    return data_dir / "files"


@pytest.fixture
def client(data_dir):
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    asyncio.run(db.upsert_admin(ADMIN_USERNAME, PasswordHasher(4).hash(ADMIN_PASSWORD)))
    response = client.post("/api/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def create_drop(client, password="abcd", text="hello", label=None, file=None):
    data = {"password": password, "textContent": text}
    if label is not None:
        data["label"] = label
    files = {"file": file} if file else None
    return client.post("/api/shorten", data=data, files=files)


def stored_files(files_dir):
    if not files_dir.exists():
        return []
    return sorted(p for p in files_dir.iterdir() if p.is_file())

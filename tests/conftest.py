import os
import tempfile

# Must be set before config.py is imported anywhere
_TMP = tempfile.mkdtemp(prefix="sharespace-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "blobs")
os.environ["USE_MINIO"] = "false"
os.environ["SECURE_LINK_TTL_SECONDS"] = "0"
os.environ["PUBLIC_BASE_URL"] = "https://share.test"

import pytest
from fastapi.testclient import TestClient

import database
import models  # noqa: F401
from storage import SealedBlobStore, storage


@pytest.fixture(autouse=True)
def fresh_db():
    database.Base.metadata.drop_all(bind=database.engine)
    database.Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store(tmp_path):
    return SealedBlobStore(local_dir=str(tmp_path / "blobs"), use_minio=False)


@pytest.fixture
def app_blob_dir(tmp_path, monkeypatch):
    """Point the app-wide storage singleton at a per-test directory."""
    path = tmp_path / "app-blobs"
    monkeypatch.setattr(storage, "local_dir", str(path))
    return path


@pytest.fixture
def client(app_blob_dir):
    from main import app
    return TestClient(app)


HELLO = "data:text/plain;base64,aGVsbG8="

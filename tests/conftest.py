import os
import tempfile

# Antes de importar la app: sin bucket (local), DB en memoria, uploads temporales
_TMP_ROOT = tempfile.mkdtemp(prefix="inspections-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOADS_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["APP_ENV"] = "development"
os.environ.pop("S3_BUCKET", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import get_db, init_db
from main import app
from modules.equipment_inspection.routes.inspection_common import get_blob_store
from modules.equipment_inspection.services.services_blob_store import BlobStore

from helpers import BUCKET, PUBLIC_BASE, FakeS3Client


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def uploads_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture()
def local_store(uploads_dir):
    return BlobStore(uploads_dir=uploads_dir, uploads_url_prefix="/uploads")


@pytest.fixture()
def s3_client():
    return FakeS3Client()


@pytest.fixture()
def remote_store(uploads_dir, s3_client):
    return BlobStore(
        uploads_dir=uploads_dir,
        uploads_url_prefix="/uploads",
        client=s3_client,
        bucket=BUCKET,
        public_base_url=PUBLIC_BASE,
    )


@pytest.fixture()
def make_client(session_factory):
    def _make(blob_store, get_db_override=None):
        def _get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = get_db_override or _get_db
        app.dependency_overrides[get_blob_store] = lambda: blob_store
        app.state.store_ready = False
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
    app.state.store_ready = False


@pytest.fixture()
def client(make_client, remote_store):
    return make_client(remote_store)


@pytest.fixture()
def local_client(make_client, local_store):
    return make_client(local_store)

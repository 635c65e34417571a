import re

import boto3
import pytest
from botocore.stub import Stubber

from modules.equipment_inspection.services import services_blob_store
from modules.equipment_inspection.services.services_blob_store import BlobStore, sanitize_namespace
from modules.equipment_inspection.services.services_core import (
    BlobStoreError,
    LocalRef,
    RemoteRef,
    UploadConflict,
)

from helpers import BUCKET, PNG_BYTES, PUBLIC_BASE


@pytest.fixture()
def boto_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture()
def stubbed_store(boto_client, uploads_dir):
    store = BlobStore(
        uploads_dir=uploads_dir,
        client=boto_client,
        bucket=BUCKET,
        public_base_url=PUBLIC_BASE,
    )
    with Stubber(boto_client) as stubber:
        yield store, stubber
        stubber.assert_no_pending_responses()


# ============================
# LOCAL
# ============================

def test_sanitize_namespace_keeps_alphanumerics_only():
    assert sanitize_namespace("PC-01/../x") == "PC01x"
    assert sanitize_namespace("---") == "equipo"


def test_local_upload_writes_under_sanitized_namespace(local_store, uploads_dir):
    stored = local_store.upload(PNG_BYTES, "png", "PC-01", 1)

    assert re.fullmatch(r"PC01/\d+-1\.png", stored.key)
    assert stored.public_url == f"/uploads/{stored.key}"
    assert stored.size == len(PNG_BYTES)
    assert (uploads_dir / stored.key).read_bytes() == PNG_BYTES


def test_local_upload_never_overwrites(local_store, uploads_dir, monkeypatch):
    monkeypatch.setattr(services_blob_store, "_timestamp_ms", lambda: 1700000000000)

    first = local_store.upload(b"first", "png", "PC-01", 1)
    with pytest.raises(UploadConflict):
        local_store.upload(b"second", "png", "PC-01", 1)

    assert (uploads_dir / first.key).read_bytes() == b"first"


def test_delete_local_is_noop_for_remote_refs(local_store):
    assert local_store.delete_local(RemoteRef(url=f"{PUBLIC_BASE}/PC-01/1-1.png")) is True


def test_delete_local_removes_file(local_store, uploads_dir):
    stored = local_store.upload(PNG_BYTES, "png", "PC-01", 1)

    assert local_store.delete_local(LocalRef(stored.key)) is True
    assert not (uploads_dir / stored.key).exists()
    assert local_store.delete_local(LocalRef(stored.key)) is False


def test_paths_escaping_uploads_dir_are_rejected(local_store, uploads_dir):
    secret = uploads_dir.parent / "secret.txt"
    secret.write_text("x")

    assert local_store.local_exists("../secret.txt") is False
    assert local_store.delete_local(LocalRef("../secret.txt")) is False
    assert secret.exists()


def test_local_check_ready_probes_directory(local_store):
    status = local_store.check_ready()

    assert status["ok"] is True
    assert status["backend"] == "local"
    assert status["uploadsWritable"] is True


# ============================
# S3
# ============================

def test_remote_upload_returns_public_url(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("put_object", {"ETag": '"abc"'})

    stored = store.upload(PNG_BYTES, "png", "PC-01", 2)

    assert re.fullmatch(r"PC-01/\d+-2\.png", stored.key)
    assert stored.public_url == f"{PUBLIC_BASE}/{stored.key}"


def test_remote_precondition_failure_is_upload_conflict(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("put_object", service_error_code="PreconditionFailed", http_status_code=412)

    with pytest.raises(UploadConflict):
        store.upload(PNG_BYTES, "png", "PC-01", 1)


def test_other_remote_errors_are_blob_store_errors(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)

    with pytest.raises(BlobStoreError):
        store.upload(PNG_BYTES, "png", "PC-01", 1)


def test_remote_exists_distinguishes_missing_objects(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("head_object", {"ContentLength": 3})
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    assert store.remote_exists(RemoteRef(url=f"{PUBLIC_BASE}/PC-01/1-1.png")) is True
    assert store.remote_exists(RemoteRef(url=f"{PUBLIC_BASE}/PC-01/9-9.png")) is False


def test_remote_exists_is_unknown_for_foreign_urls(stubbed_store):
    store, _ = stubbed_store

    assert store.remote_exists(RemoteRef(url="https://elsewhere.test/a.png")) is None


def test_remote_exists_is_unknown_on_transient_errors(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("head_object", service_error_code="500", http_status_code=500)

    assert store.remote_exists(RemoteRef(url=f"{PUBLIC_BASE}/PC-01/1-1.png")) is None


def test_public_url_quotes_keys(stubbed_store):
    store, _ = stubbed_store

    assert store.public_url("PC 01/1-1.png") == f"{PUBLIC_BASE}/PC%2001/1-1.png"
    assert store.key_from_url(f"{PUBLIC_BASE}/PC%2001/1-1.png") == "PC 01/1-1.png"


def test_remote_check_ready_uses_head_bucket(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("head_bucket", {})

    status = store.check_ready()

    assert status["ok"] is True
    assert status["backend"] == "s3"
    assert status["bucket"] == BUCKET


def test_remote_upload_is_conditional_and_typed(remote_store, s3_client, monkeypatch):
    monkeypatch.setattr(services_blob_store, "_timestamp_ms", lambda: 1700000000000)

    stored = remote_store.upload(PNG_BYTES, "png", "PC-01", 1)
    with pytest.raises(UploadConflict):
        remote_store.upload(b"other", "png", "PC-01", 1)

    obj = s3_client.objects[stored.key]
    assert obj["Body"] == PNG_BYTES
    assert obj["ContentType"] == "image/png"
    assert obj["CacheControl"] == "max-age=3600"

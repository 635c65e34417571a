from sqlalchemy.exc import OperationalError

from modules.equipment_inspection.services.services_image_reconciliation import (
    image_status_report,
    reconcile_image_urls,
)
from modules.equipment_inspection.services.services_records import delete_record_and_images
from modules.equipment_inspection.services.services_records_repository import (
    get_record,
    insert_record,
)

from helpers import PUBLIC_BASE, record_payload


MARKER = "/uploads/"


def _seed(db, blob_store, equipo_id="PC-01"):
    images = [
        {
            "title": "legacy",
            "filename": "PC01/1700000000000-1.png",
            "url": "https://old-host.test/uploads/PC01/1700000000000-1.png",
        },
        {
            "title": "migrated",
            "filename": "PC-01/1700000000001-2.png",
            "url": blob_store.public_url("PC-01/1700000000001-2.png"),
        },
    ]
    record = insert_record(db, record_payload(equipoId=equipo_id), images)
    db.commit()
    return record


def test_status_report_classifies_images(db_session, remote_store):
    _seed(db_session, remote_store)

    report = image_status_report(db_session, remote_store, MARKER)

    assert report["summary"] == {
        "totalRecords": 1,
        "totalImages": 2,
        "remoteImages": 1,
        "localImages": 0,
        "brokenImages": 1,
    }
    assert report["needsFix"] is True
    [entry] = report["records"]
    assert entry["equipoId"] == "PC-01"
    assert entry["imageCount"] == 2
    assert [(i["kind"], i["status"]) for i in entry["images"]] == [
        ("deprecated", "broken"),
        ("remote", "ok"),
    ]


def test_reconcile_repairs_deprecated_urls(db_session, remote_store):
    record = _seed(db_session, remote_store)

    result = reconcile_image_urls(db_session, remote_store, MARKER)

    assert result == {"recordsUpdated": 1, "imagesScanned": 2}
    legacy, migrated = get_record(db_session, record.id).images
    assert legacy["url"] == remote_store.public_url("PC01/1700000000000-1.png")
    assert legacy["previousUrl"] == "https://old-host.test/uploads/PC01/1700000000000-1.png"
    assert legacy["correctedAt"]
    assert "previousUrl" not in migrated


def test_reconcile_is_idempotent(db_session, remote_store):
    _seed(db_session, remote_store)

    reconcile_image_urls(db_session, remote_store, MARKER)
    second = reconcile_image_urls(db_session, remote_store, MARKER)

    assert second["recordsUpdated"] == 0
    assert image_status_report(db_session, remote_store, MARKER)["needsFix"] is False


def test_local_backend_has_nothing_to_repair(db_session, local_store):
    images = [{"title": "a", "filename": "PC01/1-1.png", "url": "/uploads/PC01/1-1.png"}]
    insert_record(db_session, record_payload(), images)
    db_session.commit()

    assert reconcile_image_urls(db_session, local_store, MARKER)["recordsUpdated"] == 0

    report = image_status_report(db_session, local_store, MARKER)
    assert report["summary"]["localImages"] == 1
    assert report["needsFix"] is False


def test_reconcile_endpoint(client, session_factory, remote_store):
    db = session_factory()
    try:
        _seed(db, remote_store)
    finally:
        db.close()

    resp = client.post("/images/reconcile")

    assert resp.status_code == 200
    body = resp.json()
    assert body["recordsUpdated"] == 1
    assert body["imagesScanned"] == 2
    assert body["message"]
    assert body["timestamp"]

    status = client.get("/images/status").json()
    assert status["needsFix"] is False
    assert status["summary"]["remoteImages"] == 2


def test_failed_commit_skips_only_that_record(db_session, remote_store, monkeypatch):
    first = _seed(db_session, remote_store, equipo_id="PC-01")
    second = _seed(db_session, remote_store, equipo_id="PC-02")

    real_commit = db_session.commit
    calls = []

    def flaky_commit():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("COMMIT", {}, Exception("connection reset"))
        return real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)

    result = reconcile_image_urls(db_session, remote_store, MARKER)

    assert result == {"recordsUpdated": 1, "imagesScanned": 4}
    monkeypatch.undo()

    legacy_first = get_record(db_session, first.id).images[0]
    legacy_second = get_record(db_session, second.id).images[0]
    assert "previousUrl" not in legacy_first
    assert legacy_second["url"] == remote_store.public_url("PC01/1700000000000-1.png")


def test_delete_after_reconcile_removes_legacy_file(db_session, remote_store, uploads_dir):
    legacy = uploads_dir / "PC01" / "1700000000000-1.png"
    legacy.parent.mkdir()
    legacy.write_bytes(b"png")
    images = [{"title": "a", "filename": "PC01/1700000000000-1.png", "url": "/uploads/PC01/1700000000000-1.png"}]
    record = insert_record(db_session, record_payload(), images)
    db_session.commit()

    assert reconcile_image_urls(db_session, remote_store, MARKER)["recordsUpdated"] == 1
    assert get_record(db_session, record.id).images[0]["url"].startswith(PUBLIC_BASE)

    delete_record_and_images(db_session, remote_store, record.id)

    assert not legacy.exists()

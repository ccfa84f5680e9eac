"""Tests for event comments and documents."""
import os

import pytest
from fastapi import HTTPException

from planning_service.models.audit_log import AuditLog
from planning_service.models.document import Document
from planning_service.schemas.planning_event import EventCreate
from planning_service.services import attachment_service, document_storage, event_service
from planning_service.services.audit_service import AuditContext
from tests.conftest import BASE_TIME, archive_event, create_event

PDF_BYTES = b"%PDF-1.4\n%fake drawing\n"


def _comments_url(event_id):
    return f"/api/planning/events/{event_id}/comments"


def _documents_url(event_id):
    return f"/api/planning/events/{event_id}/documents"


def _upload(client, actor_user_id, event_id, files):
    return client.post(_documents_url(event_id), params={"actor_user_id": actor_user_id}, files=files)


def _stored_files(documents_dir):
    if not documents_dir.exists():
        return []
    return sorted(p.name for p in documents_dir.iterdir() if p.is_file())


@pytest.fixture
def event(client, catalog):
    return create_event(client, catalog.planner.user_id, machine_id=catalog.m1.machine_id)


class TestComments:
    def test_add_comment(self, client, db, catalog, event):
        resp = client.post(
            _comments_url(event["event_id"]),
            params={"actor_user_id": catalog.planner.user_id},
            json={"body": "  Fixture 3 needs recalibration  "},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["body"] == "Fixture 3 needs recalibration"
        assert data["event_id"] == event["event_id"]
        assert data["created_by_username"] == "planner"

        detail = client.get(f"/api/planning/events/{event['event_id']}").json()
        assert [c["comment_id"] for c in detail["comments"]] == [data["comment_id"]]

        audit = db.query(AuditLog).filter(AuditLog.action == "planning.events.comment.create").one()
        assert audit.entity_id == event["event_id"]
        assert audit.details == {"comment_id": data["comment_id"]}

    def test_blank_comment_rejected(self, client, catalog, event):
        resp = client.post(
            _comments_url(event["event_id"]),
            params={"actor_user_id": catalog.planner.user_id},
            json={"body": "   "},
        )
        assert resp.status_code == 422

    def test_comment_on_missing_event(self, client, catalog):
        resp = client.post(
            _comments_url("missing"), params={"actor_user_id": catalog.planner.user_id}, json={"body": "hi"},
        )
        assert resp.status_code == 404

    def test_comment_on_archived_event(self, client, catalog, event):
        archive_event(client, catalog.planner.user_id, event["event_id"])
        resp = client.post(
            _comments_url(event["event_id"]),
            params={"actor_user_id": catalog.planner.user_id},
            json={"body": "Still there?"},
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "ARCHIVED_IMMUTABLE"


class TestDocuments:
    def test_upload_and_list(self, client, db, catalog, event, documents_dir):
        resp = _upload(client, catalog.planner.user_id, event["event_id"], [
            ("documents", ("notes.txt", b"torque 40Nm", "text/plain")),
            ("documents", ("drawing.pdf", PDF_BYTES, "application/pdf")),
        ])
        assert resp.status_code == 201, resp.text
        docs = resp.json()["documents"]
        assert [d["document_name"] for d in docs] == ["drawing.pdf", "notes.txt"]
        assert docs[0]["type"] == "PDF"
        assert docs[1]["type"] == "text/plain"

        stored = _stored_files(documents_dir)
        assert sorted(stored) == sorted([f"{docs[0]['document_id']}.pdf", f"{docs[1]['document_id']}.txt"])
        # nothing left behind in the spool area
        assert _stored_files(documents_dir / "incoming") == []

        audit = db.query(AuditLog).filter(AuditLog.action == "planning.events.documents.upload").one()
        assert audit.details == {"count": 2}

        detail = client.get(f"/api/planning/events/{event['event_id']}").json()
        assert [d["document_id"] for d in detail["documents"]] == [d["document_id"] for d in docs]

    def test_pdf_detected_by_extension(self, client, catalog, event):
        resp = _upload(client, catalog.planner.user_id, event["event_id"], [
            ("documents", ("SCAN.PDF", PDF_BYTES, "application/octet-stream")),
        ])
        assert resp.status_code == 201
        assert resp.json()["documents"][0]["type"] == "PDF"

    def test_no_documents(self, client, catalog, event):
        resp = client.post(_documents_url(event["event_id"]), params={"actor_user_id": catalog.planner.user_id})
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "NO_DOCUMENTS"

    def test_upload_to_archived_event_stores_nothing(self, client, catalog, event, documents_dir):
        archive_event(client, catalog.planner.user_id, event["event_id"])
        resp = _upload(client, catalog.planner.user_id, event["event_id"], [
            ("documents", ("drawing.pdf", PDF_BYTES, "application/pdf")),
        ])
        assert resp.status_code == 409
        assert _stored_files(documents_dir) == []
        assert _stored_files(documents_dir / "incoming") == []

    def test_copy_fallback_when_rename_fails(self, client, catalog, event, documents_dir, monkeypatch):
        def _cross_device(src, dst):
            raise OSError(18, "Invalid cross-device link")

        monkeypatch.setattr(document_storage.os, "rename", _cross_device)
        resp = _upload(client, catalog.planner.user_id, event["event_id"], [
            ("documents", ("drawing.pdf", PDF_BYTES, "application/pdf")),
        ])
        assert resp.status_code == 201, resp.text
        doc_id = resp.json()["documents"][0]["document_id"]
        assert (documents_dir / f"{doc_id}.pdf").read_bytes() == PDF_BYTES
        assert _stored_files(documents_dir / "incoming") == []

    def test_failed_transaction_removes_stored_files(self, db, catalog, documents_dir, tmp_path, monkeypatch):
        audit = AuditContext(actor_user_id=catalog.planner.user_id)
        created = event_service.create_event(db, EventCreate(
            machine_id=catalog.m1.machine_id,
            start_time_utc=BASE_TIME,
            end_time_utc=BASE_TIME.replace(hour=10),
        ), audit)
        spooled = tmp_path / "upload.part"
        spooled.write_bytes(PDF_BYTES)

        def _broken_record(*args, **kwargs):
            raise RuntimeError("audit sink unavailable")

        monkeypatch.setattr(attachment_service, "record", _broken_record)
        with pytest.raises(RuntimeError):
            attachment_service.attach_documents(db, created.event_id, [
                attachment_service.UploadedDocument("drawing.pdf", spooled, "application/pdf"),
            ], audit)

        assert _stored_files(documents_dir) == []
        assert db.query(Document).count() == 0


class TestDocumentFile:
    def _upload_pdf(self, client, catalog, event):
        resp = _upload(client, catalog.planner.user_id, event["event_id"], [
            ("documents", ("drawing.pdf", PDF_BYTES, "application/pdf")),
        ])
        assert resp.status_code == 201, resp.text
        return resp.json()["documents"][0]["document_id"]

    def test_inline_by_default(self, client, catalog, event):
        doc_id = self._upload_pdf(client, catalog, event)
        resp = client.get(f"{_documents_url(event['event_id'])}/{doc_id}/file")
        assert resp.status_code == 200
        assert resp.content == PDF_BYTES
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.headers["content-disposition"].startswith("inline")
        assert "drawing.pdf" in resp.headers["content-disposition"]

    def test_download_as_attachment(self, client, catalog, event):
        doc_id = self._upload_pdf(client, catalog, event)
        resp = client.get(f"{_documents_url(event['event_id'])}/{doc_id}/file", params={"download": "true"})
        assert resp.status_code == 200
        assert resp.headers["content-disposition"].startswith("attachment")

    def test_unknown_document(self, client, catalog, event):
        resp = client.get(f"{_documents_url(event['event_id'])}/nope/file")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "NOT_FOUND"

    def test_missing_bytes(self, client, catalog, event, documents_dir):
        doc_id = self._upload_pdf(client, catalog, event)
        os.unlink(documents_dir / f"{doc_id}.pdf")
        resp = client.get(f"{_documents_url(event['event_id'])}/{doc_id}/file")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "FILE_NOT_FOUND"


class TestDocumentStorage:
    def test_safe_extension(self):
        assert document_storage.safe_extension("Drawing.PDF") == ".pdf"
        assert document_storage.safe_extension("archive.tar.gz") == ".gz"
        assert document_storage.safe_extension("README") == ""
        assert document_storage.safe_extension("evil.p$f") == ""
        assert document_storage.safe_extension(None) == ""

    def test_is_pdf(self):
        assert document_storage.is_pdf("x.bin", "application/pdf")
        assert document_storage.is_pdf("x.bin", "application/x-pdf")
        assert document_storage.is_pdf("scan", "Application/PDF")
        assert document_storage.is_pdf("x.pdf", None)
        assert not document_storage.is_pdf("x.png", "image/png")

    def test_resolve_media_type(self):
        assert document_storage.resolve_media_type("PDF") == "application/pdf"
        assert document_storage.resolve_media_type("image/png") == "image/png"
        assert document_storage.resolve_media_type(None, "photo.png") == "image/png"
        assert document_storage.resolve_media_type(None, "blob") == "application/octet-stream"

    def test_stored_path_stays_inside_documents_dir(self, documents_dir):
        path = document_storage.resolve_stored_path("abc", "drawing.pdf")
        assert path == documents_dir.resolve() / "abc.pdf"

    def test_traversal_rejected(self):
        with pytest.raises(HTTPException) as exc:
            document_storage.resolve_stored_path("../../etc/passwd", None)
        assert exc.value.detail["code"] == "INVALID_STORAGE_PATH"

    def test_partial_copy_removed_when_fallback_fails(self, documents_dir, tmp_path, monkeypatch):
        source = tmp_path / "upload.part"
        source.write_bytes(PDF_BYTES)

        def _cross_device(src, dst):
            raise OSError(18, "Invalid cross-device link")

        def _disk_full(src, dst):
            with open(dst, "wb") as fh:
                fh.write(PDF_BYTES[:4])
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(document_storage.os, "rename", _cross_device)
        monkeypatch.setattr(document_storage.shutil, "copyfile", _disk_full)
        with pytest.raises(OSError):
            document_storage.store(source, "abc", "drawing.pdf")

        assert _stored_files(documents_dir) == []
        assert source.read_bytes() == PDF_BYTES

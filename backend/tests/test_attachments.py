"""Tests for attachment validation, storage and orphan cleanup."""

import re

import boto3
import pytest
from botocore.stub import ANY, Stubber

from casetrack.db.models import Proceeding
from casetrack.services import proceeding_service
from casetrack.services.attachment_service import AttachmentService, IncomingFile, stored_name_for
from casetrack.utils.exceptions import DependencyError, NotFoundOrDeniedError, PayloadValidationError

from conftest import proceeding_payload

PDF = IncomingFile("order sheet.pdf", "application/pdf", b"%PDF-1.4 test")


def s3_store():
    client = boto3.client(
        "s3",
        region_name="ap-south-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    return AttachmentService(storage="s3", s3_client=client, bucket="test-bucket", prefix="proceedings")


class TestValidation:
    def test_accepts_pdf(self, store):
        assert store.validate("order.pdf", "application/pdf", 1024).valid

    def test_rejects_oversized_file(self, store):
        check = store.validate("order.pdf", "application/pdf", store.max_bytes + 1)
        assert not check.valid
        assert "250 KB" in check.error

    def test_rejects_unknown_mime_type(self, store):
        assert not store.validate("notes.txt", "text/plain", 10).valid

    def test_rejects_mismatched_extension(self, store):
        check = store.validate("order.exe", "application/pdf", 10)
        assert not check.valid
        assert "extension" in check.error


def test_stored_name_is_sanitized_and_unique():
    first = stored_name_for("order sheet (final).PDF")
    second = stored_name_for("order sheet (final).PDF")
    assert re.fullmatch(r"order_sheet__final_-\d+-[0-9a-f]{12}\.pdf", first)
    assert first != second


class TestLocalStore:
    def test_save_path_delete(self, store):
        name = store.save(PDF.filename, PDF.content_type, PDF.data)
        assert store.exists(name)
        with open(store.path(name), "rb") as fh:
            assert fh.read() == PDF.data

        store.delete(name)
        assert not store.exists(name)

    def test_path_rejects_traversal(self, store):
        with pytest.raises(ValueError):
            store.path("../secrets.pdf")


class TestS3Store:
    def test_save_uploads_under_prefix(self):
        store = s3_store()
        with Stubber(store.s3_client) as stub:
            stub.add_response(
                "put_object",
                {},
                {"Bucket": "test-bucket", "Key": ANY, "Body": PDF.data, "ContentType": "application/pdf"},
            )
            name = store.save(PDF.filename, PDF.content_type, PDF.data)
            stub.assert_no_pending_responses()
        assert name.endswith(".pdf")

    def test_upload_failure_is_dependency_error(self):
        store = s3_store()
        with Stubber(store.s3_client) as stub:
            stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(DependencyError) as exc:
                store.save(PDF.filename, PDF.content_type, PDF.data)
        assert exc.value.status_code == 502

    def test_delete(self):
        store = s3_store()
        with Stubber(store.s3_client) as stub:
            stub.add_response(
                "delete_object", {}, {"Bucket": "test-bucket", "Key": "proceedings/a-1-abc.pdf"}
            )
            store.delete("a-1-abc.pdf")
            stub.assert_no_pending_responses()

    def test_missing_object(self):
        store = s3_store()
        with Stubber(store.s3_client) as stub:
            stub.add_client_error("head_object", service_error_code="404", http_status_code=404)
            assert store.exists("gone.pdf") is False


class TestCreateWithAttachments:
    def test_files_are_referenced(self, db, case, owner, store):
        proceeding = proceeding_service.create_proceeding_with_attachments(
            db, owner, proceeding_payload(case.id), [PDF], store
        )
        assert len(proceeding.attachments) == 1
        ref = proceeding.attachments[0]
        assert ref["file_name"] == "order sheet.pdf"
        assert store.exists(ref["file_url"])

    def test_invalid_file_stores_nothing(self, db, case, owner, store):
        bad = IncomingFile("notes.txt", "text/plain", b"hello")
        with pytest.raises(PayloadValidationError) as exc:
            proceeding_service.create_proceeding_with_attachments(
                db, owner, proceeding_payload(case.id), [PDF, bad], store
            )
        assert exc.value.errors[0].startswith("files.1:")
        assert not store.local_dir.exists() or not any(store.local_dir.iterdir())

    def test_failed_write_removes_saved_files(self, db, case, owner, store, monkeypatch):
        def broken_create(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(proceeding_service, "create_proceeding", broken_create)
        with pytest.raises(RuntimeError):
            proceeding_service.create_proceeding_with_attachments(
                db, owner, proceeding_payload(case.id), [PDF], store
            )
        assert not any(store.local_dir.iterdir())
        assert db.query(Proceeding).count() == 0


class TestFindAttachmentProceeding:
    def test_entry_attachment_is_found(self, db, case, owner):
        payload = proceeding_payload(
            case.id, "DECISION",
            decision_details=[{"writ_status": "ALLOWED", "attachment": "order-1-abc123def456.pdf"}],
        )
        created = proceeding_service.create_proceeding(db, owner, payload)
        found = proceeding_service.find_attachment_proceeding(db, owner, "order-1-abc123def456.pdf")
        assert found.id == created.id

    def test_similar_name_is_not_a_match(self, db, case, owner, stranger):
        data = proceeding_payload(
            case.id, attachments=[{"file_name": "a.pdf", "file_url": "order-1-abc123def456.pdf"}]
        )
        proceeding_service.create_proceeding(db, owner, data)
        with pytest.raises(NotFoundOrDeniedError):
            proceeding_service.find_attachment_proceeding(db, owner, "order-1-abc123def456")
        with pytest.raises(NotFoundOrDeniedError):
            proceeding_service.find_attachment_proceeding(db, stranger, "order-1-abc123def456.pdf")

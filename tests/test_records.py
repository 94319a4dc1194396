"""Tests for record normalization and the per-subject record store."""

from datetime import UTC, date, datetime

import pytest

from compliance_engine.models import SubjectKind, VerificationStatus
from compliance_engine.services import DocumentRecordStore, TransientError
from compliance_engine.services.records import (
    current_records,
    normalize_record,
    parse_date,
    parse_datetime,
    subject_kind_of,
)


class TestNormalizeRecord:
    def test_camel_case_payload(self) -> None:
        record = normalize_record(
            {
                "id": 42,
                "subjectId": "doc-1",
                "documentTypeKey": "dbs-check",
                "originalFileName": "dbs.pdf",
                "fileSize": "2048",
                "issueDate": "2022-01-10",
                "uploadedAt": "2024-01-01T09:00:00.000Z",
                "verificationStatus": "Verified",
            }
        )

        assert record is not None
        assert record.id == "42"
        assert record.subject_id == "doc-1"
        assert record.file_size == 2048
        assert record.issue_date == date(2022, 1, 10)
        assert record.uploaded_at == datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        assert record.verification_status is VerificationStatus.VERIFIED

    def test_nested_relation_payload(self) -> None:
        record = normalize_record(
            {
                "id": 7,
                "attributes": {
                    "documentType": {"data": {"id": 3, "attributes": {"key": "gmc-registration"}}},
                    "doctor": {"data": {"id": 99}},
                    "expiryDate": "2026-05-01",
                },
            }
        )

        assert record is not None
        assert record.document_type_key == "gmc-registration"
        assert record.subject_id == "99"
        assert record.expiry_date == date(2026, 5, 1)

    def test_snake_case_payload_falls_back_to_requested_subject(self) -> None:
        record = normalize_record(
            {"document_id": "abc", "document_type_key": "gp-cv", "verification_status": "bogus"},
            subject_id="doc-5",
        )

        assert record is not None
        assert record.id == "abc"
        assert record.subject_id == "doc-5"
        assert record.verification_status is VerificationStatus.PENDING

    def test_malformed_dates_are_dropped(self) -> None:
        record = normalize_record(
            {"id": 1, "documentTypeKey": "dbs-check", "issueDate": "10/01/2022"}
        )
        assert record is not None
        assert record.issue_date is None

    @pytest.mark.parametrize(
        "payload",
        [{"documentTypeKey": "dbs-check"}, {"id": 1}],
    )
    def test_incomplete_payload_is_skipped(self, payload: dict) -> None:
        assert normalize_record(payload) is None


def test_parse_helpers() -> None:
    assert parse_date("2024-02-29T10:00:00Z") == date(2024, 2, 29)
    assert parse_date("") is None
    assert parse_datetime("2024-06-01T10:00:00+02:00") == datetime(2024, 6, 1, 8, tzinfo=UTC)
    assert parse_datetime("yesterday") is None


def test_subject_kind_inference() -> None:
    assert subject_kind_of({"subjectKind": "business"}) is SubjectKind.BUSINESS
    assert subject_kind_of({"businessId": 4}) is SubjectKind.BUSINESS
    assert subject_kind_of({"doctorId": 4}) is SubjectKind.DOCTOR


def test_current_records_prefers_latest_upload_then_highest_id() -> None:
    same_time = "2024-03-01T10:00:00Z"
    records = [
        normalize_record({"id": 9, "documentTypeKey": "gp-cv", "uploadedAt": same_time}),
        normalize_record({"id": 10, "documentTypeKey": "gp-cv", "uploadedAt": same_time}),
        normalize_record({"id": 11, "documentTypeKey": "dbs-check", "uploadedAt": same_time}),
        normalize_record(
            {"id": 2, "documentTypeKey": "dbs-check", "uploadedAt": "2024-03-02T10:00:00Z"}
        ),
    ]

    current = current_records([r for r in records if r is not None])

    assert current["gp-cv"].id == "10"
    assert current["dbs-check"].id == "2"


@pytest.mark.asyncio
async def test_store_serves_stale_snapshot_when_backend_unreachable(backend, backend_client):
    record_id = backend.add_document(subject_id="doc-1", type_key="dbs-check")
    store = DocumentRecordStore(backend_client)

    fresh = await store.load("doc-1", SubjectKind.DOCTOR)
    assert fresh.stale is False
    assert fresh.find(record_id) is not None

    backend.offline = True
    stale = await store.load("doc-1", SubjectKind.DOCTOR)

    assert stale.stale is True
    assert stale.records_by_type == fresh.records_by_type
    assert stale.fetched_at == fresh.fetched_at


@pytest.mark.asyncio
async def test_store_raises_without_snapshot(backend, backend_client):
    backend.offline = True
    store = DocumentRecordStore(backend_client)

    with pytest.raises(TransientError):
        await store.load("doc-1", SubjectKind.DOCTOR)


@pytest.mark.asyncio
async def test_store_replaces_snapshot_instead_of_merging(backend, backend_client):
    first = backend.add_document(subject_id="doc-1", type_key="dbs-check")
    store = DocumentRecordStore(backend_client)
    await store.load("doc-1", SubjectKind.DOCTOR)

    del backend.documents[first]
    snapshot = await store.load("doc-1", SubjectKind.DOCTOR)

    assert snapshot.records_by_type == {}
    assert snapshot.find(first) is None


@pytest.mark.asyncio
async def test_store_filters_by_subject_kind(backend, backend_client):
    backend.add_document(subject_id="7", type_key="dbs-check", subject_kind="doctor")
    backend.add_document(subject_id="7", type_key="business-license", subject_kind="business")
    store = DocumentRecordStore(backend_client)

    snapshot = await store.load("7", SubjectKind.BUSINESS)

    assert list(snapshot.records_by_type) == ["business-license"]

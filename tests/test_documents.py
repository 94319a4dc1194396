"""Tests for document upload, deletion, date correction and listing."""

from datetime import date

import pytest

from compliance_engine.models import DocumentStatus, SubjectKind, VerificationStatus
from compliance_engine.schemas import DocumentTypeDescriptor
from compliance_engine.services import (
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from compliance_engine.services.documents import validate_upload
from tests.fakes import parse_multipart

DOCTOR = SubjectKind.DOCTOR
NOW = date(2024, 12, 20)

DBS = DocumentTypeDescriptor(
    key="dbs-check", name="Enhanced DBS Check", auto_expiry=True, validity_years=3
)
GMC = DocumentTypeDescriptor(key="gmc-registration", name="GMC Registration")


class TestValidateUpload:
    def test_accepts_valid_upload(self) -> None:
        validate_upload(DBS, file_name="dbs.PDF", size=100, issue_date=date(2022, 1, 10))

    @pytest.mark.parametrize(
        ("kwargs", "field"),
        [
            ({"file_name": "dbs.pdf", "size": 0, "issue_date": date(2022, 1, 10)}, "file"),
            ({"file_name": "dbs.exe", "size": 10, "issue_date": date(2022, 1, 10)}, "file"),
            ({"file_name": "dbs.pdf", "size": 10, "issue_date": None}, "issue_date"),
            (
                {
                    "file_name": "dbs.pdf",
                    "size": 10,
                    "issue_date": date(2022, 1, 10),
                    "expiry_date": date(2030, 1, 1),
                },
                "expiry_date",
            ),
        ],
    )
    def test_auto_expiry_rules(self, kwargs: dict, field: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_upload(DBS, **kwargs)
        assert exc_info.value.field == field

    def test_rejects_oversized_file(self) -> None:
        with pytest.raises(ValidationError, match="too large"):
            validate_upload(GMC, file_name="gmc.pdf", size=11, issue_date=None, max_bytes=10)

    def test_rejects_expiry_before_issue(self) -> None:
        with pytest.raises(ValidationError, match="before issue date"):
            validate_upload(
                GMC,
                file_name="gmc.pdf",
                size=10,
                issue_date=date(2024, 5, 1),
                expiry_date=date(2024, 4, 1),
            )

    def test_rejects_reference_types(self) -> None:
        refs = DocumentTypeDescriptor(key="refs", name="References", kind="references")
        with pytest.raises(ValidationError, match="references"):
            validate_upload(refs, file_name="refs.pdf", size=10, issue_date=None)


@pytest.mark.asyncio
async def test_listing_reports_status_per_type(backend, engine) -> None:
    backend.add_document(subject_id="doc-1", type_key="dbs-check", issue_date="2022-01-10")
    backend.add_document(subject_id="doc-1", type_key="gmc-registration", status="verified")

    listing = await engine.documents.list_views("doc-1", DOCTOR, now=NOW)

    views = {v.document_type.key: v for v in listing.documents}
    assert "professional-references" not in views
    assert views["dbs-check"].status is DocumentStatus.EXPIRING
    assert views["dbs-check"].days_until_expiry == 21
    assert views["dbs-check"].can_review is True
    assert views["gmc-registration"].status is DocumentStatus.UPLOADED
    assert views["gp-cv"].status is DocumentStatus.MISSING
    assert listing.overview.verified == 1
    assert listing.stale is False
    assert listing.catalog_fallback is False


@pytest.mark.asyncio
async def test_listing_is_flagged_stale_when_backend_goes_away(backend, engine) -> None:
    backend.add_document(subject_id="doc-1", type_key="gmc-registration")
    await engine.documents.list_views("doc-1", DOCTOR, now=NOW)

    backend.offline = True
    listing = await engine.documents.list_views("doc-1", DOCTOR, now=NOW)

    assert listing.stale is True
    assert {v.document_type.key for v in listing.documents if v.record} == {"gmc-registration"}


@pytest.mark.asyncio
async def test_upload_sends_calculated_expiry(backend, engine) -> None:
    view = await engine.documents.upload(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        document_type_key="dbs-check",
        file_name="dbs.pdf",
        content=b"%PDF-1.7 scan",
        content_type="application/pdf",
        issue_date=date(2022, 1, 10),
        now=NOW,
    )

    fields, file_info = parse_multipart(backend.calls("POST", "/documents/upload")[0])
    assert fields["expiryDate"] == "2025-01-10"
    assert file_info["filename"] == "dbs.pdf"
    assert view.status is DocumentStatus.EXPIRING
    assert view.expiry_date == date(2025, 1, 10)


@pytest.mark.asyncio
async def test_reupload_resets_review_state(backend, engine) -> None:
    old_id = backend.add_document(
        subject_id="doc-1", type_key="gmc-registration", status="rejected", notes="Expired scan"
    )

    view = await engine.documents.upload(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        document_type_key="gmc-registration",
        file_name="gmc.png",
        content=b"png",
        now=NOW,
    )

    assert view.record.id != old_id
    assert view.verification_status is VerificationStatus.PENDING
    assert view.can_review is True


@pytest.mark.asyncio
async def test_upload_of_unknown_type_is_not_found(engine) -> None:
    with pytest.raises(NotFoundError):
        await engine.documents.upload(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            document_type_key="passport",
            file_name="passport.pdf",
            content=b"pdf",
        )


@pytest.mark.asyncio
async def test_upload_is_not_retried_when_backend_fails(backend, engine) -> None:
    await engine.registry.get_catalog(DOCTOR)
    backend.fail_status = 503

    with pytest.raises(TransientError):
        await engine.documents.upload(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            document_type_key="gmc-registration",
            file_name="gmc.pdf",
            content=b"pdf",
        )
    assert len(backend.calls("POST", "/documents/upload")) == 1


@pytest.mark.asyncio
async def test_delete_returns_missing_view(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-1", type_key="gmc-registration")

    view = await engine.documents.delete(
        subject_id="doc-1", subject_kind=DOCTOR, record_id=record_id
    )

    assert view.status is DocumentStatus.MISSING
    assert view.record is None
    with pytest.raises(NotFoundError):
        await engine.documents.delete(subject_id="doc-1", subject_kind=DOCTOR, record_id=record_id)


@pytest.mark.asyncio
async def test_update_dates_recalculates_auto_expiry(backend, engine) -> None:
    record_id = backend.add_document(
        subject_id="doc-1", type_key="dbs-check", issue_date="2021-01-01"
    )

    view = await engine.documents.update_dates(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        record_id=record_id,
        issue_date=date(2022, 1, 10),
        now=NOW,
    )

    assert backend.documents[record_id]["expiryDate"] == "2025-01-10"
    assert view.status is DocumentStatus.EXPIRING

    with pytest.raises(ValidationError):
        await engine.documents.update_dates(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            issue_date=date(2022, 1, 10),
            expiry_date=date(2026, 1, 1),
        )


@pytest.mark.asyncio
async def test_update_dates_on_replaced_record_conflicts(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-1", type_key="gmc-registration")
    await engine.documents.list_views("doc-1", DOCTOR, now=NOW)
    backend.conflict_ids.add(record_id)

    with pytest.raises(ConflictError):
        await engine.documents.update_dates(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            issue_date=date(2024, 1, 1),
            expiry_date=date(2029, 1, 1),
        )


@pytest.mark.asyncio
async def test_download_link_for_current_record(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-1", type_key="gmc-registration")

    link = await engine.documents.download_link(
        subject_id="doc-1", subject_kind=DOCTOR, record_id=record_id
    )

    assert link.record_id == record_id
    assert link.download_url.startswith(f"https://files.test/{record_id}")
    assert link.file_name == "gmc-registration.pdf"


@pytest.mark.asyncio
async def test_download_link_for_other_subjects_record_is_not_found(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-2", type_key="gmc-registration")

    with pytest.raises(NotFoundError):
        await engine.documents.download_link(
            subject_id="doc-1", subject_kind=DOCTOR, record_id=record_id
        )

"""Tests for the admin review workflow."""

from datetime import date

import pytest

from compliance_engine.models import SubjectKind, VerificationStatus
from compliance_engine.services import ConflictError, TransientError, ValidationError
from compliance_engine.services.verification import (
    STALE_RECORD_MESSAGE,
    next_status_on_review,
    status_after_upload,
)

NOW = date(2024, 6, 1)
DOCTOR = SubjectKind.DOCTOR


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "decision"),
        [
            (VerificationStatus.PENDING, VerificationStatus.VERIFIED),
            (VerificationStatus.PENDING, VerificationStatus.REJECTED),
            (VerificationStatus.REJECTED, VerificationStatus.VERIFIED),
            (VerificationStatus.VERIFIED, VerificationStatus.REJECTED),
        ],
    )
    def test_allowed(self, current, decision) -> None:
        assert next_status_on_review(current, decision) is decision

    def test_pending_is_not_a_decision(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            next_status_on_review(VerificationStatus.REJECTED, VerificationStatus.PENDING)
        assert exc_info.value.field == "verification_status"

    def test_same_state_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="already verified"):
            next_status_on_review(VerificationStatus.VERIFIED, VerificationStatus.VERIFIED)

    def test_upload_always_resets_to_pending(self) -> None:
        assert status_after_upload() is VerificationStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "late_decision", [VerificationStatus.VERIFIED, VerificationStatus.REJECTED]
)
async def test_review_of_replaced_record_conflicts(backend, engine, late_decision) -> None:
    """Rejecting, re-uploading, then reviewing the old id must not touch the new upload."""
    old_id = backend.add_document(
        subject_id="doc-1",
        type_key="dbs-check",
        record_id="42",
        issue_date="2023-03-01",
    )
    await engine.verification.review(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        record_id=old_id,
        decision=VerificationStatus.REJECTED,
        notes="Name does not match",
        now=NOW,
    )

    view = await engine.documents.upload(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        document_type_key="dbs-check",
        file_name="dbs-new.pdf",
        content=b"%PDF new",
        issue_date=date(2024, 5, 1),
        now=NOW,
    )
    new_id = view.record.id
    assert new_id != old_id
    assert view.verification_status is VerificationStatus.PENDING

    verify_calls_before = len(backend.calls("PUT", f"/documents/{old_id}/verify"))
    with pytest.raises(ConflictError, match=STALE_RECORD_MESSAGE):
        await engine.verification.review(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=old_id,
            decision=late_decision,
            notes="Late decision",
            now=NOW,
        )

    assert len(backend.calls("PUT", f"/documents/{old_id}/verify")) == verify_calls_before
    assert not backend.calls("PUT", f"/documents/{new_id}/verify")
    assert backend.documents[new_id]["verificationStatus"] == "pending"


@pytest.mark.asyncio
async def test_rejected_record_can_be_verified_on_re_review(backend, engine) -> None:
    record_id = backend.add_document(
        subject_id="doc-1",
        type_key="gmc-registration",
        status="rejected",
        notes="Wrong page",
    )

    updated = await engine.verification.review(
        subject_id="doc-1",
        subject_kind=DOCTOR,
        record_id=record_id,
        decision=VerificationStatus.VERIFIED,
        reviewer_id="admin-1",
        now=NOW,
    )

    assert updated.id == record_id
    assert updated.verification_status is VerificationStatus.VERIFIED


@pytest.mark.asyncio
async def test_expired_document_cannot_be_reviewed(backend, engine) -> None:
    record_id = backend.add_document(
        subject_id="doc-1",
        type_key="basic-life-support",
        issue_date="2022-01-01",
    )

    with pytest.raises(ValidationError, match="expired"):
        await engine.verification.review(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            decision=VerificationStatus.VERIFIED,
            now=NOW,
        )
    assert backend.calls("PUT", "/documents") == []


@pytest.mark.asyncio
async def test_backend_conflict_surfaces_as_stale_record(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-1", type_key="gmc-registration")
    backend.conflict_ids.add(record_id)

    with pytest.raises(ConflictError, match=STALE_RECORD_MESSAGE):
        await engine.verification.review(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            decision=VerificationStatus.VERIFIED,
            now=NOW,
        )


@pytest.mark.asyncio
async def test_same_state_decision_is_not_sent(backend, engine) -> None:
    record_id = backend.add_document(
        subject_id="doc-1", type_key="gmc-registration", status="verified"
    )

    with pytest.raises(ValidationError):
        await engine.verification.review(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            decision=VerificationStatus.VERIFIED,
            now=NOW,
        )
    assert backend.calls("PUT", "/documents") == []


@pytest.mark.asyncio
async def test_review_refuses_stale_snapshot(backend, engine) -> None:
    record_id = backend.add_document(subject_id="doc-1", type_key="gmc-registration")
    await engine.records.load("doc-1", DOCTOR)
    await engine.registry.get_catalog(DOCTOR)

    backend.offline = True
    with pytest.raises(TransientError):
        await engine.verification.review(
            subject_id="doc-1",
            subject_kind=DOCTOR,
            record_id=record_id,
            decision=VerificationStatus.VERIFIED,
            now=NOW,
        )

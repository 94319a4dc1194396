"""Admin review workflow for uploaded documents.

Verification states:
    pending  -> verified | rejected     (admin review)
    rejected -> verified, verified -> rejected  (admin re-review, same record)
    any      -> pending                 (subject uploads a replacement)

A review always names the record id it was issued against. The subject's
records are refetched first so a review aimed at a superseded or deleted
record fails with ConflictError instead of landing on the replacement.
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from compliance_engine.logger import get_logger
from compliance_engine.models import SubjectKind, VerificationStatus
from compliance_engine.schemas import DocumentRecord
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.errors import ConflictError, TransientError, ValidationError
from compliance_engine.services.records import DocumentRecordStore
from compliance_engine.services.registry import DocumentTypeRegistry
from compliance_engine.services.status import can_review, derive_status

logger = get_logger(__name__)

REVIEW_DECISIONS = frozenset({VerificationStatus.VERIFIED, VerificationStatus.REJECTED})

ALLOWED_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: REVIEW_DECISIONS,
    VerificationStatus.VERIFIED: frozenset({VerificationStatus.REJECTED}),
    VerificationStatus.REJECTED: frozenset({VerificationStatus.VERIFIED}),
}

STALE_RECORD_MESSAGE = "Document changed, please refresh"


def next_status_on_review(
    current: VerificationStatus,
    decision: VerificationStatus,
) -> VerificationStatus:
    """Validate an admin decision against the current verification state."""
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(
            f"Review decision must be verified or rejected, got {decision.value}",
            field="verification_status",
        )
    if decision == current:
        raise ValidationError(
            f"Document is already {current.value}",
            field="verification_status",
        )
    if decision not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(f"Cannot move a {current.value} document to {decision.value}")
    return decision


def status_after_upload() -> VerificationStatus:
    """A new upload always starts a fresh review, whatever the previous state."""
    return VerificationStatus.PENDING


class VerificationWorkflow:
    def __init__(
        self,
        client: ComplianceBackendClient,
        store: DocumentRecordStore,
        registry: DocumentTypeRegistry,
    ) -> None:
        self._client = client
        self._store = store
        self._registry = registry

    async def review(
        self,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        record_id: str,
        decision: VerificationStatus,
        notes: str | None = None,
        reviewer_id: str | None = None,
        now: date | datetime | None = None,
    ) -> DocumentRecord:
        """Apply a verify or reject decision to one specific record.

        Raises:
            ConflictError: record_id is not the subject's current record.
            ValidationError: the decision is not allowed for the record's state.
            NotFoundError: the record's document type is not in the catalog.
            TransientError: the backend could not confirm the current record.
        """
        snapshot = await self._store.load(subject_id, subject_kind)
        if snapshot.stale:
            raise TransientError(
                "Cannot confirm the current document while the backend is unreachable"
            )

        record = snapshot.find(record_id)
        if record is None:
            logger.info(
                "Rejected review of non-current record",
                subject_id=subject_id,
                record_id=record_id,
                reviewer_id=reviewer_id,
            )
            raise ConflictError(STALE_RECORD_MESSAGE)

        doc_type = await self._registry.get_type(subject_kind, record.document_type_key)
        status = derive_status(record, doc_type, now or datetime.now(UTC))
        if not can_review(status):
            raise ValidationError(f"Cannot review a document that is {status.value}")
        next_status_on_review(record.verification_status, decision)

        try:
            await self._client.verify_document(record_id, decision, notes)
        except ConflictError:
            logger.info("Backend rejected review of stale record", record_id=record_id)
            raise ConflictError(STALE_RECORD_MESSAGE) from None

        refreshed = await self._store.load(subject_id, subject_kind)
        updated = refreshed.find(record_id)
        if updated is None:
            raise ConflictError(STALE_RECORD_MESSAGE)

        logger.info(
            "Document reviewed",
            subject_id=subject_id,
            subject_kind=subject_kind.value,
            record_id=record_id,
            document_type=record.document_type_key,
            previous_status=record.verification_status.value,
            decision=decision.value,
            reviewer_id=reviewer_id,
        )
        return updated

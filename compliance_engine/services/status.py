"""Status derivation for compliance documents.

Everything here is a pure function of its inputs and is re-evaluated on every
request; derived statuses are never cached or stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from compliance_engine.logger import get_logger
from compliance_engine.models import DocumentKind, DocumentStatus, VerificationStatus
from compliance_engine.schemas import (
    ComplianceOverview,
    DocumentRecord,
    DocumentTypeDescriptor,
    DocumentView,
)
from compliance_engine.services.expiry import calculate_expiry, days_until_expiry

logger = get_logger(__name__)

REVIEWABLE_STATUSES = frozenset({DocumentStatus.UPLOADED, DocumentStatus.EXPIRING})


@dataclass(frozen=True)
class StatusEvaluation:
    """Derived status plus the expiry facts it was based on."""

    status: DocumentStatus
    expiry_date: date | None = None
    days_until_expiry: int | None = None


def resolve_expiry(record: DocumentRecord, doc_type: DocumentTypeDescriptor) -> date | None:
    """Expiry to track for a record, or None when no basis exists.

    Auto-expiry types always recompute from the issue date and ignore any
    stored expiry. Malformed or out-of-range dates disable tracking.
    """
    if not doc_type.auto_expiry or record.issue_date is None or not doc_type.validity_years:
        return None
    try:
        return calculate_expiry(record.issue_date, doc_type.validity_years)
    except (ValueError, OverflowError) as exc:
        logger.warning(
            "Expiry calculation failed; tracking disabled for record",
            record_id=record.id,
            document_type=doc_type.key,
            issue_date=str(record.issue_date),
            error=str(exc),
        )
        return None


def evaluate_status(
    record: DocumentRecord | None,
    doc_type: DocumentTypeDescriptor,
    now: date | datetime,
) -> StatusEvaluation:
    """Derive a document's lifecycle status and expiry details."""
    if record is None:
        return StatusEvaluation(DocumentStatus.MISSING)
    if not doc_type.auto_expiry:
        return StatusEvaluation(DocumentStatus.UPLOADED)

    expiry = resolve_expiry(record, doc_type)
    if expiry is None:
        return StatusEvaluation(DocumentStatus.UPLOADED)

    remaining = days_until_expiry(expiry, now)
    if remaining < 0:
        status = DocumentStatus.EXPIRED
    elif remaining <= doc_type.expiry_warning_days:
        status = DocumentStatus.EXPIRING
    else:
        status = DocumentStatus.UPLOADED
    return StatusEvaluation(status, expiry, remaining)


def derive_status(
    record: DocumentRecord | None,
    doc_type: DocumentTypeDescriptor,
    now: date | datetime,
) -> DocumentStatus:
    """Return missing, uploaded, expiring or expired for one document."""
    return evaluate_status(record, doc_type, now).status


def can_review(status: DocumentStatus) -> bool:
    """Whether verify/reject controls apply to a document in this status."""
    return status in REVIEWABLE_STATUSES


def build_view(
    doc_type: DocumentTypeDescriptor,
    record: DocumentRecord | None,
    now: date | datetime,
) -> DocumentView:
    evaluation = evaluate_status(record, doc_type, now)
    expiry = evaluation.expiry_date
    if expiry is None and record is not None and not doc_type.auto_expiry:
        # Informational only; never drives status
        expiry = record.expiry_date
    return DocumentView(
        document_type=doc_type,
        record=record,
        status=evaluation.status,
        verification_status=record.verification_status if record else None,
        expiry_date=expiry,
        days_until_expiry=evaluation.days_until_expiry,
        can_review=can_review(evaluation.status),
    )


def build_views(
    catalog: list[DocumentTypeDescriptor],
    records_by_type: dict[str, DocumentRecord],
    now: date | datetime,
) -> list[DocumentView]:
    """Join every file-based catalog entry with its current record."""
    return [
        build_view(doc_type, records_by_type.get(doc_type.key), now)
        for doc_type in catalog
        if doc_type.kind == DocumentKind.FILE
    ]


def summarize_statuses(views: list[DocumentView]) -> ComplianceOverview:
    """Aggregate document views into overview counts."""
    overview = ComplianceOverview(total=len(views))
    satisfied_required = 0
    for view in views:
        if view.status == DocumentStatus.UPLOADED:
            overview.uploaded += 1
        elif view.status == DocumentStatus.MISSING:
            overview.missing += 1
        elif view.status == DocumentStatus.EXPIRING:
            overview.expiring += 1
        elif view.status == DocumentStatus.EXPIRED:
            overview.expired += 1

        if view.record is not None:
            if view.verification_status == VerificationStatus.VERIFIED:
                overview.verified += 1
            elif view.verification_status == VerificationStatus.REJECTED:
                overview.rejected += 1
            else:
                overview.pending_review += 1

        if view.document_type.required:
            overview.required_total += 1
            if view.status in REVIEWABLE_STATUSES:
                satisfied_required += 1

    if overview.required_total:
        overview.compliance_percentage = round(satisfied_required * 100 / overview.required_total)
    else:
        overview.compliance_percentage = 100
    return overview

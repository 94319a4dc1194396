"""Services package."""

from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.documents import ComplianceDocumentService, validate_upload
from compliance_engine.services.engine import ComplianceEngine
from compliance_engine.services.errors import (
    ComplianceError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from compliance_engine.services.expiry import calculate_expiry, days_until_expiry
from compliance_engine.services.notifications import NotificationService
from compliance_engine.services.poller import NotificationPoller
from compliance_engine.services.records import DocumentRecordStore, RecordSnapshot, normalize_record
from compliance_engine.services.references import ReferenceService, reference_status
from compliance_engine.services.registry import Catalog, DocumentTypeRegistry
from compliance_engine.services.status import can_review, derive_status, summarize_statuses
from compliance_engine.services.verification import VerificationWorkflow

__all__ = [
    "Catalog",
    "ComplianceBackendClient",
    "ComplianceDocumentService",
    "ComplianceEngine",
    "ComplianceError",
    "ConflictError",
    "DocumentRecordStore",
    "DocumentTypeRegistry",
    "NotFoundError",
    "NotificationPoller",
    "NotificationService",
    "RecordSnapshot",
    "ReferenceService",
    "TransientError",
    "ValidationError",
    "VerificationWorkflow",
    "calculate_expiry",
    "can_review",
    "days_until_expiry",
    "derive_status",
    "normalize_record",
    "reference_status",
    "summarize_statuses",
    "validate_upload",
]

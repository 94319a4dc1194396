"""Models package: shared enums and the read-receipt table."""

from compliance_engine.models.compliance import (
    DocumentCategory,
    DocumentKind,
    DocumentStatus,
    NotificationCategory,
    NotificationType,
    ReferenceSetStatus,
    SubjectKind,
    VerificationStatus,
    ViewerRole,
)
from compliance_engine.models.notification import NotificationReadReceipt

__all__ = [
    "DocumentCategory",
    "DocumentKind",
    "DocumentStatus",
    "NotificationCategory",
    "NotificationReadReceipt",
    "NotificationType",
    "ReferenceSetStatus",
    "SubjectKind",
    "VerificationStatus",
    "ViewerRole",
]

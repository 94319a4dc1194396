from compliance_engine.schemas.documents import (
    ComplianceOverview,
    DocumentListResponse,
    DocumentRecord,
    DocumentTypeDescriptor,
    DocumentTypeListResponse,
    DocumentView,
    DownloadLinkResponse,
    ProfessionalReference,
    ReferenceSetResponse,
    UpdateDatesRequest,
    VerifyDocumentRequest,
)
from compliance_engine.schemas.notifications import (
    MarkReadResponse,
    Notification,
    NotificationListResponse,
    NotificationSummary,
)

__all__ = [
    "ComplianceOverview",
    "DocumentListResponse",
    "DocumentRecord",
    "DocumentTypeDescriptor",
    "DocumentTypeListResponse",
    "DocumentView",
    "DownloadLinkResponse",
    "MarkReadResponse",
    "Notification",
    "NotificationListResponse",
    "NotificationSummary",
    "ProfessionalReference",
    "ReferenceSetResponse",
    "UpdateDatesRequest",
    "VerifyDocumentRequest",
]

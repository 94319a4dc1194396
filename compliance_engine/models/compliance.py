"""Enumerations shared by the compliance document engine."""

from enum import Enum


class SubjectKind(str, Enum):
    """Who a document set belongs to."""

    DOCTOR = "doctor"
    BUSINESS = "business"


class DocumentCategory(str, Enum):
    """Catalog grouping for document types."""

    REGISTRATION = "registration"
    INSURANCE = "insurance"
    FINANCIAL = "financial"
    COMPLIANCE = "compliance"
    PROFESSIONAL = "professional"
    IDENTITY = "identity"
    TRAINING = "training"
    CERTIFICATE = "certificate"
    CLEARANCE = "clearance"
    OTHER = "other"


class DocumentKind(str, Enum):
    """How a document type is satisfied."""

    FILE = "file"
    REFERENCES = "references"


class DocumentStatus(str, Enum):
    """Derived lifecycle status; computed, never stored."""

    MISSING = "missing"
    UPLOADED = "uploaded"
    EXPIRING = "expiring"
    EXPIRED = "expired"


class VerificationStatus(str, Enum):
    """Admin-controlled review state of a record."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReferenceSetStatus(str, Enum):
    """Status of a subject's professional references."""

    MISSING = "missing"
    HAS_ENTRIES = "has-entries"


class NotificationType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class NotificationCategory(str, Enum):
    UPLOAD = "upload"
    REVIEW = "review"
    EXPIRED = "expired"
    EXPIRING = "expiring"
    REJECTED = "rejected"
    COMPLIANCE = "compliance"


class ViewerRole(str, Enum):
    DOCTOR = "doctor"
    BUSINESS = "business"
    ADMIN = "admin"

"""Pydantic schemas for document types, records and derived views."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from compliance_engine.models import (
    DocumentCategory,
    DocumentKind,
    DocumentStatus,
    ReferenceSetStatus,
    SubjectKind,
    VerificationStatus,
)

DEFAULT_ACCEPTED_FORMATS = frozenset({".pdf", ".jpg", ".jpeg", ".png"})


def normalize_extension(value: str) -> str:
    ext = value.strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


class DocumentTypeDescriptor(BaseModel):
    """Catalog entry describing one required compliance artifact."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: DocumentCategory = DocumentCategory.OTHER
    required: bool = True
    auto_expiry: bool = False
    validity_years: int | None = Field(default=None, gt=0)
    expiry_warning_days: int = Field(default=30, ge=0)
    accepted_formats: frozenset[str] = DEFAULT_ACCEPTED_FORMATS
    kind: DocumentKind = DocumentKind.FILE
    note: str | None = None
    examples: str | None = None

    @field_validator("accepted_formats", mode="before")
    @classmethod
    def _parse_formats(cls, value: object) -> object:
        if value is None or value == "":
            return DEFAULT_ACCEPTED_FORMATS
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list | tuple | set | frozenset):
            return frozenset(ext for ext in (normalize_extension(str(v)) for v in value) if ext)
        return value

    @model_validator(mode="after")
    def _check_expiry_rules(self) -> "DocumentTypeDescriptor":
        if self.auto_expiry and not self.validity_years:
            raise ValueError(f"auto-expiry document type {self.key!r} needs validity_years > 0")
        return self

    def accepts(self, file_name: str) -> bool:
        """Return True if the file extension is in accepted_formats."""
        dot = file_name.rfind(".")
        if dot < 0:
            return False
        return normalize_extension(file_name[dot:]) in self.accepted_formats


class DocumentRecord(BaseModel):
    """Current uploaded record for one (subject, document type)."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject_id: str
    document_type_key: str
    original_file_name: str | None = None
    file_size: int | None = None
    file_type: str | None = None
    issue_date: date | None = None
    expiry_date: date | None = None
    uploaded_at: datetime | None = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    verification_notes: str | None = None
    verified_at: datetime | None = None
    notes: str | None = None


class DocumentView(BaseModel):
    """A catalog entry joined with its current record and derived state."""

    document_type: DocumentTypeDescriptor
    record: DocumentRecord | None = None
    status: DocumentStatus
    verification_status: VerificationStatus | None = None
    expiry_date: date | None = None
    days_until_expiry: int | None = None
    can_review: bool = False


class ComplianceOverview(BaseModel):
    """Counts shown on the compliance overview panel."""

    uploaded: int = 0
    missing: int = 0
    expiring: int = 0
    expired: int = 0
    verified: int = 0
    pending_review: int = 0
    rejected: int = 0
    total: int = 0
    required_total: int = 0
    compliance_percentage: int = 0


class DocumentListResponse(BaseModel):
    subject_id: str
    subject_kind: SubjectKind
    documents: list[DocumentView]
    overview: ComplianceOverview
    stale: bool = False
    catalog_fallback: bool = False
    fetched_at: datetime | None = None


class DocumentTypeListResponse(BaseModel):
    subject_kind: SubjectKind
    items: list[DocumentTypeDescriptor]
    total: int
    fallback: bool = False


class VerifyDocumentRequest(BaseModel):
    verification_status: VerificationStatus
    notes: str | None = Field(default=None, max_length=2000)


class UpdateDatesRequest(BaseModel):
    issue_date: date | None = None
    expiry_date: date | None = None


class DownloadLinkResponse(BaseModel):
    record_id: str
    download_url: str
    file_name: str | None = None
    expires_at: datetime | None = None


class ProfessionalReference(BaseModel):
    """A structured referee entry; not a file, never expires."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject_id: str
    referee_name: str
    referee_email: str | None = None
    position: str | None = None
    organisation: str | None = None
    is_clinical: bool = False
    submitted: bool = False
    submitted_at: datetime | None = None


class ReferenceSetResponse(BaseModel):
    subject_id: str
    status: ReferenceSetStatus
    references: list[ProfessionalReference]
    submitted_count: int
    required_count: int
    meets_requirement: bool
    stale: bool = False

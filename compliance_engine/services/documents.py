"""Subject-facing document operations: listing, upload, dates, delete and download.

Every mutation is forwarded to the backend and followed by a refetch; no
optimistic state is ever applied locally.
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from compliance_engine.config import settings
from compliance_engine.logger import get_logger
from compliance_engine.models import DocumentKind, SubjectKind
from compliance_engine.schemas import (
    DocumentListResponse,
    DocumentRecord,
    DocumentTypeDescriptor,
    DocumentView,
    DownloadLinkResponse,
)
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.errors import (
    ComplianceError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from compliance_engine.services.expiry import calculate_expiry
from compliance_engine.services.records import DocumentRecordStore, normalize_record, parse_datetime
from compliance_engine.services.registry import DocumentTypeRegistry
from compliance_engine.services.status import build_view, build_views, summarize_statuses
from compliance_engine.services.verification import status_after_upload

logger = get_logger(__name__)


def _expiry_for(doc_type: DocumentTypeDescriptor, issue_date: date) -> date:
    try:
        return calculate_expiry(issue_date, doc_type.validity_years or 1)
    except ValueError as exc:
        raise ValidationError(str(exc), field="issue_date") from exc


def validate_upload(
    doc_type: DocumentTypeDescriptor,
    *,
    file_name: str,
    size: int,
    issue_date: date | None,
    expiry_date: date | None = None,
    max_bytes: int | None = None,
) -> None:
    """Check an upload against the document type's rules before it is sent."""
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes
    if doc_type.kind == DocumentKind.REFERENCES:
        raise ValidationError(f"{doc_type.name} are submitted as references, not files")
    if size <= 0:
        raise ValidationError("Uploaded file is empty", field="file")
    if size > limit:
        raise ValidationError(
            f"File is too large ({size} bytes, limit {limit} bytes)",
            field="file",
        )
    if not doc_type.accepts(file_name):
        formats = ", ".join(sorted(doc_type.accepted_formats))
        raise ValidationError(
            f"Unsupported file type for {doc_type.name}; accepted: {formats}",
            field="file",
        )
    if doc_type.auto_expiry:
        if issue_date is None:
            raise ValidationError(
                f"Issue date is required for {doc_type.name}",
                field="issue_date",
            )
        if expiry_date is not None:
            raise ValidationError(
                f"Expiry date is calculated automatically for {doc_type.name}",
                field="expiry_date",
            )
    if issue_date and expiry_date and expiry_date < issue_date:
        raise ValidationError("Expiry date cannot be before issue date", field="expiry_date")


class ComplianceDocumentService:
    def __init__(
        self,
        client: ComplianceBackendClient,
        registry: DocumentTypeRegistry,
        store: DocumentRecordStore,
        *,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._client = client
        self._registry = registry
        self._store = store
        self._max_upload_bytes = max_upload_bytes

    async def list_views(
        self,
        subject_id: str,
        subject_kind: SubjectKind,
        *,
        now: date | datetime | None = None,
    ) -> DocumentListResponse:
        catalog = await self._registry.get_catalog(subject_kind)
        snapshot = await self._store.load(subject_id, subject_kind)
        views = build_views(catalog.types, snapshot.records_by_type, now or datetime.now(UTC))
        return DocumentListResponse(
            subject_id=subject_id,
            subject_kind=subject_kind,
            documents=views,
            overview=summarize_statuses(views),
            stale=snapshot.stale,
            catalog_fallback=catalog.fallback,
            fetched_at=snapshot.fetched_at,
        )

    async def _current_record(
        self,
        subject_id: str,
        subject_kind: SubjectKind,
        record_id: str,
    ) -> DocumentRecord:
        snapshot = await self._store.load(subject_id, subject_kind)
        if snapshot.stale:
            raise TransientError(
                "Cannot confirm the current document while the backend is unreachable"
            )
        record = snapshot.find(record_id)
        if record is None:
            raise NotFoundError(f"Document {record_id} is not a current document of {subject_id}")
        return record

    async def _refetched_view(
        self,
        subject_id: str,
        subject_kind: SubjectKind,
        doc_type: DocumentTypeDescriptor,
        now: date | datetime | None,
    ) -> DocumentView:
        snapshot = await self._store.load(subject_id, subject_kind)
        return build_view(
            doc_type,
            snapshot.records_by_type.get(doc_type.key),
            now or datetime.now(UTC),
        )

    async def upload(
        self,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        document_type_key: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        issue_date: date | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
        now: date | datetime | None = None,
    ) -> DocumentView:
        """Validate and forward an upload, then return the refetched view.

        Uploads are never retried automatically; a TransientError surfaces to
        the caller so the user can retry explicitly.
        """
        doc_type = await self._registry.get_type(subject_kind, document_type_key)
        validate_upload(
            doc_type,
            file_name=file_name,
            size=len(content),
            issue_date=issue_date,
            expiry_date=expiry_date,
            max_bytes=self._max_upload_bytes,
        )
        if doc_type.auto_expiry and issue_date is not None:
            expiry_date = _expiry_for(doc_type, issue_date)

        payload = await self._client.upload_document(
            subject_id=subject_id,
            subject_kind=subject_kind,
            document_type_key=doc_type.key,
            file_name=file_name,
            content=content,
            content_type=content_type,
            issue_date=issue_date,
            expiry_date=expiry_date,
            notes=notes,
        )
        logger.info(
            "Document uploaded",
            subject_id=subject_id,
            subject_kind=subject_kind.value,
            document_type=doc_type.key,
            file_size=len(content),
        )

        view = await self._refetched_view(subject_id, subject_kind, doc_type, now)
        if view.record is None:
            record = normalize_record(payload, subject_id=subject_id)
            if record is None:
                raise ConflictError("Uploaded document is not visible yet, please refresh")
            view = build_view(doc_type, record, now or datetime.now(UTC))
        if view.record.verification_status != status_after_upload():
            logger.warning(
                "Backend kept a previous verification state after upload",
                record_id=view.record.id,
                verification_status=view.record.verification_status.value,
            )
        return view

    async def delete(
        self,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        record_id: str,
        now: date | datetime | None = None,
    ) -> DocumentView:
        record = await self._current_record(subject_id, subject_kind, record_id)
        doc_type = await self._registry.get_type(subject_kind, record.document_type_key)
        await self._client.delete_document(record_id)
        logger.info(
            "Document deleted",
            subject_id=subject_id,
            record_id=record_id,
            document_type=doc_type.key,
        )
        return await self._refetched_view(subject_id, subject_kind, doc_type, now)

    async def update_dates(
        self,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        record_id: str,
        issue_date: date | None,
        expiry_date: date | None = None,
        now: date | datetime | None = None,
    ) -> DocumentView:
        """Correct a record's dates. Auto-expiry types always derive the expiry."""
        record = await self._current_record(subject_id, subject_kind, record_id)
        doc_type = await self._registry.get_type(subject_kind, record.document_type_key)
        if doc_type.auto_expiry:
            if expiry_date is not None:
                raise ValidationError(
                    f"Expiry date is calculated automatically for {doc_type.name}",
                    field="expiry_date",
                )
            if issue_date is None:
                raise ValidationError(
                    f"Issue date is required for {doc_type.name}",
                    field="issue_date",
                )
            expiry_date = _expiry_for(doc_type, issue_date)
        elif issue_date and expiry_date and expiry_date < issue_date:
            raise ValidationError("Expiry date cannot be before issue date", field="expiry_date")

        await self._client.update_document_dates(
            record_id,
            issue_date=issue_date,
            expiry_date=expiry_date,
        )
        view = await self._refetched_view(subject_id, subject_kind, doc_type, now)
        if view.record is None or view.record.id != record_id:
            raise ConflictError("Document changed, please refresh")
        return view

    async def download_link(
        self,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        record_id: str,
    ) -> DownloadLinkResponse:
        """Signed download link for one of the subject's current documents."""
        await self._current_record(subject_id, subject_kind, record_id)
        data = await self._client.get_download_url(record_id)
        url = data.get("downloadUrl") or data.get("download_url") or data.get("url")
        if not url:
            raise ComplianceError(f"Backend returned no download URL for document {record_id}")
        return DownloadLinkResponse(
            record_id=record_id,
            download_url=url,
            file_name=data.get("fileName") or data.get("file_name"),
            expires_at=parse_datetime(data.get("expiresAt") or data.get("expires_at")),
        )

"""Subject document API router: listing, upload, dates, review and download."""

from datetime import date

from fastapi import APIRouter, File, Form, UploadFile, status

from compliance_engine.auth import ensure_subject_access
from compliance_engine.config import settings
from compliance_engine.deps import AdminViewer, CurrentViewer, DbSession, Engine
from compliance_engine.logger import get_logger
from compliance_engine.models import SubjectKind
from compliance_engine.schemas import (
    DocumentListResponse,
    DocumentRecord,
    DocumentView,
    DownloadLinkResponse,
    ReferenceSetResponse,
    UpdateDatesRequest,
    VerifyDocumentRequest,
)
from compliance_engine.services import ComplianceError
from compliance_engine.utils import raise_bad_request, raise_from_compliance_error

router = APIRouter(prefix="/subjects/{subject_kind}/{subject_id}", tags=["documents"])
logger = get_logger(__name__)


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    subject_kind: SubjectKind,
    subject_id: str,
    engine: Engine,
    viewer: CurrentViewer,
) -> DocumentListResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        listing = await engine.documents.list_views(subject_id, subject_kind)
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    logger.info(
        "Documents listed",
        subject_id=subject_id,
        subject_kind=subject_kind.value,
        compliance_percentage=listing.overview.compliance_percentage,
        stale=listing.stale,
    )
    return listing


@router.post("/documents", response_model=DocumentView, status_code=status.HTTP_201_CREATED)
async def upload_document(
    subject_kind: SubjectKind,
    subject_id: str,
    engine: Engine,
    viewer: CurrentViewer,
    document_type_key: str = Form(...),
    file: UploadFile = File(...),
    issue_date: date | None = Form(default=None),
    expiry_date: date | None = Form(default=None),
    notes: str | None = Form(default=None),
) -> DocumentView:
    ensure_subject_access(viewer, subject_kind, subject_id)
    # One byte past the limit is enough to reject oversize files
    content = await file.read(settings.max_upload_bytes + 1)
    if not file.filename:
        raise_bad_request("Uploaded file has no name")
    try:
        return await engine.documents.upload(
            subject_id=subject_id,
            subject_kind=subject_kind,
            document_type_key=document_type_key,
            file_name=file.filename,
            content=content,
            content_type=file.content_type,
            issue_date=issue_date,
            expiry_date=expiry_date,
            notes=notes,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)


@router.put("/documents/{record_id}/dates", response_model=DocumentView)
async def update_document_dates(
    subject_kind: SubjectKind,
    subject_id: str,
    record_id: str,
    payload: UpdateDatesRequest,
    engine: Engine,
    viewer: CurrentViewer,
) -> DocumentView:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        return await engine.documents.update_dates(
            subject_id=subject_id,
            subject_kind=subject_kind,
            record_id=record_id,
            issue_date=payload.issue_date,
            expiry_date=payload.expiry_date,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)


@router.delete("/documents/{record_id}", response_model=DocumentView)
async def delete_document(
    subject_kind: SubjectKind,
    subject_id: str,
    record_id: str,
    db: DbSession,
    engine: Engine,
    viewer: CurrentViewer,
) -> DocumentView:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        view = await engine.documents.delete(
            subject_id=subject_id,
            subject_kind=subject_kind,
            record_id=record_id,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    await engine.notifications.reopen_missing(
        db,
        subject_id=subject_id,
        subject_kind=subject_kind,
        document_type_key=view.document_type.key,
    )
    await db.commit()
    return view


@router.get("/documents/{record_id}/download", response_model=DownloadLinkResponse)
async def download_document(
    subject_kind: SubjectKind,
    subject_id: str,
    record_id: str,
    engine: Engine,
    viewer: CurrentViewer,
) -> DownloadLinkResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        return await engine.documents.download_link(
            subject_id=subject_id,
            subject_kind=subject_kind,
            record_id=record_id,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)


@router.put("/documents/{record_id}/verify", response_model=DocumentRecord)
async def verify_document(
    subject_kind: SubjectKind,
    subject_id: str,
    record_id: str,
    payload: VerifyDocumentRequest,
    engine: Engine,
    admin: AdminViewer,
) -> DocumentRecord:
    try:
        return await engine.verification.review(
            subject_id=subject_id,
            subject_kind=subject_kind,
            record_id=record_id,
            decision=payload.verification_status,
            notes=payload.notes,
            reviewer_id=admin.id,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)


@router.get("/references", response_model=ReferenceSetResponse)
async def list_references(
    subject_kind: SubjectKind,
    subject_id: str,
    engine: Engine,
    viewer: CurrentViewer,
) -> ReferenceSetResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        return await engine.references.load(subject_id)
    except ComplianceError as exc:
        raise_from_compliance_error(exc)

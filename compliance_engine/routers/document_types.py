"""Document type catalog API router."""

from fastapi import APIRouter, Query

from compliance_engine.deps import CurrentViewer, Engine
from compliance_engine.logger import get_logger
from compliance_engine.models import SubjectKind
from compliance_engine.schemas import DocumentTypeDescriptor, DocumentTypeListResponse
from compliance_engine.services import NotFoundError
from compliance_engine.utils import raise_not_found

router = APIRouter(prefix="/document-types", tags=["document-types"])
logger = get_logger(__name__)


@router.get("", response_model=DocumentTypeListResponse)
async def list_document_types(
    engine: Engine,
    viewer: CurrentViewer,
    subject_kind: SubjectKind = Query(..., description="doctor or business"),
    required_only: bool = Query(default=False, description="Return only required types"),
) -> DocumentTypeListResponse:
    catalog = await engine.registry.get_catalog(subject_kind)
    items = [t for t in catalog.types if t.required or not required_only]
    logger.info(
        "Document catalog requested",
        subject_kind=subject_kind.value,
        type_count=len(items),
        fallback=catalog.fallback,
    )
    return DocumentTypeListResponse(
        subject_kind=subject_kind,
        items=items,
        total=len(items),
        fallback=catalog.fallback,
    )


@router.get("/{key}", response_model=DocumentTypeDescriptor)
async def get_document_type(
    key: str,
    engine: Engine,
    viewer: CurrentViewer,
    subject_kind: SubjectKind = Query(..., description="doctor or business"),
) -> DocumentTypeDescriptor:
    try:
        return await engine.registry.get_type(subject_kind, key)
    except NotFoundError as exc:
        raise_not_found("Document type", cause=exc)

"""Professional references: a structured requirement that never expires."""

from __future__ import annotations

from typing import Any

from compliance_engine.config import settings
from compliance_engine.logger import get_logger, log_exception
from compliance_engine.models import ReferenceSetStatus
from compliance_engine.schemas import ProfessionalReference, ReferenceSetResponse
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.cache import LRUCache
from compliance_engine.services.errors import TransientError
from compliance_engine.services.records import parse_datetime

logger = get_logger(__name__)


def normalize_reference(raw: dict[str, Any], *, subject_id: str) -> ProfessionalReference | None:
    attributes = raw.get("attributes")
    data = {**attributes, "id": raw.get("id")} if isinstance(attributes, dict) else raw
    if data.get("id") is None:
        logger.warning("Skipping professional reference without id")
        return None

    name = data.get("refereeName") or data.get("referee_name")
    if not name:
        first = data.get("firstName") or data.get("first_name") or ""
        last = data.get("lastName") or data.get("last_name") or ""
        name = f"{first} {last}".strip()

    return ProfessionalReference(
        id=str(data["id"]),
        subject_id=subject_id,
        referee_name=name or "Unnamed referee",
        referee_email=data.get("email") or data.get("refereeEmail"),
        position=data.get("position"),
        organisation=data.get("organisation") or data.get("organization"),
        is_clinical=bool(data.get("isClinical", data.get("is_clinical", False))),
        submitted=bool(data.get("isSubmitted", data.get("submitted", False))),
        submitted_at=parse_datetime(data.get("submittedAt") or data.get("submitted_at")),
    )


def reference_status(references: list[ProfessionalReference]) -> ReferenceSetStatus:
    """Presence only: ``has-entries`` once any reference exists."""
    return ReferenceSetStatus.HAS_ENTRIES if references else ReferenceSetStatus.MISSING


def meets_requirement(
    references: list[ProfessionalReference],
    required_count: int | None = None,
) -> bool:
    """Enough submitted references, at least one of them clinical."""
    required = required_count if required_count is not None else settings.required_reference_count
    submitted = [ref for ref in references if ref.submitted]
    return len(submitted) >= required and any(ref.is_clinical for ref in submitted)


def summarize_references(
    subject_id: str,
    references: list[ProfessionalReference],
    *,
    required_count: int | None = None,
    stale: bool = False,
) -> ReferenceSetResponse:
    required = required_count if required_count is not None else settings.required_reference_count
    return ReferenceSetResponse(
        subject_id=subject_id,
        status=reference_status(references),
        references=references,
        submitted_count=sum(1 for ref in references if ref.submitted),
        required_count=required,
        meets_requirement=meets_requirement(references, required),
        stale=stale,
    )


class ReferenceService:
    """Load a subject's professional references with a last-known fallback."""

    def __init__(self, client: ComplianceBackendClient, *, max_subjects: int | None = None) -> None:
        self._client = client
        self._last_known = LRUCache(maxsize=max_subjects or settings.record_cache_max_subjects)

    async def load(self, subject_id: str) -> ReferenceSetResponse:
        try:
            payloads = await self._client.list_professional_references(subject_id)
        except TransientError as exc:
            cached: list[ProfessionalReference] | None = self._last_known.get(subject_id)
            if cached is None:
                raise
            log_exception(
                logger,
                exc,
                "Backend unreachable, serving last known references",
                level="warning",
                include_traceback=False,
                subject_id=subject_id,
            )
            return summarize_references(subject_id, cached, stale=True)

        references = [
            ref
            for ref in (normalize_reference(raw, subject_id=subject_id) for raw in payloads)
            if ref is not None
        ]
        self._last_known.set(subject_id, references)
        return summarize_references(subject_id, references)

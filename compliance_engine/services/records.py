"""Normalization and loading of a subject's current document records.

The backend is authoritative. A local last-known snapshot per subject is kept
only so that listings can still be rendered, flagged stale, when the backend
is unreachable; the two are never merged.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import Any

from compliance_engine.config import settings
from compliance_engine.logger import get_logger, log_exception
from compliance_engine.models import SubjectKind, VerificationStatus
from compliance_engine.schemas import DocumentRecord
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.cache import LRUCache
from compliance_engine.services.errors import TransientError

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    attributes = raw.get("attributes")
    if isinstance(attributes, dict):
        return {**attributes, "id": raw.get("id", attributes.get("id"))}
    return raw


def _pick(data: dict[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


def _relation_value(value: Any, *keys: str) -> Any:
    """Resolve a scalar, ``{key: ...}`` or ``{"data": {"attributes": ...}}`` relation."""
    if isinstance(value, dict):
        if isinstance(value.get("data"), dict):
            value = _flatten(value["data"])
        return _pick(value, *keys)
    return value


def parse_date(value: Any) -> date | None:
    """Parse an ISO date (or datetime) value; malformed input yields None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.warning("Ignoring malformed date", value=text)
        return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO timestamp into an aware UTC datetime; malformed input yields None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Ignoring malformed timestamp", value=str(value))
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _verification_status(value: Any) -> VerificationStatus:
    if value is None:
        return VerificationStatus.PENDING
    try:
        return VerificationStatus(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown verification status, treating as pending", value=value)
        return VerificationStatus.PENDING


def _file_size(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_record(
    raw: dict[str, Any],
    *,
    subject_id: str | None = None,
) -> DocumentRecord | None:
    """Build a DocumentRecord from a backend payload.

    Returns None (and logs) when the payload has no id or document type.
    """
    data = _flatten(raw)
    record_id = _pick(data, "id", "documentId", "document_id")
    type_key = _relation_value(
        _pick(data, "documentTypeKey", "document_type_key", "documentType", "document_type"),
        "key",
        "documentTypeKey",
    )
    owner = _relation_value(
        _pick(data, "subjectId", "subject_id", "doctorId", "businessId", "doctor", "business"),
        "id",
    )
    if record_id is None or type_key is None:
        logger.warning("Skipping document record without id or type", record_id=record_id)
        return None

    return DocumentRecord(
        id=str(record_id),
        subject_id=str(owner if owner is not None else subject_id or ""),
        document_type_key=str(type_key),
        original_file_name=_pick(data, "originalFileName", "original_file_name", "fileName"),
        file_size=_file_size(_pick(data, "fileSize", "file_size")),
        file_type=_pick(data, "fileType", "file_type", "mimeType"),
        issue_date=parse_date(_pick(data, "issueDate", "issue_date")),
        expiry_date=parse_date(_pick(data, "expiryDate", "expiry_date")),
        uploaded_at=parse_datetime(_pick(data, "uploadedAt", "uploaded_at", "createdAt")),
        verification_status=_verification_status(
            _pick(data, "verificationStatus", "verification_status")
        ),
        verification_notes=_pick(data, "verificationNotes", "verification_notes"),
        verified_at=parse_datetime(_pick(data, "verifiedAt", "verified_at")),
        notes=_pick(data, "notes"),
    )


def subject_kind_of(raw: dict[str, Any]) -> SubjectKind:
    """Infer the owning subject kind of a backend record payload."""
    data = _flatten(raw)
    declared = _pick(data, "subjectKind", "subject_kind")
    if declared is not None:
        try:
            return SubjectKind(str(declared).lower())
        except ValueError:
            logger.warning("Unknown subject kind on record", value=declared)
    if _pick(data, "businessId", "business") is not None:
        return SubjectKind.BUSINESS
    return SubjectKind.DOCTOR


def _recency(record: DocumentRecord) -> tuple[datetime, int, str]:
    return (record.uploaded_at or _EPOCH, len(record.id), record.id)


def current_records(records: list[DocumentRecord]) -> dict[str, DocumentRecord]:
    """Keep one record per document type: latest upload, then highest id."""
    by_type: dict[str, DocumentRecord] = {}
    for record in records:
        existing = by_type.get(record.document_type_key)
        if existing is None or _recency(record) > _recency(existing):
            by_type[record.document_type_key] = record
    return by_type


@dataclass(frozen=True)
class RecordSnapshot:
    subject_id: str
    subject_kind: SubjectKind
    records_by_type: dict[str, DocumentRecord] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    stale: bool = False

    def find(self, record_id: str) -> DocumentRecord | None:
        for record in self.records_by_type.values():
            if record.id == record_id:
                return record
        return None


class DocumentRecordStore:
    """Load current records per subject from the backend."""

    def __init__(
        self,
        client: ComplianceBackendClient,
        *,
        max_subjects: int | None = None,
    ) -> None:
        self._client = client
        self._last_known = LRUCache(maxsize=max_subjects or settings.record_cache_max_subjects)

    @staticmethod
    def _cache_key(subject_id: str, subject_kind: SubjectKind) -> str:
        return f"{subject_kind.value}:{subject_id}"

    async def load(self, subject_id: str, subject_kind: SubjectKind) -> RecordSnapshot:
        """Fetch current records; on TransientError serve the last snapshot marked stale."""
        key = self._cache_key(subject_id, subject_kind)
        try:
            payloads = await self._client.list_documents(subject_id, subject_kind)
        except TransientError as exc:
            cached: RecordSnapshot | None = self._last_known.get(key)
            if cached is None:
                raise
            log_exception(
                logger,
                exc,
                "Backend unreachable, serving last known records",
                level="warning",
                include_traceback=False,
                subject_id=subject_id,
                fetched_at=cached.fetched_at.isoformat(),
            )
            return replace(cached, stale=True)

        records = [
            record
            for record in (normalize_record(raw, subject_id=subject_id) for raw in payloads)
            if record is not None
        ]
        snapshot = RecordSnapshot(
            subject_id=subject_id,
            subject_kind=subject_kind,
            records_by_type=current_records(records),
        )
        self._last_known.set(key, snapshot)
        logger.debug(
            "Loaded document records",
            subject_id=subject_id,
            subject_kind=subject_kind.value,
            record_count=len(snapshot.records_by_type),
        )
        return snapshot


"""Document type catalog per subject kind, with TTL caching and a built-in fallback."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pydantic

from compliance_engine.config import settings
from compliance_engine.logger import get_logger, log_exception
from compliance_engine.models import DocumentCategory, DocumentKind, SubjectKind
from compliance_engine.schemas import DocumentTypeDescriptor
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.cache import LRUCache
from compliance_engine.services.catalog import FALLBACK_CATALOGS
from compliance_engine.services.errors import NotFoundError, TransientError

logger = get_logger(__name__)

DEFAULT_VALIDITY_YEARS = 1

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "key": ("key", "documentTypeKey", "slug"),
    "name": ("name", "title", "label"),
    "description": ("description",),
    "category": ("category", "type"),
    "required": ("required", "isRequired"),
    "auto_expiry": ("autoExpiry", "auto_expiry"),
    "validity_years": ("validityYears", "validity_years"),
    "expiry_warning_days": ("expiryWarningDays", "expiry_warning_days"),
    "accepted_formats": ("acceptedFormats", "accepted_formats", "formats"),
    "kind": ("kind",),
    "note": ("note",),
    "examples": ("examples",),
}

_CATEGORY_ALIASES = {
    "document": DocumentCategory.OTHER,
    "check": DocumentCategory.COMPLIANCE,
    "license": DocumentCategory.REGISTRATION,
}


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    attributes = raw.get("attributes")
    if isinstance(attributes, dict):
        return {**attributes, "id": raw.get("id", attributes.get("id"))}
    return raw


def _pick(data: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


def _category(value: Any) -> DocumentCategory:
    if value is None:
        return DocumentCategory.OTHER
    text = str(value).strip().lower()
    try:
        return DocumentCategory(text)
    except ValueError:
        return _CATEGORY_ALIASES.get(text, DocumentCategory.OTHER)


def normalize_document_type(
    raw: dict[str, Any],
    *,
    default_warning_days: int | None = None,
) -> DocumentTypeDescriptor:
    """Build a descriptor from a backend or built-in catalog entry.

    Accepts camelCase or snake_case keys. An auto-expiry entry without
    validityYears defaults to one year; a non-positive validity is rejected
    by the descriptor schema.
    """
    data = _flatten(raw)
    fields = {name: _pick(data, aliases) for name, aliases in _FIELD_ALIASES.items()}
    if fields["key"] is None and data.get("id") is not None:
        fields["key"] = str(data["id"])

    fields["category"] = _category(fields["category"])
    if fields["kind"] is None and fields["key"] == "professional-references":
        fields["kind"] = DocumentKind.REFERENCES
    if fields["auto_expiry"] and fields["validity_years"] is None:
        fields["validity_years"] = DEFAULT_VALIDITY_YEARS
    if fields["expiry_warning_days"] is None:
        fields["expiry_warning_days"] = (
            default_warning_days
            if default_warning_days is not None
            else settings.default_expiry_warning_days
        )
    if fields["name"] is None and fields["key"] is not None:
        fields["name"] = str(fields["key"]).replace("-", " ").title()

    return DocumentTypeDescriptor(**{k: v for k, v in fields.items() if v is not None})


def normalize_catalog(
    entries: list[dict[str, Any]],
    *,
    default_warning_days: int | None = None,
) -> list[DocumentTypeDescriptor]:
    """Normalize every entry, skipping invalid or duplicate ones with a warning."""
    descriptors: list[DocumentTypeDescriptor] = []
    seen: set[str] = set()
    for entry in entries:
        try:
            descriptor = normalize_document_type(entry, default_warning_days=default_warning_days)
        except pydantic.ValidationError as exc:
            logger.warning(
                "Skipping invalid document type",
                key=entry.get("key"),
                errors=exc.error_count(),
                error=str(exc),
            )
            continue
        if descriptor.key in seen:
            logger.warning("Skipping duplicate document type", key=descriptor.key)
            continue
        seen.add(descriptor.key)
        descriptors.append(descriptor)
    return descriptors


@dataclass(frozen=True)
class Catalog:
    subject_kind: SubjectKind
    types: list[DocumentTypeDescriptor]
    fallback: bool = False

    def get(self, key: str) -> DocumentTypeDescriptor | None:
        for doc_type in self.types:
            if doc_type.key == key:
                return doc_type
        return None


class DocumentTypeRegistry:
    """Serve document catalogs by subject kind.

    A fetched backend catalog is cached for ``ttl_seconds``. When the backend
    cannot be reached the last fetched catalog is served; if there is none,
    the built-in catalog for the kind is used instead.
    """

    def __init__(
        self,
        client: ComplianceBackendClient,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.catalog_cache_ttl_seconds
        self._clock = clock
        self._cache = LRUCache(maxsize=len(SubjectKind))

    async def get_catalog(
        self,
        subject_kind: SubjectKind,
        *,
        force_refresh: bool = False,
    ) -> Catalog:
        cache_key = subject_kind.value
        now = self._clock()
        cached = self._cache.get(cache_key)
        if not force_refresh and cached and now < cached["expires_at"]:
            logger.debug(
                "Using cached document catalog",
                subject_kind=cache_key,
                type_count=len(cached["catalog"].types),
            )
            return cached["catalog"]

        try:
            entries = await self._client.list_document_types(subject_kind)
        except TransientError as exc:
            if cached:
                log_exception(
                    logger,
                    exc,
                    "Catalog refresh failed, serving last fetched catalog",
                    level="warning",
                    include_traceback=False,
                    subject_kind=cache_key,
                )
                return cached["catalog"]
            log_exception(
                logger,
                exc,
                "Catalog unavailable, using built-in catalog",
                level="warning",
                include_traceback=False,
                subject_kind=cache_key,
            )
            return self.fallback_catalog(subject_kind)

        types = normalize_catalog(entries)
        if not types:
            logger.warning(
                "Backend returned an empty catalog, using built-in", subject_kind=cache_key
            )
            return self.fallback_catalog(subject_kind)

        catalog = Catalog(subject_kind=subject_kind, types=types)
        self._cache.set(cache_key, {"catalog": catalog, "expires_at": now + self._ttl})
        logger.info("Document catalog refreshed", subject_kind=cache_key, type_count=len(types))
        return catalog

    @staticmethod
    def fallback_catalog(subject_kind: SubjectKind) -> Catalog:
        return Catalog(
            subject_kind=subject_kind,
            types=normalize_catalog(FALLBACK_CATALOGS[subject_kind]),
            fallback=True,
        )

    async def get_type(self, subject_kind: SubjectKind, key: str) -> DocumentTypeDescriptor:
        """Return one descriptor or raise NotFoundError for an unknown key."""
        doc_type = (await self.get_catalog(subject_kind)).get(key)
        if doc_type is None:
            raise NotFoundError(f"Unknown document type {key!r} for {subject_kind.value}")
        return doc_type


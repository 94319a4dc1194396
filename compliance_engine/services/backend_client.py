"""HTTP client for the compliance backend-of-record.

The backend owns document files, records, catalogs and references. This client
only moves JSON and multipart payloads; normalization happens in the
registry, record store and reference modules.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import httpx

from compliance_engine.config import settings
from compliance_engine.logger import get_logger, log_external_api
from compliance_engine.models import SubjectKind, VerificationStatus
from compliance_engine.services.errors import (
    ComplianceError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)

logger = get_logger(__name__)

BACKEND_SERVICE = "compliance-backend"


def unwrap_payload(payload: Any) -> Any:
    """Strip the optional ``{"success": ..., "data": ...}`` envelope."""
    if isinstance(payload, dict):
        if payload.get("success") is False:
            raise ComplianceError(_extract_message(payload) or "Backend reported failure")
        if "data" in payload:
            return payload["data"]
    return payload


def _as_list(payload: Any, *keys: str) -> list[dict[str, Any]]:
    data = unwrap_payload(payload)
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise ComplianceError(f"Unexpected backend payload shape: {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


def _as_dict(payload: Any) -> dict[str, Any]:
    data = unwrap_payload(payload)
    if not isinstance(data, dict):
        raise ComplianceError(f"Unexpected backend payload shape: {type(data).__name__}")
    return data


def _extract_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    for key in ("message", "detail", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def raise_for_backend_status(response: httpx.Response) -> None:
    """Translate a non-2xx backend response into the engine error taxonomy."""
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    message = _extract_message(body) or f"Backend returned HTTP {response.status_code}"
    status = response.status_code

    if status >= 500:
        raise TransientError(message)
    if status == 409:
        raise ConflictError(message)
    if status == 404:
        raise NotFoundError(message)
    if status in (400, 422):
        raise ValidationError(message)
    raise ComplianceError(message)


class ComplianceBackendClient:
    """Async client for the backend's document, catalog and reference endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        token = token if token is not None else settings.backend_api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        timeout = httpx.Timeout(
            settings.backend_timeout_seconds,
            connect=settings.backend_connect_timeout_seconds,
        )
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.backend_api_url).rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ComplianceBackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise TransientError(f"Backend unreachable: {exc}") from exc
        raise_for_backend_status(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransientError("Backend returned a non-JSON response") from exc

    @log_external_api(BACKEND_SERVICE)
    async def list_document_types(self, subject_kind: SubjectKind) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET", "/document-types", params={"subjectKind": subject_kind.value}
        )
        return _as_list(payload, "documentTypes", "items")

    @log_external_api(BACKEND_SERVICE)
    async def list_documents(
        self, subject_id: str, subject_kind: SubjectKind
    ) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET", f"/documents/{subject_id}", params={"subjectKind": subject_kind.value}
        )
        return _as_list(payload, "documents", "items")

    @log_external_api(BACKEND_SERVICE)
    async def list_documents_for_review(self) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            "/documents",
            params={"verificationStatus": VerificationStatus.PENDING.value},
        )
        return _as_list(payload, "documents", "items")

    @log_external_api(BACKEND_SERVICE)
    async def upload_document(
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
    ) -> dict[str, Any]:
        form: dict[str, str] = {
            "documentTypeKey": document_type_key,
            "subjectId": subject_id,
            "subjectKind": subject_kind.value,
        }
        if issue_date is not None:
            form["issueDate"] = issue_date.isoformat()
        if expiry_date is not None:
            form["expiryDate"] = expiry_date.isoformat()
        if notes:
            form["notes"] = notes
        files = {"file": (file_name, content, content_type or "application/octet-stream")}
        payload = await self._request("POST", "/documents/upload", data=form, files=files)
        return _as_dict(payload)

    @log_external_api(BACKEND_SERVICE)
    async def verify_document(
        self,
        record_id: str,
        verification_status: VerificationStatus,
        notes: str | None = None,
    ) -> dict[str, Any]:
        payload = await self._request(
            "PUT",
            f"/documents/{record_id}/verify",
            json={"verificationStatus": verification_status.value, "notes": notes},
        )
        return _as_dict(payload) if payload is not None else {}

    @log_external_api(BACKEND_SERVICE)
    async def update_document_dates(
        self,
        record_id: str,
        *,
        issue_date: date | None,
        expiry_date: date | None,
    ) -> dict[str, Any]:
        body = {
            "issueDate": issue_date.isoformat() if issue_date else None,
            "expiryDate": expiry_date.isoformat() if expiry_date else None,
        }
        payload = await self._request("PUT", f"/documents/{record_id}/dates", json=body)
        return _as_dict(payload) if payload is not None else {}

    @log_external_api(BACKEND_SERVICE)
    async def delete_document(self, record_id: str) -> None:
        await self._request("DELETE", f"/documents/{record_id}")

    @log_external_api(BACKEND_SERVICE)
    async def get_download_url(self, record_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/documents/{record_id}/download")
        return _as_dict(payload)

    @log_external_api(BACKEND_SERVICE)
    async def list_professional_references(self, subject_id: str) -> list[dict[str, Any]]:
        payload = await self._request("GET", f"/professional-references/{subject_id}")
        return _as_list(payload, "references", "items")

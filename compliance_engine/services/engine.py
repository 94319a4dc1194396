"""Wiring of the backend client and the services built on it."""

from __future__ import annotations

from dataclasses import dataclass

from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.documents import ComplianceDocumentService
from compliance_engine.services.notifications import NotificationService
from compliance_engine.services.records import DocumentRecordStore
from compliance_engine.services.references import ReferenceService
from compliance_engine.services.registry import DocumentTypeRegistry
from compliance_engine.services.verification import VerificationWorkflow


@dataclass
class ComplianceEngine:
    client: ComplianceBackendClient
    registry: DocumentTypeRegistry
    records: DocumentRecordStore
    references: ReferenceService
    documents: ComplianceDocumentService
    verification: VerificationWorkflow
    notifications: NotificationService

    @classmethod
    def create(cls, client: ComplianceBackendClient | None = None) -> ComplianceEngine:
        client = client or ComplianceBackendClient()
        registry = DocumentTypeRegistry(client)
        records = DocumentRecordStore(client)
        references = ReferenceService(client)
        documents = ComplianceDocumentService(client, registry, records)
        return cls(
            client=client,
            registry=registry,
            records=records,
            references=references,
            documents=documents,
            verification=VerificationWorkflow(client, records, registry),
            notifications=NotificationService(client, registry, documents, references),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

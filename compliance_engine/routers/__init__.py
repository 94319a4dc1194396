"""API routers package."""

from compliance_engine.routers import document_types, documents, notifications

__all__ = ["document_types", "documents", "notifications"]

"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from compliance_engine.deps import CurrentViewer, DbSession, Engine

    async def my_endpoint(db: DbSession, viewer: CurrentViewer, engine: Engine):
        # db is AsyncSession with get_db dependency injected
        # viewer is the Viewer resolved from gateway headers
        # engine holds the services created in the application lifespan
        ...
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.auth import Viewer, get_current_viewer, require_admin
from compliance_engine.database import get_db
from compliance_engine.services import ComplianceEngine


def get_engine(request: Request) -> ComplianceEngine:
    return request.app.state.engine


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentViewer = Annotated[Viewer, Depends(get_current_viewer)]
AdminViewer = Annotated[Viewer, Depends(require_admin)]
Engine = Annotated[ComplianceEngine, Depends(get_engine)]

__all__ = ["AdminViewer", "CurrentViewer", "DbSession", "Engine", "get_engine"]

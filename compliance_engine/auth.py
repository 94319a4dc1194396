"""Request-scoped viewer identity.

Authentication happens upstream; the gateway forwards the authenticated
viewer as ``X-User-Id`` and ``X-User-Role`` headers.
"""

from dataclasses import dataclass

from fastapi import Depends, Header

from compliance_engine.models import SubjectKind, ViewerRole
from compliance_engine.utils import raise_forbidden, raise_unauthorized


@dataclass(frozen=True)
class Viewer:
    id: str
    role: ViewerRole

    @property
    def is_admin(self) -> bool:
        return self.role == ViewerRole.ADMIN

    def can_access(self, subject_kind: SubjectKind, subject_id: str) -> bool:
        """Admins see every subject; doctors and businesses only themselves."""
        if self.is_admin:
            return True
        return self.role.value == subject_kind.value and self.id == subject_id


async def get_current_viewer(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Viewer:
    """Resolve the current viewer from gateway headers."""
    if not x_user_id or not x_user_id.strip():
        raise_unauthorized("Missing viewer identity")
    try:
        role = ViewerRole((x_user_role or "").strip().lower())
    except ValueError as exc:
        raise_unauthorized("Missing or unknown viewer role", cause=exc)
    return Viewer(id=x_user_id.strip(), role=role)


async def require_admin(viewer: Viewer = Depends(get_current_viewer)) -> Viewer:
    if not viewer.is_admin:
        raise_forbidden("Admin access required")
    return viewer


def ensure_subject_access(viewer: Viewer, subject_kind: SubjectKind, subject_id: str) -> None:
    if not viewer.can_access(subject_kind, subject_id):
        raise_forbidden("Not allowed to access this subject")

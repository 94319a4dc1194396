"""Notification feed API routers for subjects and admins."""

from fastapi import APIRouter

from compliance_engine.auth import ensure_subject_access
from compliance_engine.deps import AdminViewer, CurrentViewer, DbSession, Engine
from compliance_engine.logger import get_logger
from compliance_engine.models import SubjectKind
from compliance_engine.schemas import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationSummary,
)
from compliance_engine.services import ComplianceError
from compliance_engine.utils import raise_from_compliance_error

router = APIRouter(
    prefix="/subjects/{subject_kind}/{subject_id}/notifications",
    tags=["notifications"],
)
admin_router = APIRouter(prefix="/admin/notifications", tags=["notifications", "admin"])
logger = get_logger(__name__)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    subject_kind: SubjectKind,
    subject_id: str,
    db: DbSession,
    engine: Engine,
    viewer: CurrentViewer,
) -> NotificationListResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        notifications, stale = await engine.notifications.subject_notifications(
            subject_id, subject_kind
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    return await engine.notifications.with_read_state(
        db, viewer_id=viewer.id, notifications=notifications, stale=stale
    )


@router.get("/summary", response_model=NotificationSummary)
async def notification_summary(
    subject_kind: SubjectKind,
    subject_id: str,
    db: DbSession,
    engine: Engine,
    viewer: CurrentViewer,
) -> NotificationSummary:
    feed = await list_notifications(subject_kind, subject_id, db, engine, viewer)
    return feed.summary


@router.put("/read-all", response_model=MarkReadResponse)
async def mark_all_notifications_read(
    subject_kind: SubjectKind,
    subject_id: str,
    db: DbSession,
    engine: Engine,
    viewer: CurrentViewer,
) -> MarkReadResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        notifications, _ = await engine.notifications.subject_notifications(
            subject_id, subject_kind
        )
        response = await engine.notifications.mark_read(
            db, viewer_id=viewer.id, notifications=notifications
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    await db.commit()
    logger.info("Notifications marked read", subject_id=subject_id, marked=response.marked)
    return response


@router.put("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    subject_kind: SubjectKind,
    subject_id: str,
    notification_id: str,
    db: DbSession,
    engine: Engine,
    viewer: CurrentViewer,
) -> MarkReadResponse:
    ensure_subject_access(viewer, subject_kind, subject_id)
    try:
        notifications, _ = await engine.notifications.subject_notifications(
            subject_id, subject_kind
        )
        response = await engine.notifications.mark_read(
            db,
            viewer_id=viewer.id,
            notifications=notifications,
            notification_id=notification_id,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    await db.commit()
    return response


@admin_router.get("", response_model=NotificationListResponse)
async def list_admin_notifications(
    db: DbSession,
    engine: Engine,
    admin: AdminViewer,
) -> NotificationListResponse:
    try:
        notifications, stale = await engine.notifications.admin_notifications()
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    return await engine.notifications.with_read_state(
        db, viewer_id=admin.id, notifications=notifications, stale=stale
    )


@admin_router.get("/summary", response_model=NotificationSummary)
async def admin_notification_summary(
    db: DbSession,
    engine: Engine,
    admin: AdminViewer,
) -> NotificationSummary:
    feed = await list_admin_notifications(db, engine, admin)
    return feed.summary


@admin_router.put("/read-all", response_model=MarkReadResponse)
async def mark_all_admin_notifications_read(
    db: DbSession,
    engine: Engine,
    admin: AdminViewer,
) -> MarkReadResponse:
    try:
        notifications, _ = await engine.notifications.admin_notifications()
        response = await engine.notifications.mark_read(
            db, viewer_id=admin.id, notifications=notifications
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    await db.commit()
    return response


@admin_router.put("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_admin_notification_read(
    notification_id: str,
    db: DbSession,
    engine: Engine,
    admin: AdminViewer,
) -> MarkReadResponse:
    try:
        notifications, _ = await engine.notifications.admin_notifications()
        response = await engine.notifications.mark_read(
            db,
            viewer_id=admin.id,
            notifications=notifications,
            notification_id=notification_id,
        )
    except ComplianceError as exc:
        raise_from_compliance_error(exc)
    await db.commit()
    return response

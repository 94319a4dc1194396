"""Per-viewer read state for derived notifications."""

from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.logger import get_logger
from compliance_engine.models import NotificationReadReceipt

logger = get_logger(__name__)

_MARK_ATTEMPTS = 3


async def get_read_ids(
    db: AsyncSession,
    *,
    viewer_id: str,
    notification_ids: Iterable[str],
) -> set[str]:
    """Return the subset of notification_ids the viewer has already read."""
    ids = set(notification_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(NotificationReadReceipt.notification_id)
        .where(NotificationReadReceipt.viewer_id == viewer_id)
        .where(NotificationReadReceipt.notification_id.in_(ids))
    )
    return set(result.scalars().all())


async def mark_notifications_read(
    db: AsyncSession,
    *,
    viewer_id: str,
    notification_ids: Iterable[str],
) -> int:
    """Record read receipts; already-read ids are left untouched.

    Returns the number of receipts created. The caller owns the commit. When a
    concurrent request inserts the same receipt first, the session is rolled
    back and the remaining ids are re-read and retried.
    """
    ids = set(notification_ids)
    for attempt in range(_MARK_ATTEMPTS):
        already_read = await get_read_ids(db, viewer_id=viewer_id, notification_ids=ids)
        new_ids = sorted(ids - already_read)
        if not new_ids:
            return 0
        for notification_id in new_ids:
            db.add(NotificationReadReceipt(viewer_id=viewer_id, notification_id=notification_id))
        try:
            await db.flush()
        except IntegrityError:
            # Another request recorded some of these receipts first
            await db.rollback()
            if attempt + 1 == _MARK_ATTEMPTS:
                raise
            logger.info(
                "Read receipt conflict, retrying",
                viewer_id=viewer_id,
                count=len(new_ids),
            )
            continue
        logger.debug("Notifications marked read", viewer_id=viewer_id, count=len(new_ids))
        return len(new_ids)
    return 0


async def clear_read_state(db: AsyncSession, *, notification_ids: Iterable[str]) -> int:
    """Drop every viewer's receipts for notification_ids so they read as unread again."""
    ids = set(notification_ids)
    if not ids:
        return 0
    result = await db.execute(
        delete(NotificationReadReceipt).where(NotificationReadReceipt.notification_id.in_(ids))
    )
    return result.rowcount or 0

"""Notification feeds derived from document and reference state.

Notifications are never stored. They are rebuilt from the current records on
every request; only per-viewer read receipts persist, keyed by deterministic
notification ids.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.config import settings
from compliance_engine.logger import async_log_timing, get_logger, log_exception
from compliance_engine.models import (
    DocumentKind,
    DocumentStatus,
    NotificationCategory,
    NotificationType,
    ReferenceSetStatus,
    SubjectKind,
    VerificationStatus,
)
from compliance_engine.schemas import (
    DocumentRecord,
    DocumentTypeDescriptor,
    DocumentView,
    MarkReadResponse,
    Notification,
    NotificationListResponse,
    NotificationSummary,
    ReferenceSetResponse,
)
from compliance_engine.services.backend_client import ComplianceBackendClient
from compliance_engine.services.documents import ComplianceDocumentService
from compliance_engine.services.errors import NotFoundError, TransientError
from compliance_engine.services.read_state import (
    clear_read_state,
    get_read_ids,
    mark_notifications_read,
)
from compliance_engine.services.records import normalize_record, subject_kind_of
from compliance_engine.services.references import ReferenceService
from compliance_engine.services.registry import DocumentTypeRegistry
from compliance_engine.services.status import can_review, derive_status

logger = get_logger(__name__)

_EXPIRING_BUCKET = 1
_BUCKETS = {
    NotificationCategory.EXPIRED: 0,
    NotificationCategory.REJECTED: 0,
    NotificationCategory.EXPIRING: _EXPIRING_BUCKET,
    NotificationCategory.COMPLIANCE: 2,
}
_INFO_BUCKET = 3


def _instant(now: date | datetime) -> datetime:
    if isinstance(now, datetime):
        return now.replace(tzinfo=UTC) if now.tzinfo is None else now.astimezone(UTC)
    return datetime.combine(now, time.min, tzinfo=UTC)


def _fmt(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _days(count: int) -> str:
    return "1 day" if count == 1 else f"{count} days"


def notification_id(
    category: NotificationCategory,
    subject_kind: SubjectKind,
    subject_id: str,
    document_type_key: str,
    record_id: str | None = None,
    expiry_date: date | None = None,
) -> str:
    """Stable id so read receipts survive rebuilds; a new record or expiry yields a new id."""
    parts = [
        category.value,
        subject_kind.value,
        subject_id,
        document_type_key,
        record_id or "-",
    ]
    if expiry_date is not None:
        parts.append(expiry_date.isoformat())
    return ":".join(parts)


def missing_notification_id(
    subject_kind: SubjectKind, subject_id: str, document_type_key: str
) -> str:
    """Id of the "document required" warning.

    It carries no record id, so its read receipts are cleared whenever a
    document of that type is deleted and the gap can reopen.
    """
    return notification_id(
        NotificationCategory.COMPLIANCE, subject_kind, subject_id, document_type_key
    )


def subject_action_url(subject_kind: SubjectKind, document_type_key: str, base_url: str) -> str:
    query = urlencode({"document": document_type_key})
    return f"{base_url.rstrip('/')}/{subject_kind.value}/compliance?{query}"


def admin_review_url(
    subject_kind: SubjectKind,
    subject_id: str,
    record_id: str,
    base_url: str,
) -> str:
    query = urlencode({"subject": f"{subject_kind.value}:{subject_id}", "document": record_id})
    return f"{base_url.rstrip('/')}/admin/reviews?{query}"


def notification_for_view(
    view: DocumentView,
    *,
    subject_id: str,
    subject_kind: SubjectKind,
    now: date | datetime,
    urgent_expiry_days: int | None = None,
    base_url: str | None = None,
) -> Notification | None:
    """Map one document view to at most one notification."""
    doc_type = view.document_type
    record = view.record
    urgent_days = (
        urgent_expiry_days if urgent_expiry_days is not None else settings.urgent_expiry_days
    )
    url = subject_action_url(subject_kind, doc_type.key, base_url or settings.app_base_url)
    instant = _instant(now)
    common = {
        "subject_id": subject_id,
        "document_type_key": doc_type.key,
        "record_id": record.id if record else None,
        "days_until_expiry": view.days_until_expiry,
        "action_url": url,
    }

    def make(category: NotificationCategory, **fields: object) -> Notification:
        tracked = category in (NotificationCategory.EXPIRED, NotificationCategory.EXPIRING)
        expiry = view.expiry_date if tracked else None
        return Notification(
            id=notification_id(
                category,
                subject_kind,
                subject_id,
                doc_type.key,
                record.id if record else None,
                expiry,
            ),
            category=category,
            **common,
            **fields,
        )

    if view.status == DocumentStatus.MISSING:
        if not doc_type.required:
            return None
        return make(
            NotificationCategory.COMPLIANCE,
            type=NotificationType.WARNING,
            title=f"{doc_type.name} required",
            message=f"Upload your {doc_type.name} to complete your compliance profile.",
            action_required=True,
            action_text="Upload document",
            timestamp=instant,
        )

    if record is None:
        return None
    record_time = record.verified_at or record.uploaded_at or instant

    if view.status == DocumentStatus.EXPIRED:
        expired_on = view.expiry_date or instant.date()
        return make(
            NotificationCategory.EXPIRED,
            type=NotificationType.ERROR,
            title=f"{doc_type.name} expired",
            message=(
                f"Your {doc_type.name} expired on {_fmt(expired_on)}. "
                "Upload a renewed document."
            ),
            action_required=True,
            action_text="Renew now",
            urgent=True,
            timestamp=datetime.combine(expired_on, time.min, tzinfo=UTC),
        )

    if record.verification_status == VerificationStatus.REJECTED:
        reason = f" Reason: {record.verification_notes}" if record.verification_notes else ""
        return make(
            NotificationCategory.REJECTED,
            type=NotificationType.ERROR,
            title=f"{doc_type.name} rejected",
            message=f"Your {doc_type.name} was rejected.{reason} Please upload a new copy.",
            action_required=True,
            action_text="Upload again",
            urgent=True,
            timestamp=record_time,
        )

    if (
        view.status == DocumentStatus.EXPIRING
        and view.expiry_date is not None
        and view.days_until_expiry is not None
    ):
        action_required = view.days_until_expiry <= urgent_days
        return make(
            NotificationCategory.EXPIRING,
            type=NotificationType.WARNING,
            title=f"{doc_type.name} expiring soon",
            message=(
                f"Your {doc_type.name} expires in {_days(view.days_until_expiry)} "
                f"on {_fmt(view.expiry_date)}."
            ),
            action_required=action_required,
            action_text="Renew now" if action_required else "View document",
            timestamp=instant,
        )

    if record.verification_status == VerificationStatus.VERIFIED:
        return make(
            NotificationCategory.UPLOAD,
            type=NotificationType.SUCCESS,
            title=f"{doc_type.name} verified",
            message=f"Your {doc_type.name} has been verified.",
            action_text="View document",
            timestamp=record_time,
        )

    return make(
        NotificationCategory.REVIEW,
        type=NotificationType.INFO,
        title=f"{doc_type.name} under review",
        message=f"Your {doc_type.name} was uploaded and is awaiting verification.",
        action_text="View document",
        timestamp=record_time,
    )


def references_notification(
    doc_type: DocumentTypeDescriptor,
    references: ReferenceSetResponse,
    *,
    subject_kind: SubjectKind,
    now: date | datetime,
    base_url: str | None = None,
) -> Notification | None:
    if not doc_type.required or references.status != ReferenceSetStatus.MISSING:
        return None
    return Notification(
        id=missing_notification_id(subject_kind, references.subject_id, doc_type.key),
        type=NotificationType.WARNING,
        category=NotificationCategory.COMPLIANCE,
        title=f"{doc_type.name} required",
        message=(
            f"Add at least {references.required_count} professional references, "
            "including one clinical reference."
        ),
        action_required=True,
        action_url=subject_action_url(
            subject_kind, doc_type.key, base_url or settings.app_base_url
        ),
        action_text="Add references",
        timestamp=_instant(now),
        subject_id=references.subject_id,
        document_type_key=doc_type.key,
    )


def order_notifications(notifications: Iterable[Notification]) -> list[Notification]:
    """Urgent first, then expiring, then missing, then informational.

    Urgent items are most recent first: the latest expiry date for expired
    documents, the latest review for rejections. Expiring items are soonest first.
    """

    def sort_key(notification: Notification) -> tuple[int, int, float, str]:
        bucket = _BUCKETS.get(notification.category, _INFO_BUCKET)
        days = notification.days_until_expiry
        return (
            bucket,
            days if bucket == _EXPIRING_BUCKET and days is not None else 0,
            -notification.timestamp.timestamp(),
            notification.id,
        )

    return sorted(notifications, key=sort_key)


def build_subject_notifications(
    subject_id: str,
    subject_kind: SubjectKind,
    views: list[DocumentView],
    *,
    now: date | datetime,
    reference_types: Iterable[DocumentTypeDescriptor] = (),
    references: ReferenceSetResponse | None = None,
    urgent_expiry_days: int | None = None,
    base_url: str | None = None,
) -> list[Notification]:
    notifications = [
        notification
        for notification in (
            notification_for_view(
                view,
                subject_id=subject_id,
                subject_kind=subject_kind,
                now=now,
                urgent_expiry_days=urgent_expiry_days,
                base_url=base_url,
            )
            for view in views
        )
        if notification is not None
    ]
    if references is not None:
        for doc_type in reference_types:
            notification = references_notification(
                doc_type, references, subject_kind=subject_kind, now=now, base_url=base_url
            )
            if notification is not None:
                notifications.append(notification)
    return order_notifications(notifications)


@dataclass(frozen=True)
class ReviewItem:
    """A pending record awaiting admin review."""

    subject_kind: SubjectKind
    record: DocumentRecord
    document_type: DocumentTypeDescriptor


def build_admin_notifications(
    items: Iterable[ReviewItem],
    *,
    now: date | datetime,
    base_url: str | None = None,
) -> list[Notification]:
    notifications = []
    for item in items:
        record = item.record
        notifications.append(
            Notification(
                id=notification_id(
                    NotificationCategory.REVIEW,
                    item.subject_kind,
                    record.subject_id,
                    record.document_type_key,
                    record.id,
                ),
                type=NotificationType.INFO,
                category=NotificationCategory.REVIEW,
                title=f"{item.document_type.name} awaiting review",
                message=(
                    f"{item.document_type.name} uploaded by {item.subject_kind.value} "
                    f"{record.subject_id} is awaiting verification."
                ),
                action_required=True,
                action_url=admin_review_url(
                    item.subject_kind,
                    record.subject_id,
                    record.id,
                    base_url or settings.app_base_url,
                ),
                action_text="Review document",
                timestamp=record.uploaded_at or _instant(now),
                subject_id=record.subject_id,
                document_type_key=record.document_type_key,
                record_id=record.id,
            )
        )
    return order_notifications(notifications)


def summarize(notifications: Iterable[Notification]) -> NotificationSummary:
    summary = NotificationSummary()
    for notification in notifications:
        summary.total_count += 1
        if not notification.read:
            summary.unread_count += 1
            if notification.urgent:
                summary.has_urgent_notifications = True
        if notification.action_required:
            summary.action_required_count += 1
    return summary


def apply_read_state(
    notifications: Iterable[Notification],
    read_ids: set[str],
) -> list[Notification]:
    return [n.model_copy(update={"read": n.id in read_ids}) for n in notifications]


class NotificationService:
    """Build subject and admin feeds and record per-viewer read state."""

    def __init__(
        self,
        client: ComplianceBackendClient,
        registry: DocumentTypeRegistry,
        documents: ComplianceDocumentService,
        references: ReferenceService,
    ) -> None:
        self._client = client
        self._registry = registry
        self._documents = documents
        self._references = references
        self._review_items: list[ReviewItem] | None = None

    async def subject_notifications(
        self,
        subject_id: str,
        subject_kind: SubjectKind,
        *,
        now: date | datetime | None = None,
    ) -> tuple[list[Notification], bool]:
        """Unread-agnostic feed for one subject, plus whether it was built from stale data."""
        now = now or datetime.now(UTC)
        async with async_log_timing(
            "build_subject_feed", logger=logger, level="debug", subject_id=subject_id
        ) as ctx:
            listing = await self._documents.list_views(subject_id, subject_kind, now=now)
            stale = listing.stale
            catalog = await self._registry.get_catalog(subject_kind)
            reference_types = [t for t in catalog.types if t.kind == DocumentKind.REFERENCES]
            references = None
            if reference_types:
                try:
                    references = await self._references.load(subject_id)
                except TransientError as exc:
                    log_exception(
                        logger,
                        exc,
                        "References unavailable, building feed without them",
                        level="warning",
                        include_traceback=False,
                        subject_id=subject_id,
                    )
                    stale = True
                else:
                    stale = stale or references.stale

            notifications = build_subject_notifications(
                subject_id,
                subject_kind,
                listing.documents,
                now=now,
                reference_types=reference_types,
                references=references,
            )
            ctx["notification_count"] = len(notifications)
        return notifications, stale

    async def fetch_review_items(self, *, now: date | datetime | None = None) -> list[ReviewItem]:
        """Pending records across all subjects that can still be reviewed."""
        now = now or datetime.now(UTC)
        items: list[ReviewItem] = []
        for raw in await self._client.list_documents_for_review():
            record = normalize_record(raw)
            if record is None or record.verification_status != VerificationStatus.PENDING:
                continue
            subject_kind = subject_kind_of(raw)
            catalog = await self._registry.get_catalog(subject_kind)
            doc_type = catalog.get(record.document_type_key)
            if doc_type is None:
                logger.warning(
                    "Pending record has unknown document type",
                    record_id=record.id,
                    document_type=record.document_type_key,
                )
                continue
            if not can_review(derive_status(record, doc_type, now)):
                continue
            items.append(ReviewItem(subject_kind, record, doc_type))
        return items

    def remember_review_items(self, items: list[ReviewItem]) -> None:
        self._review_items = items
        logger.debug("Admin review queue refreshed", pending_count=len(items))

    async def admin_notifications(
        self,
        *,
        now: date | datetime | None = None,
    ) -> tuple[list[Notification], bool]:
        now = now or datetime.now(UTC)
        try:
            items = await self.fetch_review_items(now=now)
        except TransientError as exc:
            if self._review_items is None:
                raise
            log_exception(
                logger,
                exc,
                "Backend unreachable, serving last known review queue",
                level="warning",
                include_traceback=False,
            )
            return build_admin_notifications(self._review_items, now=now), True
        self.remember_review_items(items)
        return build_admin_notifications(items, now=now), False

    async def with_read_state(
        self,
        db: AsyncSession,
        *,
        viewer_id: str,
        notifications: list[Notification],
        stale: bool = False,
    ) -> NotificationListResponse:
        read_ids = await get_read_ids(
            db, viewer_id=viewer_id, notification_ids=[n.id for n in notifications]
        )
        notifications = apply_read_state(notifications, read_ids)
        return NotificationListResponse(
            notifications=notifications,
            summary=summarize(notifications),
            stale=stale,
        )

    async def mark_read(
        self,
        db: AsyncSession,
        *,
        viewer_id: str,
        notifications: list[Notification],
        notification_id: str | None = None,
    ) -> MarkReadResponse:
        """Mark one notification (or, with no id, every notification in the feed) as read.

        Raises NotFoundError when notification_id is not part of the feed.
        """
        feed_ids = [n.id for n in notifications]
        if notification_id is None:
            targets = feed_ids
        elif notification_id in feed_ids:
            targets = [notification_id]
        else:
            raise NotFoundError(f"Notification {notification_id} not found")

        marked = await mark_notifications_read(db, viewer_id=viewer_id, notification_ids=targets)
        feed = await self.with_read_state(db, viewer_id=viewer_id, notifications=notifications)
        return MarkReadResponse(marked=marked, summary=feed.summary)

    async def reopen_missing(
        self,
        db: AsyncSession,
        *,
        subject_id: str,
        subject_kind: SubjectKind,
        document_type_key: str,
    ) -> None:
        """Forget who has read the missing-document warning so a new gap shows unread."""
        cleared = await clear_read_state(
            db,
            notification_ids=[missing_notification_id(subject_kind, subject_id, document_type_key)],
        )
        if cleared:
            logger.debug(
                "Missing-document read state cleared",
                subject_id=subject_id,
                document_type=document_type_key,
                cleared=cleared,
            )

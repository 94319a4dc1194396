"""Pydantic schemas for notification feeds."""

from datetime import datetime

from pydantic import BaseModel, Field

from compliance_engine.models import NotificationCategory, NotificationType


class Notification(BaseModel):
    id: str
    type: NotificationType
    category: NotificationCategory
    title: str
    message: str
    action_required: bool = False
    action_url: str | None = None
    action_text: str | None = None
    read: bool = False
    timestamp: datetime
    subject_id: str | None = None
    document_type_key: str | None = None
    record_id: str | None = None
    days_until_expiry: int | None = None
    urgent: bool = False


class NotificationSummary(BaseModel):
    total_count: int = 0
    unread_count: int = 0
    has_urgent_notifications: bool = False
    action_required_count: int = 0


class NotificationListResponse(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    summary: NotificationSummary
    stale: bool = False


class MarkReadResponse(BaseModel):
    marked: int
    summary: NotificationSummary

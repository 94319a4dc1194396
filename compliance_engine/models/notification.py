"""Per-viewer notification read receipts."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_engine.database import Base


class NotificationReadReceipt(Base):
    """Marks one derived notification as read by one viewer."""

    __tablename__ = "notification_read_receipts"
    __table_args__ = (
        UniqueConstraint(
            "viewer_id", "notification_id", name="uq_read_receipts_viewer_notification"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    viewer_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    notification_id: Mapped[str] = mapped_column(String(512), nullable=False)
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campuspass.db.base import Base
from campuspass.workflow.clock import utcnow


class NotificationType(str, enum.Enum):
    OUTPASS_CREATED = "outpass_created"
    OUTPASS_APPROVED = "outpass_approved"
    OUTPASS_REJECTED = "outpass_rejected"
    OUTPASS_CANCELLED = "outpass_cancelled"
    OUTPASS_CHECKED_OUT = "outpass_checked_out"
    OUTPASS_CHECKED_IN = "outpass_checked_in"
    OUTPASS_OVERDUE = "outpass_overdue"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False, length=30, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Weak reference to the outpass: ids and the values communicated at the time.
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campuspass.db.base import Base
from campuspass.models.user import User
from campuspass.workflow.clock import utcnow


class OutpassStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    CHECKED_OUT = "checked_out"
    CHECKED_IN = "checked_in"


class OutpassType(str, enum.Enum):
    LOCAL = "local"
    HOME = "home"
    EMERGENCY = "emergency"
    MEDICAL = "medical"
    OTHER = "other"


def _enum_column(enum_cls: type[enum.Enum], length: int) -> Enum:
    return Enum(enum_cls, native_enum=False, length=length, values_callable=lambda e: [m.value for m in e])


class Outpass(Base):
    __tablename__ = "outpasses"
    __table_args__ = (
        Index("ix_outpasses_student_status", "student_id", "status"),
        Index("ix_outpasses_hostel_status", "hostel", "status"),
        Index("ix_outpasses_status_to_date", "status", "to_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outpass_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    student_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    # Copied from the student at creation; drives warden authority and listing scope.
    hostel: Mapped[str | None] = mapped_column(String(50), nullable=True)

    type: Mapped[OutpassType] = mapped_column(_enum_column(OutpassType, 20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    destination: Mapped[str] = mapped_column(String(200), nullable=False)
    from_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    to_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[OutpassStatus] = mapped_column(
        _enum_column(OutpassStatus, 20), default=OutpassStatus.PENDING, nullable=False, index=True
    )

    warden_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    warden_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    check_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    check_out_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    check_out_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    check_in_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    check_in_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Present only while approved or checked out.
    qr_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_overdue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    student: Mapped[User] = relationship(foreign_keys=[student_id])
    warden: Mapped[User | None] = relationship(foreign_keys=[warden_id])
    check_out_officer: Mapped[User | None] = relationship(foreign_keys=[check_out_by])
    check_in_officer: Mapped[User | None] = relationship(foreign_keys=[check_in_by])

    def __repr__(self) -> str:
        return f"<Outpass(id={self.id}, number={self.outpass_number}, status={self.status.value})>"


class OutpassCounter(Base):
    """Single-row sequence backing outpass numbers."""

    __tablename__ = "outpass_counters"

    name: Mapped[str] = mapped_column(String(30), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

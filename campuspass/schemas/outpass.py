from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from campuspass.models.outpass import OutpassStatus, OutpassType
from campuspass.schemas.user import UserView


class OutpassCreateIn(BaseModel):
    type: OutpassType = OutpassType.LOCAL
    reason: str
    destination: str
    from_date: datetime
    to_date: datetime


class ApproveIn(BaseModel):
    remarks: str | None = None


class RejectIn(BaseModel):
    reason: str


class CheckOutIn(BaseModel):
    qr_code: str
    remarks: str | None = None


class CheckInIn(BaseModel):
    remarks: str | None = None
    qr_code: str | None = None


class ScanIn(BaseModel):
    qr_code: str


class OutpassOut(BaseModel):
    """Outpass with related users as plain ids. Used for live snapshots too."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    outpass_number: str
    student_id: int
    hostel: str | None
    type: OutpassType
    reason: str
    destination: str
    from_date: datetime
    to_date: datetime
    status: OutpassStatus
    warden_id: int | None
    warden_remarks: str | None
    approved_at: datetime | None
    rejected_at: datetime | None
    rejection_reason: str | None
    check_out_time: datetime | None
    check_out_by: int | None
    check_in_time: datetime | None
    check_in_by: int | None
    is_overdue: bool
    created_at: datetime
    updated_at: datetime


class StudentOutpassOut(OutpassOut):
    """The owner's view also carries the pass code while it is usable."""

    qr_code: str | None


class OutpassDetail(OutpassOut):
    """Outpass with related users resolved."""

    student: UserView
    warden: UserView | None
    check_out_officer: UserView | None
    check_in_officer: UserView | None


class StudentOutpassDetail(OutpassDetail):
    """Detail view; `qr_code` is only filled in for the owning student."""

    qr_code: str | None = None


class OutpassPage(BaseModel):
    items: list[OutpassOut]
    total: int
    page: int
    limit: int


class StudentOutpassPage(BaseModel):
    items: list[StudentOutpassOut]
    total: int
    page: int
    limit: int


class ScanResult(BaseModel):
    outpass: OutpassDetail
    usable_for: str | None


class StudentStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    cancelled: int
    active: int
    overdue: int


class WardenStats(BaseModel):
    total: int
    pending: int
    approved_today: int
    rejected_today: int
    active: int
    overdue: int


class SecurityStats(BaseModel):
    active: int
    overdue: int
    check_outs_today: int
    check_ins_today: int
    total_check_ins: int

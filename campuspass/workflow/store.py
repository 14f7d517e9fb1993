"""
Outpass Entity Store.

Thin SQLAlchemy data access used by the engine, the sweep and the routers.
`update_where_status` is the primitive every transition relies on: it only
writes when the row is still in the status the caller validated against.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session, selectinload

from campuspass.models.outpass import Outpass, OutpassCounter, OutpassStatus, OutpassType
from campuspass.models.user import Role, User
from campuspass.workflow.clock import utcnow
from campuspass.workflow.states import OPEN_STATES

_OUTPASS_SEQUENCE = "outpass"


class OutpassStore:
    def __init__(self, db: Session):
        self.db = db

    # ---- lookups ---------------------------------------------------------------------

    def find_by_id(self, outpass_id: int) -> Outpass | None:
        # Always read the stored row; an identity-map copy may predate another writer.
        return self.db.get(Outpass, outpass_id, populate_existing=True)

    def find_detail(self, outpass_id: int) -> Outpass | None:
        stmt = (
            select(Outpass)
            .where(Outpass.id == outpass_id)
            .options(
                selectinload(Outpass.student),
                selectinload(Outpass.warden),
                selectinload(Outpass.check_out_officer),
                selectinload(Outpass.check_in_officer),
            )
        )
        return self.db.scalars(stmt).first()

    def get_user(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def user_ids_in_scope(self, role: Role, hostel: str | None) -> list[int]:
        stmt = select(User.id).where(User.role == role, User.is_active.is_(True))
        if hostel is not None:
            stmt = stmt.where(User.hostel == hostel)
        return list(self.db.scalars(stmt.order_by(User.id)).all())

    # ---- writes ----------------------------------------------------------------------

    def next_outpass_number(self, now: datetime) -> str:
        """Draw the next global sequence value inside the caller's transaction."""
        result = self.db.execute(
            update(OutpassCounter)
            .where(OutpassCounter.name == _OUTPASS_SEQUENCE)
            .values(value=OutpassCounter.value + 1)
        )
        if result.rowcount == 0:
            self.db.add(OutpassCounter(name=_OUTPASS_SEQUENCE, value=1))
            self.db.flush()
        value = self.db.scalar(select(OutpassCounter.value).where(OutpassCounter.name == _OUTPASS_SEQUENCE))
        return f"OP-{now:%Y%m%d}-{value:06d}"

    def add(self, outpass: Outpass) -> Outpass:
        self.db.add(outpass)
        self.db.flush()
        return outpass

    def update_where_status(
        self,
        outpass_id: int,
        expected: OutpassStatus,
        patch: Mapping[str, Any],
        *,
        conditions: Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Apply `patch` only if the row is still in `expected` (and matches any
        extra column `conditions`). Returns False when another writer got there
        first; the caller decides what that means.
        """

        criteria = [Outpass.id == outpass_id, Outpass.status == expected]
        for column, value in (conditions or {}).items():
            criteria.append(getattr(Outpass, column) == value)

        values = dict(patch)
        values.setdefault("updated_at", utcnow())
        result = self.db.execute(
            update(Outpass).where(and_(*criteria)).values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---- queries ---------------------------------------------------------------------

    def has_overlap(self, student_id: int, from_date: datetime, to_date: datetime) -> bool:
        stmt = select(Outpass.id).where(
            Outpass.student_id == student_id,
            Outpass.status.in_(OPEN_STATES),
            Outpass.from_date < to_date,
            Outpass.to_date > from_date,
        )
        return self.db.execute(stmt.limit(1)).first() is not None

    def list_outpasses(
        self,
        *,
        statuses: Iterable[OutpassStatus] | None = None,
        outpass_type: OutpassType | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        oldest_first: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Outpass], int]:
        """
        Page through outpasses. Hostel/owner scoping is applied by the session's
        authorization filter, not here.
        """

        criteria = []
        if statuses:
            criteria.append(Outpass.status.in_(list(statuses)))
        if outpass_type is not None:
            criteria.append(Outpass.type == outpass_type)
        if from_date is not None:
            criteria.append(Outpass.from_date >= from_date)
        if to_date is not None:
            criteria.append(Outpass.to_date <= to_date)

        order = Outpass.created_at.asc() if oldest_first else Outpass.created_at.desc()
        stmt = select(Outpass).where(*criteria).order_by(order, Outpass.id)
        page = max(page, 1)
        items = list(self.db.scalars(stmt.offset((page - 1) * limit).limit(limit)).all())
        total = self.db.scalar(select(func.count(Outpass.id)).where(*criteria)) or 0
        return items, total

    def active_outpasses(self) -> list[Outpass]:
        stmt = (
            select(Outpass)
            .where(Outpass.status == OutpassStatus.CHECKED_OUT)
            .options(
                selectinload(Outpass.student),
                selectinload(Outpass.warden),
                selectinload(Outpass.check_out_officer),
                selectinload(Outpass.check_in_officer),
            )
            .order_by(Outpass.check_out_time.desc(), Outpass.id)
        )
        return list(self.db.scalars(stmt).all())

    def overdue_candidates(self, now: datetime) -> list[int]:
        stmt = select(Outpass.id).where(
            Outpass.status == OutpassStatus.CHECKED_OUT,
            Outpass.is_overdue.is_(False),
            Outpass.to_date < now,
        )
        return list(self.db.scalars(stmt.order_by(Outpass.to_date, Outpass.id)).all())

    def count(self, *criteria: Any) -> int:
        return self.db.scalar(select(func.count(Outpass.id)).where(*criteria)) or 0

    def student_stats(self, student_id: int) -> dict[str, int]:
        own = Outpass.student_id == student_id
        return {
            "total": self.count(own),
            "pending": self.count(own, Outpass.status == OutpassStatus.PENDING),
            "approved": self.count(own, Outpass.status == OutpassStatus.APPROVED),
            "rejected": self.count(own, Outpass.status == OutpassStatus.REJECTED),
            "cancelled": self.count(own, Outpass.status == OutpassStatus.CANCELLED),
            "active": self.count(own, Outpass.status == OutpassStatus.CHECKED_OUT),
            "overdue": self.count(own, Outpass.status == OutpassStatus.CHECKED_OUT, Outpass.is_overdue.is_(True)),
        }

    def hostel_stats(self, hostel: str | None, now: datetime) -> dict[str, int]:
        scope = Outpass.hostel == hostel
        start, end = _day_bounds(now)
        return {
            "total": self.count(scope),
            "pending": self.count(scope, Outpass.status == OutpassStatus.PENDING),
            "approved_today": self.count(scope, Outpass.approved_at >= start, Outpass.approved_at < end),
            "rejected_today": self.count(scope, Outpass.rejected_at >= start, Outpass.rejected_at < end),
            "active": self.count(scope, Outpass.status == OutpassStatus.CHECKED_OUT),
            "overdue": self.count(scope, Outpass.status == OutpassStatus.CHECKED_OUT, Outpass.is_overdue.is_(True)),
        }

    def desk_stats(self, now: datetime) -> dict[str, int]:
        start, end = _day_bounds(now)
        return {
            "active": self.count(Outpass.status == OutpassStatus.CHECKED_OUT),
            "overdue": self.count(Outpass.status == OutpassStatus.CHECKED_OUT, Outpass.is_overdue.is_(True)),
            "check_outs_today": self.count(Outpass.check_out_time >= start, Outpass.check_out_time < end),
            "check_ins_today": self.count(Outpass.check_in_time >= start, Outpass.check_in_time < end),
            "total_check_ins": self.count(Outpass.status == OutpassStatus.CHECKED_IN),
        }


def _day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)

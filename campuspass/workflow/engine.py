"""
Outpass Lifecycle Engine.

Each public operation is one unit of work:

    load -> authorize -> validate input -> check state -> conditional update
    -> commit -> publish event

Contenders on the same outpass are serialized by `OutpassLocks` inside the
process and by `OutpassStore.update_where_status` across processes; the
loser gets `ConflictError`. Events are published only after a commit, so a
failed or conflicting attempt never notifies anyone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campuspass.models.outpass import Outpass, OutpassStatus, OutpassType
from campuspass.models.user import Role
from campuspass.schemas.outpass import OutpassOut
from campuspass.workflow.clock import as_naive_utc, utcnow
from campuspass.workflow.errors import ConflictError, NotFoundError, OutpassError, PersistenceError, ValidationError
from campuspass.workflow.events import EventPublisher, NullPublisher, TransitionEvent, TransitionKind
from campuspass.workflow.gate import Actor, ensure_can_perform
from campuspass.workflow.locks import OutpassLocks
from campuspass.workflow.passcodes import PasscodeService
from campuspass.workflow.states import OutpassAction, can_transition, target_of
from campuspass.workflow.store import OutpassStore

logger = logging.getLogger(__name__)

_KIND_BY_ACTION = {
    OutpassAction.CREATE: TransitionKind.CREATED,
    OutpassAction.APPROVE: TransitionKind.APPROVED,
    OutpassAction.REJECT: TransitionKind.REJECTED,
    OutpassAction.CANCEL: TransitionKind.CANCELLED,
    OutpassAction.CHECK_OUT: TransitionKind.CHECKED_OUT,
    OutpassAction.CHECK_IN: TransitionKind.CHECKED_IN,
    OutpassAction.MARK_OVERDUE: TransitionKind.OVERDUE,
}

# prepare(outpass, now) -> (patch, event details)
Prepare = Callable[[Outpass, datetime], tuple[dict[str, Any], dict[str, Any]]]


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _clean_optional(value: str | None) -> str | None:
    cleaned = _clean(value)
    return cleaned or None


def snapshot_of(outpass: Outpass) -> dict[str, Any]:
    return OutpassOut.model_validate(outpass).model_dump(mode="json")


class LifecycleEngine:
    def __init__(
        self,
        db: Session,
        *,
        passcodes: PasscodeService,
        publisher: EventPublisher | None = None,
        locks: OutpassLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.store = OutpassStore(db)
        self._passcodes = passcodes
        self._publisher = publisher or NullPublisher()
        self._locks = locks or OutpassLocks()
        self._clock = clock

    # ---- operations ------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        *,
        outpass_type: OutpassType,
        reason: str,
        destination: str,
        from_date: datetime,
        to_date: datetime,
    ) -> Outpass:
        ensure_can_perform(actor, OutpassAction.CREATE)

        reason = _clean(reason)
        destination = _clean(destination)
        if not reason:
            raise ValidationError("A reason is required")
        if not destination:
            raise ValidationError("A destination is required")

        from_date = as_naive_utc(from_date)
        to_date = as_naive_utc(to_date)
        now = self._clock()
        if to_date <= from_date:
            raise ValidationError("To date must be after from date")
        if from_date < now:
            raise ValidationError("From date cannot be in the past")

        with self._unit_of_work("create"):
            student = self.store.get_user(actor.user_id)
            if student is None or not student.is_active or student.role is not Role.STUDENT:
                raise NotFoundError("Student not found")
            if self.store.has_overlap(student.id, from_date, to_date):
                raise ConflictError("You have an overlapping outpass request")

            outpass = Outpass(
                outpass_number=self.store.next_outpass_number(now),
                student_id=student.id,
                hostel=student.hostel,
                type=outpass_type,
                reason=reason,
                destination=destination,
                from_date=from_date,
                to_date=to_date,
                status=OutpassStatus.PENDING,
                is_overdue=False,
                created_at=now,
                updated_at=now,
            )
            self.store.add(outpass)

        logger.info("outpass=%s created student=%s hostel=%s", outpass.outpass_number, student.id, student.hostel)
        self._publish(TransitionKind.CREATED, outpass, actor.user_id, now, {})
        return outpass

    def approve(self, outpass_id: int, actor: Actor, remarks: str | None = None) -> Outpass:
        remarks = _clean_optional(remarks)

        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            self._require_state(outpass, OutpassAction.APPROVE, "Outpass has already been decided")
            patch = {
                "warden_id": actor.user_id,
                "warden_remarks": remarks,
                "approved_at": now,
                "qr_code": self._passcodes.mint(outpass.id, outpass.outpass_number, now=now),
            }
            return patch, {"remarks": remarks}

        return self._transition(outpass_id, OutpassAction.APPROVE, actor, prepare)

    def reject(self, outpass_id: int, actor: Actor, reason: str) -> Outpass:
        reason = _clean(reason)

        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            if not reason:
                raise ValidationError("A rejection reason is required")
            self._require_state(outpass, OutpassAction.REJECT, "Outpass has already been decided")
            patch = {
                "warden_id": actor.user_id,
                "rejection_reason": reason,
                "rejected_at": now,
            }
            return patch, {"reason": reason}

        return self._transition(outpass_id, OutpassAction.REJECT, actor, prepare)

    def cancel(self, outpass_id: int, actor: Actor) -> Outpass:
        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            self._require_state(outpass, OutpassAction.CANCEL, "Only pending or approved outpasses can be cancelled")
            return {"qr_code": None}, {"previous_status": outpass.status.value}

        return self._transition(outpass_id, OutpassAction.CANCEL, actor, prepare)

    def check_out(self, outpass_id: int, actor: Actor, qr_code: str, remarks: str | None = None) -> Outpass:
        remarks = _clean_optional(remarks)

        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            self._check_presented_code(outpass, qr_code)
            self._require_state(outpass, OutpassAction.CHECK_OUT, "Only approved outpasses can be checked out")
            if not self._passcodes.matches(outpass.qr_code, qr_code):
                raise ValidationError("Pass code is not valid for this outpass")
            patch = {
                "check_out_time": now,
                "check_out_by": actor.user_id,
                "check_out_remarks": remarks,
            }
            return patch, {}

        return self._transition(outpass_id, OutpassAction.CHECK_OUT, actor, prepare)

    def check_in(
        self,
        outpass_id: int,
        actor: Actor,
        remarks: str | None = None,
        qr_code: str | None = None,
    ) -> Outpass:
        remarks = _clean_optional(remarks)

        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            if qr_code is not None:
                self._check_presented_code(outpass, qr_code)
            self._require_state(outpass, OutpassAction.CHECK_IN, "Only checked out outpasses can be checked in")
            if qr_code is not None and not self._passcodes.matches(outpass.qr_code, qr_code):
                raise ValidationError("Pass code is not valid for this outpass")
            if outpass.check_out_time is not None and now < outpass.check_out_time:
                raise ValidationError("Check-in time cannot precede check-out time")

            is_overdue = now > outpass.to_date
            patch = {
                "check_in_time": now,
                "check_in_by": actor.user_id,
                "check_in_remarks": remarks,
                "is_overdue": is_overdue,
                "qr_code": None,
            }
            return patch, {"is_overdue": is_overdue}

        return self._transition(outpass_id, OutpassAction.CHECK_IN, actor, prepare)

    def mark_overdue(self, outpass_id: int) -> Outpass:
        """Flag a checked-out outpass whose return time has passed. Status stays `checked_out`."""

        def prepare(outpass: Outpass, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
            self._require_state(outpass, OutpassAction.MARK_OVERDUE, "Only checked out outpasses can become overdue")
            if outpass.is_overdue:
                raise ConflictError("Outpass is already flagged overdue", outpass.status)
            if now <= outpass.to_date:
                raise ConflictError("Outpass is not overdue yet", outpass.status)
            overdue_by = now - outpass.to_date
            return {"is_overdue": True}, {"is_overdue": True, "overdue_hours": round(overdue_by.total_seconds() / 3600, 1)}

        return self._transition(
            outpass_id,
            OutpassAction.MARK_OVERDUE,
            None,
            prepare,
            conditions={"is_overdue": False},
        )

    # ---- internals -------------------------------------------------------------------

    def _transition(
        self,
        outpass_id: int,
        action: OutpassAction,
        actor: Actor | None,
        prepare: Prepare,
        *,
        conditions: dict[str, Any] | None = None,
    ) -> Outpass:
        with self._locks.hold(outpass_id):
            with self._unit_of_work(action.value):
                outpass = self.store.find_by_id(outpass_id)
                if outpass is None:
                    raise NotFoundError("Outpass not found")
                if actor is not None:
                    ensure_can_perform(actor, action, outpass)

                now = self._clock()
                previous = outpass.status
                patch, details = prepare(outpass, now)
                patch["status"] = target_of(action)
                patch["updated_at"] = now

                if not self.store.update_where_status(outpass_id, previous, patch, conditions=conditions):
                    logger.debug("outpass=%s lost %s race", outpass.outpass_number, action.value)
                    raise ConflictError("Outpass changed while this request was processed; re-fetch and retry")
                # Reload before commit: a failed read rolls the transition back.
                self.db.refresh(outpass)

            logger.info(
                "outpass=%s %s -> %s action=%s actor=%s",
                outpass.outpass_number,
                previous.value,
                outpass.status.value,
                action.value,
                actor.user_id if actor else "system",
            )
            # Still under the lock: events of one outpass leave in commit order.
            self._publish(_KIND_BY_ACTION[action], outpass, actor.user_id if actor else None, now, details)
        return outpass

    @contextmanager
    def _unit_of_work(self, label: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except OutpassError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Persistence failure during %s", label)
            raise PersistenceError("The outpass could not be updated") from exc

    @staticmethod
    def _require_state(outpass: Outpass, action: OutpassAction, message: str) -> None:
        if not can_transition(action, outpass.status):
            raise ConflictError(message, outpass.status)

    def _check_presented_code(self, outpass: Outpass, code: str | None) -> None:
        claims = self._passcodes.decode(code or "")
        if claims.outpass_id != outpass.id:
            raise ValidationError("Pass code belongs to a different outpass")

    def _publish(
        self,
        kind: TransitionKind,
        outpass: Outpass,
        actor_id: int | None,
        now: datetime,
        details: dict[str, Any],
    ) -> None:
        event = TransitionEvent(
            kind=kind,
            outpass_id=outpass.id,
            outpass_number=outpass.outpass_number,
            student_id=outpass.student_id,
            hostel=outpass.hostel,
            actor_id=actor_id,
            occurred_at=now,
            snapshot=snapshot_of(outpass),
            is_overdue=outpass.is_overdue,
            details=details,
        )
        try:
            self._publisher.publish(event)
        except Exception:
            # Already committed: publishing failures are logged only.
            logger.exception("Failed to publish %s for outpass=%s", event.event_name, outpass.outpass_number)

"""
Authorization Gate.

Stateless predicates tying a role, ownership and hostel scope to the actions
it may perform. The engine calls `ensure_can_perform` after loading the
outpass and before touching its state, inside the same unit of work.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from campuspass.models.outpass import Outpass
from campuspass.models.user import Role
from campuspass.workflow.errors import ForbiddenError
from campuspass.workflow.states import OutpassAction


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role
    hostel: str | None = None


def _student_create(actor: Actor, outpass: Outpass | None) -> bool:
    return actor.role is Role.STUDENT


def _student_owner(actor: Actor, outpass: Outpass | None) -> bool:
    return actor.role is Role.STUDENT and outpass is not None and outpass.student_id == actor.user_id


def _warden_same_hostel(actor: Actor, outpass: Outpass | None) -> bool:
    if actor.role is not Role.WARDEN or outpass is None:
        return False
    # A missing hostel on either side never matches.
    return actor.hostel is not None and actor.hostel == outpass.hostel


def _security(actor: Actor, outpass: Outpass | None) -> bool:
    return actor.role is Role.SECURITY


def _system_only(actor: Actor, outpass: Outpass | None) -> bool:
    return False


_RULES: dict[OutpassAction, Callable[[Actor, Outpass | None], bool]] = {
    OutpassAction.CREATE: _student_create,
    OutpassAction.CANCEL: _student_owner,
    OutpassAction.APPROVE: _warden_same_hostel,
    OutpassAction.REJECT: _warden_same_hostel,
    OutpassAction.CHECK_OUT: _security,
    OutpassAction.CHECK_IN: _security,
    OutpassAction.MARK_OVERDUE: _system_only,
}

_DENIALS: dict[OutpassAction, str] = {
    OutpassAction.CREATE: "Only students can request an outpass",
    OutpassAction.CANCEL: "You can only cancel your own outpasses",
    OutpassAction.APPROVE: "Only a warden of the student's hostel can approve this outpass",
    OutpassAction.REJECT: "Only a warden of the student's hostel can reject this outpass",
    OutpassAction.CHECK_OUT: "Only security staff can check students out",
    OutpassAction.CHECK_IN: "Only security staff can check students in",
    OutpassAction.MARK_OVERDUE: "Overdue marking is reserved for the overdue sweep",
}

if set(_RULES) != set(OutpassAction) or set(_DENIALS) != set(OutpassAction):
    raise RuntimeError("Authorization rules must cover every outpass action")


def can_perform(actor: Actor, action: OutpassAction, outpass: Outpass | None = None) -> bool:
    return _RULES[action](actor, outpass)


def ensure_can_perform(actor: Actor, action: OutpassAction, outpass: Outpass | None = None) -> None:
    if not can_perform(actor, action, outpass):
        raise ForbiddenError(_DENIALS[action])


def can_view(actor: Actor, outpass: Outpass) -> bool:
    """Read access to a single outpass."""
    if actor.role is Role.STUDENT:
        return outpass.student_id == actor.user_id
    if actor.role is Role.WARDEN:
        return actor.hostel is not None and actor.hostel == outpass.hostel
    return actor.role in (Role.SECURITY, Role.ADMIN)

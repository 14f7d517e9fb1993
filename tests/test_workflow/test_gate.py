"""Authorization Gate."""
from __future__ import annotations

import pytest

from campuspass.models.outpass import Outpass
from campuspass.models.user import Role
from campuspass.workflow.errors import ForbiddenError
from campuspass.workflow.gate import Actor, can_perform, can_view, ensure_can_perform
from campuspass.workflow.states import OutpassAction

STUDENT = Actor(user_id=1, role=Role.STUDENT, hostel="H1")
OTHER_STUDENT = Actor(user_id=2, role=Role.STUDENT, hostel="H1")
WARDEN_H1 = Actor(user_id=10, role=Role.WARDEN, hostel="H1")
WARDEN_H2 = Actor(user_id=11, role=Role.WARDEN, hostel="H2")
WARDEN_NO_HOSTEL = Actor(user_id=12, role=Role.WARDEN, hostel=None)
SECURITY = Actor(user_id=20, role=Role.SECURITY)
ADMIN = Actor(user_id=30, role=Role.ADMIN)


def _outpass(hostel="H1", student_id=1) -> Outpass:
    return Outpass(id=5, student_id=student_id, hostel=hostel)


def test_only_students_create():
    assert can_perform(STUDENT, OutpassAction.CREATE)
    for actor in (WARDEN_H1, SECURITY, ADMIN):
        assert not can_perform(actor, OutpassAction.CREATE)


def test_cancel_requires_owner():
    assert can_perform(STUDENT, OutpassAction.CANCEL, _outpass())
    assert not can_perform(OTHER_STUDENT, OutpassAction.CANCEL, _outpass())
    assert not can_perform(WARDEN_H1, OutpassAction.CANCEL, _outpass())


@pytest.mark.parametrize("action", [OutpassAction.APPROVE, OutpassAction.REJECT])
def test_decisions_require_warden_of_same_hostel(action):
    assert can_perform(WARDEN_H1, action, _outpass("H1"))
    assert not can_perform(WARDEN_H2, action, _outpass("H1"))
    assert not can_perform(SECURITY, action, _outpass("H1"))
    assert not can_perform(ADMIN, action, _outpass("H1"))


def test_missing_hostel_never_matches():
    assert not can_perform(WARDEN_NO_HOSTEL, OutpassAction.APPROVE, _outpass(hostel=None))
    assert not can_perform(WARDEN_H1, OutpassAction.APPROVE, _outpass(hostel=None))


@pytest.mark.parametrize("action", [OutpassAction.CHECK_OUT, OutpassAction.CHECK_IN])
def test_gate_moves_are_security_only(action):
    assert can_perform(SECURITY, action, _outpass())
    for actor in (STUDENT, WARDEN_H1, ADMIN):
        assert not can_perform(actor, action, _outpass())


def test_nobody_marks_overdue_by_request():
    for actor in (STUDENT, WARDEN_H1, SECURITY, ADMIN):
        assert not can_perform(actor, OutpassAction.MARK_OVERDUE, _outpass())


def test_ensure_can_perform_raises_forbidden_with_message():
    with pytest.raises(ForbiddenError) as exc:
        ensure_can_perform(WARDEN_H2, OutpassAction.APPROVE, _outpass("H1"))
    assert "warden" in exc.value.message.lower()


def test_can_view():
    outpass = _outpass("H1", student_id=1)
    assert can_view(STUDENT, outpass)
    assert not can_view(OTHER_STUDENT, outpass)
    assert can_view(WARDEN_H1, outpass)
    assert not can_view(WARDEN_H2, outpass)
    assert can_view(SECURITY, outpass)
    assert can_view(ADMIN, outpass)

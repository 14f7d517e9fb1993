"""
Outpass transition table.

Every status change goes through exactly one action, and every action has a
fixed set of source states and a single target. The overdue flag is not a
status: `mark_overdue` keeps the outpass in `checked_out` so check-in can
still be recorded.
"""

from __future__ import annotations

import enum

from campuspass.models.outpass import OutpassStatus


class OutpassAction(str, enum.Enum):
    CREATE = "create"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    CHECK_OUT = "check_out"
    CHECK_IN = "check_in"
    MARK_OVERDUE = "mark_overdue"


# action -> (allowed source states, target state)
TRANSITIONS: dict[OutpassAction, tuple[frozenset[OutpassStatus], OutpassStatus]] = {
    OutpassAction.APPROVE: (frozenset({OutpassStatus.PENDING}), OutpassStatus.APPROVED),
    OutpassAction.REJECT: (frozenset({OutpassStatus.PENDING}), OutpassStatus.REJECTED),
    OutpassAction.CANCEL: (
        frozenset({OutpassStatus.PENDING, OutpassStatus.APPROVED}),
        OutpassStatus.CANCELLED,
    ),
    OutpassAction.CHECK_OUT: (frozenset({OutpassStatus.APPROVED}), OutpassStatus.CHECKED_OUT),
    OutpassAction.CHECK_IN: (frozenset({OutpassStatus.CHECKED_OUT}), OutpassStatus.CHECKED_IN),
    OutpassAction.MARK_OVERDUE: (frozenset({OutpassStatus.CHECKED_OUT}), OutpassStatus.CHECKED_OUT),
}

TERMINAL_STATES = frozenset({OutpassStatus.REJECTED, OutpassStatus.CANCELLED, OutpassStatus.CHECKED_IN})

# Statuses in which a pass code exists.
PASSCODE_STATES = frozenset({OutpassStatus.APPROVED, OutpassStatus.CHECKED_OUT})

# Statuses that block a new overlapping request from the same student.
OPEN_STATES = frozenset({OutpassStatus.PENDING, OutpassStatus.APPROVED, OutpassStatus.CHECKED_OUT})


def allowed_edges() -> set[tuple[OutpassStatus, OutpassStatus]]:
    """All (from, to) status pairs reachable by one action, self-loops included."""
    edges: set[tuple[OutpassStatus, OutpassStatus]] = set()
    for sources, target in TRANSITIONS.values():
        for source in sources:
            edges.add((source, target))
    return edges


def can_transition(action: OutpassAction, current: OutpassStatus) -> bool:
    if action is OutpassAction.CREATE:
        return False
    sources, _target = TRANSITIONS[action]
    return current in sources


def target_of(action: OutpassAction) -> OutpassStatus:
    if action is OutpassAction.CREATE:
        return OutpassStatus.PENDING
    return TRANSITIONS[action][1]

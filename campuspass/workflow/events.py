"""Transition events emitted by the Lifecycle Engine after commit."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


class TransitionKind(str, enum.Enum):
    CREATED = "created"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    CHECKED_OUT = "checked_out"
    CHECKED_IN = "checked_in"
    OVERDUE = "overdue"

    @property
    def event_name(self) -> str:
        """Name of the live push event, e.g. `outpass:checked_out`."""
        return f"outpass:{self.value}"


@dataclass(frozen=True)
class TransitionEvent:
    """
    One committed transition.

    `snapshot` is the serialized outpass as it stood right after commit, so
    everything downstream communicates the same state regardless of later
    changes.
    """

    kind: TransitionKind
    outpass_id: int
    outpass_number: str
    student_id: int
    hostel: str | None
    actor_id: int | None
    occurred_at: datetime
    snapshot: dict[str, Any]
    is_overdue: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def event_name(self) -> str:
        return self.kind.event_name

    def live_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "outpass_id": self.outpass_id,
            "outpass": self.snapshot,
            "actor_id": self.actor_id,
            "occurred_at": self.occurred_at.isoformat(),
        }
        if self.kind in (TransitionKind.CHECKED_IN, TransitionKind.OVERDUE):
            payload["is_overdue"] = self.is_overdue
        return payload


class EventPublisher(Protocol):
    def publish(self, event: TransitionEvent) -> None: ...


class NullPublisher:
    """Publisher that drops events. Used when no dispatcher is wired in."""

    def publish(self, event: TransitionEvent) -> None:
        return None

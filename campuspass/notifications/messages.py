"""Human-readable titles and messages for each transition kind."""

from __future__ import annotations

from typing import Any

from campuspass.models.notification import NotificationType
from campuspass.workflow.events import TransitionEvent, TransitionKind

NOTIFICATION_TYPES: dict[TransitionKind, NotificationType] = {
    TransitionKind.CREATED: NotificationType.OUTPASS_CREATED,
    TransitionKind.APPROVED: NotificationType.OUTPASS_APPROVED,
    TransitionKind.REJECTED: NotificationType.OUTPASS_REJECTED,
    TransitionKind.CANCELLED: NotificationType.OUTPASS_CANCELLED,
    TransitionKind.CHECKED_OUT: NotificationType.OUTPASS_CHECKED_OUT,
    TransitionKind.CHECKED_IN: NotificationType.OUTPASS_CHECKED_IN,
    TransitionKind.OVERDUE: NotificationType.OUTPASS_OVERDUE,
}


def compose(event: TransitionEvent) -> tuple[str, str]:
    """Return (title, message) for a transition."""
    number = event.outpass_number
    kind = event.kind

    if kind is TransitionKind.CREATED:
        destination = event.snapshot.get("destination", "")
        return "New Outpass Request", f"A new outpass request ({number}) to {destination} is waiting for review"
    if kind is TransitionKind.APPROVED:
        return "Outpass Approved", f"Your outpass {number} has been approved"
    if kind is TransitionKind.REJECTED:
        reason = event.details.get("reason")
        return "Outpass Rejected", f"Your outpass {number} has been rejected. Reason: {reason}"
    if kind is TransitionKind.CANCELLED:
        return "Outpass Cancelled", f"Outpass {number} was cancelled by the student"
    if kind is TransitionKind.CHECKED_OUT:
        return "Checked Out", f"You have been checked out for outpass {number}"
    if kind is TransitionKind.CHECKED_IN:
        if event.is_overdue:
            return "Checked In (Late)", f"You have been checked in for outpass {number}. Note: You returned late."
        return "Checked In", f"You have been checked in for outpass {number}"
    if kind is TransitionKind.OVERDUE:
        return "Outpass Overdue", f"Outpass {number} is overdue. The student has not returned to campus."
    raise ValueError(f"No message for transition kind {kind!r}")


def payload_for(event: TransitionEvent) -> dict[str, Any]:
    """The stored `data` of a notification: what was communicated, by id."""
    data: dict[str, Any] = {
        "outpass_id": event.outpass_id,
        "outpass_number": event.outpass_number,
        "status": event.snapshot.get("status"),
    }
    if event.kind in (TransitionKind.CHECKED_IN, TransitionKind.OVERDUE):
        data["is_overdue"] = event.is_overdue
    if event.kind is TransitionKind.REJECTED:
        data["reason"] = event.details.get("reason")
    if event.kind is TransitionKind.OVERDUE and "overdue_hours" in event.details:
        data["overdue_hours"] = event.details["overdue_hours"]
    return data

"""
Notification Router.

`recipients_for` is a pure mapping from a transition to its audience.
`NotificationRouter.handle` turns that audience into stored Notification
records and live pushes: the transition event to its audience, then
`notification:new` with each stored record to its owner. The two halves
are independent: a recipient being offline never affects the records,
and a failed write is logged (the transition has already committed)
while live delivery still goes out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from campuspass.models.notification import Notification
from campuspass.models.user import Role
from campuspass.notifications.messages import NOTIFICATION_TYPES, compose, payload_for
from campuspass.realtime.fanout import FanoutService
from campuspass.schemas.notification import NotificationOut
from campuspass.workflow.events import TransitionEvent, TransitionKind
from campuspass.workflow.store import OutpassStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserTarget:
    user_id: int
    persist: bool = True
    live: bool = True


@dataclass(frozen=True)
class ScopeTarget:
    """All users of `role`, narrowed to `hostel` when given."""

    role: Role
    hostel: str | None = None
    persist: bool = True
    live: bool = True


Target = UserTarget | ScopeTarget


def _hostel_wardens(event: TransitionEvent, *, persist: bool) -> list[Target]:
    # No hostel, no wardens: the request waits until one is assigned.
    if event.hostel is None:
        return []
    return [ScopeTarget(Role.WARDEN, event.hostel, persist=persist)]


def _desk(*, persist: bool = False) -> list[Target]:
    return [ScopeTarget(Role.SECURITY, None, persist=persist)]


def recipients_for(event: TransitionEvent) -> list[Target]:
    """
    Audience of a transition.

    Stored + live:
        created              -> the hostel's wardens
        approved / rejected  -> the owning student
        cancelled            -> the hostel's wardens
        checked_out / in     -> the owning student
        overdue              -> the owning student and the hostel's wardens
    Live only (dashboards):
        approved             -> security
        checked_out / in     -> security and the hostel's wardens
        overdue              -> security
    """

    student = UserTarget(event.student_id)
    kind = event.kind

    if kind is TransitionKind.CREATED:
        return _hostel_wardens(event, persist=True)
    if kind is TransitionKind.APPROVED:
        return [student, *_desk()]
    if kind is TransitionKind.REJECTED:
        return [student]
    if kind is TransitionKind.CANCELLED:
        return _hostel_wardens(event, persist=True)
    if kind in (TransitionKind.CHECKED_OUT, TransitionKind.CHECKED_IN):
        return [student, *_desk(), *_hostel_wardens(event, persist=False)]
    if kind is TransitionKind.OVERDUE:
        return [student, *_hostel_wardens(event, persist=True), *_desk()]
    raise ValueError(f"No recipients defined for {kind!r}")


class NotificationRouter:
    def __init__(self, session_factory: sessionmaker[Session], fanout: FanoutService):
        self._session_factory = session_factory
        self._fanout = fanout

    async def handle(self, event: TransitionEvent) -> None:
        targets = recipients_for(event)
        stored = await asyncio.to_thread(self.persist, event, [t for t in targets if t.persist])
        await self.push(event, [t for t in targets if t.live])
        for notification in stored:
            await self._fanout.emit_to_user(notification.user_id, "notification:new", notification.model_dump(mode="json"))

    def persist(self, event: TransitionEvent, targets: list[Target]) -> list[NotificationOut]:
        """Write one Notification per distinct recipient. Returns the stored records."""
        if not targets:
            return []

        title, message = compose(event)
        notification_type = NOTIFICATION_TYPES[event.kind]
        data = payload_for(event)
        try:
            with self._session_factory() as db:
                user_ids = self._resolve(db, targets)
                rows = [
                    Notification(
                        user_id=user_id,
                        type=notification_type,
                        title=title,
                        message=message,
                        data=data,
                        read=False,
                        created_at=event.occurred_at,
                    )
                    for user_id in user_ids
                ]
                db.add_all(rows)
                db.commit()
                stored = [NotificationOut.model_validate(row) for row in rows]
        except SQLAlchemyError:
            logger.exception("Could not store %s notifications for outpass=%s", event.kind.value, event.outpass_number)
            return []
        return stored

    async def push(self, event: TransitionEvent, targets: list[Target]) -> int:
        user_ids = [t.user_id for t in targets if isinstance(t, UserTarget)]
        scopes = [(t.role, t.hostel) for t in targets if isinstance(t, ScopeTarget)]
        return await self._fanout.deliver(event.event_name, event.live_payload(), user_ids=user_ids, scopes=scopes)

    @staticmethod
    def _resolve(db: Session, targets: list[Target]) -> list[int]:
        store = OutpassStore(db)
        seen: dict[int, None] = {}
        for target in targets:
            if isinstance(target, UserTarget):
                seen.setdefault(target.user_id, None)
            else:
                for user_id in store.user_ids_in_scope(target.role, target.hostel):
                    seen.setdefault(user_id, None)
        return list(seen)

"""Read side of stored notifications. Every call is confined to one user's records."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from campuspass.models.notification import Notification
from campuspass.workflow.errors import NotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(
        self,
        user_id: int,
        *,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Notification], int, int]:
        """Return (page of notifications newest first, total matching, unread count)."""
        criteria = [Notification.user_id == user_id]
        if unread_only:
            criteria.append(Notification.read.is_(False))

        page = max(page, 1)
        stmt = (
            select(Notification)
            .where(*criteria)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = list(self.db.scalars(stmt).all())
        total = self.db.scalar(select(func.count(Notification.id)).where(*criteria)) or 0
        return items, total, self.unread_count(user_id)

    def unread_count(self, user_id: int) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        return self.db.scalar(stmt) or 0

    def mark_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self._own(user_id, notification_id)
        if not notification.read:
            notification.read = True
            self.db.commit()
        return notification

    def mark_all_read(self, user_id: int) -> int:
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.info("user=%s marked %s notification(s) read", user_id, result.rowcount)
        return result.rowcount

    def delete(self, user_id: int, notification_id: int) -> None:
        notification = self._own(user_id, notification_id)
        self.db.delete(notification)
        self.db.commit()

    def delete_read(self, user_id: int) -> int:
        result = self.db.execute(
            delete(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(True))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def _own(self, user_id: int, notification_id: int) -> Notification:
        notification = self.db.get(Notification, notification_id)
        # Someone else's notification looks the same as a missing one.
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

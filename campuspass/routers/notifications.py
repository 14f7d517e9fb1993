from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campuspass.db.session import get_db
from campuspass.models.notification import Notification
from campuspass.models.user import User
from campuspass.notifications.service import NotificationService
from campuspass.schemas.notification import Affected, NotificationOut, NotificationPage, UnreadCount
from campuspass.security.dependencies import get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=NotificationPage)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPage:
    items, total, unread = service.list_for_user(user.id, unread_only=unread_only, page=page, limit=limit)
    return NotificationPage(
        items=[NotificationOut.model_validate(n) for n in items],
        total=total,
        unread_count=unread,
        page=page,
        limit=limit,
    )


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCount:
    return UnreadCount(unread_count=service.unread_count(user.id))


@router.post("/read-all", response_model=Affected)
def mark_all_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> Affected:
    return Affected(affected=service.mark_all_read(user.id))


@router.post("/{id}/read", response_model=NotificationOut)
def mark_read(
    id: int,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> Notification:
    return service.mark_read(user.id, id)


@router.delete("/read", response_model=Affected)
def delete_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> Affected:
    return Affected(affected=service.delete_read(user.id))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    id: int,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> None:
    service.delete(user.id, id)

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from campuspass.models.user import User
from campuspass.schemas.user import UserView
from campuspass.security.dependencies import get_current_user

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    registry = request.app.state.registry
    return {
        "status": "ok",
        "online_sessions": registry.session_count(),
        "online_users": registry.online_user_count(),
    }


@router.get("/me", response_model=UserView)
def me(user: User = Depends(get_current_user)) -> User:
    return user

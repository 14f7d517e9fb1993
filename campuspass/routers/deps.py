from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from campuspass.db.session import get_db
from campuspass.workflow.clock import utcnow
from campuspass.workflow.engine import LifecycleEngine
from campuspass.workflow.passcodes import PasscodeService
from campuspass.workflow.store import OutpassStore


def get_clock(request: Request) -> Callable[[], datetime]:
    return getattr(request.app.state, "clock", None) or utcnow


def get_passcodes(request: Request) -> PasscodeService:
    return request.app.state.passcodes


def get_store(db: Session = Depends(get_db)) -> OutpassStore:
    return OutpassStore(db)


def get_lifecycle_engine(request: Request, db: Session = Depends(get_db)) -> LifecycleEngine:
    """One engine per request, sharing the app's locks, pass codes and dispatcher."""
    state = request.app.state
    return LifecycleEngine(
        db,
        passcodes=state.passcodes,
        publisher=state.dispatcher,
        locks=state.locks,
        clock=get_clock(request),
    )

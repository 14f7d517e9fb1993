from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from campuspass.models.outpass import Outpass, OutpassStatus, OutpassType
from campuspass.routers.deps import get_clock, get_store
from campuspass.schemas.outpass import OutpassOut, OutpassPage, WardenStats
from campuspass.security.decorators import filter_by_hostel
from campuspass.security.dependencies import get_current_actor
from campuspass.workflow.clock import as_naive_utc
from campuspass.workflow.gate import Actor
from campuspass.workflow.store import OutpassStore

router = APIRouter(prefix="/warden", tags=["warden"])


def _page(items: list[Outpass], total: int, page: int, limit: int) -> OutpassPage:
    return OutpassPage(items=[OutpassOut.model_validate(o) for o in items], total=total, page=page, limit=limit)


@router.get("/outpasses/pending", response_model=OutpassPage)
def pending_queue(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    store: OutpassStore = Depends(get_store),
) -> OutpassPage:
    # Hostel scoping is applied by the session filter (route rule filter_by_hostel).
    items, total = store.list_outpasses(statuses=[OutpassStatus.PENDING], oldest_first=True, page=page, limit=limit)
    return _page(items, total, page, limit)


@router.get("/outpasses", response_model=OutpassPage)
@filter_by_hostel()
def hostel_outpasses(
    status_filter: list[OutpassStatus] | None = Query(default=None, alias="status"),
    outpass_type: OutpassType | None = Query(default=None, alias="type"),
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    store: OutpassStore = Depends(get_store),
) -> OutpassPage:
    items, total = store.list_outpasses(
        statuses=status_filter,
        outpass_type=outpass_type,
        from_date=as_naive_utc(from_date) if from_date else None,
        to_date=as_naive_utc(to_date) if to_date else None,
        page=page,
        limit=limit,
    )
    return _page(items, total, page, limit)


@router.get("/stats", response_model=WardenStats)
def hostel_stats(
    actor: Actor = Depends(get_current_actor),
    store: OutpassStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> WardenStats:
    return WardenStats(**store.hostel_stats(actor.hostel, clock()))

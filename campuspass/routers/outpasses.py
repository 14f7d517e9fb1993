from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from campuspass.models.outpass import Outpass, OutpassStatus, OutpassType
from campuspass.routers.deps import get_lifecycle_engine, get_store
from campuspass.schemas.outpass import (
    ApproveIn,
    CheckInIn,
    CheckOutIn,
    OutpassCreateIn,
    OutpassOut,
    RejectIn,
    StudentOutpassDetail,
    StudentOutpassOut,
    StudentOutpassPage,
    StudentStats,
)
from campuspass.security.dependencies import get_current_actor
from campuspass.workflow.engine import LifecycleEngine
from campuspass.workflow.errors import NotFoundError
from campuspass.workflow.gate import Actor, can_view
from campuspass.workflow.store import OutpassStore

router = APIRouter(prefix="/outpasses", tags=["outpasses"])


@router.post("", response_model=StudentOutpassOut, status_code=status.HTTP_201_CREATED)
def create_outpass(
    body: OutpassCreateIn,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    return engine.create(
        actor,
        outpass_type=body.type,
        reason=body.reason,
        destination=body.destination,
        from_date=body.from_date,
        to_date=body.to_date,
    )


@router.get("/mine", response_model=StudentOutpassPage)
def my_outpasses(
    status_filter: list[OutpassStatus] | None = Query(default=None, alias="status"),
    outpass_type: OutpassType | None = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    store: OutpassStore = Depends(get_store),
) -> StudentOutpassPage:
    # Owner scoping comes from the route rule (filter_by_owner).
    items, total = store.list_outpasses(statuses=status_filter, outpass_type=outpass_type, page=page, limit=limit)
    return StudentOutpassPage(
        items=[StudentOutpassOut.model_validate(o) for o in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats/student", response_model=StudentStats)
def my_stats(actor: Actor = Depends(get_current_actor), store: OutpassStore = Depends(get_store)) -> StudentStats:
    return StudentStats(**store.student_stats(actor.user_id))


@router.get("/{id}", response_model=StudentOutpassDetail)
def get_outpass(
    id: int,
    actor: Actor = Depends(get_current_actor),
    store: OutpassStore = Depends(get_store),
) -> StudentOutpassDetail:
    outpass = store.find_detail(id)
    if outpass is None or not can_view(actor, outpass):
        # Outpasses outside the caller's scope look the same as missing ones.
        raise NotFoundError("Outpass not found")

    detail = StudentOutpassDetail.model_validate(outpass)
    if outpass.student_id != actor.user_id:
        detail = detail.model_copy(update={"qr_code": None})
    return detail


@router.post("/{id}/cancel", response_model=StudentOutpassOut)
def cancel_outpass(
    id: int,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    return engine.cancel(id, actor)


@router.post("/{id}/approve", response_model=OutpassOut)
def approve_outpass(
    id: int,
    body: ApproveIn | None = None,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    return engine.approve(id, actor, remarks=body.remarks if body else None)


@router.post("/{id}/reject", response_model=OutpassOut)
def reject_outpass(
    id: int,
    body: RejectIn,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    return engine.reject(id, actor, body.reason)


@router.post("/{id}/check-out", response_model=OutpassOut)
def check_out(
    id: int,
    body: CheckOutIn,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    return engine.check_out(id, actor, body.qr_code, remarks=body.remarks)


@router.post("/{id}/check-in", response_model=OutpassOut)
def check_in(
    id: int,
    body: CheckInIn | None = None,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Outpass:
    body = body or CheckInIn()
    return engine.check_in(id, actor, remarks=body.remarks, qr_code=body.qr_code)

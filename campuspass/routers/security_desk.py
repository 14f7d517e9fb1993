from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends

from campuspass.models.outpass import OutpassStatus
from campuspass.routers.deps import get_clock, get_passcodes, get_store
from campuspass.schemas.outpass import OutpassDetail, ScanIn, ScanResult, SecurityStats
from campuspass.security.decorators import require_roles
from campuspass.workflow.errors import NotFoundError
from campuspass.workflow.passcodes import PasscodeService
from campuspass.workflow.store import OutpassStore

router = APIRouter(prefix="/security", tags=["security"])

_USABLE_FOR = {
    OutpassStatus.APPROVED: "check_out",
    OutpassStatus.CHECKED_OUT: "check_in",
}


@router.get("/outpasses/active", response_model=list[OutpassDetail])
def active_outpasses(store: OutpassStore = Depends(get_store)) -> list[OutpassDetail]:
    return [OutpassDetail.model_validate(o) for o in store.active_outpasses()]


@router.post("/scan", response_model=ScanResult)
@require_roles(["security"])
def scan(
    body: ScanIn,
    store: OutpassStore = Depends(get_store),
    passcodes: PasscodeService = Depends(get_passcodes),
) -> ScanResult:
    """Decode a presented pass code and say what it can be used for right now."""
    claims = passcodes.decode(body.qr_code)
    outpass = store.find_detail(claims.outpass_id)
    if outpass is None or outpass.outpass_number != claims.outpass_number:
        raise NotFoundError("Outpass not found")

    usable_for = None
    if passcodes.matches(outpass.qr_code, body.qr_code):
        usable_for = _USABLE_FOR.get(outpass.status)
    return ScanResult(outpass=OutpassDetail.model_validate(outpass), usable_for=usable_for)


@router.get("/stats", response_model=SecurityStats)
def desk_stats(
    store: OutpassStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SecurityStats:
    return SecurityStats(**store.desk_stats(clock()))

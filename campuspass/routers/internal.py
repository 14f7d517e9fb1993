from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Header, HTTPException, Request, status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _check_internal_key(request: Request, presented: str | None) -> None:
    expected = request.app.state.settings.internal_api_key
    if not presented:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Internal-Key")
    if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected internal call path=%s", request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid X-Internal-Key")


@router.post("/overdue-sweep")
def run_overdue_sweep(request: Request, x_internal_key: str | None = Header(default=None)) -> dict[str, int]:
    """Run one overdue sweep pass now (for an external scheduler)."""
    _check_internal_key(request, x_internal_key)
    flagged = request.app.state.sweep.run_once()
    return {"flagged": flagged}

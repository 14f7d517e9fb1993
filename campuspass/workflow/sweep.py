"""
Overdue Sweep.

Time-driven, not request-driven: finds checked-out outpasses whose return
time has passed and flags them through `LifecycleEngine.mark_overdue`, one
fresh session per outpass. If a check-in lands first, the engine's state
re-check turns the flagging into a `ConflictError`, which the sweep treats
as "nothing to do".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from campuspass.workflow.clock import utcnow
from campuspass.workflow.engine import LifecycleEngine
from campuspass.workflow.errors import ConflictError, NotFoundError
from campuspass.workflow.events import EventPublisher
from campuspass.workflow.locks import OutpassLocks
from campuspass.workflow.passcodes import PasscodeService
from campuspass.workflow.store import OutpassStore

logger = logging.getLogger(__name__)


class OverdueSweep:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        passcodes: PasscodeService,
        publisher: EventPublisher | None = None,
        locks: OutpassLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._passcodes = passcodes
        self._publisher = publisher
        self._locks = locks or OutpassLocks()
        self._clock = clock

    def run_once(self) -> int:
        """Flag every outpass that is overdue right now. Returns how many were flagged."""
        with self._session_factory() as db:
            candidates = OutpassStore(db).overdue_candidates(self._clock())

        flagged = 0
        for outpass_id in candidates:
            with self._session_factory() as db:
                engine = LifecycleEngine(
                    db,
                    passcodes=self._passcodes,
                    publisher=self._publisher,
                    locks=self._locks,
                    clock=self._clock,
                )
                try:
                    engine.mark_overdue(outpass_id)
                except (ConflictError, NotFoundError) as exc:
                    logger.debug("Skipping outpass id=%s: %s", outpass_id, exc.message)
                    continue
            flagged += 1

        if flagged:
            logger.info("Overdue sweep flagged %s outpass(es)", flagged)
        return flagged


class OverdueSweepRunner:
    """Runs `OverdueSweep.run_once` every `interval` seconds on the event loop."""

    def __init__(self, sweep: OverdueSweep, interval: float):
        self._sweep = sweep
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._interval <= 0:
            logger.info("Overdue sweep disabled")
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="overdue-sweep")
        logger.info("Overdue sweep scheduled every %ss", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await asyncio.to_thread(self._sweep.run_once)
            except Exception:
                logger.exception("Overdue sweep pass failed")

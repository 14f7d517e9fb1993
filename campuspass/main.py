from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.routing import WebSocketRoute
from sqlalchemy.orm import Session, sessionmaker

from campuspass.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from campuspass.db.init_db import init_db
from campuspass.db.session import build_engine, build_session_factory
from campuspass.identity import AccessTokenService
from campuspass.integrations.webhook import WebhookForwarder
from campuspass.logging_config import configure_app_logging
from campuspass.notifications.dispatcher import EventDispatcher
from campuspass.notifications.router import NotificationRouter
from campuspass.realtime.fanout import FanoutService, identity_loader
from campuspass.realtime.registry import ConnectionRegistry
from campuspass.realtime.websocket import websocket_endpoint
from campuspass.routers import health, internal, notifications, outpasses, security_desk, warden
from campuspass.security.config import load_security_config
from campuspass.security.dependencies import enforce_security
from campuspass.settings import Settings, get_settings
from campuspass.workflow.clock import utcnow
from campuspass.workflow.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OutpassError,
    PersistenceError,
    ValidationError,
)
from campuspass.workflow.locks import OutpassLocks
from campuspass.workflow.passcodes import PasscodeService
from campuspass.workflow.sweep import OverdueSweep, OverdueSweepRunner

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[OutpassError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def _outpass_error_handler(request: Request, exc: OutpassError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    body: dict[str, object] = {"detail": exc.message, "error": exc.kind}
    if isinstance(exc, ConflictError) and exc.status is not None:
        body["status"] = exc.status.value
    if status_code >= 500:
        body["detail"] = "Internal error"
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    *,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    clock = clock or utcnow

    if session_factory is None:
        engine = build_engine(settings.resolved_db_url())
        session_factory = build_session_factory(engine)
    else:
        engine = session_factory.kw["bind"]

    tokens = AccessTokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(minutes=settings.access_token_ttl_minutes),
    )
    passcodes = PasscodeService(settings.resolved_passcode_secret())
    locks = OutpassLocks()
    registry = ConnectionRegistry()
    fanout = FanoutService(registry, tokens, identity_loader(session_factory))
    dispatcher = EventDispatcher()
    dispatcher.subscribe(NotificationRouter(session_factory, fanout).handle)

    webhook = None
    if settings.collaborator_webhook_url:
        webhook = WebhookForwarder(settings.collaborator_webhook_url, settings.collaborator_webhook_timeout_seconds)
        dispatcher.subscribe(webhook)

    sweep = OverdueSweep(session_factory, passcodes=passcodes, publisher=dispatcher, locks=locks, clock=clock)
    sweep_runner = OverdueSweepRunner(sweep, settings.overdue_sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db(engine, session_factory, seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured + seed if needed)")

        dispatcher.start()
        sweep_runner.start()

        yield

        # Shutdown
        await sweep_runner.stop()
        await dispatcher.stop()
        registry.clear()
        if webhook is not None:
            webhook.close()
        logger.info("App shutdown complete")

    # Global dependency: applies security with zero changes to route handlers.
    app = FastAPI(title="CampusPass", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.clock = clock
    app.state.tokens = tokens
    app.state.passcodes = passcodes
    app.state.locks = locks
    app.state.registry = registry
    app.state.fanout = fanout
    app.state.dispatcher = dispatcher
    app.state.sweep = sweep

    app.add_exception_handler(OutpassError, _outpass_error_handler)

    app.include_router(health.router)
    app.include_router(outpasses.router)
    app.include_router(warden.router)
    app.include_router(security_desk.router)
    app.include_router(notifications.router)
    app.include_router(internal.router)

    # Plain Starlette route: the global HTTP security dependency does not apply,
    # the handshake authenticates itself.
    app.router.routes.append(WebSocketRoute("/ws", websocket_endpoint))

    return app


app = create_app()

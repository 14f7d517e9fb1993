from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from campuspass.settings import get_settings


def build_engine(url: str) -> Engine:
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
    )


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False: transition results are read after commit (snapshots, responses).
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


_settings = get_settings()

engine = build_engine(_settings.resolved_db_url())

SessionLocal = build_session_factory(engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    - The session factory comes from `app.state` so tests (and the sweep) can
      bind another database without touching call sites.
    - One session per request: `enforce_security` and the route handlers
      share it, and `enforce_security` stores the AuthzContext in
      `Session.info["authz"]` for the `do_orm_execute` filter in
      `campuspass.db.filters`.
    """

    factory = getattr(request.app.state, "session_factory", None) or SessionLocal
    db = factory()
    try:
        authz = getattr(getattr(request, "state", None), "authz", None)
        if authz is not None:
            db.info["authz"] = authz
        yield db
    finally:
        db.close()

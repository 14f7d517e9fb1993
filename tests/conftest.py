"""
Pytest fixtures for the test suite.

- `db_session`: in-memory SQLite, rolled back after each test. For store
  queries that never commit.
- `session_factory`: file-backed SQLite under tmp_path with real commits.
  The engine, sweep and router open their own sessions and threads, so
  they need a database every connection can see.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from campuspass.db.base import Base
from campuspass.db.init_db import init_db
from campuspass.db.session import build_engine, build_session_factory
from campuspass.main import create_app
from campuspass.models.outpass import OutpassType
from campuspass.models.user import User
from campuspass.settings import Settings
from campuspass.workflow.engine import LifecycleEngine
from campuspass.workflow.gate import Actor
from campuspass.workflow.locks import OutpassLocks
from campuspass.workflow.passcodes import PasscodeService

TEST_DB_URL = "sqlite:///:memory:"
REPO_ROOT = Path(__file__).resolve().parents[1]

START = datetime(2026, 3, 2, 8, 0, 0)


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    import campuspass.models.notification  # noqa: F401
    import campuspass.models.outpass  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'campuspass-test.db'}"


@pytest.fixture
def session_factory(db_url):
    bind = build_engine(db_url)
    factory = build_session_factory(bind)
    init_db(bind, factory, seed=True)
    yield factory
    bind.dispose()


@pytest.fixture
def users(session_factory) -> dict[str, User]:
    """Seeded users by short name: two H1 students, one H2 student, a warden per hostel, security, admin."""
    by_email = {
        "asha.student@campus.test": "student",
        "ben.student@campus.test": "student2",
        "chitra.student@campus.test": "student_h2",
        "wanda.warden@campus.test": "warden",
        "vikram.warden@campus.test": "warden_h2",
        "sam.security@campus.test": "security",
        "ada.admin@campus.test": "admin",
    }
    with session_factory() as db:
        return {by_email[u.email]: u for u in db.scalars(select(User)).all() if u.email in by_email}


@pytest.fixture
def actors(users) -> dict[str, Actor]:
    return {name: Actor(user_id=u.id, role=u.role, hostel=u.hostel) for name, u in users.items()}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def passcodes() -> PasscodeService:
    return PasscodeService("test-passcode-secret-0123456789abcdef")


@pytest.fixture
def locks() -> OutpassLocks:
    return OutpassLocks()


@pytest.fixture
def make_engine(session_factory, passcodes, publisher, locks, clock):
    """Build a LifecycleEngine on a fresh session; sessions are closed at teardown."""
    opened: list[Session] = []

    def build(**overrides) -> LifecycleEngine:
        db = session_factory()
        opened.append(db)
        kwargs = {"passcodes": passcodes, "publisher": publisher, "locks": locks, "clock": clock}
        kwargs.update(overrides)
        return LifecycleEngine(db, **kwargs)

    yield build
    for db in opened:
        db.close()


@pytest.fixture
def create_pending(make_engine, actors, clock):
    """Create a pending outpass for `who` leaving in one hour, back in five."""

    def create(who: str = "student", *, start_in: timedelta = timedelta(hours=1), length: timedelta = timedelta(hours=4)):
        engine = make_engine()
        from_date = clock() + start_in
        return engine.create(
            actors[who],
            outpass_type=OutpassType.LOCAL,
            reason="Visit the dentist",
            destination="City clinic",
            from_date=from_date,
            to_date=from_date + length,
        )

    return create


@pytest.fixture
def app_settings(db_url):
    return Settings(
        db_url=db_url,
        security_config_path=str(REPO_ROOT / "config" / "security_config.yaml"),
        jwt_secret="test-jwt-secret-0123456789abcdef0123",
        passcode_secret="test-passcode-secret-0123456789abcdef",
        overdue_sweep_interval_seconds=0,
        internal_api_key="test-internal-key",
        collaborator_webhook_url=None,
        seed_demo_data=True,
    )


@pytest.fixture
def app(app_settings, session_factory, clock):
    return create_app(settings=app_settings, session_factory=session_factory, clock=clock)


@pytest.fixture
def client(app):
    """TestClient used as a context manager so the lifespan (dispatcher, config) runs."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth(app, users):
    """`auth("warden")` -> Authorization header for a seeded user."""

    def header(name: str) -> dict[str, str]:
        user = users[name]
        token = app.state.tokens.issue(user.id, user.role.value, hostel=user.hostel, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return header

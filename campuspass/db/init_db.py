from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from campuspass.db.base import Base
from campuspass.models import notification as _notification  # noqa: F401  (register table)
from campuspass.models.outpass import OutpassCounter
from campuspass.models.user import Role, User

logger = logging.getLogger(__name__)

OUTPASS_SEQUENCE = "outpass"


def init_db(engine: Engine, session_factory: sessionmaker[Session], *, seed: bool = True) -> None:
    """
    Create tables, make sure the outpass number counter exists, and
    optionally seed a small deterministic set of users (two hostels).
    """

    Base.metadata.create_all(bind=engine)

    with session_factory() as db:
        if db.get(OutpassCounter, OUTPASS_SEQUENCE) is None:
            db.add(OutpassCounter(name=OUTPASS_SEQUENCE, value=0))
            db.commit()

        if seed and not _has_seed_data(db):
            _seed(db)
            logger.info("Seeded demo users")


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def demo_users() -> list[User]:
    return [
        User(email="asha.student@campus.test", name="Asha Rao", role=Role.STUDENT, hostel="H1", room_number="101", roll_number="CS21-001"),
        User(email="ben.student@campus.test", name="Ben Thomas", role=Role.STUDENT, hostel="H1", room_number="102", roll_number="CS21-002"),
        User(email="chitra.student@campus.test", name="Chitra Iyer", role=Role.STUDENT, hostel="H2", room_number="201", roll_number="EE21-014"),
        User(email="wanda.warden@campus.test", name="Wanda Joseph", role=Role.WARDEN, hostel="H1", phone="555-0101"),
        User(email="vikram.warden@campus.test", name="Vikram Shah", role=Role.WARDEN, hostel="H2", phone="555-0102"),
        User(email="sam.security@campus.test", name="Sam Pillai", role=Role.SECURITY, phone="555-0199"),
        User(email="ada.admin@campus.test", name="Ada Menon", role=Role.ADMIN),
    ]


def _seed(db: Session) -> None:
    db.add_all(demo_users())
    db.commit()

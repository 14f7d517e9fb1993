#!/usr/bin/env python3
"""
Issue an access token for an existing CampusPass user.

Usage:
    python scripts/issue_token.py <email>
    python scripts/issue_token.py --list

Reads the same APP_* settings as the service, so the token verifies against
a locally running instance.
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from sqlalchemy import select

from campuspass.db.init_db import init_db
from campuspass.db.session import SessionLocal, engine
from campuspass.identity import AccessTokenService
from campuspass.models.user import User
from campuspass.settings import get_settings


def issue_token(email: str) -> str:
    settings = get_settings()
    tokens = AccessTokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(minutes=settings.access_token_ttl_minutes),
    )
    with SessionLocal() as db:
        user = db.scalars(select(User).where(User.email == email)).first()
        if user is None or not user.is_active:
            raise SystemExit(f"No active user with email {email!r}")
        return tokens.issue(user.id, user.role.value, hostel=user.hostel, email=user.email)


def list_users() -> None:
    with SessionLocal() as db:
        for user in db.scalars(select(User).order_by(User.id)):
            print(f"  {user.id:>3}  {user.role.value:<9} {user.hostel or '-':<4} {user.email}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Issue a CampusPass access token")
    parser.add_argument("email", nargs="?", help="email of the user to issue a token for")
    parser.add_argument("--list", action="store_true", help="list known users")
    args = parser.parse_args(argv)

    settings = get_settings()
    init_db(engine, SessionLocal, seed=settings.seed_demo_data)

    if args.list or not args.email:
        list_users()
        return 0

    print(issue_token(args.email))
    return 0


if __name__ == "__main__":
    sys.exit(main())

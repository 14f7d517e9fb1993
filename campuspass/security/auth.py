from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from campuspass.identity import AccessTokenService, CredentialError, IdentityClaims
from campuspass.models.user import User
from campuspass.security.config import SecurityConfig

logger = logging.getLogger(__name__)


def extract_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Extract the bearer credential.

    - Input: `Authorization: Bearer <jwt>`
    - Returns None when the header is absent; malformed headers are a 400.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    return token


def verify_token(tokens: AccessTokenService, token: str, request: Request) -> IdentityClaims:
    try:
        return tokens.verify(token)
    except CredentialError as exc:
        logger.warning("Rejected credential path=%s method=%s: %s", request.url.path, request.method, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def load_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")

    return user

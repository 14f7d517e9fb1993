"""
Issue and verify CampusPass access tokens.

The same bearer credential authenticates REST calls and the real-time
handshake. Tokens are HMAC-signed JWTs carrying the user id (``sub``), the
role and hostel at issue time, and an expiry. Nothing in a token is trusted
until ``verify`` has checked the signature, the expiry and the claim shapes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from .context import IdentityClaims

logger = logging.getLogger(__name__)

_ISSUER = "campuspass"


class CredentialError(Exception):
    """Raised when a credential cannot be verified. Do not log the token."""

    pass


def _extract_claims(payload: dict[str, Any]) -> IdentityClaims:
    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError) as exc:
        raise CredentialError("Invalid token: subject") from exc

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        raise CredentialError("Invalid token: role")

    hostel = payload.get("hostel")
    email = payload.get("email")
    return IdentityClaims(
        user_id=user_id,
        role=role,
        hostel=str(hostel) if hostel else None,
        email=str(email) if email else None,
    )


class AccessTokenService:
    """Signs and verifies access tokens with a shared secret."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl: timedelta = timedelta(days=7)) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    def issue(
        self,
        user_id: int,
        role: str,
        *,
        hostel: str | None = None,
        email: str | None = None,
        now: datetime | None = None,
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "role": role,
            "iss": _ISSUER,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        if hostel:
            payload["hostel"] = hostel
        if email:
            payload["email"] = email
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> IdentityClaims:
        """
        Verify the token and return its claims.

        Raises CredentialError on a bad signature, wrong issuer, expiry, or
        malformed claims.
        """
        if not token:
            raise CredentialError("Missing token")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=_ISSUER,
                options={"require": ["sub", "exp", "iss"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Token expired")
            raise CredentialError("Token expired") from e
        except jwt.InvalidIssuerError as e:
            logger.info("Token invalid issuer")
            raise CredentialError("Invalid token: issuer") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise CredentialError("Invalid token") from e

        return _extract_claims(payload)

"""
Outpass pass codes (the value rendered into the QR image).

A pass code is minted once, on approval, and stored on the outpass. Security
presents it back at the gate. It is a signed JWT so the desk can also decode
it to find the outpass it names; whether it is still usable is decided by
comparing it with the stored value, which check-in clears.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt

from campuspass.workflow.errors import ValidationError

_TOKEN_TYPE = "outpass"


@dataclass(frozen=True)
class PasscodeClaims:
    outpass_id: int
    outpass_number: str


class PasscodeService:
    def __init__(self, secret: str, *, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("Pass code secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm

    def mint(self, outpass_id: int, outpass_number: str, *, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(outpass_id),
            "num": outpass_number,
            "typ": _TOKEN_TYPE,
            "jti": secrets.token_hex(8),
            "iat": issued_at,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, code: str) -> PasscodeClaims:
        if not code or not code.strip():
            raise ValidationError("A pass code is required")
        try:
            payload = jwt.decode(
                code.strip(),
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "num", "typ"], "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise ValidationError("Invalid pass code") from exc

        if payload.get("typ") != _TOKEN_TYPE:
            raise ValidationError("Invalid pass code")
        try:
            outpass_id = int(payload["sub"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid pass code") from exc
        return PasscodeClaims(outpass_id=outpass_id, outpass_number=str(payload["num"]))

    @staticmethod
    def matches(stored: str | None, presented: str | None) -> bool:
        if not stored or not presented:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), presented.strip().encode("utf-8"))

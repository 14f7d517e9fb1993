"""Serializable claims produced after verifying a CampusPass access token."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityClaims:
    """
    What a verified bearer token asserts.

    Callers that scope data or live rooms re-read role and hostel from the
    user store; these claims only identify the caller.
    """

    user_id: int
    """Subject of the token (users.id)."""

    role: str
    """Role at issue time."""

    hostel: str | None = None
    """Hostel at issue time, for students and wardens."""

    email: str | None = None
    """Display only."""

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "user_id": self.user_id,
            "role": self.role,
            "hostel": self.hostel,
            "email": self.email,
        }

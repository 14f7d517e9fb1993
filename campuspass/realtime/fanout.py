"""
Real-Time Fan-out Service.

Delivery is at most once per currently connected session and best effort:
an event goes to the sessions registered at the moment it is delivered,
nothing is queued for sessions that connect later, and a failing session
only loses its own copy. Clients that reconnect re-fetch their
notifications instead of expecting a replay.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from campuspass.identity import AccessTokenService, CredentialError
from campuspass.models.user import Role, User
from campuspass.realtime.registry import ConnectionRegistry, LiveSession, SessionIdentity

logger = logging.getLogger(__name__)

IdentityLoader = Callable[[int], SessionIdentity | None]


def identity_loader(session_factory: sessionmaker[Session]) -> IdentityLoader:
    """Resolve a user id to the identity stored for it (active users only)."""

    def load(user_id: int) -> SessionIdentity | None:
        with session_factory() as db:
            user = db.get(User, user_id)
            if user is None or not user.is_active:
                return None
            return SessionIdentity(user_id=user.id, role=user.role, hostel=user.hostel)

    return load


class FanoutService:
    def __init__(self, registry: ConnectionRegistry, tokens: AccessTokenService, load_identity: IdentityLoader):
        self.registry = registry
        self._tokens = tokens
        self._load_identity = load_identity

    def authenticate(self, token: str | None) -> SessionIdentity:
        """
        Verify a handshake credential. Raises CredentialError; no session state
        exists until `connect` is called with the result.
        """
        claims = self._tokens.verify(token or "")
        identity = self._load_identity(claims.user_id)
        if identity is None:
            raise CredentialError("Unknown or inactive user")
        return identity

    def connect(self, session: LiveSession) -> None:
        self.registry.register(session)
        logger.info(
            "Session connected user=%s role=%s session=%s",
            session.identity.user_id,
            session.identity.role.value,
            session.session_id,
        )

    def disconnect(self, session: LiveSession) -> None:
        if self.registry.unregister(session):
            logger.info("Session disconnected user=%s session=%s", session.identity.user_id, session.session_id)

    async def deliver(
        self,
        event: str,
        data: dict[str, Any],
        *,
        user_ids: Iterable[int] = (),
        scopes: Iterable[tuple[Role, str | None]] = (),
    ) -> int:
        """Send `event` once to every session in the union of the audiences. Returns sessions reached."""
        sessions: dict[str, LiveSession] = {}
        for user_id in user_ids:
            for session in self.registry.sessions_for_user(user_id):
                sessions.setdefault(session.session_id, session)
        for role, hostel in scopes:
            for session in self.registry.sessions_for_scope(role, hostel):
                sessions.setdefault(session.session_id, session)
        return await self._send_all(event, data, list(sessions.values()))

    async def emit_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> int:
        return await self._send_all(event, data, self.registry.sessions_for_user(user_id))

    async def emit_to_role(self, role: Role, event: str, data: dict[str, Any]) -> int:
        return await self._send_all(event, data, self.registry.sessions_for_role(role))

    async def emit_to_hostel(self, hostel: str, event: str, data: dict[str, Any]) -> int:
        return await self._send_all(event, data, self.registry.sessions_for_hostel(hostel))

    async def _send_all(self, event: str, data: dict[str, Any], sessions: list[LiveSession]) -> int:
        if not sessions:
            return 0
        results = await asyncio.gather(*(s.send(event, data) for s in sessions), return_exceptions=True)
        delivered = 0
        for session, result in zip(sessions, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropped %s for session=%s user=%s: %s",
                    event,
                    session.session_id,
                    session.identity.user_id,
                    type(result).__name__,
                )
                continue
            delivered += 1
            logger.debug("Delivered %s to session=%s", event, session.session_id)
        return delivered

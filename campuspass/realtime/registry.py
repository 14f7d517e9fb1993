"""
Connection registry: who is online, and through which sessions.

An explicitly owned object (one per app, created in `create_app`) rather
than module state, so tests get a fresh one and a shared pub/sub backend
can replace it behind the same methods.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Protocol

from campuspass.models.user import Role


@dataclass(frozen=True)
class SessionIdentity:
    """Verified identity of a live session. Role and hostel come from the user store."""

    user_id: int
    role: Role
    hostel: str | None = None


class LiveSession(Protocol):
    session_id: str
    identity: SessionIdentity

    async def send(self, event: str, data: dict[str, Any]) -> None: ...


class ConnectionRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, LiveSession] = {}
        self._by_user: dict[int, set[str]] = {}
        self._by_role: dict[Role, set[str]] = {}
        self._by_hostel: dict[str, set[str]] = {}

    def register(self, session: LiveSession) -> None:
        identity = session.identity
        with self._lock:
            self._sessions[session.session_id] = session
            self._by_user.setdefault(identity.user_id, set()).add(session.session_id)
            self._by_role.setdefault(identity.role, set()).add(session.session_id)
            if identity.hostel is not None and identity.role in (Role.STUDENT, Role.WARDEN):
                self._by_hostel.setdefault(identity.hostel, set()).add(session.session_id)

    def unregister(self, session: LiveSession) -> bool:
        identity = session.identity
        with self._lock:
            if self._sessions.pop(session.session_id, None) is None:
                return False
            _discard(self._by_user, identity.user_id, session.session_id)
            _discard(self._by_role, identity.role, session.session_id)
            if identity.hostel is not None:
                _discard(self._by_hostel, identity.hostel, session.session_id)
            return True

    def sessions_for_user(self, user_id: int) -> list[LiveSession]:
        with self._lock:
            return self._collect(self._by_user.get(user_id, set()))

    def sessions_for_role(self, role: Role) -> list[LiveSession]:
        with self._lock:
            return self._collect(self._by_role.get(role, set()))

    def sessions_for_hostel(self, hostel: str) -> list[LiveSession]:
        with self._lock:
            return self._collect(self._by_hostel.get(hostel, set()))

    def sessions_for_scope(self, role: Role, hostel: str | None = None) -> list[LiveSession]:
        with self._lock:
            ids = self._by_role.get(role, set())
            if hostel is not None:
                ids = ids & self._by_hostel.get(hostel, set())
            return self._collect(ids)

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def online_user_count(self) -> int:
        with self._lock:
            return len(self._by_user)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._by_user.clear()
            self._by_role.clear()
            self._by_hostel.clear()

    def _collect(self, ids: set[str]) -> list[LiveSession]:
        return [self._sessions[i] for i in sorted(ids) if i in self._sessions]


def _discard(index: dict[Any, set[str]], key: Any, session_id: str) -> None:
    members = index.get(key)
    if members is None:
        return
    members.discard(session_id)
    if not members:
        del index[key]

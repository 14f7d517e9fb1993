from __future__ import annotations

from dataclasses import dataclass

from campuspass.models.user import Role
from campuspass.workflow.gate import Actor


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Attached to request.state (FastAPI request lifetime) and Session.info
    (SQLAlchemy session lifetime). Role and hostel are the stored values.
    """

    user_id: int
    role: Role
    hostel: str | None
    permissions: frozenset[str]

    # Scope decisions (driven by config / decorators)
    filter_by_hostel: bool
    filter_by_owner: bool

    # Derived capabilities
    can_view_all_hostels: bool

    def as_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role, hostel=self.hostel)

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from campuspass.models.user import Role


class UserView(BaseModel):
    """A user with the denormalized fields dashboards display."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role
    hostel: str | None
    room_number: str | None
    roll_number: str | None

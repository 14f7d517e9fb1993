from __future__ import annotations

from sqlalchemy import event, false
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_authorization_filters(execute_state) -> None:
    """
    Transparent data scoping.

    Listing code stays plain:
        db.scalars(select(Outpass)...)
    and still returns only the caller's hostel (wardens) or own rows
    (students) when the route rule asks for it.
    """

    if not execute_state.is_select:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None:
        return

    # Local import to avoid cycles.
    from campuspass.models.outpass import Outpass  # noqa: WPS433 (local import)

    stmt = execute_state.statement

    if authz.filter_by_hostel and not authz.can_view_all_hostels:
        hostel = authz.hostel
        if hostel is None:
            # A warden without a hostel sees no outpasses.
            stmt = stmt.options(with_loader_criteria(Outpass, lambda cls: false(), include_aliases=True))
        else:
            stmt = stmt.options(with_loader_criteria(Outpass, lambda cls: cls.hostel == hostel, include_aliases=True))

    if authz.filter_by_owner:
        owner_id = authz.user_id
        stmt = stmt.options(with_loader_criteria(Outpass, lambda cls: cls.student_id == owner_id, include_aliases=True))

    execute_state.statement = stmt

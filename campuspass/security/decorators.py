from __future__ import annotations

from collections.abc import Callable


def require_roles(roles: list[str]) -> Callable:
    """
    Decorator-style role requirement.

    - Does NOT perform auth itself.
    - Attaches metadata that the global security dependency reads after
      routing, merged with whatever the YAML rules say for the route.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_roles__", set()))
        setattr(fn, "__security_required_roles__", existing | set(roles))
        return fn

    return decorator


def filter_by_hostel() -> Callable:
    """Decorator-style switch for warden hostel scoping on this endpoint."""

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_filter_by_hostel__", True)
        return fn

    return decorator

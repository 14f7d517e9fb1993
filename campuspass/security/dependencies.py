from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from campuspass.db.session import get_db
from campuspass.identity import AccessTokenService
from campuspass.models.user import User
from campuspass.security.auth import extract_token, load_user, verify_token
from campuspass.security.config import SecurityConfig
from campuspass.security.context import AuthzContext
from campuspass.workflow.gate import Actor


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_token_service(request: Request) -> AccessTokenService:
    tokens = getattr(request.app.state, "tokens", None)
    if tokens is None:
        raise RuntimeError("Token service not configured. Did app startup run?")
    return tokens


def get_current_user(request: Request) -> User:
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def get_authz(request: Request) -> AuthzContext:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return authz


def get_current_actor(authz: AuthzContext = Depends(get_authz)) -> Actor:
    return authz.as_actor()


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    tokens: AccessTokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> None:
    """
    Global security dependency (configuration-driven).

    Runs after routing, so decorator metadata on the endpoint is merged with
    the YAML rule. Route handlers stay free of auth code.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_roles = set(getattr(endpoint, "__security_required_roles__", set())) if endpoint else set()
    decorator_filter_hostel = bool(getattr(endpoint, "__security_filter_by_hostel__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_roles) or decorator_filter_hostel
    if not auth_required:
        return

    token = extract_token(request, config)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_token(tokens, token, request)

    # Role and hostel are read from the store; token claims only identify the caller.
    user = load_user(db, claims.user_id)
    request.state.user = user

    required_roles = set(rule.required_roles) | decorator_roles
    if required_roles and user.role.value not in required_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient role. Required one of: {sorted(required_roles)}",
        )

    permissions = config.permissions_for_role(user.role.value)

    request.state.authz = AuthzContext(
        user_id=user.id,
        role=user.role,
        hostel=user.hostel,
        permissions=permissions,
        filter_by_hostel=rule.filter_by_hostel or decorator_filter_hostel,
        filter_by_owner=rule.filter_by_owner,
        can_view_all_hostels="view_all_hostels" in permissions,
    )
    # Same cached session the route handlers receive: listing scopes apply from here on.
    db.info["authz"] = request.state.authz

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    provider: str = "jwt"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[str] = Field(default_factory=list)
    filter_by_hostel: bool = False
    filter_by_owner: bool = False


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_roles: list[str] = Field(default_factory=list)
    filter_by_hostel: bool | None = None
    filter_by_owner: bool | None = None

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class PermissionRule(BaseModel):
    roles: list[str] = Field(default_factory=list)


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)
    permissions: dict[str, PermissionRule] = Field(default_factory=dict)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_roles: frozenset[str]
    filter_by_hostel: bool
    filter_by_owner: bool


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/outpasses/{id}/approve" -> r"^/outpasses/[^/]+/approve$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        self._exact_rules: dict[str, list[RouteRule]] = {}
        self._compiled_rules: list[tuple[re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            if "{" in rule.path:
                self._compiled_rules.append((_path_template_to_regex(rule.path), rule))
            else:
                self._exact_rules.setdefault(rule.path, []).append(rule)

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def permission_roles(self, permission_name: str) -> frozenset[str]:
        perm = self.model.permissions.get(permission_name)
        if not perm:
            return frozenset()
        return frozenset(perm.roles)

    def permissions_for_role(self, role: str) -> frozenset[str]:
        return frozenset(name for name in self.model.permissions if role in self.permission_roles(name))

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        # 2) template match
        for regex, candidate in self._compiled_rules:
            if method in candidate.normalized_methods() and regex.match(path):
                return _effective(candidate, default)

        # 3) no match -> defaults
        return EffectiveRule(
            auth_required=default.auth_required,
            required_roles=frozenset(default.required_roles),
            filter_by_hostel=default.filter_by_hostel,
            filter_by_owner=default.filter_by_owner,
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # Any security requirement on a rule implies authentication.
    inferred_auth_required = (
        default.auth_required
        or bool(rule.required_roles)
        or bool(rule.filter_by_hostel)
        or bool(rule.filter_by_owner)
    )

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        required_roles=frozenset(rule.required_roles or default.required_roles),
        filter_by_hostel=default.filter_by_hostel if rule.filter_by_hostel is None else rule.filter_by_hostel,
        filter_by_owner=default.filter_by_owner if rule.filter_by_owner is None else rule.filter_by_owner,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)

"""
Gatekeeper Permissions - RBAC Permission Evaluator
==================================================
Coarse-grained gate: does any role of the principal grant
resource:action (or the resource:manage wildcard)?
"""

from __future__ import annotations

from dataclasses import dataclass

from gatekeeper.config.settings import DEFAULT_BYPASS_ROLES
from gatekeeper.identity.principal import Principal
from gatekeeper.permissions.provider import RoleStore

REASON_BYPASS = "BYPASS_ROLE"
REASON_GRANTED = "ROLE_GRANTED"
REASON_NO_ROLES = "NO_ROLES"
REASON_MISSING = "PERMISSION_MISSING"


@dataclass(frozen=True)
class PermissionEvaluationResult:
    allowed: bool
    reason: str
    message: str = ""
    granted_by: tuple[str, ...] = ()


class PermissionEvaluator:
    def __init__(
        self,
        store: RoleStore,
        bypass_roles: frozenset[str] = DEFAULT_BYPASS_ROLES,
    ):
        self._store = store
        self._bypass_roles = frozenset(bypass_roles)

    def evaluate(
        self,
        principal: Principal,
        resource_type: str,
        action: str,
    ) -> PermissionEvaluationResult:
        """
        Evaluate RBAC for one (resource_type, action).

        Store errors propagate; the orchestrator turns them into deny.
        """
        if principal.role in self._bypass_roles:
            return PermissionEvaluationResult(
                allowed=True,
                reason=REASON_BYPASS,
                message=f"Role '{principal.role}' bypasses RBAC.",
            )

        if not principal.roles:
            return PermissionEvaluationResult(
                allowed=False,
                reason=REASON_NO_ROLES,
                message=f"Principal '{principal.id}' holds no roles.",
            )

        # Roles are organization-scoped: a role of another tenant grants nothing.
        granting = tuple(
            role.role_id
            for role in self._store.get_roles(principal.roles)
            if role.organization_id == principal.organization_id
            and role.grants(resource_type, action)
        )
        if granting:
            return PermissionEvaluationResult(
                allowed=True,
                reason=REASON_GRANTED,
                granted_by=granting,
            )

        return PermissionEvaluationResult(
            allowed=False,
            reason=REASON_MISSING,
            message=(
                f"Principal '{principal.id}' is missing permission "
                f"'{resource_type}:{action}'."
            ),
        )

    def has_permission(
        self,
        principal: Principal,
        resource_type: str,
        action: str,
    ) -> bool:
        return self.evaluate(principal, resource_type, action).allowed

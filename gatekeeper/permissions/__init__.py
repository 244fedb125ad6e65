"""
Gatekeeper Permissions - Public API
===================================
"""

from gatekeeper.permissions.catalog import (
    PermissionCatalog,
    default_permissions,
    seed_permissions,
)
from gatekeeper.permissions.constants import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_MANAGE,
    ACTION_READ,
    ACTION_UPDATE,
    KNOWN_ACTIONS,
    KNOWN_RESOURCES,
    permission_slug,
    policy_key,
    split_policy_key,
)
from gatekeeper.permissions.db_provider import DbRoleStore
from gatekeeper.permissions.evaluator import (
    PermissionEvaluationResult,
    PermissionEvaluator,
)
from gatekeeper.permissions.exceptions import (
    PermissionCatalogError,
    UnknownPermissionError,
)
from gatekeeper.permissions.models import Permission, Role
from gatekeeper.permissions.provider import InMemoryRoleStore, RoleStore

__all__ = [
    "ACTION_CREATE",
    "ACTION_READ",
    "ACTION_UPDATE",
    "ACTION_DELETE",
    "ACTION_MANAGE",
    "KNOWN_ACTIONS",
    "KNOWN_RESOURCES",
    "permission_slug",
    "policy_key",
    "split_policy_key",
    "Permission",
    "Role",
    "RoleStore",
    "InMemoryRoleStore",
    "DbRoleStore",
    "PermissionCatalog",
    "default_permissions",
    "seed_permissions",
    "PermissionEvaluator",
    "PermissionEvaluationResult",
    "PermissionCatalogError",
    "UnknownPermissionError",
]

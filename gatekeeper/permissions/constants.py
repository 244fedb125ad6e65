"""
Gatekeeper Permissions - Constants
==================================
Known resource types, action types, and the slug / policy-key format
shared by RBAC permissions and ABAC policy chains.
"""

from __future__ import annotations

import re

# ── Resource types ────────────────────────────────────────────
RESOURCE_CUSTOMER = "customer"
RESOURCE_DEAL = "deal"
RESOURCE_TASK = "task"
RESOURCE_USER = "user"
RESOURCE_PRODUCT = "product"
RESOURCE_ORGANIZATION = "organization"
RESOURCE_WEBHOOK = "webhook"
RESOURCE_API_KEY = "api_key"
RESOURCE_CUSTOM_FIELD = "custom_field"
RESOURCE_ANALYTICS = "analytics"

KNOWN_RESOURCES: tuple[str, ...] = (
    RESOURCE_CUSTOMER,
    RESOURCE_DEAL,
    RESOURCE_TASK,
    RESOURCE_USER,
    RESOURCE_PRODUCT,
    RESOURCE_ORGANIZATION,
    RESOURCE_WEBHOOK,
    RESOURCE_API_KEY,
    RESOURCE_CUSTOM_FIELD,
    RESOURCE_ANALYTICS,
)

# ── Action types ──────────────────────────────────────────────
ACTION_CREATE = "create"
ACTION_READ = "read"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
# Wildcard: covers every action on the resource.
ACTION_MANAGE = "manage"

KNOWN_ACTIONS: tuple[str, ...] = (
    ACTION_CREATE,
    ACTION_READ,
    ACTION_UPDATE,
    ACTION_DELETE,
    ACTION_MANAGE,
)

# ── Formats ───────────────────────────────────────────────────
KEY_SEPARATOR = ":"
ROLE_SLUG_PATTERN = re.compile(r"^[a-z0-9_]+$")
POLICY_KEY_PATTERN = re.compile(r"^[a-z0-9_]+:[a-z0-9_]+$")


def permission_slug(resource: str, action: str) -> str:
    """Canonical permission slug, e.g. 'customer:read'."""
    return f"{resource}{KEY_SEPARATOR}{action}"


def policy_key(resource: str, action: str) -> str:
    """Policy key joining RBAC permissions and ABAC chains."""
    return permission_slug(resource, action)


def split_policy_key(key: str) -> tuple[str, str]:
    """Split 'resource:action'. Raises ValueError on a malformed key."""
    resource, separator, action = key.partition(KEY_SEPARATOR)
    if not separator or not resource or not action or KEY_SEPARATOR in action:
        raise ValueError(f"Policy key '{key}' must be in format 'resource:action'.")
    return resource, action

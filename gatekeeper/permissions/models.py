"""
Gatekeeper Permissions - Immutable Permission/Role Models
=========================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from gatekeeper.permissions.constants import (
    ACTION_MANAGE,
    ROLE_SLUG_PATTERN,
    permission_slug,
)


@dataclass(frozen=True)
class Permission:
    resource: str
    action: str
    slug: str = ""
    name: str = ""
    description: str = ""

    def __post_init__(self):
        if not self.resource or not isinstance(self.resource, str):
            raise ValueError("resource must be a non-empty string.")

        if not self.action or not isinstance(self.action, str):
            raise ValueError("action must be a non-empty string.")

        expected = permission_slug(self.resource, self.action)
        if not self.slug:
            object.__setattr__(self, "slug", expected)
        elif self.slug != expected:
            raise ValueError(
                f"slug '{self.slug}' must equal '{expected}'."
            )

        if not self.name:
            object.__setattr__(
                self, "name", f"{self.action.capitalize()} {self.resource}"
            )
        if not self.description:
            object.__setattr__(
                self,
                "description",
                f"Permission to {self.action} {self.resource}",
            )

    @property
    def is_wildcard(self) -> bool:
        return self.action == ACTION_MANAGE

    def sort_key(self) -> tuple[str, str]:
        return (self.resource, self.action)


@dataclass(frozen=True)
class Role:
    role_id: str
    name: str
    slug: str
    organization_id: str
    permissions: frozenset[str] = field(default_factory=frozenset)
    is_default: bool = False
    description: Optional[str] = None

    def __post_init__(self):
        if not self.role_id or not isinstance(self.role_id, str):
            raise ValueError("role_id must be a non-empty string.")

        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")

        if not isinstance(self.slug, str) or not ROLE_SLUG_PATTERN.match(self.slug):
            raise ValueError(
                "slug can only contain lowercase letters, numbers, "
                "and underscores."
            )

        if not self.organization_id or not isinstance(self.organization_id, str):
            raise ValueError("organization_id must be a non-empty string.")

        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions))

        for permission in self.permissions:
            if not isinstance(permission, str) or not permission:
                raise ValueError("permission values must be non-empty strings.")

    def grants(self, resource: str, action: str) -> bool:
        """True if this role holds resource:action or resource:manage."""
        return (
            permission_slug(resource, action) in self.permissions
            or permission_slug(resource, ACTION_MANAGE) in self.permissions
        )

    def sort_key(self) -> tuple[str, str, str]:
        return (self.organization_id, self.slug, self.role_id)

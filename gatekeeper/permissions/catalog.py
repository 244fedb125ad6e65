"""
Gatekeeper Permissions - Permission Catalog
===========================================
Every valid (resource, action) pair, keyed by slug.

Seeding is an explicit, idempotent deployment step (``seed_permissions``
or the permissions_store data migration). Constructing a catalog never
writes anything.
"""

from __future__ import annotations

import logging
from typing import Iterable

from gatekeeper.permissions.constants import (
    KNOWN_ACTIONS,
    KNOWN_RESOURCES,
    permission_slug,
)
from gatekeeper.permissions.exceptions import UnknownPermissionError
from gatekeeper.permissions.models import Permission
from gatekeeper.permissions.provider import RoleStore

logger = logging.getLogger("gatekeeper.permissions")


def default_permissions() -> tuple[Permission, ...]:
    """Full cross-product of known resources × known actions."""
    return tuple(
        Permission(resource=resource, action=action)
        for resource in KNOWN_RESOURCES
        for action in KNOWN_ACTIONS
    )


def seed_permissions(store: RoleStore) -> int:
    """
    Seed the catalog once. Skips entirely if any permission exists.

    Returns the number of permissions created.
    """
    if store.count_permissions() > 0:
        logger.debug("Permission catalog already seeded — skipping.")
        return 0

    created = store.add_permissions(default_permissions())
    logger.info(f"Default permissions seeded: {created}")
    return created


class PermissionCatalog:
    """Read-only view over the seeded permissions of a RoleStore."""

    def __init__(self, store: RoleStore):
        self._store = store

    def list_permissions(self) -> tuple[Permission, ...]:
        """All permissions, sorted by (resource, action)."""
        return self._store.list_permissions()

    def get(self, slug: str) -> Permission | None:
        for permission in self._store.list_permissions():
            if permission.slug == slug:
                return permission
        return None

    def slug_for(self, resource: str, action: str) -> str:
        return permission_slug(resource, action)

    def resolve(self, slugs: Iterable[str]) -> frozenset[str]:
        """
        Validate permission slugs against the catalog.
        Raises UnknownPermissionError naming every unknown slug.
        """
        requested = frozenset(slugs)
        known = {permission.slug for permission in self._store.list_permissions()}
        unknown = requested - known
        if unknown:
            raise UnknownPermissionError(unknown)
        return requested

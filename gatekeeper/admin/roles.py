"""
Gatekeeper Admin - Role Administration
======================================
Organization-scoped role CRUD and user ↔ role assignment.

Roles of another organization are invisible: looking one up by id
from the wrong organization is a NotFoundError.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from gatekeeper.admin.exceptions import (
    AdminValidationError,
    DuplicateError,
    NotFoundError,
    ReferentialIntegrityError,
)
from gatekeeper.admin.validation import (
    IdProvider,
    UuidIdProvider,
    clean_bool,
    clean_optional_string,
    clean_string,
    reject_unknown_fields,
)
from gatekeeper.permissions.catalog import PermissionCatalog
from gatekeeper.permissions.constants import ROLE_SLUG_PATTERN
from gatekeeper.permissions.models import Permission, Role
from gatekeeper.permissions.provider import RoleStore

logger = logging.getLogger("gatekeeper.admin")

_UPDATABLE_FIELDS = frozenset(
    {"name", "slug", "description", "permissions", "is_default"}
)


def _clean_slug(value) -> str:
    slug = clean_string(value, field_name="slug").lower()
    if not ROLE_SLUG_PATTERN.match(slug):
        raise AdminValidationError(
            "slug",
            "Slug can only contain lowercase letters, numbers, and underscores.",
        )
    return slug


class RoleAdmin:
    def __init__(self, store: RoleStore, ids: Optional[IdProvider] = None):
        self._store = store
        self._catalog = PermissionCatalog(store)
        self._ids = ids or UuidIdProvider()

    # ══════════════════════════════════════════════════════════
    # PERMISSIONS
    # ══════════════════════════════════════════════════════════

    def list_permissions(self) -> tuple[Permission, ...]:
        return self._catalog.list_permissions()

    def _resolve_permissions(self, permissions: Iterable[str]) -> frozenset[str]:
        if isinstance(permissions, str):
            raise AdminValidationError(
                "permissions", "permissions must be a list of slugs."
            )
        # Raises UnknownPermissionError for slugs outside the catalog.
        return self._catalog.resolve(permissions)

    # ══════════════════════════════════════════════════════════
    # ROLES
    # ══════════════════════════════════════════════════════════

    def create_role(
        self,
        organization_id: str,
        name: str,
        slug: str,
        permissions: Iterable[str] = (),
        description: Optional[str] = None,
        is_default: bool = False,
        actor_id: Optional[str] = None,
    ) -> Role:
        organization_id = clean_string(organization_id, field_name="organization_id")
        name = clean_string(name, field_name="name")
        slug = _clean_slug(slug)
        description = clean_optional_string(description, field_name="description")
        is_default = clean_bool(is_default, field_name="is_default")
        granted = self._resolve_permissions(permissions)

        if self._store.find_role_by_slug(slug, organization_id) is not None:
            raise DuplicateError("Role", "slug", slug, organization_id)

        role = Role(
            role_id=self._ids.new_id(),
            name=name,
            slug=slug,
            organization_id=organization_id,
            permissions=granted,
            is_default=is_default,
            description=description,
        )
        self._save(role)
        logger.info(
            f"Role created: {role.role_id} slug={slug} "
            f"org={organization_id} actor={actor_id}"
        )
        return role

    def list_roles(self, organization_id: str) -> tuple[Role, ...]:
        organization_id = clean_string(organization_id, field_name="organization_id")
        return tuple(
            sorted(
                self._store.list_roles(organization_id),
                key=lambda role: (role.slug, role.role_id),
            )
        )

    def get_role(self, organization_id: str, role_id: str) -> Role:
        role = self._store.get_role(role_id)
        if role is None or role.organization_id != organization_id:
            raise NotFoundError("Role", role_id)
        return role

    def update_role(
        self,
        organization_id: str,
        role_id: str,
        /,
        actor_id: Optional[str] = None,
        **changes,
    ) -> Role:
        reject_unknown_fields(changes, _UPDATABLE_FIELDS)
        role = self.get_role(organization_id, role_id)

        cleaned = {}
        if "name" in changes:
            cleaned["name"] = clean_string(changes["name"], field_name="name")
        if "description" in changes:
            cleaned["description"] = clean_optional_string(
                changes["description"], field_name="description"
            )
        if "is_default" in changes:
            cleaned["is_default"] = clean_bool(
                changes["is_default"], field_name="is_default"
            )
        if "permissions" in changes:
            cleaned["permissions"] = self._resolve_permissions(changes["permissions"])
        if "slug" in changes:
            slug = _clean_slug(changes["slug"])
            if slug != role.slug:
                existing = self._store.find_role_by_slug(slug, organization_id)
                if existing is not None and existing.role_id != role.role_id:
                    raise DuplicateError("Role", "slug", slug, organization_id)
            cleaned["slug"] = slug

        updated = Role(
            role_id=role.role_id,
            name=cleaned.get("name", role.name),
            slug=cleaned.get("slug", role.slug),
            organization_id=role.organization_id,
            permissions=cleaned.get("permissions", role.permissions),
            is_default=cleaned.get("is_default", role.is_default),
            description=cleaned.get("description", role.description),
        )
        self._save(updated)
        logger.info(
            f"Role updated: {role_id} fields={sorted(cleaned)} "
            f"org={organization_id} actor={actor_id}"
        )
        return updated

    def delete_role(
        self,
        organization_id: str,
        role_id: str,
        actor_id: Optional[str] = None,
    ) -> None:
        role = self.get_role(organization_id, role_id)

        holders = self._store.count_role_assignments(role.role_id)
        if holders > 0:
            raise ReferentialIntegrityError(
                "Role",
                role.role_id,
                f"Cannot delete role. It is assigned to {holders} users.",
            )

        self._store.delete_role(role.role_id)
        logger.info(
            f"Role deleted: {role_id} org={organization_id} actor={actor_id}"
        )

    # ══════════════════════════════════════════════════════════
    # ASSIGNMENTS
    # ══════════════════════════════════════════════════════════

    def assign_role(
        self,
        organization_id: str,
        user_id: str,
        role_id: str,
        actor_id: Optional[str] = None,
    ) -> bool:
        """Idempotent. Returns True when the user did not hold the role yet."""
        user_id = clean_string(user_id, field_name="user_id")
        role = self.get_role(organization_id, role_id)
        changed = self._store.add_assignment(user_id, role.role_id)
        if changed:
            logger.info(
                f"Role assigned: {role_id} -> user {user_id} "
                f"org={organization_id} actor={actor_id}"
            )
        return changed

    def revoke_role(
        self,
        organization_id: str,
        user_id: str,
        role_id: str,
        actor_id: Optional[str] = None,
    ) -> bool:
        """Idempotent. Returns True when the user held the role."""
        user_id = clean_string(user_id, field_name="user_id")
        role = self.get_role(organization_id, role_id)
        changed = self._store.remove_assignment(user_id, role.role_id)
        if changed:
            logger.info(
                f"Role revoked: {role_id} from user {user_id} "
                f"org={organization_id} actor={actor_id}"
            )
        return changed

    def user_role_ids(self, user_id: str) -> tuple[str, ...]:
        """Role ids held by a user; the value behind Principal.roles."""
        return self._store.get_user_role_ids(user_id)

    def _save(self, role: Role) -> None:
        try:
            self._store.save_role(role)
        except ValueError as exc:
            raise DuplicateError(
                "Role", "slug", role.slug, role.organization_id
            ) from exc

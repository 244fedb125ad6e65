"""
Gatekeeper Permissions - DB-backed Role Store
=============================================
Reads and writes the permission catalog, roles and role assignments
through the permissions_store Django app.

Models are imported lazily so the engine imports without Django
configured.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from gatekeeper.permissions.models import Permission, Role


def _canonical_uuid(value) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _to_role(row) -> Role:
    return Role(
        role_id=str(row.role_id),
        name=row.name,
        slug=row.slug,
        organization_id=row.organization_id,
        permissions=frozenset(p.slug for p in row.permissions.all()),
        is_default=row.is_default,
        description=row.description,
    )


def _to_permission(row) -> Permission:
    return Permission(
        resource=row.resource,
        action=row.action,
        slug=row.slug,
        name=row.name,
        description=row.description,
    )


class DbRoleStore:
    # ── Permission catalog ────────────────────────────────────
    def count_permissions(self) -> int:
        from gatekeeper.permissions_store.models import Permission as PermissionRow

        return PermissionRow.objects.count()

    def add_permissions(self, permissions: Iterable[Permission]) -> int:
        from django.db import transaction

        from gatekeeper.permissions_store.models import Permission as PermissionRow

        created = 0
        with transaction.atomic():
            for permission in permissions:
                _, was_created = PermissionRow.objects.get_or_create(
                    slug=permission.slug,
                    defaults={
                        "resource": permission.resource,
                        "action": permission.action,
                        "name": permission.name,
                        "description": permission.description,
                    },
                )
                if was_created:
                    created += 1
        return created

    def list_permissions(self) -> tuple[Permission, ...]:
        from gatekeeper.permissions_store.models import Permission as PermissionRow

        rows = PermissionRow.objects.order_by("resource", "action")
        return tuple(_to_permission(row) for row in rows)

    # ── Roles ─────────────────────────────────────────────────
    def get_role(self, role_id: str) -> Role | None:
        canonical = _canonical_uuid(role_id)
        if canonical is None:
            return None

        from gatekeeper.permissions_store.models import Role as RoleRow

        row = (
            RoleRow.objects.filter(role_id=canonical)
            .prefetch_related("permissions")
            .first()
        )
        return None if row is None else _to_role(row)

    def get_roles(self, role_ids: Iterable[str]) -> tuple[Role, ...]:
        canonical_ids = {
            canonical
            for canonical in (_canonical_uuid(role_id) for role_id in role_ids)
            if canonical is not None
        }
        if not canonical_ids:
            return tuple()

        from gatekeeper.permissions_store.models import Role as RoleRow

        rows = (
            RoleRow.objects.filter(role_id__in=canonical_ids)
            .prefetch_related("permissions")
            .order_by("organization_id", "slug", "role_id")
        )
        return tuple(_to_role(row) for row in rows)

    def list_roles(self, organization_id: str) -> tuple[Role, ...]:
        from gatekeeper.permissions_store.models import Role as RoleRow

        rows = (
            RoleRow.objects.filter(organization_id=organization_id)
            .prefetch_related("permissions")
            .order_by("slug", "role_id")
        )
        return tuple(_to_role(row) for row in rows)

    def find_role_by_slug(self, slug: str, organization_id: str) -> Role | None:
        from gatekeeper.permissions_store.models import Role as RoleRow

        row = (
            RoleRow.objects.filter(slug=slug, organization_id=organization_id)
            .prefetch_related("permissions")
            .first()
        )
        return None if row is None else _to_role(row)

    def save_role(self, role: Role) -> Role:
        canonical = _canonical_uuid(role.role_id)
        if canonical is None:
            raise ValueError(f"role_id '{role.role_id}' is not a valid UUID.")

        from django.db import transaction

        from gatekeeper.permissions_store.models import Permission as PermissionRow
        from gatekeeper.permissions_store.models import Role as RoleRow

        with transaction.atomic():
            clash = (
                RoleRow.objects.filter(
                    slug=role.slug,
                    organization_id=role.organization_id,
                )
                .exclude(role_id=canonical)
                .exists()
            )
            if clash:
                raise ValueError(
                    f"Role slug '{role.slug}' already exists in "
                    f"organization '{role.organization_id}'."
                )

            row, _ = RoleRow.objects.update_or_create(
                role_id=canonical,
                defaults={
                    "organization_id": role.organization_id,
                    "name": role.name,
                    "slug": role.slug,
                    "description": role.description,
                    "is_default": role.is_default,
                },
            )
            row.permissions.set(
                PermissionRow.objects.filter(slug__in=role.permissions)
            )
        return role

    def delete_role(self, role_id: str) -> bool:
        canonical = _canonical_uuid(role_id)
        if canonical is None:
            return False

        from gatekeeper.permissions_store.models import Role as RoleRow

        deleted, _ = RoleRow.objects.filter(role_id=canonical).delete()
        return deleted > 0

    # ── User ↔ role assignments ───────────────────────────────
    def count_role_assignments(self, role_id: str) -> int:
        canonical = _canonical_uuid(role_id)
        if canonical is None:
            return 0

        from gatekeeper.permissions_store.models import RoleAssignment

        return RoleAssignment.objects.filter(role_id=canonical).count()

    def add_assignment(self, user_id: str, role_id: str) -> bool:
        canonical = _canonical_uuid(role_id)
        if canonical is None:
            return False

        from gatekeeper.permissions_store.models import RoleAssignment

        _, created = RoleAssignment.objects.get_or_create(
            user_id=user_id,
            role_id=canonical,
        )
        return created

    def remove_assignment(self, user_id: str, role_id: str) -> bool:
        canonical = _canonical_uuid(role_id)
        if canonical is None:
            return False

        from gatekeeper.permissions_store.models import RoleAssignment

        deleted, _ = RoleAssignment.objects.filter(
            user_id=user_id,
            role_id=canonical,
        ).delete()
        return deleted > 0

    def get_user_role_ids(self, user_id: str) -> tuple[str, ...]:
        from gatekeeper.permissions_store.models import RoleAssignment

        values = RoleAssignment.objects.filter(user_id=user_id).values_list(
            "role_id", flat=True
        )
        return tuple(sorted(str(value) for value in values))

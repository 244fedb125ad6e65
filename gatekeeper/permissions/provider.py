"""
Gatekeeper Permissions - Role Store Protocol and In-Memory Store
================================================================
"""

from __future__ import annotations

from threading import Lock
from typing import Iterable, Protocol

from gatekeeper.permissions.models import Permission, Role


class RoleStore(Protocol):
    # ── Permission catalog ────────────────────────────────────
    def count_permissions(self) -> int:
        ...

    def add_permissions(self, permissions: Iterable[Permission]) -> int:
        ...

    def list_permissions(self) -> tuple[Permission, ...]:
        ...

    # ── Roles ─────────────────────────────────────────────────
    def get_role(self, role_id: str) -> Role | None:
        ...

    def get_roles(self, role_ids: Iterable[str]) -> tuple[Role, ...]:
        ...

    def list_roles(self, organization_id: str) -> tuple[Role, ...]:
        ...

    def find_role_by_slug(self, slug: str, organization_id: str) -> Role | None:
        ...

    def save_role(self, role: Role) -> Role:
        ...

    def delete_role(self, role_id: str) -> bool:
        ...

    # ── User ↔ role assignments ───────────────────────────────
    def count_role_assignments(self, role_id: str) -> int:
        ...

    def add_assignment(self, user_id: str, role_id: str) -> bool:
        ...

    def remove_assignment(self, user_id: str, role_id: str) -> bool:
        ...

    def get_user_role_ids(self, user_id: str) -> tuple[str, ...]:
        ...


class InMemoryRoleStore:
    """
    Deterministic in-memory store used for bootstrap/tests.
    """

    def __init__(
        self,
        roles: Iterable[Role] | None = None,
        permissions: Iterable[Permission] | None = None,
    ):
        self._permissions: dict[str, Permission] = {}
        self._roles: dict[str, Role] = {}
        self._assignments: dict[str, set[str]] = {}
        self._lock = Lock()

        for permission in permissions or ():
            self._permissions[permission.slug] = permission

        for role in roles or ():
            if role.role_id in self._roles:
                raise ValueError(f"Duplicate role_id '{role.role_id}'.")
            self._roles[role.role_id] = role

    def count_permissions(self) -> int:
        with self._lock:
            return len(self._permissions)

    def add_permissions(self, permissions: Iterable[Permission]) -> int:
        created = 0
        with self._lock:
            for permission in permissions:
                if permission.slug in self._permissions:
                    continue
                self._permissions[permission.slug] = permission
                created += 1
        return created

    def list_permissions(self) -> tuple[Permission, ...]:
        with self._lock:
            return tuple(
                sorted(self._permissions.values(), key=lambda p: p.sort_key())
            )

    def get_role(self, role_id: str) -> Role | None:
        with self._lock:
            return self._roles.get(role_id)

    def get_roles(self, role_ids: Iterable[str]) -> tuple[Role, ...]:
        with self._lock:
            found = {
                self._roles[role_id]
                for role_id in role_ids
                if role_id in self._roles
            }
        return tuple(sorted(found, key=lambda role: role.sort_key()))

    def list_roles(self, organization_id: str) -> tuple[Role, ...]:
        with self._lock:
            roles = [
                role
                for role in self._roles.values()
                if role.organization_id == organization_id
            ]
        return tuple(sorted(roles, key=lambda role: role.sort_key()))

    def find_role_by_slug(self, slug: str, organization_id: str) -> Role | None:
        with self._lock:
            for role in self._roles.values():
                if role.slug == slug and role.organization_id == organization_id:
                    return role
        return None

    def save_role(self, role: Role) -> Role:
        with self._lock:
            for existing in self._roles.values():
                if (
                    existing.role_id != role.role_id
                    and existing.slug == role.slug
                    and existing.organization_id == role.organization_id
                ):
                    raise ValueError(
                        f"Role slug '{role.slug}' already exists in "
                        f"organization '{role.organization_id}'."
                    )
            self._roles[role.role_id] = role
        return role

    def delete_role(self, role_id: str) -> bool:
        with self._lock:
            return self._roles.pop(role_id, None) is not None

    def count_role_assignments(self, role_id: str) -> int:
        with self._lock:
            return sum(
                1 for role_ids in self._assignments.values() if role_id in role_ids
            )

    def add_assignment(self, user_id: str, role_id: str) -> bool:
        with self._lock:
            held = self._assignments.setdefault(user_id, set())
            if role_id in held:
                return False
            held.add(role_id)
            return True

    def remove_assignment(self, user_id: str, role_id: str) -> bool:
        with self._lock:
            held = self._assignments.get(user_id)
            if not held or role_id not in held:
                return False
            held.discard(role_id)
            return True

    def get_user_role_ids(self, user_id: str) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._assignments.get(user_id, ())))

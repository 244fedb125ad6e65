"""
Gatekeeper Identity - Principal
===============================
Immutable view of the authenticated user a decision is made for.

The user entity itself belongs to a collaborator; the engine only
consumes this snapshot of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

USER_ROLE = "user"
ADMIN_ROLE = "admin"
SUPERADMIN_ROLE = "superadmin"


@dataclass(frozen=True)
class Principal:
    """
    Authenticated principal.

    role:      coarse account role ("user" | "admin" | "superadmin" | ...).
    roles:     ids of the RBAC roles assigned to the user.
    attributes: extra, read-only attributes exposed to ABAC rules.
    """

    id: str
    role: str = USER_ROLE
    organization_id: Optional[str] = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("id must be a non-empty string.")

        if not self.role or not isinstance(self.role, str):
            raise ValueError("role must be a non-empty string.")

        if self.organization_id is not None and not isinstance(
            self.organization_id, str
        ):
            raise ValueError("organization_id must be a string or None.")

        if not isinstance(self.roles, tuple):
            raise ValueError("roles must be a tuple.")

        object.__setattr__(
            self, "attributes", MappingProxyType(dict(self.attributes))
        )

    def as_dict(self) -> dict[str, Any]:
        """
        Flat mapping used for attribute lookups by rules and scripts.
        Extra attributes never shadow the identity fields.
        """
        data = dict(self.attributes)
        data.update(
            {
                "id": self.id,
                "role": self.role,
                "organization_id": self.organization_id,
                "roles": self.roles,
            }
        )
        return data

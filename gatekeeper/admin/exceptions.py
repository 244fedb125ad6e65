"""
Gatekeeper Admin - Exceptions
=============================
Errors raised synchronously to admin callers.
"""

from __future__ import annotations

from gatekeeper.errors import GatekeeperError


class AdminError(GatekeeperError):
    """Base error for admin operations."""
    pass


class AdminValidationError(AdminError):
    """Input failed validation; nothing was written."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class DuplicateError(AdminError):
    """A uniqueness constraint within the organization would be violated."""

    def __init__(self, entity: str, field: str, value: str, organization_id: str):
        self.entity = entity
        self.field = field
        self.value = value
        self.organization_id = organization_id
        super().__init__(
            f"{entity} with {field} '{value}' already exists in "
            f"organization '{organization_id}'."
        )


class NotFoundError(AdminError):
    """No such entity in the caller's organization."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found.")


class ReferentialIntegrityError(AdminError):
    """The entity is still referenced and cannot be deleted."""

    def __init__(self, entity: str, entity_id: str, message: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message)

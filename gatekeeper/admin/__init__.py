"""
Gatekeeper Admin - Public API
=============================
"""

from gatekeeper.admin.exceptions import (
    AdminError,
    AdminValidationError,
    DuplicateError,
    NotFoundError,
    ReferentialIntegrityError,
)
from gatekeeper.admin.policies import DynamicPolicyAdmin
from gatekeeper.admin.roles import RoleAdmin
from gatekeeper.admin.validation import IdProvider, UuidIdProvider

__all__ = [
    "AdminError",
    "AdminValidationError",
    "DuplicateError",
    "NotFoundError",
    "ReferentialIntegrityError",
    "RoleAdmin",
    "DynamicPolicyAdmin",
    "IdProvider",
    "UuidIdProvider",
]

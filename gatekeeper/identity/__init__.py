"""
Gatekeeper Identity - Public API
================================
"""

from gatekeeper.identity.principal import (
    ADMIN_ROLE,
    SUPERADMIN_ROLE,
    USER_ROLE,
    Principal,
)

__all__ = [
    "ADMIN_ROLE",
    "SUPERADMIN_ROLE",
    "USER_ROLE",
    "Principal",
]

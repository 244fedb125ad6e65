"""
Gatekeeper Bootstrap - Public API
=================================
"""

from gatekeeper.bootstrap.composition import (
    AccessControl,
    build_access_control,
    build_db_access_control,
)

__all__ = [
    "AccessControl",
    "build_access_control",
    "build_db_access_control",
]

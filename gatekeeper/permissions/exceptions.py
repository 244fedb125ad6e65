"""
Gatekeeper Permissions - Exceptions
===================================
"""

from __future__ import annotations

from gatekeeper.errors import GatekeeperError


class PermissionCatalogError(GatekeeperError):
    """Base error for permission catalog operations."""
    pass


class UnknownPermissionError(PermissionCatalogError):
    """A role referenced a permission slug the catalog does not know."""

    def __init__(self, slugs):
        self.slugs = tuple(sorted(slugs))
        super().__init__(
            f"Unknown permission(s): {', '.join(self.slugs)}."
        )

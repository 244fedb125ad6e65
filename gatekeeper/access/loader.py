"""
Gatekeeper Access - Resource Loading
====================================
Loads the concrete instance an access check is made against. The
business entities live with a collaborator; the engine only sees the
loaded instance (a mapping or any object with public attributes).

Loaders return what they find regardless of the caller's organization.
Tenant isolation is the job of the same_organization rule.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Optional, Protocol


class ResourceLoader(Protocol):
    def load(
        self,
        resource_type: str,
        resource_id: str,
        organization_id: Optional[str],
    ) -> Any:
        """Return the instance, or None when there is none."""
        ...


class InMemoryResourceLoader:
    """Instances keyed by (resource_type, resource_id)."""

    def __init__(self):
        self._instances: dict[tuple[str, str], Any] = {}
        self._lock = Lock()

    def add(self, resource_type: str, resource_id: str, instance: Any) -> None:
        with self._lock:
            self._instances[(resource_type, str(resource_id))] = instance

    def remove(self, resource_type: str, resource_id: str) -> bool:
        with self._lock:
            return self._instances.pop((resource_type, str(resource_id)), None) is not None

    def load(
        self,
        resource_type: str,
        resource_id: str,
        organization_id: Optional[str],
    ) -> Any:
        with self._lock:
            return self._instances.get((resource_type, str(resource_id)))

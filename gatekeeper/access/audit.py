"""
Gatekeeper Access - Access Log
==============================
The decision record emitted after every access check. Persisting it
is the sink's job; the in-memory sink is append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

ANONYMOUS_USER_ID = "anonymous"


@dataclass(frozen=True)
class AccessLogEntry:
    user_id: str
    resource: str
    action: str
    allowed: bool
    timestamp: datetime
    resource_id: Optional[str] = None
    organization_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.user_id or not isinstance(self.user_id, str):
            raise ValueError("user_id must be a non-empty string.")
        if not isinstance(self.allowed, bool):
            raise ValueError("allowed must be a bool.")
        if not isinstance(self.timestamp, datetime):
            raise ValueError("timestamp must be a datetime.")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


class AuditSink(Protocol):
    def record(self, entry: AccessLogEntry) -> None:
        ...


class InMemoryAccessLog:
    """Append-only access log for tests and local runs."""

    def __init__(self):
        self._entries: list[AccessLogEntry] = []
        self._lock = Lock()

    def record(self, entry: AccessLogEntry) -> None:
        if not isinstance(entry, AccessLogEntry):
            raise TypeError("entry must be an AccessLogEntry.")
        with self._lock:
            self._entries.append(entry)

    def entries(
        self,
        user_id: Optional[str] = None,
        resource: Optional[str] = None,
    ) -> tuple[AccessLogEntry, ...]:
        """Newest first, optionally filtered."""
        with self._lock:
            entries = list(self._entries)
        return tuple(
            entry
            for entry in reversed(entries)
            if (user_id is None or entry.user_id == user_id)
            and (resource is None or entry.resource == resource)
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

"""
Gatekeeper Access - Public API
==============================
"""

from gatekeeper.access.audit import (
    ANONYMOUS_USER_ID,
    AccessLogEntry,
    AuditSink,
    InMemoryAccessLog,
)
from gatekeeper.access.loader import InMemoryResourceLoader, ResourceLoader
from gatekeeper.access.orchestrator import (
    AccessDecision,
    AccessDecisionOrchestrator,
)
from gatekeeper.access.service import AccessControlService

__all__ = [
    "ANONYMOUS_USER_ID",
    "AccessLogEntry",
    "AuditSink",
    "InMemoryAccessLog",
    "ResourceLoader",
    "InMemoryResourceLoader",
    "AccessDecision",
    "AccessDecisionOrchestrator",
    "AccessControlService",
]

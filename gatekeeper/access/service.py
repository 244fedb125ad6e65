"""
Gatekeeper Access - Access Control Service
==========================================
Collaborator-side wiring around the orchestrator: load the instance,
decide, record the decision.

An unauthenticated call is denied and recorded as 'anonymous'. A
loader failure means "no instance" (RBAC-only decision). An audit sink
failure is logged and never changes the returned decision.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from gatekeeper.access.audit import ANONYMOUS_USER_ID, AccessLogEntry, AuditSink
from gatekeeper.access.loader import ResourceLoader
from gatekeeper.access.orchestrator import AccessDecisionOrchestrator
from gatekeeper.clock import Clock, SystemClock
from gatekeeper.identity.principal import Principal

logger = logging.getLogger("gatekeeper.access")


class AccessControlService:
    def __init__(
        self,
        orchestrator: AccessDecisionOrchestrator,
        loader: Optional[ResourceLoader] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
    ):
        self._orchestrator = orchestrator
        self._loader = loader
        self._audit_sink = audit_sink
        self._clock = clock or SystemClock()

    def can_access(
        self,
        principal: Optional[Principal],
        resource_type: str,
        action: str,
        resource_id: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        if principal is None:
            self._record(
                user_id=ANONYMOUS_USER_ID,
                organization_id=None,
                resource_type=resource_type,
                action=action,
                resource_id=resource_id,
                allowed=False,
                metadata={"reason": "No authenticated user"},
            )
            return False

        instance = self._load(principal, resource_type, resource_id)
        decision = self._orchestrator.explain(
            principal, resource_type, action, instance, context
        )
        self._record(
            user_id=principal.id,
            organization_id=principal.organization_id,
            resource_type=resource_type,
            action=action,
            resource_id=resource_id,
            allowed=decision.allowed,
            metadata={
                "reason": decision.reason,
                "policy_key": decision.policy_key,
                "chain_source": decision.chain_source,
            },
        )
        return decision.allowed

    def _load(
        self,
        principal: Principal,
        resource_type: str,
        resource_id: Optional[str],
    ) -> Any:
        if resource_id is None or self._loader is None:
            return None
        try:
            return self._loader.load(
                resource_type, resource_id, principal.organization_id
            )
        except Exception as exc:
            logger.warning(
                f"Loading {resource_type} '{resource_id}' failed: "
                f"{type(exc).__name__}: {exc}. Deciding without instance."
            )
            return None

    def _record(
        self,
        user_id: str,
        organization_id: Optional[str],
        resource_type: str,
        action: str,
        resource_id: Optional[str],
        allowed: bool,
        metadata: Mapping[str, Any],
    ) -> None:
        if self._audit_sink is None:
            return
        try:
            self._audit_sink.record(
                AccessLogEntry(
                    user_id=user_id,
                    resource=resource_type,
                    action=action,
                    allowed=allowed,
                    timestamp=self._clock.now_utc(),
                    resource_id=None if resource_id is None else str(resource_id),
                    organization_id=organization_id,
                    metadata=metadata,
                )
            )
        except Exception as exc:
            logger.error(
                f"Access log write failed for '{user_id}' on "
                f"{resource_type}:{action}: {type(exc).__name__}: {exc}"
            )

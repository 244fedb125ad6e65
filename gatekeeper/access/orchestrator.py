"""
Gatekeeper Access - Access Decision Orchestrator
================================================
The single decision entry point: RBAC gate first, then the ABAC chain
of the policy key when a concrete instance is involved.

    RBAC deny                    → False (ABAC never consulted)
    RBAC pass, no instance       → True
    RBAC pass, instance, no chain → False (fail-closed)
    RBAC pass, instance, chain   → AND of the chain's rules

decide() never raises for evaluation faults and has no side effects
beyond debug logging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from gatekeeper.identity.principal import Principal
from gatekeeper.permissions.constants import policy_key
from gatekeeper.permissions.evaluator import PermissionEvaluator
from gatekeeper.policy.contracts import PolicyAttributes
from gatekeeper.policy.registry import PolicyRegistry

logger = logging.getLogger("gatekeeper.access")

REASON_RBAC_DENIED = "RBAC_DENIED"
REASON_RBAC_ERROR = "RBAC_ERROR"
REASON_RBAC_ONLY = "RBAC_ONLY"
REASON_NO_POLICY = "NO_POLICY"
REASON_POLICY_ALLOWED = "POLICY_ALLOWED"
REASON_POLICY_DENIED = "POLICY_DENIED"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    policy_key: str
    chain_source: Optional[str] = None


class AccessDecisionOrchestrator:
    def __init__(
        self,
        evaluator: PermissionEvaluator,
        registry: PolicyRegistry,
    ):
        self._evaluator = evaluator
        self._registry = registry

    def decide(
        self,
        principal: Principal,
        resource_type: str,
        action: str,
        instance: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self.explain(
            principal, resource_type, action, instance, context
        ).allowed

    def explain(
        self,
        principal: Principal,
        resource_type: str,
        action: str,
        instance: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> AccessDecision:
        """decide() with the reason attached."""
        key = policy_key(resource_type, action)

        # ── Step 1: RBAC gate ─────────────────────────────────
        try:
            rbac = self._evaluator.evaluate(principal, resource_type, action)
        except Exception as exc:
            logger.error(
                f"Role lookup failed for principal '{principal.id}' on "
                f"'{key}': {type(exc).__name__}: {exc}. Denied."
            )
            return AccessDecision(False, REASON_RBAC_ERROR, key)

        if not rbac.allowed:
            logger.debug(
                f"RBAC denied '{key}' for principal '{principal.id}': "
                f"{rbac.reason}"
            )
            return AccessDecision(False, REASON_RBAC_DENIED, key)

        # ── Step 2: no instance → RBAC decides ────────────────
        if instance is None:
            return AccessDecision(True, REASON_RBAC_ONLY, key)

        # ── Step 3: ABAC chain ────────────────────────────────
        chain = self._registry.chain_for(key, principal.organization_id)
        if chain is None:
            logger.debug(f"No policy for '{key}'. Denied.")
            return AccessDecision(False, REASON_NO_POLICY, key)

        attributes = PolicyAttributes(
            principal=principal,
            resource=instance,
            action=action,
            context=context or {},
        )
        allowed = chain.evaluate(attributes)
        logger.debug(
            f"Policy '{key}' ({chain.source}) "
            f"{'allowed' if allowed else 'denied'} principal '{principal.id}'"
        )
        return AccessDecision(
            allowed,
            REASON_POLICY_ALLOWED if allowed else REASON_POLICY_DENIED,
            key,
            chain.source,
        )

"""
Gatekeeper Policy Engine — Policy Chains
========================================
A chain is the ordered, immutable rule list behind one policy key.

Evaluation is an AND over the rules in order, short-circuiting on the
first False. Evaluation is FAIL-SAFE: a rule that raises, or returns
anything but a bool, counts as False and is logged. evaluate() and
explain() never raise.

A rejected chain stands in for a dynamic policy whose rules could not
be built. It denies everything, so a broken policy can never fall back
to a more permissive static chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from gatekeeper.policy.contracts import BaseRule, PolicyAttributes

logger = logging.getLogger("gatekeeper.policy")

SOURCE_STATIC = "static"
SOURCE_DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ChainRule:
    """A built rule plus the identity of the row it came from."""

    rule: BaseRule
    name: str = ""
    rule_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.rule, BaseRule):
            raise TypeError("rule must be a BaseRule instance.")
        if not self.name:
            object.__setattr__(self, "name", self.rule.rule_type)

    @property
    def rule_type(self) -> str:
        return self.rule.rule_type


@dataclass(frozen=True)
class RuleOutcome:
    rule_id: Optional[str]
    name: str
    rule_type: str
    passed: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ChainEvaluation:
    """Explain-mode result: the decision plus every rule's outcome."""

    allowed: bool
    policy_key: str
    results: tuple[RuleOutcome, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class PolicyChain:
    policy_key: str
    rules: tuple[ChainRule, ...] = ()
    source: str = SOURCE_STATIC
    policy_id: Optional[str] = None
    organization_id: Optional[str] = None
    rejected_reason: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.rules, tuple):
            object.__setattr__(self, "rules", tuple(self.rules))

    @classmethod
    def rejected(
        cls,
        policy_key: str,
        reason: str,
        policy_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> "PolicyChain":
        return cls(
            policy_key=policy_key,
            rules=(),
            source=SOURCE_DYNAMIC,
            policy_id=policy_id,
            organization_id=organization_id,
            rejected_reason=reason,
        )

    @property
    def is_rejected(self) -> bool:
        return self.rejected_reason is not None

    # ══════════════════════════════════════════════════════════
    # EVALUATION
    # ══════════════════════════════════════════════════════════

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        if self.is_rejected or not self.rules:
            return False

        for entry in self.rules:
            passed, _ = self._execute_rule_safe(entry, attributes)
            if not passed:
                return False
        return True

    def explain(self, attributes: PolicyAttributes) -> ChainEvaluation:
        """
        Evaluate every rule (no short-circuit) and report each outcome.
        The decision is the same as evaluate().
        """
        if self.is_rejected:
            return ChainEvaluation(
                allowed=False,
                policy_key=self.policy_key,
                message=f"Policy rejected: {self.rejected_reason}",
            )
        if not self.rules:
            return ChainEvaluation(
                allowed=False,
                policy_key=self.policy_key,
                message="Policy has no active rules.",
            )

        outcomes = []
        for entry in self.rules:
            passed, error = self._execute_rule_safe(entry, attributes)
            outcomes.append(
                RuleOutcome(
                    rule_id=entry.rule_id,
                    name=entry.name,
                    rule_type=entry.rule_type,
                    passed=passed,
                    error=error,
                )
            )
        return ChainEvaluation(
            allowed=all(outcome.passed for outcome in outcomes),
            policy_key=self.policy_key,
            results=tuple(outcomes),
        )

    # ══════════════════════════════════════════════════════════
    # RULE EXECUTION — FAIL-SAFE
    # ══════════════════════════════════════════════════════════

    def _execute_rule_safe(
        self,
        entry: ChainRule,
        attributes: PolicyAttributes,
    ) -> tuple[bool, Optional[str]]:
        try:
            result = entry.rule.evaluate(attributes)
        except Exception as exc:
            logger.warning(
                f"Rule '{entry.name}' ({entry.rule_type}) of policy "
                f"'{self.policy_key}' raised {type(exc).__name__}: {exc}. "
                f"Treated as deny."
            )
            return False, f"{type(exc).__name__}: {exc}"

        if not isinstance(result, bool):
            logger.warning(
                f"Rule '{entry.name}' ({entry.rule_type}) of policy "
                f"'{self.policy_key}' returned {type(result).__name__}, "
                f"expected bool. Treated as deny."
            )
            return False, f"returned {type(result).__name__}"

        return result, None

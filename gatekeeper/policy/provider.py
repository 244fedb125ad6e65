"""
Gatekeeper Policy Engine — Policy Store Protocol and In-Memory Store
====================================================================
Persisted dynamic policies and rules.

Every mutation notifies the store's subscribers after it is applied.
The PolicyRegistry subscribes and rebuilds, so a write is visible to
decisions as soon as the mutating call returns. Subscriber errors
propagate to the mutating caller.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Iterable, Optional, Protocol

from gatekeeper.policy.models import DynamicPolicy, PolicyRule

logger = logging.getLogger("gatekeeper.policy")

ChangeListener = Callable[[], None]


class PolicyStore(Protocol):
    # ── Policies ──────────────────────────────────────────────
    def list_policies(
        self, organization_id: Optional[str] = None
    ) -> tuple[DynamicPolicy, ...]:
        ...

    def get_policy(self, policy_id: str) -> DynamicPolicy | None:
        ...

    def find_policy_by_key(
        self, key: str, organization_id: str
    ) -> DynamicPolicy | None:
        ...

    def save_policy(self, policy: DynamicPolicy) -> DynamicPolicy:
        ...

    def delete_policy(self, policy_id: str) -> bool:
        ...

    # ── Rules ─────────────────────────────────────────────────
    def list_rules(self, policy_id: Optional[str] = None) -> tuple[PolicyRule, ...]:
        ...

    def get_rule(self, rule_id: str) -> PolicyRule | None:
        ...

    def count_rules(self, policy_id: str) -> int:
        ...

    def save_rules(self, rules: Iterable[PolicyRule]) -> tuple[PolicyRule, ...]:
        ...

    def delete_rule(self, rule_id: str) -> bool:
        ...

    # ── Change notification ───────────────────────────────────
    def subscribe(self, listener: ChangeListener) -> None:
        ...


class ChangeNotifier:
    """Subscriber list shared by the store implementations."""

    def __init__(self):
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = Lock()

    def subscribe(self, listener: ChangeListener) -> None:
        if not callable(listener):
            raise TypeError("listener must be callable.")
        with self._listeners_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def _notify(self) -> None:
        with self._listeners_lock:
            listeners = tuple(self._listeners)
        for listener in listeners:
            listener()


def _sorted_rules(rules: Iterable[PolicyRule]) -> tuple[PolicyRule, ...]:
    return tuple(sorted(rules, key=lambda rule: (rule.policy_id,) + rule.sort_key()))


class InMemoryPolicyStore(ChangeNotifier):
    """
    Deterministic in-memory store used for bootstrap/tests.
    """

    def __init__(
        self,
        policies: Iterable[DynamicPolicy] | None = None,
        rules: Iterable[PolicyRule] | None = None,
    ):
        super().__init__()
        self._policies: dict[str, DynamicPolicy] = {}
        self._rules: dict[str, PolicyRule] = {}
        self._lock = Lock()

        for policy in policies or ():
            self._put_policy(policy)
        for rule in rules or ():
            if rule.policy_id not in self._policies:
                raise ValueError(
                    f"Rule '{rule.rule_id}' references unknown policy "
                    f"'{rule.policy_id}'."
                )
            self._rules[rule.rule_id] = rule

    def _put_policy(self, policy: DynamicPolicy) -> None:
        for existing in self._policies.values():
            if (
                existing.policy_id != policy.policy_id
                and existing.key == policy.key
                and existing.organization_id == policy.organization_id
            ):
                raise ValueError(
                    f"Policy key '{policy.key}' already exists in "
                    f"organization '{policy.organization_id}'."
                )
        self._policies[policy.policy_id] = policy

    # ── Policies ──────────────────────────────────────────────
    def list_policies(
        self, organization_id: Optional[str] = None
    ) -> tuple[DynamicPolicy, ...]:
        with self._lock:
            policies = [
                policy
                for policy in self._policies.values()
                if organization_id is None or policy.organization_id == organization_id
            ]
        return tuple(sorted(policies, key=lambda policy: policy.sort_key()))

    def get_policy(self, policy_id: str) -> DynamicPolicy | None:
        with self._lock:
            return self._policies.get(policy_id)

    def find_policy_by_key(
        self, key: str, organization_id: str
    ) -> DynamicPolicy | None:
        with self._lock:
            for policy in self._policies.values():
                if policy.key == key and policy.organization_id == organization_id:
                    return policy
        return None

    def save_policy(self, policy: DynamicPolicy) -> DynamicPolicy:
        with self._lock:
            self._put_policy(policy)
        self._notify()
        return policy

    def delete_policy(self, policy_id: str) -> bool:
        with self._lock:
            if any(rule.policy_id == policy_id for rule in self._rules.values()):
                raise ValueError(f"Policy '{policy_id}' still has rules.")
            deleted = self._policies.pop(policy_id, None) is not None
        if deleted:
            self._notify()
        return deleted

    # ── Rules ─────────────────────────────────────────────────
    def list_rules(self, policy_id: Optional[str] = None) -> tuple[PolicyRule, ...]:
        with self._lock:
            rules = [
                rule
                for rule in self._rules.values()
                if policy_id is None or rule.policy_id == policy_id
            ]
        return _sorted_rules(rules)

    def get_rule(self, rule_id: str) -> PolicyRule | None:
        with self._lock:
            return self._rules.get(rule_id)

    def count_rules(self, policy_id: str) -> int:
        with self._lock:
            return sum(1 for rule in self._rules.values() if rule.policy_id == policy_id)

    def save_rules(self, rules: Iterable[PolicyRule]) -> tuple[PolicyRule, ...]:
        rules = tuple(rules)
        with self._lock:
            for rule in rules:
                if rule.policy_id not in self._policies:
                    raise ValueError(
                        f"Rule '{rule.rule_id}' references unknown policy "
                        f"'{rule.policy_id}'."
                    )
            for rule in rules:
                self._rules[rule.rule_id] = rule
        if rules:
            self._notify()
        return rules

    def delete_rule(self, rule_id: str) -> bool:
        with self._lock:
            deleted = self._rules.pop(rule_id, None) is not None
        if deleted:
            self._notify()
        return deleted

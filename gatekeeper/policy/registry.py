"""
Gatekeeper Policy Engine — Policy Registry
==========================================
One chain table fed by two loaders:

- static:  code-defined chains (static_policies), built once at construction
- dynamic: every DynamicPolicy + PolicyRule row of every organization,
           rebuilt in full whenever the policy store reports a change

Precedence for (key, organization):
    dynamic chain of that organization → static chain → None (deny)

Readers never lock. Each rebuild produces a new immutable
RegistrySnapshot and publishes it with a single reference assignment,
so a reader sees either the old snapshot or the new one in full.
Rebuilds are serialized by a writer lock. A rebuild that cannot read
the store keeps the previous snapshot and raises RegistryBuildError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from gatekeeper.policy.engine import (
    SOURCE_DYNAMIC,
    SOURCE_STATIC,
    ChainRule,
    PolicyChain,
)
from gatekeeper.policy.exceptions import RegistryBuildError
from gatekeeper.policy.factory import RuleFactory
from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import PolicyStore
from gatekeeper.policy.static_policies import STATIC_POLICIES

logger = logging.getLogger("gatekeeper.policy")


@dataclass(frozen=True)
class PolicyBuildIssue:
    """A dynamic policy that was rejected during a rebuild."""

    policy_id: str
    policy_key: str
    organization_id: str
    rule_id: Optional[str]
    message: str


@dataclass(frozen=True)
class RegistrySnapshot:
    version: int
    static: Mapping[str, PolicyChain] = field(default_factory=dict)
    dynamic: Mapping[tuple[str, str], PolicyChain] = field(default_factory=dict)
    by_policy: Mapping[str, PolicyChain] = field(default_factory=dict)
    errors: tuple[PolicyBuildIssue, ...] = ()

    def __post_init__(self):
        for name in ("static", "dynamic", "by_policy"):
            object.__setattr__(
                self, name, MappingProxyType(dict(getattr(self, name)))
            )

    def chain_for(
        self, key: str, organization_id: Optional[str]
    ) -> Optional[PolicyChain]:
        if organization_id is not None:
            chain = self.dynamic.get((organization_id, key))
            if chain is not None:
                return chain
        return self.static.get(key)

    def chain_for_policy(self, policy_id: str) -> Optional[PolicyChain]:
        return self.by_policy.get(policy_id)


class PolicyRegistry:
    """
    Usage:
        registry = PolicyRegistry(store=policy_store, factory=RuleFactory())
        chain = registry.chain_for("customer:read", principal.organization_id)
    """

    def __init__(
        self,
        store: Optional[PolicyStore] = None,
        factory: Optional[RuleFactory] = None,
        static_policies: Iterable[tuple[str, Iterable[tuple[str, Any]]]] = STATIC_POLICIES,
    ):
        self._store = store
        self._factory = factory or RuleFactory()
        self._write_lock = Lock()
        self._static = self._build_static(static_policies)
        self._snapshot = RegistrySnapshot(version=0, static=self._static)

        if store is not None:
            store.subscribe(self.reload)
            self.reload()

    # ══════════════════════════════════════════════════════════
    # READS (lock-free)
    # ══════════════════════════════════════════════════════════

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    @property
    def factory(self) -> RuleFactory:
        return self._factory

    @property
    def errors(self) -> tuple[PolicyBuildIssue, ...]:
        return self._snapshot.errors

    def chain_for(
        self, key: str, organization_id: Optional[str]
    ) -> Optional[PolicyChain]:
        return self._snapshot.chain_for(key, organization_id)

    def chain_for_policy(self, policy_id: str) -> Optional[PolicyChain]:
        return self._snapshot.chain_for_policy(policy_id)

    def static_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._static))

    # ══════════════════════════════════════════════════════════
    # REBUILD
    # ══════════════════════════════════════════════════════════

    def reload(self) -> RegistrySnapshot:
        """Rebuild every dynamic chain from the store and publish."""
        if self._store is None:
            return self._snapshot

        with self._write_lock:
            try:
                policies = self._store.list_policies()
                rules = self._store.list_rules()
            except Exception as exc:
                logger.error(
                    f"Policy registry rebuild failed, keeping "
                    f"v{self._snapshot.version}: {type(exc).__name__}: {exc}"
                )
                raise RegistryBuildError(exc) from exc

            snapshot = self._build_snapshot(
                self._snapshot.version + 1, policies, rules
            )
            self._snapshot = snapshot

        logger.info(
            f"Policy registry rebuilt: v{snapshot.version}, "
            f"{len(snapshot.dynamic)} dynamic chains, "
            f"{len(snapshot.errors)} rejected"
        )
        return snapshot

    def _build_snapshot(
        self,
        version: int,
        policies: Iterable[DynamicPolicy],
        rules: Iterable[PolicyRule],
    ) -> RegistrySnapshot:
        rules_by_policy: dict[str, list[PolicyRule]] = {}
        for rule in rules:
            rules_by_policy.setdefault(rule.policy_id, []).append(rule)

        dynamic: dict[tuple[str, str], PolicyChain] = {}
        by_policy: dict[str, PolicyChain] = {}
        errors: list[PolicyBuildIssue] = []

        for policy in policies:
            active_rules = sorted(
                (rule for rule in rules_by_policy.get(policy.policy_id, ()) if rule.active),
                key=lambda rule: rule.sort_key(),
            )
            chain, issue = self._build_dynamic_chain(policy, active_rules)
            by_policy[policy.policy_id] = chain
            if issue is not None:
                errors.append(issue)

            # A policy without active rules leaves the static chain in charge.
            if policy.active and (chain.is_rejected or chain.rules):
                dynamic[(policy.organization_id, policy.key)] = chain

        return RegistrySnapshot(
            version=version,
            static=self._static,
            dynamic=dynamic,
            by_policy=by_policy,
            errors=tuple(errors),
        )

    def _build_dynamic_chain(
        self,
        policy: DynamicPolicy,
        rules: list[PolicyRule],
    ) -> tuple[PolicyChain, Optional[PolicyBuildIssue]]:
        entries = []
        for rule in rules:
            try:
                built = self._factory.create(rule.type, rule.config)
            except Exception as exc:
                message = f"rule '{rule.name}' ({rule.type}): {exc}"
                logger.error(
                    f"Dynamic policy '{policy.key}' of organization "
                    f"'{policy.organization_id}' rejected, {message}"
                )
                chain = PolicyChain.rejected(
                    policy_key=policy.key,
                    reason=message,
                    policy_id=policy.policy_id,
                    organization_id=policy.organization_id,
                )
                return chain, PolicyBuildIssue(
                    policy_id=policy.policy_id,
                    policy_key=policy.key,
                    organization_id=policy.organization_id,
                    rule_id=rule.rule_id,
                    message=message,
                )
            entries.append(
                ChainRule(rule=built, name=rule.name, rule_id=rule.rule_id)
            )

        chain = PolicyChain(
            policy_key=policy.key,
            rules=tuple(entries),
            source=SOURCE_DYNAMIC,
            policy_id=policy.policy_id,
            organization_id=policy.organization_id,
        )
        return chain, None

    def _build_static(
        self,
        static_policies: Iterable[tuple[str, Iterable[tuple[str, Any]]]],
    ) -> dict[str, PolicyChain]:
        chains: dict[str, PolicyChain] = {}
        for key, rule_specs in static_policies:
            if key in chains:
                raise ValueError(f"Duplicate static policy '{key}'.")
            chains[key] = PolicyChain(
                policy_key=key,
                rules=tuple(
                    ChainRule(rule=self._factory.create(rule_type, config))
                    for rule_type, config in rule_specs
                ),
                source=SOURCE_STATIC,
            )
        logger.debug(f"Initialized {len(chains)} static policies")
        return chains

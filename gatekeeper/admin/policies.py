"""
Gatekeeper Admin - Dynamic Policy Administration
================================================
Organization-scoped CRUD over dynamic policies and their rules, plus
the rule-type catalog and the policy test bench.

Rule type and config are validated through the RuleFactory BEFORE
anything is persisted. Every store write notifies the PolicyRegistry,
which rebuilds before the write call returns; a RegistryBuildError from
that rebuild propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from gatekeeper.admin.exceptions import (
    AdminValidationError,
    DuplicateError,
    NotFoundError,
    ReferentialIntegrityError,
)
from gatekeeper.admin.validation import (
    IdProvider,
    UuidIdProvider,
    clean_bool,
    clean_int,
    clean_optional_string,
    clean_string,
    reject_unknown_fields,
)
from gatekeeper.identity.principal import Principal
from gatekeeper.permissions.constants import POLICY_KEY_PATTERN
from gatekeeper.policy.contracts import PolicyAttributes
from gatekeeper.policy.engine import ChainEvaluation
from gatekeeper.policy.factory import RuleTypeInfo
from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import PolicyStore
from gatekeeper.policy.registry import PolicyRegistry

logger = logging.getLogger("gatekeeper.admin")

_POLICY_FIELDS = frozenset({"name", "key", "description", "active"})
_RULE_FIELDS = frozenset({"name", "type", "config", "order", "active", "description"})


def _clean_key(value) -> str:
    key = clean_string(value, field_name="key")
    if not POLICY_KEY_PATTERN.match(key):
        raise AdminValidationError(
            "key", "Policy key must be in format 'resource:action'."
        )
    return key


def _clean_config(value) -> dict:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise AdminValidationError("config", "config must be an object.")
    return dict(value)


class DynamicPolicyAdmin:
    def __init__(
        self,
        store: PolicyStore,
        registry: PolicyRegistry,
        ids: Optional[IdProvider] = None,
    ):
        self._store = store
        self._registry = registry
        self._factory = registry.factory
        self._ids = ids or UuidIdProvider()

    # ══════════════════════════════════════════════════════════
    # POLICIES
    # ══════════════════════════════════════════════════════════

    def create_policy(
        self,
        organization_id: str,
        name: str,
        key: str,
        description: Optional[str] = None,
        active: bool = True,
        actor_id: Optional[str] = None,
    ) -> DynamicPolicy:
        organization_id = clean_string(organization_id, field_name="organization_id")
        name = clean_string(name, field_name="name")
        key = _clean_key(key)
        description = clean_optional_string(description, field_name="description")
        active = clean_bool(active, field_name="active")

        if self._store.find_policy_by_key(key, organization_id) is not None:
            raise DuplicateError("Policy", "key", key, organization_id)

        policy = DynamicPolicy(
            policy_id=self._ids.new_id(),
            key=key,
            name=name,
            organization_id=organization_id,
            description=description or "",
            active=active,
        )
        self._save_policy(policy)
        logger.info(
            f"Policy created: {policy.policy_id} key={key} "
            f"org={organization_id} actor={actor_id}"
        )
        return policy

    def list_policies(self, organization_id: str) -> tuple[DynamicPolicy, ...]:
        organization_id = clean_string(organization_id, field_name="organization_id")
        return tuple(
            sorted(
                self._store.list_policies(organization_id),
                key=lambda policy: (policy.key, policy.policy_id),
            )
        )

    def get_policy(self, organization_id: str, policy_id: str) -> DynamicPolicy:
        policy = self._store.get_policy(policy_id)
        if policy is None or policy.organization_id != organization_id:
            raise NotFoundError("Policy", policy_id)
        return policy

    def get_policy_by_key(self, organization_id: str, key: str) -> DynamicPolicy:
        policy = self._store.find_policy_by_key(key, organization_id)
        if policy is None:
            raise NotFoundError("Policy", key)
        return policy

    def update_policy(
        self,
        organization_id: str,
        policy_id: str,
        /,
        actor_id: Optional[str] = None,
        **changes,
    ) -> DynamicPolicy:
        reject_unknown_fields(changes, _POLICY_FIELDS)
        policy = self.get_policy(organization_id, policy_id)

        cleaned: dict[str, Any] = {}
        if "name" in changes:
            cleaned["name"] = clean_string(changes["name"], field_name="name")
        if "description" in changes:
            cleaned["description"] = (
                clean_optional_string(changes["description"], field_name="description")
                or ""
            )
        if "active" in changes:
            cleaned["active"] = clean_bool(changes["active"], field_name="active")
        if "key" in changes:
            key = _clean_key(changes["key"])
            if key != policy.key:
                existing = self._store.find_policy_by_key(key, organization_id)
                if existing is not None and existing.policy_id != policy.policy_id:
                    raise DuplicateError("Policy", "key", key, organization_id)
            cleaned["key"] = key

        updated = policy.with_changes(**cleaned)
        self._save_policy(updated)
        logger.info(
            f"Policy updated: {policy_id} fields={sorted(cleaned)} "
            f"org={organization_id} actor={actor_id}"
        )
        return updated

    def delete_policy(
        self,
        organization_id: str,
        policy_id: str,
        actor_id: Optional[str] = None,
    ) -> None:
        policy = self.get_policy(organization_id, policy_id)

        rule_count = self._store.count_rules(policy.policy_id)
        if rule_count > 0:
            raise ReferentialIntegrityError(
                "Policy",
                policy.policy_id,
                f"Cannot delete policy with {rule_count} rules. "
                f"Delete all rules first.",
            )

        try:
            self._store.delete_policy(policy.policy_id)
        except ValueError as exc:
            raise ReferentialIntegrityError(
                "Policy", policy.policy_id, str(exc)
            ) from exc
        logger.info(
            f"Policy deleted: {policy_id} key={policy.key} "
            f"org={organization_id} actor={actor_id}"
        )

    def clone_policy(
        self,
        organization_id: str,
        source_policy_id: str,
        name: str,
        key: str,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> DynamicPolicy:
        source = self.get_policy(organization_id, source_policy_id)
        source_rules = self._store.list_rules(source.policy_id)

        clone = self.create_policy(
            organization_id,
            name=name,
            key=key,
            description=description or f"Cloned from {source.name}",
            active=True,
            actor_id=actor_id,
        )
        try:
            self._store.save_rules(
                PolicyRule(
                    rule_id=self._ids.new_id(),
                    policy_id=clone.policy_id,
                    name=rule.name,
                    type=rule.type,
                    config=rule.config_dict(),
                    order=rule.order,
                    active=rule.active,
                    description=rule.description,
                )
                for rule in source_rules
            )
        except Exception as exc:
            # An empty clone would still hold its key.
            if self._store.count_rules(clone.policy_id) == 0:
                self._store.delete_policy(clone.policy_id)
            logger.error(
                f"Policy clone failed: {source.policy_id} -> {clone.policy_id} "
                f"org={organization_id}: {type(exc).__name__}: {exc}"
            )
            raise
        logger.info(
            f"Policy cloned: {source.policy_id} -> {clone.policy_id} "
            f"rules={len(source_rules)} org={organization_id} actor={actor_id}"
        )
        return clone

    # ══════════════════════════════════════════════════════════
    # RULES
    # ══════════════════════════════════════════════════════════

    def list_rules(
        self, organization_id: str, policy_id: str
    ) -> tuple[PolicyRule, ...]:
        policy = self.get_policy(organization_id, policy_id)
        return self._store.list_rules(policy.policy_id)

    def add_rule(
        self,
        organization_id: str,
        policy_id: str,
        name: str,
        type: str,
        config: Optional[Mapping[str, Any]] = None,
        order: Optional[int] = None,
        active: bool = True,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> PolicyRule:
        policy = self.get_policy(organization_id, policy_id)
        name = clean_string(name, field_name="name")
        rule_type = clean_string(type, field_name="type")
        config = _clean_config(config)
        active = clean_bool(active, field_name="active")
        description = clean_optional_string(description, field_name="description")

        # Raises UnknownRuleTypeError / RuleConfigError / ScriptCompileError.
        self._factory.validate(rule_type, config)

        if order is None:
            existing = self._store.list_rules(policy.policy_id)
            order = max((rule.order for rule in existing), default=0) + 1
        else:
            order = clean_int(order, field_name="order")

        rule = PolicyRule(
            rule_id=self._ids.new_id(),
            policy_id=policy.policy_id,
            name=name,
            type=rule_type,
            config=config,
            order=order,
            active=active,
            description=description,
        )
        self._store.save_rules((rule,))
        logger.info(
            f"Rule added: {rule.rule_id} type={rule_type} policy={policy.policy_id} "
            f"org={organization_id} actor={actor_id}"
        )
        return rule

    def get_rule(
        self, organization_id: str, policy_id: str, rule_id: str
    ) -> PolicyRule:
        policy = self.get_policy(organization_id, policy_id)
        rule = self._store.get_rule(rule_id)
        if rule is None or rule.policy_id != policy.policy_id:
            raise NotFoundError("Rule", rule_id)
        return rule

    def update_rule(
        self,
        organization_id: str,
        policy_id: str,
        rule_id: str,
        /,
        actor_id: Optional[str] = None,
        **changes,
    ) -> PolicyRule:
        reject_unknown_fields(changes, _RULE_FIELDS)
        rule = self.get_rule(organization_id, policy_id, rule_id)

        cleaned: dict[str, Any] = {}
        if "name" in changes:
            cleaned["name"] = clean_string(changes["name"], field_name="name")
        if "type" in changes:
            cleaned["type"] = clean_string(changes["type"], field_name="type")
        if "config" in changes:
            cleaned["config"] = _clean_config(changes["config"])
        if "order" in changes:
            cleaned["order"] = clean_int(changes["order"], field_name="order")
        if "active" in changes:
            cleaned["active"] = clean_bool(changes["active"], field_name="active")
        if "description" in changes:
            cleaned["description"] = clean_optional_string(
                changes["description"], field_name="description"
            )

        if "type" in cleaned or "config" in cleaned:
            self._factory.validate(
                cleaned.get("type", rule.type),
                cleaned.get("config", rule.config_dict()),
            )

        updated = rule.with_changes(**cleaned)
        self._store.save_rules((updated,))
        logger.info(
            f"Rule updated: {rule_id} fields={sorted(cleaned)} "
            f"policy={policy_id} org={organization_id} actor={actor_id}"
        )
        return updated

    def delete_rule(
        self,
        organization_id: str,
        policy_id: str,
        rule_id: str,
        actor_id: Optional[str] = None,
    ) -> None:
        rule = self.get_rule(organization_id, policy_id, rule_id)
        self._store.delete_rule(rule.rule_id)
        logger.info(
            f"Rule deleted: {rule_id} policy={policy_id} "
            f"org={organization_id} actor={actor_id}"
        )

    def reorder_rules(
        self,
        organization_id: str,
        policy_id: str,
        orders: Mapping[str, int],
        actor_id: Optional[str] = None,
    ) -> tuple[PolicyRule, ...]:
        """Apply {rule_id: order} in one write. Every id must belong to the policy."""
        policy = self.get_policy(organization_id, policy_id)
        if not isinstance(orders, Mapping) or not orders:
            raise AdminValidationError("orders", "orders must be a non-empty mapping.")

        rules = {rule.rule_id: rule for rule in self._store.list_rules(policy.policy_id)}
        unknown = sorted(set(orders) - set(rules))
        if unknown:
            raise AdminValidationError(
                "orders",
                f"Rules do not belong to policy '{policy_id}': {', '.join(unknown)}.",
            )

        updated = tuple(
            rules[rule_id].with_changes(order=clean_int(order, field_name="order"))
            for rule_id, order in orders.items()
        )
        self._store.save_rules(updated)
        logger.info(
            f"Rules reordered: policy={policy_id} count={len(updated)} "
            f"org={organization_id} actor={actor_id}"
        )
        return self._store.list_rules(policy.policy_id)

    # ══════════════════════════════════════════════════════════
    # CATALOG & TEST BENCH
    # ══════════════════════════════════════════════════════════

    def rule_types(self) -> tuple[RuleTypeInfo, ...]:
        return self._factory.catalog()

    def test_policy(
        self,
        organization_id: str,
        policy_id: str,
        principal: Principal,
        instance: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ChainEvaluation:
        """
        Evaluate the registry's chain for this policy, rule by rule.
        Same rule objects and the same fail-safe semantics as decisions.
        """
        policy = self.get_policy(organization_id, policy_id)
        chain = self._registry.chain_for_policy(policy.policy_id)
        if chain is None:
            return ChainEvaluation(
                allowed=False,
                policy_key=policy.key,
                message="Policy is not loaded.",
            )
        return chain.explain(
            PolicyAttributes(
                principal=principal,
                resource=instance,
                action=policy.key.split(":", 1)[1],
                context=context or {},
            )
        )

    def _save_policy(self, policy: DynamicPolicy) -> None:
        try:
            self._store.save_policy(policy)
        except ValueError as exc:
            raise DuplicateError(
                "Policy", "key", policy.key, policy.organization_id
            ) from exc

"""
Gatekeeper Policy — Registry Tests (precedence, rejection, atomic rebuild)
"""

from __future__ import annotations

import pytest

from gatekeeper.identity.principal import Principal
from gatekeeper.policy.contracts import PolicyAttributes
from gatekeeper.policy.engine import SOURCE_DYNAMIC, SOURCE_STATIC
from gatekeeper.policy.exceptions import RegistryBuildError
from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import InMemoryPolicyStore
from gatekeeper.policy.registry import PolicyRegistry
from gatekeeper.policy.static_policies import STATIC_POLICIES

ORG_A = "org-a"
ORG_B = "org-b"


def policy(policy_id="p1", key="customer:read", org=ORG_A, active=True):
    return DynamicPolicy(
        policy_id=policy_id, key=key, name=f"Policy {policy_id}",
        organization_id=org, active=active,
    )


def rule(rule_id, policy_id="p1", type="role_based", config=None, order=1, active=True):
    if config is None:
        config = {"roles": ["manager"]}
    return PolicyRule(
        rule_id=rule_id, policy_id=policy_id, name=f"Rule {rule_id}",
        type=type, config=config, order=order, active=active,
    )


def attrs(role="user", org=ORG_A, instance=None):
    return PolicyAttributes(
        principal=Principal(id="u1", role=role, organization_id=org),
        resource=instance if instance is not None else {"organization_id": org},
        action="read",
    )


class FlakyStore(InMemoryPolicyStore):
    fail = False

    def list_rules(self, policy_id=None):
        if self.fail:
            raise ConnectionError("store unreachable")
        return super().list_rules(policy_id)


# ══════════════════════════════════════════════════════════════
# STATIC CHAINS
# ══════════════════════════════════════════════════════════════

class TestStaticChains:
    def test_every_static_policy_is_built(self):
        registry = PolicyRegistry()
        assert registry.static_keys() == tuple(sorted(k for k, _ in STATIC_POLICIES))
        assert registry.chain_for("customer:assign", None).source == SOURCE_STATIC

    def test_customer_read_requires_same_org_and_role(self):
        chain = PolicyRegistry().chain_for("customer:read", ORG_A)
        assert [entry.rule_type for entry in chain.rules] == [
            "same_organization",
            "role_based",
        ]
        assert chain.evaluate(attrs(role="user"))
        assert not chain.evaluate(attrs(role="guest"))
        assert not chain.evaluate(attrs(instance={"organization_id": ORG_B}))

    def test_unknown_key_has_no_chain(self):
        assert PolicyRegistry().chain_for("analytics:read", ORG_A) is None

    def test_static_registry_reload_is_noop(self):
        registry = PolicyRegistry()
        before = registry.snapshot
        assert registry.reload() is before


# ══════════════════════════════════════════════════════════════
# PRECEDENCE
# ══════════════════════════════════════════════════════════════

class TestPrecedence:
    def test_dynamic_overrides_static_for_its_organization_only(self):
        store = InMemoryPolicyStore(policies=[policy()], rules=[rule("r1")])
        registry = PolicyRegistry(store=store)

        chain_a = registry.chain_for("customer:read", ORG_A)
        chain_b = registry.chain_for("customer:read", ORG_B)

        assert chain_a.source == SOURCE_DYNAMIC
        assert chain_a.policy_id == "p1"
        assert chain_b.source == SOURCE_STATIC
        assert chain_a.evaluate(attrs(role="manager"))
        assert not chain_a.evaluate(attrs(role="user"))

    def test_principal_without_organization_gets_static(self):
        store = InMemoryPolicyStore(policies=[policy()], rules=[rule("r1")])
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("customer:read", None).source == SOURCE_STATIC

    def test_dynamic_policy_for_key_without_static(self):
        store = InMemoryPolicyStore(
            policies=[policy(key="analytics:read")], rules=[rule("r1")]
        )
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("analytics:read", ORG_A).source == SOURCE_DYNAMIC
        assert registry.chain_for("analytics:read", ORG_B) is None

    def test_inactive_policy_not_consulted(self):
        store = InMemoryPolicyStore(policies=[policy(active=False)], rules=[rule("r1")])
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("customer:read", ORG_A).source == SOURCE_STATIC
        assert registry.chain_for_policy("p1") is not None

    def test_policy_without_active_rules_leaves_static_in_charge(self):
        store = InMemoryPolicyStore(
            policies=[policy()], rules=[rule("r1", active=False)]
        )
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("customer:read", ORG_A).source == SOURCE_STATIC
        assert registry.chain_for_policy("p1").rules == ()

    def test_rules_follow_order_then_id(self):
        store = InMemoryPolicyStore(
            policies=[policy()],
            rules=[
                rule("r-b", order=2, type="ownership", config={}),
                rule("r-c", order=1, type="same_organization", config={}),
                rule("r-a", order=2),
            ],
        )
        chain = PolicyRegistry(store=store).chain_for("customer:read", ORG_A)
        assert [entry.rule_id for entry in chain.rules] == ["r-c", "r-a", "r-b"]


# ══════════════════════════════════════════════════════════════
# REJECTED POLICIES
# ══════════════════════════════════════════════════════════════

class TestRejectedPolicies:
    def test_invalid_script_rejects_chain_and_reports(self):
        store = InMemoryPolicyStore(
            policies=[policy()],
            rules=[
                rule("r1"),
                rule("r2", type="custom_script", config={"code": "return (("}, order=2),
            ],
        )
        registry = PolicyRegistry(store=store)

        chain = registry.chain_for("customer:read", ORG_A)
        assert chain.is_rejected
        assert not chain.evaluate(attrs(role="manager"))

        assert len(registry.errors) == 1
        issue = registry.errors[0]
        assert issue.policy_id == "p1"
        assert issue.rule_id == "r2"
        assert issue.organization_id == ORG_A

    def test_rejection_never_falls_back_to_static(self):
        store = InMemoryPolicyStore(
            policies=[policy()],
            rules=[rule("r1", type="no_such_type", config={})],
        )
        registry = PolicyRegistry(store=store)
        # Static customer:read would allow this principal.
        assert not registry.chain_for("customer:read", ORG_A).evaluate(attrs(role="user"))

    def test_other_policies_still_build(self):
        store = InMemoryPolicyStore(
            policies=[policy(), policy("p2", key="deal:read")],
            rules=[
                rule("r1", type="role_based", config={"roles": []}),
                rule("r2", policy_id="p2"),
            ],
        )
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("customer:read", ORG_A).is_rejected
        assert not registry.chain_for("deal:read", ORG_A).is_rejected


# ══════════════════════════════════════════════════════════════
# REBUILD
# ══════════════════════════════════════════════════════════════

class TestRebuild:
    def test_store_mutation_triggers_rebuild(self):
        store = InMemoryPolicyStore()
        registry = PolicyRegistry(store=store)
        assert registry.chain_for("customer:read", ORG_A).source == SOURCE_STATIC

        store.save_policy(policy())
        store.save_rules([rule("r1")])

        assert registry.chain_for("customer:read", ORG_A).source == SOURCE_DYNAMIC

    def test_snapshot_taken_before_mutation_is_unchanged(self):
        store = InMemoryPolicyStore(policies=[policy()], rules=[rule("r1")])
        registry = PolicyRegistry(store=store)
        before = registry.snapshot
        before_chain = before.chain_for("customer:read", ORG_A)

        store.save_rules([rule("r1", config={"roles": ["user"]})])

        assert registry.snapshot is not before
        assert registry.snapshot.version == before.version + 1
        assert before.chain_for("customer:read", ORG_A) is before_chain
        assert before_chain.evaluate(attrs(role="manager"))
        assert not before_chain.evaluate(attrs(role="user"))
        assert registry.chain_for("customer:read", ORG_A).evaluate(attrs(role="user"))

    def test_snapshot_tables_are_read_only(self):
        snapshot = PolicyRegistry().snapshot
        with pytest.raises(TypeError):
            snapshot.static["customer:read"] = None

    def test_failed_rebuild_keeps_previous_snapshot(self):
        store = FlakyStore(policies=[policy()], rules=[rule("r1")])
        registry = PolicyRegistry(store=store)
        before = registry.snapshot

        store.fail = True
        with pytest.raises(RegistryBuildError):
            store.save_rules([rule("r2", order=2)])

        assert registry.snapshot is before
        assert registry.chain_for("customer:read", ORG_A).policy_id == "p1"

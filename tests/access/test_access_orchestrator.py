"""
Gatekeeper Access — Decision Orchestrator Tests
"""

from __future__ import annotations

import pytest

from gatekeeper.identity.principal import Principal
from gatekeeper.access.orchestrator import (
    REASON_NO_POLICY,
    REASON_POLICY_ALLOWED,
    REASON_POLICY_DENIED,
    REASON_RBAC_DENIED,
    REASON_RBAC_ERROR,
    REASON_RBAC_ONLY,
    AccessDecisionOrchestrator,
)
from gatekeeper.permissions.evaluator import PermissionEvaluator
from gatekeeper.permissions.models import Role
from gatekeeper.permissions.provider import InMemoryRoleStore
from gatekeeper.policy.engine import SOURCE_DYNAMIC, SOURCE_STATIC
from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import InMemoryPolicyStore
from gatekeeper.policy.registry import PolicyRegistry

ORG = "org-1"
OTHER_ORG = "org-2"


def role_store():
    return InMemoryRoleStore(
        roles=[
            Role(
                "r1", "Sales", "sales", ORG,
                {"customer:read", "customer:create", "customer:delete"},
            ),
            Role("r2", "Analyst", "analyst", ORG, {"analytics:read"}),
        ]
    )


def principal(roles=("r1",), role="user", org=ORG):
    return Principal(id="u1", role=role, organization_id=org, roles=tuple(roles))


def orchestrator(registry=None, store=None):
    return AccessDecisionOrchestrator(
        PermissionEvaluator(store or role_store()),
        registry or PolicyRegistry(),
    )


class UnusedRegistry:
    def chain_for(self, key, organization_id):
        raise AssertionError("ABAC must not be consulted")


class FailingRoleStore(InMemoryRoleStore):
    def get_roles(self, role_ids):
        raise ConnectionError("role store down")


# ══════════════════════════════════════════════════════════════
# RBAC GATE
# ══════════════════════════════════════════════════════════════

class TestRbacGate:
    def test_missing_permission_denies_without_abac(self):
        decision = orchestrator(UnusedRegistry()).explain(
            principal(), "deal", "read", {"organization_id": ORG}
        )
        assert not decision.allowed
        assert decision.reason == REASON_RBAC_DENIED
        assert decision.policy_key == "deal:read"

    def test_no_instance_rbac_decides_alone(self):
        decision = orchestrator(UnusedRegistry()).explain(
            principal(), "customer", "create"
        )
        assert decision.allowed
        assert decision.reason == REASON_RBAC_ONLY
        assert decision.chain_source is None

    def test_role_store_failure_denies(self):
        engine = orchestrator(UnusedRegistry(), FailingRoleStore())
        decision = engine.explain(principal(), "customer", "read")
        assert not decision.allowed
        assert decision.reason == REASON_RBAC_ERROR

    def test_bypass_role_still_meets_abac(self):
        engine = orchestrator()
        admin = principal(roles=(), role="admin")
        assert engine.decide(admin, "customer", "delete", {"organization_id": ORG})
        assert not engine.decide(
            admin, "customer", "delete", {"organization_id": OTHER_ORG}
        )

    def test_bypass_role_with_instance_needs_a_chain(self):
        engine = orchestrator()
        admin = principal(roles=(), role="admin")

        without_instance = engine.explain(admin, "analytics", "read")
        assert without_instance.allowed
        assert without_instance.reason == REASON_RBAC_ONLY

        with_instance = engine.explain(
            admin, "analytics", "read", {"organization_id": ORG}
        )
        assert not with_instance.allowed
        assert with_instance.reason == REASON_NO_POLICY


# ══════════════════════════════════════════════════════════════
# ABAC CHAIN
# ══════════════════════════════════════════════════════════════

class TestAbacChain:
    def test_read_same_organization_allowed(self):
        decision = orchestrator().explain(
            principal(), "customer", "read", {"organization_id": ORG}
        )
        assert decision.allowed
        assert decision.reason == REASON_POLICY_ALLOWED
        assert decision.chain_source == SOURCE_STATIC

    def test_read_other_organization_denied(self):
        assert not orchestrator().decide(
            principal(), "customer", "read", {"organization_id": OTHER_ORG}
        )

    def test_delete_requires_admin_role(self):
        decision = orchestrator().explain(
            principal(), "customer", "delete", {"organization_id": ORG}
        )
        assert not decision.allowed
        assert decision.reason == REASON_POLICY_DENIED

    def test_instance_without_any_chain_fails_closed(self):
        decision = orchestrator().explain(
            principal(roles=("r2",)), "analytics", "read", {"organization_id": ORG}
        )
        assert not decision.allowed
        assert decision.reason == REASON_NO_POLICY

    def test_dynamic_policy_decides_for_its_organization(self):
        store = InMemoryPolicyStore(
            policies=[
                DynamicPolicy("p1", "customer:read", "Open reads", ORG),
            ],
            rules=[
                PolicyRule(
                    "rule-1", "p1", "Status check", "field_value",
                    {"field": "resource.status", "operator": "equals", "value": "open"},
                ),
            ],
        )
        engine = orchestrator(PolicyRegistry(store=store))

        open_customer = {"organization_id": ORG, "status": "open"}
        closed_customer = {"organization_id": ORG, "status": "closed"}

        decision = engine.explain(principal(), "customer", "read", open_customer)
        assert decision.allowed
        assert decision.chain_source == SOURCE_DYNAMIC
        assert not engine.decide(principal(), "customer", "read", closed_customer)

    def test_context_reaches_scripted_rules(self):
        store = InMemoryPolicyStore(
            policies=[DynamicPolicy("p1", "customer:read", "Office only", ORG)],
            rules=[
                PolicyRule(
                    "rule-1", "p1", "Office network", "custom_script",
                    {"code": 'context.get("network") == "office"'},
                ),
            ],
        )
        engine = orchestrator(PolicyRegistry(store=store))
        instance = {"organization_id": ORG}

        assert engine.decide(
            principal(), "customer", "read", instance, {"network": "office"}
        )
        assert not engine.decide(principal(), "customer", "read", instance)

    def test_faulty_rule_denies_and_never_raises(self):
        store = InMemoryPolicyStore(
            policies=[DynamicPolicy("p1", "customer:read", "Broken", ORG)],
            rules=[
                PolicyRule(
                    "rule-1", "p1", "Loops forever", "custom_script",
                    {"code": "while True:\n    pass"},
                ),
            ],
        )
        engine = orchestrator(PolicyRegistry(store=store))
        assert not engine.decide(
            principal(), "customer", "read", {"organization_id": ORG}
        )

    @pytest.mark.parametrize("instance", [{}, {"organization_id": ""}, object()])
    def test_instance_without_organization_denied(self, instance):
        assert not orchestrator().decide(principal(), "customer", "read", instance)

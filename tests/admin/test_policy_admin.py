"""
Gatekeeper Admin — Dynamic Policy Administration Tests
"""

from __future__ import annotations

import pytest

from gatekeeper.admin.exceptions import (
    AdminValidationError,
    DuplicateError,
    NotFoundError,
    ReferentialIntegrityError,
)
from gatekeeper.admin.policies import DynamicPolicyAdmin
from gatekeeper.identity.principal import Principal
from gatekeeper.policy.engine import SOURCE_DYNAMIC, SOURCE_STATIC
from gatekeeper.policy.exceptions import (
    RuleConfigError,
    ScriptCompileError,
    UnknownRuleTypeError,
)
from gatekeeper.policy.provider import InMemoryPolicyStore
from gatekeeper.policy.registry import PolicyRegistry

ORG = "org-1"
OTHER_ORG = "org-2"

MANAGERS = {"roles": ["manager"]}


class SequentialIds:
    def __init__(self):
        self._next = 0

    def new_id(self):
        self._next += 1
        return f"id-{self._next}"


class RuleWriteFailingStore(InMemoryPolicyStore):
    fail_rule_writes = False

    def save_rules(self, rules):
        if self.fail_rule_writes:
            raise OSError("rule table unavailable")
        return super().save_rules(rules)


@pytest.fixture
def store():
    return InMemoryPolicyStore()


@pytest.fixture
def registry(store):
    return PolicyRegistry(store=store)


@pytest.fixture
def admin(store, registry):
    return DynamicPolicyAdmin(store, registry, ids=SequentialIds())


def manager():
    return Principal(id="u1", role="manager", organization_id=ORG)


# ══════════════════════════════════════════════════════════════
# POLICIES
# ══════════════════════════════════════════════════════════════

class TestPolicies:
    def test_create_defaults_description(self, admin):
        policy = admin.create_policy(ORG, "Customer reads", "customer:read")
        assert policy.description == "Policy for customer:read"
        assert policy.active is True
        assert admin.get_policy(ORG, policy.policy_id) == policy
        assert admin.get_policy_by_key(ORG, "customer:read") == policy

    @pytest.mark.parametrize("key", ["customer", "Customer:Read", "a:b:c", ":read"])
    def test_malformed_key(self, admin, key):
        with pytest.raises(AdminValidationError) as excinfo:
            admin.create_policy(ORG, "Bad", key)
        assert excinfo.value.field == "key"

    def test_duplicate_key_per_organization(self, admin):
        admin.create_policy(ORG, "First", "deal:read")
        with pytest.raises(DuplicateError):
            admin.create_policy(ORG, "Second", "deal:read")
        assert admin.create_policy(OTHER_ORG, "Other", "deal:read")

    def test_list_is_organization_scoped(self, admin):
        admin.create_policy(ORG, "Tasks", "task:read")
        admin.create_policy(ORG, "Deals", "deal:read")
        admin.create_policy(OTHER_ORG, "Other", "deal:read")
        assert [p.key for p in admin.list_policies(ORG)] == ["deal:read", "task:read"]

    def test_other_organization_not_found(self, admin):
        policy = admin.create_policy(OTHER_ORG, "Other", "deal:read")
        with pytest.raises(NotFoundError):
            admin.get_policy(ORG, policy.policy_id)
        with pytest.raises(NotFoundError):
            admin.get_policy_by_key(ORG, "deal:read")

    def test_update_key_collision(self, admin):
        admin.create_policy(ORG, "Reads", "deal:read")
        updates = admin.create_policy(ORG, "Updates", "deal:update")
        with pytest.raises(DuplicateError):
            admin.update_policy(ORG, updates.policy_id, key="deal:read")

    def test_update_unknown_field(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        with pytest.raises(AdminValidationError):
            admin.update_policy(ORG, policy.policy_id, organization_id=OTHER_ORG)
        with pytest.raises(AdminValidationError):
            admin.update_policy(ORG, policy.policy_id, bogus="x")
        assert admin.get_policy(ORG, policy.policy_id) == policy

    def test_delete_requires_no_rules(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        rule = admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)

        with pytest.raises(ReferentialIntegrityError) as excinfo:
            admin.delete_policy(ORG, policy.policy_id)
        assert "Delete all rules first" in str(excinfo.value)

        admin.delete_rule(ORG, policy.policy_id, rule.rule_id)
        admin.delete_policy(ORG, policy.policy_id)
        with pytest.raises(NotFoundError):
            admin.get_policy(ORG, policy.policy_id)


# ══════════════════════════════════════════════════════════════
# RULES
# ══════════════════════════════════════════════════════════════

class TestRules:
    def test_add_rule_defaults_order_to_next(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        first = admin.add_rule(ORG, policy.policy_id, "Org", "same_organization")
        second = admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)
        explicit = admin.add_rule(
            ORG, policy.policy_id, "Owner", "ownership", order=10
        )
        assert (first.order, second.order, explicit.order) == (1, 2, 10)
        assert [r.rule_id for r in admin.list_rules(ORG, policy.policy_id)] == [
            first.rule_id, second.rule_id, explicit.rule_id,
        ]

    @pytest.mark.parametrize(
        "rule_type, config, error",
        [
            ("no_such_rule", {}, UnknownRuleTypeError),
            ("role_based", {"roles": []}, RuleConfigError),
            ("field_value", {"field": "status", "operator": "like", "value": 1}, RuleConfigError),
            ("custom_script", {"code": "import os"}, ScriptCompileError),
        ],
    )
    def test_invalid_rule_never_persisted(self, admin, store, rule_type, config, error):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        with pytest.raises(error):
            admin.add_rule(ORG, policy.policy_id, "Bad", rule_type, config)
        assert store.count_rules(policy.policy_id) == 0

    def test_update_rule_revalidates(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        rule = admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)

        with pytest.raises(RuleConfigError):
            admin.update_rule(ORG, policy.policy_id, rule.rule_id, config={"roles": "x"})

        updated = admin.update_rule(
            ORG, policy.policy_id, rule.rule_id, config={"roles": ["admin"]}
        )
        assert dict(updated.config) == {"roles": ["admin"]}
        assert admin.get_rule(ORG, policy.policy_id, rule.rule_id) == updated

    def test_update_rule_unknown_field(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        rule = admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)

        with pytest.raises(AdminValidationError):
            admin.update_rule(ORG, policy.policy_id, rule.rule_id, policy_id="other")
        with pytest.raises(AdminValidationError):
            admin.update_rule(ORG, policy.policy_id, rule.rule_id, bogus="x")
        assert admin.get_rule(ORG, policy.policy_id, rule.rule_id) == rule

    def test_rule_of_other_policy_not_found(self, admin):
        reads = admin.create_policy(ORG, "Reads", "deal:read")
        updates = admin.create_policy(ORG, "Updates", "deal:update")
        rule = admin.add_rule(ORG, reads.policy_id, "Org", "same_organization")
        with pytest.raises(NotFoundError):
            admin.get_rule(ORG, updates.policy_id, rule.rule_id)

    def test_reorder_rules(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        first = admin.add_rule(ORG, policy.policy_id, "Org", "same_organization")
        second = admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)

        reordered = admin.reorder_rules(
            ORG, policy.policy_id, {first.rule_id: 2, second.rule_id: 1}
        )
        assert [r.rule_id for r in reordered] == [second.rule_id, first.rule_id]

    def test_reorder_rejects_foreign_rules(self, admin):
        reads = admin.create_policy(ORG, "Reads", "deal:read")
        updates = admin.create_policy(ORG, "Updates", "deal:update")
        foreign = admin.add_rule(ORG, updates.policy_id, "Org", "same_organization")
        with pytest.raises(AdminValidationError):
            admin.reorder_rules(ORG, reads.policy_id, {foreign.rule_id: 1})

    def test_rule_types_catalog(self, admin):
        types = {info.type for info in admin.rule_types()}
        assert types == {
            "ownership", "same_organization", "role_based",
            "field_value", "custom_script",
        }


# ══════════════════════════════════════════════════════════════
# REGISTRY INTEGRATION
# ══════════════════════════════════════════════════════════════

class TestRegistryFollowsWrites:
    def test_writes_are_visible_immediately(self, admin, registry):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        assert registry.chain_for("deal:read", ORG).source == SOURCE_STATIC

        admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)
        assert registry.chain_for("deal:read", ORG).source == SOURCE_DYNAMIC

        admin.update_policy(ORG, policy.policy_id, active=False)
        assert registry.chain_for("deal:read", ORG).source == SOURCE_STATIC

    def test_clone_copies_rules(self, admin, registry):
        source = admin.create_policy(ORG, "Reads", "deal:read")
        admin.add_rule(ORG, source.policy_id, "Org", "same_organization")
        admin.add_rule(ORG, source.policy_id, "Managers", "role_based", MANAGERS)

        clone = admin.clone_policy(ORG, source.policy_id, "Task reads", "task:read")

        assert clone.description == "Cloned from Reads"
        cloned_rules = admin.list_rules(ORG, clone.policy_id)
        assert [(r.name, r.type, r.order) for r in cloned_rules] == [
            ("Org", "same_organization", 1),
            ("Managers", "role_based", 2),
        ]
        assert all(r.policy_id == clone.policy_id for r in cloned_rules)
        assert registry.chain_for("task:read", ORG).policy_id == clone.policy_id

    def test_failed_rule_copy_removes_the_clone(self):
        store = RuleWriteFailingStore()
        admin = DynamicPolicyAdmin(store, PolicyRegistry(store=store), ids=SequentialIds())
        source = admin.create_policy(ORG, "Reads", "deal:read")
        admin.add_rule(ORG, source.policy_id, "Managers", "role_based", MANAGERS)

        store.fail_rule_writes = True
        with pytest.raises(OSError):
            admin.clone_policy(ORG, source.policy_id, "Task reads", "task:read")

        assert admin.list_policies(ORG) == (source,)
        store.fail_rule_writes = False
        assert admin.clone_policy(ORG, source.policy_id, "Task reads", "task:read")

    def test_clone_to_existing_key_fails(self, admin):
        source = admin.create_policy(ORG, "Reads", "deal:read")
        with pytest.raises(DuplicateError):
            admin.clone_policy(ORG, source.policy_id, "Copy", "deal:read")

    def test_policy_test_bench_reports_each_rule(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        admin.add_rule(ORG, policy.policy_id, "Org", "same_organization")
        admin.add_rule(ORG, policy.policy_id, "Owner", "ownership")

        result = admin.test_policy(
            ORG, policy.policy_id, manager(),
            {"organization_id": ORG, "assigned_to": "someone-else"},
        )

        assert result.allowed is False
        assert [(r.name, r.passed) for r in result.results] == [
            ("Org", True),
            ("Owner", False),
        ]

    def test_policy_test_bench_uses_inactive_policy(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read", active=False)
        admin.add_rule(ORG, policy.policy_id, "Managers", "role_based", MANAGERS)
        result = admin.test_policy(ORG, policy.policy_id, manager(), {})
        assert result.allowed is True

    def test_policy_test_bench_without_rules(self, admin):
        policy = admin.create_policy(ORG, "Reads", "deal:read")
        result = admin.test_policy(ORG, policy.policy_id, manager(), {})
        assert result.allowed is False
        assert result.results == ()

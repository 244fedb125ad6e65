"""
Gatekeeper Policy — Built-in Rule Type Tests
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import pytest

from gatekeeper.identity.principal import Principal
from gatekeeper.policy.contracts import PolicyAttributes, get_attribute, resolve_path
from gatekeeper.policy.exceptions import RuleConfigError, ScriptCompileError
from gatekeeper.policy.rules import (
    FieldComparisonRule,
    OwnershipRule,
    RoleMembershipRule,
    SameOrganizationRule,
    ScriptedPredicateRule,
)

ORG = "org-1"


@dataclass
class Customer:
    assigned_to: Optional[str] = None
    organization_id: Optional[str] = None
    status: str = "active"
    _secret: str = "hidden"


class ArchivableCustomer:
    def __init__(self):
        self.archived = False

    def archive(self):
        self.archived = True
        return 0


def attrs(instance, principal=None, action="read", context=None):
    return PolicyAttributes(
        principal=principal or Principal(id="u1", organization_id=ORG),
        resource=instance,
        action=action,
        context=context or {},
    )


# ══════════════════════════════════════════════════════════════
# ATTRIBUTE ACCESS
# ══════════════════════════════════════════════════════════════

class TestAttributeAccess:
    def test_mapping_and_object_read_alike(self):
        assert get_attribute({"status": "won"}, "status") == "won"
        assert get_attribute(Customer(status="won"), "status") == "won"

    def test_private_names_never_resolved(self):
        assert get_attribute(Customer(), "_secret") is None
        assert get_attribute({"_secret": 1}, "_secret") is None

    def test_principal_reads_identity_fields(self):
        principal = Principal(id="u1", role="user", attributes={"team": "north"})
        assert get_attribute(principal, "role") == "user"
        assert get_attribute(principal, "team") == "north"

    def test_identity_fields_not_shadowed_by_attributes(self):
        principal = Principal(id="u1", attributes={"id": "spoofed"})
        assert get_attribute(principal, "id") == "u1"

    def test_resolve_path(self):
        doc = {"address": {"city": "Hanoi"}, "owner": None}
        assert resolve_path(doc, "address.city") == (True, "Hanoi")
        assert resolve_path(doc, "address.zip") == (False, None)
        assert resolve_path(doc, "owner.name") == (False, None)
        assert resolve_path(doc, "owner") == (True, None)


# ══════════════════════════════════════════════════════════════
# OWNERSHIP
# ══════════════════════════════════════════════════════════════

class TestOwnershipRule:
    rule = OwnershipRule()

    def test_owner_passes(self):
        assert self.rule.evaluate(attrs(Customer(assigned_to="u1")))

    def test_ids_compared_as_strings(self):
        principal = Principal(id="42")
        assert self.rule.evaluate(attrs({"assigned_to": 42}, principal))

    def test_other_owner_fails(self):
        assert not self.rule.evaluate(attrs(Customer(assigned_to="u2")))

    @pytest.mark.parametrize("instance", [Customer(), {"assigned_to": None}, {}, {"assigned_to": ""}])
    def test_absent_owner_fails(self, instance):
        assert not self.rule.evaluate(attrs(instance))

    def test_config_ignored(self):
        assert isinstance(OwnershipRule.from_config(None), OwnershipRule)
        assert isinstance(OwnershipRule.from_config({}), OwnershipRule)

    def test_non_mapping_config_rejected(self):
        with pytest.raises(RuleConfigError):
            OwnershipRule.from_config(["nope"])


# ══════════════════════════════════════════════════════════════
# SAME ORGANIZATION
# ══════════════════════════════════════════════════════════════

class TestSameOrganizationRule:
    rule = SameOrganizationRule()

    def test_same_org_passes(self):
        assert self.rule.evaluate(attrs(Customer(organization_id=ORG)))

    def test_other_org_fails(self):
        assert not self.rule.evaluate(attrs(Customer(organization_id="org-2")))

    def test_principal_without_org_fails(self):
        principal = Principal(id="u1")
        assert not self.rule.evaluate(attrs(Customer(organization_id=ORG), principal))

    def test_instance_without_org_fails(self):
        assert not self.rule.evaluate(attrs(Customer()))


# ══════════════════════════════════════════════════════════════
# ROLE MEMBERSHIP
# ══════════════════════════════════════════════════════════════

class TestRoleMembershipRule:
    def test_member_passes(self):
        rule = RoleMembershipRule.from_config({"roles": ["admin", "user"]})
        assert rule.evaluate(attrs({}, Principal(id="u1", role="user")))

    def test_non_member_fails(self):
        rule = RoleMembershipRule.from_config({"roles": ["admin"]})
        assert not rule.evaluate(attrs({}, Principal(id="u1", role="user")))

    @pytest.mark.parametrize(
        "config",
        [None, {}, {"roles": []}, {"roles": "admin"}, {"roles": ["admin", ""]}, {"roles": [1]}],
    )
    def test_invalid_config_rejected(self, config):
        with pytest.raises(RuleConfigError):
            RoleMembershipRule.from_config(config)


# ══════════════════════════════════════════════════════════════
# FIELD COMPARISON
# ══════════════════════════════════════════════════════════════

def field_rule(field, operator, value):
    return FieldComparisonRule.from_config(
        {"field": field, "operator": operator, "value": value}
    )


class TestFieldComparisonRule:
    deal = {
        "status": "open",
        "amount": 1200,
        "tags": ["vip", "north"],
        "title": "Renewal 2025",
        "owner": {"team": {"name": "north"}},
        "closed_at": None,
    }

    @pytest.mark.parametrize(
        "field,operator,value,expected",
        [
            ("status", "equals", "open", True),
            ("status", "equals", "won", False),
            ("status", "not_equals", "won", True),
            ("amount", "greater_than", 1000, True),
            ("amount", "less_than", 1000, False),
            ("tags", "contains", "vip", True),
            ("tags", "not_contains", "vip", False),
            ("title", "contains", "2025", True),
            ("title", "not_contains", "2024", True),
            ("title", "starts_with", "Renew", True),
            ("title", "ends_with", "2024", False),
            ("status", "in", ["open", "pending"], True),
            ("status", "not_in", ["open", "pending"], False),
            ("resource.owner.team.name", "equals", "north", True),
            ("closed_at", "equals", None, True),
        ],
    )
    def test_operators(self, field, operator, value, expected):
        assert field_rule(field, operator, value).evaluate(attrs(self.deal)) is expected

    def test_user_prefix_reads_principal(self):
        principal = Principal(id="u1", role="manager", attributes={"region": "north"})
        assert field_rule("user.role", "equals", "manager").evaluate(attrs({}, principal))
        assert field_rule("user.region", "in", ["north"]).evaluate(attrs({}, principal))

    @pytest.mark.parametrize("operator", ["equals", "not_equals", "not_contains", "not_in"])
    def test_absent_path_is_false_for_every_operator(self, operator):
        value = ["x"] if operator == "not_in" else "x"
        assert not field_rule("missing.deep", operator, value).evaluate(attrs(self.deal))
        assert not field_rule("closed_at.year", operator, value).evaluate(attrs(self.deal))

    def test_contains_on_non_container_is_false(self):
        assert not field_rule("amount", "contains", 1).evaluate(attrs(self.deal))
        assert not field_rule("amount", "not_contains", 1).evaluate(attrs(self.deal))

    def test_incomparable_types_are_false(self):
        assert not field_rule("status", "greater_than", 5).evaluate(attrs(self.deal))

    def test_starts_with_requires_string_field(self):
        assert not field_rule("amount", "starts_with", "1").evaluate(attrs(self.deal))

    def test_evaluation_is_idempotent(self):
        rule = field_rule("amount", "greater_than", 1000)
        attributes = attrs(self.deal)
        results = {rule.evaluate(attributes) for _ in range(5)}
        assert results == {True}

    def test_no_instance_is_false(self):
        assert not field_rule("status", "equals", "open").evaluate(attrs(None))

    @pytest.mark.parametrize(
        "config",
        [
            {"operator": "equals", "value": 1},
            {"field": "", "operator": "equals", "value": 1},
            {"field": "a..b", "operator": "equals", "value": 1},
            {"field": "status", "operator": "like", "value": 1},
            {"field": "status", "operator": "equals"},
            {"field": "status", "operator": "in", "value": "open"},
            {"field": "status", "operator": "starts_with", "value": 1},
        ],
    )
    def test_invalid_config_rejected(self, config):
        with pytest.raises(RuleConfigError):
            FieldComparisonRule.from_config(config)


# ══════════════════════════════════════════════════════════════
# SCRIPTED PREDICATE
# ══════════════════════════════════════════════════════════════

class TestScriptedPredicateRule:
    def test_expression(self):
        rule = ScriptedPredicateRule.from_config(
            {"code": 'user["role"] == "admin" or resource["assigned_to"] == user["id"]'}
        )
        assert rule.evaluate(attrs({"assigned_to": "u1"}))
        assert not rule.evaluate(attrs({"assigned_to": "u2"}))

    def test_statement_block_with_context(self):
        code = (
            "limit = context.get('limit', 0)\n"
            "if action == 'read':\n"
            "    return True\n"
            "return resource.amount <= limit\n"
        )
        rule = ScriptedPredicateRule.from_config({"code": code})
        assert rule.evaluate(attrs({"amount": 5}, action="read"))
        assert rule.evaluate(attrs({"amount": 5}, action="update", context={"limit": 10}))
        assert not rule.evaluate(attrs({"amount": 50}, action="update", context={"limit": 10}))

    def test_attributes_mapping_exposed(self):
        rule = ScriptedPredicateRule.from_config(
            {"code": "attributes['user']['organization_id'] == attributes['resource'].organization_id"}
        )
        assert rule.evaluate(attrs(Customer(organization_id=ORG)))

    def test_runtime_error_is_false(self, caplog):
        rule = ScriptedPredicateRule.from_config({"code": "resource['missing'] == 1"})
        with caplog.at_level(logging.WARNING, logger="gatekeeper.sandbox"):
            assert not rule.evaluate(attrs({}))
        assert [record.name for record in caplog.records] == ["gatekeeper.sandbox"]

    def test_resource_methods_cannot_be_invoked(self):
        customer = ArchivableCustomer()
        for code in (
            "return len(sorted([1], key=resource.archive)) == 1",
            "return min([1, 2], key=resource.archive) == 1",
            "f = resource.archive\nreturn True",
        ):
            rule = ScriptedPredicateRule.from_config({"code": code})
            assert not rule.evaluate(attrs(customer))
        assert customer.archived is False

    def test_non_bool_result_is_false(self):
        rule = ScriptedPredicateRule.from_config({"code": "1"})
        assert not rule.evaluate(attrs({}))

    def test_invalid_syntax_fails_construction(self):
        with pytest.raises(ScriptCompileError):
            ScriptedPredicateRule.from_config({"code": "return (("})

    @pytest.mark.parametrize("config", [{}, {"code": ""}, {"code": "   "}, {"code": 5}])
    def test_missing_code_rejected(self, config):
        with pytest.raises(RuleConfigError):
            ScriptedPredicateRule.from_config(config)

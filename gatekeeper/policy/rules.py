"""
Gatekeeper Policy Engine — Built-in Rule Types
==============================================
The five persisted rule types:

    ownership          instance.assigned_to == principal.id
    same_organization  instance.organization_id == principal.organization_id
    role_based         principal.role in config.roles
    field_value        compare one field of the instance or principal
    custom_script      sandboxed scripted predicate

Every rule validates its config in from_config(). evaluate() never
validates; it only reads.

Script evaluation failures are logged here on the "gatekeeper.sandbox"
logger and count as False. Faults raised out of any other rule are
logged by the chain on "gatekeeper.policy".
"""

from __future__ import annotations

import logging
from collections.abc import Set
from typing import Any, Mapping, Optional

from gatekeeper.config.settings import SandboxLimits
from gatekeeper.policy.contracts import (
    BaseRule,
    PolicyAttributes,
    get_attribute,
    resolve_path,
)
from gatekeeper.policy.exceptions import RuleConfigError
from gatekeeper.policy.sandbox import ScriptSandbox

logger = logging.getLogger("gatekeeper.sandbox")


def _present(value: Any) -> bool:
    return value is not None and value != ""


# ══════════════════════════════════════════════════════════════
# OWNERSHIP
# ══════════════════════════════════════════════════════════════

class OwnershipRule(BaseRule):
    rule_type = "ownership"
    description = (
        "Checks whether the user owns the resource "
        "(based on the assigned_to field)."
    )
    config_schema: dict = {}

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        owner = get_attribute(attributes.resource, "assigned_to")
        user_id = attributes.principal.id
        if not _present(owner) or not _present(user_id):
            return False
        return str(owner) == str(user_id)


# ══════════════════════════════════════════════════════════════
# SAME ORGANIZATION
# ══════════════════════════════════════════════════════════════

class SameOrganizationRule(BaseRule):
    rule_type = "same_organization"
    description = (
        "Checks whether the user and the resource belong to the "
        "same organization."
    )
    config_schema: dict = {}

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        resource_org = get_attribute(attributes.resource, "organization_id")
        user_org = attributes.principal.organization_id
        if not _present(resource_org) or not _present(user_org):
            return False
        return str(resource_org) == str(user_org)


# ══════════════════════════════════════════════════════════════
# ROLE MEMBERSHIP
# ══════════════════════════════════════════════════════════════

class RoleMembershipRule(BaseRule):
    rule_type = "role_based"
    description = "Checks whether the user has one of the required roles."
    config_schema = {
        "roles": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Roles allowed to pass this rule.",
            "example": ["admin", "manager"],
            "required": True,
        },
    }

    def __init__(self, roles):
        self.roles = frozenset(roles)

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]],
        limits: Optional[SandboxLimits] = None,
    ) -> "RoleMembershipRule":
        config = cls._require_mapping(config)
        roles = config.get("roles")
        if not isinstance(roles, (list, tuple)) or not roles:
            raise RuleConfigError(cls.rule_type, "roles must be a non-empty list.")
        if not all(isinstance(role, str) and role for role in roles):
            raise RuleConfigError(
                cls.rule_type, "roles must contain non-empty strings."
            )
        return cls(roles)

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        return attributes.principal.role in self.roles


# ══════════════════════════════════════════════════════════════
# FIELD COMPARISON
# ══════════════════════════════════════════════════════════════

OP_EQUALS = "equals"
OP_NOT_EQUALS = "not_equals"
OP_GREATER_THAN = "greater_than"
OP_LESS_THAN = "less_than"
OP_CONTAINS = "contains"
OP_NOT_CONTAINS = "not_contains"
OP_STARTS_WITH = "starts_with"
OP_ENDS_WITH = "ends_with"
OP_IN = "in"
OP_NOT_IN = "not_in"

OPERATORS: tuple[str, ...] = (
    OP_EQUALS,
    OP_NOT_EQUALS,
    OP_GREATER_THAN,
    OP_LESS_THAN,
    OP_CONTAINS,
    OP_NOT_CONTAINS,
    OP_STARTS_WITH,
    OP_ENDS_WITH,
    OP_IN,
    OP_NOT_IN,
)

USER_PREFIX = "user."
RESOURCE_PREFIX = "resource."


def _contains(container: Any, value: Any) -> Optional[bool]:
    """None when the field is not a container we compare against."""
    if isinstance(container, str):
        return isinstance(value, str) and value in container
    if isinstance(container, (list, tuple, Set)):
        return value in container
    return None


class FieldComparisonRule(BaseRule):
    rule_type = "field_value"
    description = (
        "Compares a field of the resource or the user against a value."
    )
    config_schema = {
        "field": {
            "type": "string",
            "description": "Field name, optionally prefixed with user. or resource.",
            "example": "resource.status",
            "required": True,
        },
        "operator": {
            "type": "string",
            "enum": list(OPERATORS),
            "description": "Comparison operator.",
            "example": OP_EQUALS,
            "required": True,
        },
        "value": {
            "type": "any",
            "description": "Value to compare against.",
            "example": "active",
            "required": True,
        },
    }

    def __init__(self, field: str, operator: str, value: Any):
        self.field = field
        self.operator = operator
        self.value = value

        if field.startswith(USER_PREFIX):
            self._target = "principal"
            self._path = field[len(USER_PREFIX):]
        elif field.startswith(RESOURCE_PREFIX):
            self._target = "resource"
            self._path = field[len(RESOURCE_PREFIX):]
        else:
            self._target = "resource"
            self._path = field

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]],
        limits: Optional[SandboxLimits] = None,
    ) -> "FieldComparisonRule":
        config = cls._require_mapping(config)

        field = config.get("field")
        if not isinstance(field, str) or not field.strip():
            raise RuleConfigError(cls.rule_type, "field must be a non-empty string.")
        field = field.strip()
        if any(not segment for segment in field.split(".")):
            raise RuleConfigError(cls.rule_type, f"field '{field}' is malformed.")

        operator = config.get("operator")
        if operator not in OPERATORS:
            raise RuleConfigError(
                cls.rule_type,
                f"operator must be one of: {', '.join(OPERATORS)}.",
            )

        if "value" not in config:
            raise RuleConfigError(cls.rule_type, "value is required.")
        value = config["value"]

        if operator in (OP_IN, OP_NOT_IN) and not isinstance(value, (list, tuple)):
            raise RuleConfigError(
                cls.rule_type, f"operator '{operator}' requires a list value."
            )
        if operator in (OP_STARTS_WITH, OP_ENDS_WITH) and not isinstance(value, str):
            raise RuleConfigError(
                cls.rule_type, f"operator '{operator}' requires a string value."
            )

        return cls(field, operator, value)

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        source = (
            attributes.principal
            if self._target == "principal"
            else attributes.resource
        )
        found, field_value = resolve_path(source, self._path)
        if not found:
            return False
        return self._compare(field_value)

    def _compare(self, field_value: Any) -> bool:
        operator, value = self.operator, self.value

        if operator == OP_EQUALS:
            return field_value == value
        if operator == OP_NOT_EQUALS:
            return field_value != value

        if operator in (OP_GREATER_THAN, OP_LESS_THAN):
            try:
                if operator == OP_GREATER_THAN:
                    return bool(field_value > value)
                return bool(field_value < value)
            except TypeError:
                return False

        if operator in (OP_CONTAINS, OP_NOT_CONTAINS):
            contained = _contains(field_value, value)
            if contained is None:
                return False
            return contained if operator == OP_CONTAINS else not contained

        if operator == OP_STARTS_WITH:
            return isinstance(field_value, str) and field_value.startswith(value)
        if operator == OP_ENDS_WITH:
            return isinstance(field_value, str) and field_value.endswith(value)

        if operator == OP_IN:
            return field_value in value
        if operator == OP_NOT_IN:
            return field_value not in value

        return False


# ══════════════════════════════════════════════════════════════
# SCRIPTED PREDICATE
# ══════════════════════════════════════════════════════════════

class ScriptedPredicateRule(BaseRule):
    rule_type = "custom_script"
    description = (
        "Evaluates a sandboxed script that must return a boolean."
    )
    config_schema = {
        "code": {
            "type": "string",
            "description": (
                "Script to run; an expression, or statements that "
                "return a boolean."
            ),
            "example": (
                'return user["role"] == "admin" or '
                '(resource is not None and resource.created_by == user["id"])'
            ),
            "required": True,
        },
    }

    def __init__(self, code: str, limits: Optional[SandboxLimits] = None):
        self.code = code
        self._sandbox = ScriptSandbox(code, limits)
        self.limits = self._sandbox.limits

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]],
        limits: Optional[SandboxLimits] = None,
    ) -> "ScriptedPredicateRule":
        config = cls._require_mapping(config)
        code = config.get("code")
        if not isinstance(code, str) or not code.strip():
            raise RuleConfigError(cls.rule_type, "code must be a non-empty string.")
        return cls(code, limits)

    def evaluate(self, attributes: PolicyAttributes) -> bool:
        user = attributes.principal.as_dict()
        context = dict(attributes.context)
        names = {
            "user": user,
            "resource": attributes.resource,
            "action": attributes.action,
            "context": context,
            "attributes": {
                "user": user,
                "resource": attributes.resource,
                "action": attributes.action,
                "context": context,
            },
        }
        try:
            return self._sandbox.evaluate(names)
        except Exception as exc:
            logger.warning(
                f"Script evaluation failed for principal "
                f"'{attributes.principal.id}': {type(exc).__name__}: {exc}"
            )
            return False


BUILTIN_RULES: tuple[type[BaseRule], ...] = (
    OwnershipRule,
    SameOrganizationRule,
    RoleMembershipRule,
    FieldComparisonRule,
    ScriptedPredicateRule,
)

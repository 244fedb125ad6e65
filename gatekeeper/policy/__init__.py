"""
Gatekeeper Policy Engine — Public API
=====================================
"""

from gatekeeper.policy.contracts import BaseRule, PolicyAttributes
from gatekeeper.policy.db_provider import DbPolicyStore
from gatekeeper.policy.engine import (
    ChainEvaluation,
    ChainRule,
    PolicyChain,
    RuleOutcome,
)
from gatekeeper.policy.exceptions import (
    PolicyEngineError,
    RegistryBuildError,
    RuleConfigError,
    SandboxLimitExceeded,
    ScriptCompileError,
    UnknownRuleTypeError,
)
from gatekeeper.policy.factory import RuleFactory, RuleTypeInfo
from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import InMemoryPolicyStore, PolicyStore
from gatekeeper.policy.registry import (
    PolicyBuildIssue,
    PolicyRegistry,
    RegistrySnapshot,
)
from gatekeeper.policy.rules import (
    FieldComparisonRule,
    OwnershipRule,
    RoleMembershipRule,
    SameOrganizationRule,
    ScriptedPredicateRule,
)
from gatekeeper.policy.sandbox import ScriptSandbox

__all__ = [
    "BaseRule",
    "PolicyAttributes",
    "OwnershipRule",
    "SameOrganizationRule",
    "RoleMembershipRule",
    "FieldComparisonRule",
    "ScriptedPredicateRule",
    "ScriptSandbox",
    "RuleFactory",
    "RuleTypeInfo",
    "ChainRule",
    "PolicyChain",
    "RuleOutcome",
    "ChainEvaluation",
    "DynamicPolicy",
    "PolicyRule",
    "PolicyStore",
    "InMemoryPolicyStore",
    "DbPolicyStore",
    "PolicyRegistry",
    "RegistrySnapshot",
    "PolicyBuildIssue",
    "PolicyEngineError",
    "RuleConfigError",
    "UnknownRuleTypeError",
    "ScriptCompileError",
    "SandboxLimitExceeded",
    "RegistryBuildError",
]

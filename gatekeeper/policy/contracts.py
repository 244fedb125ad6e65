"""
Gatekeeper Policy Engine — Rule Contract
========================================
Abstract base class for all ABAC rules.

Every rule must:
- Be pure (no side effects)
- Be deterministic (same input → same output)
- Not access the database
- Validate its config at construction, never at evaluation

Contract validation enforced at class creation time:
- rule_type: non-empty snake_case tag (the persisted type)
- description: non-empty string (shown in the admin rule catalog)
- config_schema: dict describing the config fields for form generation
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from gatekeeper.config.settings import SandboxLimits
from gatekeeper.identity.principal import Principal
from gatekeeper.policy.exceptions import RuleConfigError

RULE_TYPE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

_MISSING = object()


# ══════════════════════════════════════════════════════════════
# ATTRIBUTE ACCESS
# ══════════════════════════════════════════════════════════════

def get_attribute(source: Any, name: str, default: Any = None) -> Any:
    """
    Read one attribute from a principal, instance, or context.

    Mappings are read by key, other objects by public attribute.
    Names starting with '_' are never resolved.
    """
    if source is None or not isinstance(name, str) or name.startswith("_"):
        return default
    if isinstance(source, Principal):
        return source.as_dict().get(name, default)
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def resolve_path(source: Any, path: str) -> tuple[bool, Any]:
    """
    Walk a dotted path. Returns (found, value).

    A missing segment, or a None value before the last segment,
    yields (False, None).
    """
    current = source
    for segment in path.split("."):
        if current is None:
            return False, None
        value = get_attribute(current, segment, _MISSING)
        if value is _MISSING:
            return False, None
        current = value
    return True, current


@dataclass(frozen=True)
class PolicyAttributes:
    """Everything a rule may look at for one decision."""

    principal: Principal
    resource: Any = None
    action: str = ""
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.principal, Principal):
            raise TypeError("principal must be a Principal.")
        object.__setattr__(
            self, "context", MappingProxyType(dict(self.context or {}))
        )


# ══════════════════════════════════════════════════════════════
# BASE RULE
# ══════════════════════════════════════════════════════════════

class BaseRule(ABC):
    """
    Abstract base for gatekeeper ABAC rules.

    Subclasses must:
    - Set rule_type (persisted type tag, e.g. 'ownership')
    - Set description
    - Set config_schema (may be empty for config-free rules)
    - Implement evaluate()
    - Override from_config() when the rule takes config

    Contract is validated at class creation time (__init_subclass__).
    """

    rule_type: str = ""
    description: str = ""
    config_schema: dict = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        # Skip validation for intermediate abstract classes. ABCMeta fills
        # __abstractmethods__ only after this hook runs.
        if getattr(cls.evaluate, "__isabstractmethod__", False):
            return

        if not isinstance(cls.rule_type, str) or not RULE_TYPE_PATTERN.match(
            cls.rule_type
        ):
            raise TypeError(
                f"Rule class {cls.__name__} must declare rule_type "
                f"as a snake_case string."
            )

        if not cls.description or not isinstance(cls.description, str):
            raise TypeError(
                f"Rule class {cls.__name__} must declare "
                f"description as non-empty string."
            )

        if not isinstance(cls.config_schema, dict):
            raise TypeError(
                f"Rule class {cls.__name__} must declare "
                f"config_schema as a dict."
            )

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]],
        limits: Optional[SandboxLimits] = None,
    ) -> "BaseRule":
        """
        Build the rule from persisted config. Config-free by default.

        limits only matters to rules that run scripts.
        """
        cls._require_mapping(config)
        return cls()

    @classmethod
    def _require_mapping(cls, config) -> Mapping[str, Any]:
        if config is None:
            return {}
        if not isinstance(config, Mapping):
            raise RuleConfigError(cls.rule_type, "config must be an object.")
        return config

    @abstractmethod
    def evaluate(self, attributes: PolicyAttributes) -> bool:
        """
        Evaluate this rule. MUST be pure.

        May raise; the owning chain turns any exception into False.
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.rule_type}>"

"""
Gatekeeper Policy Engine — Dynamic Policy Models
================================================
Immutable views of persisted dynamic policies and their rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional

from gatekeeper.permissions.constants import POLICY_KEY_PATTERN


@dataclass(frozen=True)
class DynamicPolicy:
    policy_id: str
    key: str
    name: str
    organization_id: str
    description: str = ""
    active: bool = True

    def __post_init__(self):
        if not self.policy_id or not isinstance(self.policy_id, str):
            raise ValueError("policy_id must be a non-empty string.")

        if not isinstance(self.key, str) or not POLICY_KEY_PATTERN.match(self.key):
            raise ValueError(
                "Policy key must be in format 'resource:action'."
            )

        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")

        if not self.organization_id or not isinstance(self.organization_id, str):
            raise ValueError("organization_id must be a non-empty string.")

        if not self.description:
            object.__setattr__(self, "description", f"Policy for {self.key}")

    def with_changes(self, **changes) -> "DynamicPolicy":
        return replace(self, **changes)

    def sort_key(self) -> tuple[str, str, str]:
        return (self.organization_id, self.key, self.policy_id)


@dataclass(frozen=True)
class PolicyRule:
    rule_id: str
    policy_id: str
    name: str
    type: str
    config: Mapping[str, Any] = field(default_factory=dict)
    order: int = 1
    active: bool = True
    description: Optional[str] = None

    def __post_init__(self):
        if not self.rule_id or not isinstance(self.rule_id, str):
            raise ValueError("rule_id must be a non-empty string.")

        if not self.policy_id or not isinstance(self.policy_id, str):
            raise ValueError("policy_id must be a non-empty string.")

        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")

        if not self.type or not isinstance(self.type, str):
            raise ValueError("type must be a non-empty string.")

        if not isinstance(self.order, int) or isinstance(self.order, bool):
            raise ValueError("order must be an integer.")

        if self.config is None:
            object.__setattr__(self, "config", MappingProxyType({}))
        elif isinstance(self.config, Mapping):
            object.__setattr__(self, "config", MappingProxyType(dict(self.config)))

    def with_changes(self, **changes) -> "PolicyRule":
        return replace(self, **changes)

    def config_dict(self) -> dict[str, Any]:
        """Plain-dict copy of config, for persistence and serialization."""
        return dict(self.config) if isinstance(self.config, Mapping) else self.config

    def sort_key(self) -> tuple[int, str]:
        return (self.order, self.rule_id)

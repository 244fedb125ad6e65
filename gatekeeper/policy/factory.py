"""
Gatekeeper Policy Engine — Rule Factory
=======================================
Builds runtime rules from persisted (type, config) pairs through a
type → rule-class table. Validation belongs to each rule class; the
factory only dispatches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Iterable, Mapping, Optional

from gatekeeper.config.settings import SandboxLimits
from gatekeeper.policy.contracts import BaseRule
from gatekeeper.policy.exceptions import UnknownRuleTypeError
from gatekeeper.policy.rules import BUILTIN_RULES

logger = logging.getLogger("gatekeeper.policy")


@dataclass(frozen=True)
class RuleTypeInfo:
    """One entry of the rule-type catalog (drives admin form generation)."""

    type: str
    description: str
    config_schema: Mapping[str, Any]


class RuleFactory:
    """
    Type → rule-class table.

    Usage:
        factory = RuleFactory()
        rule = factory.create("role_based", {"roles": ["admin"]})
    """

    def __init__(
        self,
        rule_classes: Optional[Iterable[type[BaseRule]]] = None,
        limits: Optional[SandboxLimits] = None,
    ):
        self._limits = limits or SandboxLimits()
        self._classes: dict[str, type[BaseRule]] = {}
        self._lock = Lock()
        for rule_class in BUILTIN_RULES if rule_classes is None else rule_classes:
            self.register(rule_class)

    def register(self, rule_class: type[BaseRule]) -> None:
        if not isinstance(rule_class, type) or not issubclass(rule_class, BaseRule):
            raise TypeError(
                f"Expected BaseRule subclass, got {rule_class!r}."
            )
        if getattr(rule_class, "__abstractmethods__", None):
            raise TypeError(f"Rule class {rule_class.__name__} is abstract.")

        with self._lock:
            existing = self._classes.get(rule_class.rule_type)
            if existing is not None and existing is not rule_class:
                raise ValueError(
                    f"Rule type '{rule_class.rule_type}' is already "
                    f"registered by {existing.__name__}."
                )
            self._classes[rule_class.rule_type] = rule_class

        logger.debug(f"Rule type registered: {rule_class.rule_type}")

    def rule_types(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._classes))

    def create(self, rule_type: str, config: Optional[Mapping[str, Any]]) -> BaseRule:
        """
        Build a rule. Raises UnknownRuleTypeError, RuleConfigError or
        ScriptCompileError; never returns a half-built rule.
        """
        with self._lock:
            rule_class = self._classes.get(rule_type)
        if rule_class is None:
            raise UnknownRuleTypeError(rule_type)
        return rule_class.from_config(config, limits=self._limits)

    def validate(self, rule_type: str, config: Optional[Mapping[str, Any]]) -> None:
        """Same checks as create(); used by admin before persisting."""
        self.create(rule_type, config)

    def catalog(self) -> tuple[RuleTypeInfo, ...]:
        with self._lock:
            classes = [self._classes[name] for name in sorted(self._classes)]
        return tuple(
            RuleTypeInfo(
                type=rule_class.rule_type,
                description=rule_class.description,
                config_schema=rule_class.config_schema,
            )
            for rule_class in classes
        )

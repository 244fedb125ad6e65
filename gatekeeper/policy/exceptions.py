"""
Gatekeeper Policy Engine — Exceptions
=====================================
Structured errors for rule construction and registry builds.

Evaluation faults are NOT errors here: a rule that fails while
evaluating simply counts as False inside its chain.
"""

from __future__ import annotations

from gatekeeper.errors import GatekeeperError


class PolicyEngineError(GatekeeperError):
    """Base error for policy engine operations."""
    pass


class RuleConfigError(PolicyEngineError):
    """A rule's persisted config does not satisfy its type."""

    def __init__(self, rule_type: str, message: str):
        self.rule_type = rule_type
        super().__init__(f"Invalid config for rule type '{rule_type}': {message}")


class UnknownRuleTypeError(PolicyEngineError):
    """No rule class is registered under the requested type tag."""

    def __init__(self, rule_type):
        self.rule_type = rule_type
        super().__init__(f"Unknown rule type: '{rule_type}'.")


class ScriptCompileError(RuleConfigError):
    """Scripted predicate source failed to parse or used a forbidden construct."""

    def __init__(self, message: str, lineno: int | None = None):
        self.lineno = lineno
        where = f" (line {lineno})" if lineno is not None else ""
        super().__init__("custom_script", f"{message}{where}")


class SandboxLimitExceeded(PolicyEngineError):
    """A scripted predicate ran past one of its execution budgets."""

    def __init__(self, limit: str, message: str):
        self.limit = limit
        super().__init__(f"Sandbox limit '{limit}' exceeded: {message}")


class RegistryBuildError(PolicyEngineError):
    """The policy store could not be read while rebuilding the registry."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(
            f"Policy registry rebuild failed: {type(cause).__name__}: {cause}"
        )

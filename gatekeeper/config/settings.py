"""
Gatekeeper Config — Engine Settings
====================================
Deployment-tunable knobs of the decision engine.

Values come from the Django ``GATEKEEPER`` setting when Django is
configured, otherwise from the defaults below. Settings are frozen:
an engine built with them never observes a change.

Example (config/settings.py):

    GATEKEEPER = {
        "BYPASS_ROLES": ["admin", "superadmin"],
        "SANDBOX": {"MAX_STEPS": 10000, "MAX_SECONDS": 0.05},
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from gatekeeper.identity.principal import ADMIN_ROLE, SUPERADMIN_ROLE

DEFAULT_BYPASS_ROLES = frozenset({ADMIN_ROLE, SUPERADMIN_ROLE})


# ══════════════════════════════════════════════════════════════
# SANDBOX LIMITS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SandboxLimits:
    """Execution budget for one scripted predicate evaluation."""

    max_steps: int = 10_000
    max_seconds: float = 0.05
    max_sequence_length: int = 10_000
    max_exponent: int = 1_000

    def __post_init__(self) -> None:
        for name in ("max_steps", "max_sequence_length", "max_exponent"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer.")
        if not isinstance(self.max_seconds, (int, float)) or self.max_seconds <= 0:
            raise ValueError("max_seconds must be a positive number.")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "SandboxLimits":
        defaults = cls()
        return cls(
            max_steps=raw.get("MAX_STEPS", defaults.max_steps),
            max_seconds=raw.get("MAX_SECONDS", defaults.max_seconds),
            max_sequence_length=raw.get(
                "MAX_SEQUENCE_LENGTH", defaults.max_sequence_length
            ),
            max_exponent=raw.get("MAX_EXPONENT", defaults.max_exponent),
        )


# ══════════════════════════════════════════════════════════════
# ENGINE SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EngineSettings:
    """
    Engine-wide settings.

    bypass_roles: principal roles that pass the RBAC gate unconditionally.
    sandbox:      limits applied to every scripted predicate.
    """

    bypass_roles: frozenset[str] = DEFAULT_BYPASS_ROLES
    sandbox: SandboxLimits = field(default_factory=SandboxLimits)

    def __post_init__(self) -> None:
        if not isinstance(self.bypass_roles, frozenset):
            object.__setattr__(self, "bypass_roles", frozenset(self.bypass_roles))
        for role in self.bypass_roles:
            if not isinstance(role, str) or not role:
                raise ValueError("bypass_roles must contain non-empty strings.")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "EngineSettings":
        return cls(
            bypass_roles=frozenset(raw.get("BYPASS_ROLES", DEFAULT_BYPASS_ROLES)),
            sandbox=SandboxLimits.from_mapping(raw.get("SANDBOX", {})),
        )

    @classmethod
    def from_django(cls) -> "EngineSettings":
        """
        Read ``settings.GATEKEEPER``. Falls back to defaults when Django
        settings are not configured.
        """
        from django.conf import settings
        from django.core.exceptions import ImproperlyConfigured

        try:
            raw = getattr(settings, "GATEKEEPER", {})
        except ImproperlyConfigured:
            return cls()

        return cls.from_mapping(raw)

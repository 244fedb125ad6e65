"""
Gatekeeper Config - Public API
==============================
"""

from gatekeeper.config.settings import (
    DEFAULT_BYPASS_ROLES,
    EngineSettings,
    SandboxLimits,
)

__all__ = [
    "DEFAULT_BYPASS_ROLES",
    "EngineSettings",
    "SandboxLimits",
]

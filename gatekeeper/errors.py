"""
Gatekeeper — Root Error
========================
Every error raised by the engine or its admin surface derives from
GatekeeperError, so collaborators can catch the whole family at once.
"""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base error for all gatekeeper failures."""
    pass

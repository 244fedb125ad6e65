"""
Gatekeeper Policy Engine — Static Policies
==========================================
Code-defined default chains. Each entry is a policy key and its rules
as persisted-style (type, config) pairs, built through the RuleFactory
like dynamic rules. A dynamic policy of an organization overrides the
static chain for that organization only.
"""

from __future__ import annotations

from typing import Any, Mapping

_SAME_ORG = ("same_organization", {})
_OWNERSHIP = ("ownership", {})


def _roles(*roles: str) -> tuple[str, Mapping[str, Any]]:
    return ("role_based", {"roles": list(roles)})


STATIC_POLICIES: tuple[tuple[str, tuple[tuple[str, Mapping[str, Any]], ...]], ...] = (
    # ── Customer ──────────────────────────────────────────────
    ("customer:read", (_SAME_ORG, _roles("admin", "user"))),
    ("customer:create", (_roles("admin", "user"),)),
    ("customer:update", (_SAME_ORG, _OWNERSHIP)),
    ("customer:delete", (_SAME_ORG, _roles("admin"))),
    ("customer:assign", (_SAME_ORG, _roles("admin", "manager"))),
    # ── Deal ──────────────────────────────────────────────────
    ("deal:read", (_SAME_ORG, _roles("admin", "user"))),
    ("deal:create", (_roles("admin", "user"),)),
    ("deal:update", (_SAME_ORG, _OWNERSHIP)),
    ("deal:delete", (_SAME_ORG, _roles("admin"))),
    # ── Task ──────────────────────────────────────────────────
    ("task:read", (_SAME_ORG, _roles("admin", "user"))),
    ("task:create", (_roles("admin", "user"),)),
    ("task:update", (_SAME_ORG, _OWNERSHIP)),
    ("task:delete", (_SAME_ORG, _roles("admin"))),
    # ── API keys (admin only) ─────────────────────────────────
    ("api_key:create", (_roles("admin"),)),
    ("api_key:read", (_roles("admin"),)),
    ("api_key:update", (_roles("admin"),)),
    ("api_key:delete", (_roles("admin"),)),
    # ── Webhooks (admin only) ─────────────────────────────────
    ("webhook:create", (_roles("admin"),)),
    ("webhook:read", (_roles("admin"),)),
    ("webhook:update", (_roles("admin"),)),
    ("webhook:delete", (_roles("admin"),)),
    # ── Product ───────────────────────────────────────────────
    ("product:read", (_SAME_ORG, _roles("admin", "user"))),
    ("product:create", (_roles("admin"),)),
    ("product:update", (_SAME_ORG, _roles("admin"))),
    ("product:delete", (_SAME_ORG, _roles("admin"))),
)

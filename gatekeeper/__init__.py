"""
Gatekeeper — Access Decision Engine
====================================
RBAC + ABAC access decisions for a multi-tenant CRM.

Decision is evaluation, not side effect.
Undefined policy means deny.
A failing rule means deny.
"""

__version__ = "1.0.0"

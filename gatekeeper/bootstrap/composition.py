"""
Gatekeeper Bootstrap — Composition Root
=======================================
Wires stores, settings, the RBAC evaluator, the policy registry, the
orchestrator and the admin surfaces into one AccessControl bundle.

Seeding the permission catalog is an explicit step here (seed=True);
nothing else in the engine writes at construction time.

Usage:
    access = build_access_control()                 # in-memory
    access = build_db_access_control()              # Django ORM stores
    access.orchestrator.decide(principal, "customer", "read", instance)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from gatekeeper.access.audit import AuditSink
from gatekeeper.access.loader import ResourceLoader
from gatekeeper.access.orchestrator import AccessDecisionOrchestrator
from gatekeeper.access.service import AccessControlService
from gatekeeper.admin.policies import DynamicPolicyAdmin
from gatekeeper.admin.roles import RoleAdmin
from gatekeeper.admin.validation import IdProvider
from gatekeeper.clock import Clock
from gatekeeper.config.settings import EngineSettings
from gatekeeper.permissions.catalog import PermissionCatalog, seed_permissions
from gatekeeper.permissions.db_provider import DbRoleStore
from gatekeeper.permissions.evaluator import PermissionEvaluator
from gatekeeper.permissions.provider import InMemoryRoleStore, RoleStore
from gatekeeper.policy.db_provider import DbPolicyStore
from gatekeeper.policy.factory import RuleFactory
from gatekeeper.policy.provider import InMemoryPolicyStore, PolicyStore
from gatekeeper.policy.registry import PolicyRegistry

logger = logging.getLogger("gatekeeper.bootstrap")


@dataclass(frozen=True)
class AccessControl:
    settings: EngineSettings
    role_store: RoleStore
    policy_store: PolicyStore
    catalog: PermissionCatalog
    evaluator: PermissionEvaluator
    registry: PolicyRegistry
    orchestrator: AccessDecisionOrchestrator
    service: AccessControlService
    role_admin: RoleAdmin
    policy_admin: DynamicPolicyAdmin


def build_access_control(
    role_store: Optional[RoleStore] = None,
    policy_store: Optional[PolicyStore] = None,
    settings: Optional[EngineSettings] = None,
    loader: Optional[ResourceLoader] = None,
    audit_sink: Optional[AuditSink] = None,
    clock: Optional[Clock] = None,
    ids: Optional[IdProvider] = None,
    seed: bool = True,
) -> AccessControl:
    settings = settings or EngineSettings()
    role_store = role_store if role_store is not None else InMemoryRoleStore()
    policy_store = policy_store if policy_store is not None else InMemoryPolicyStore()

    if seed:
        seed_permissions(role_store)

    factory = RuleFactory(limits=settings.sandbox)
    registry = PolicyRegistry(store=policy_store, factory=factory)
    evaluator = PermissionEvaluator(role_store, bypass_roles=settings.bypass_roles)
    orchestrator = AccessDecisionOrchestrator(evaluator, registry)

    for issue in registry.errors:
        logger.warning(
            f"Dynamic policy '{issue.policy_key}' of organization "
            f"'{issue.organization_id}' is rejected: {issue.message}"
        )

    logger.info(
        f"Access control ready: {len(registry.static_keys())} static policies, "
        f"{len(registry.snapshot.dynamic)} dynamic chains, "
        f"bypass roles={sorted(settings.bypass_roles)}"
    )

    return AccessControl(
        settings=settings,
        role_store=role_store,
        policy_store=policy_store,
        catalog=PermissionCatalog(role_store),
        evaluator=evaluator,
        registry=registry,
        orchestrator=orchestrator,
        service=AccessControlService(
            orchestrator, loader=loader, audit_sink=audit_sink, clock=clock
        ),
        role_admin=RoleAdmin(role_store, ids=ids),
        policy_admin=DynamicPolicyAdmin(policy_store, registry, ids=ids),
    )


def build_db_access_control(
    loader: Optional[ResourceLoader] = None,
    audit_sink: Optional[AuditSink] = None,
    clock: Optional[Clock] = None,
    seed: bool = True,
) -> AccessControl:
    """ORM-backed stores, settings read from Django's GATEKEEPER setting."""
    return build_access_control(
        role_store=DbRoleStore(),
        policy_store=DbPolicyStore(),
        settings=EngineSettings.from_django(),
        loader=loader,
        audit_sink=audit_sink,
        clock=clock,
        seed=seed,
    )

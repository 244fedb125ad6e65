"""
Gatekeeper Policy Engine — DB-backed Policy Store
=================================================
Reads and writes dynamic policies and rules through the policy_store
Django app. Subscribers are notified through transaction.on_commit,
so a write rolled back by an enclosing transaction never reaches them.

Models are imported lazily so the engine imports without Django
configured.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from gatekeeper.policy.models import DynamicPolicy, PolicyRule
from gatekeeper.policy.provider import ChangeNotifier


def _canonical_uuid(value) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _to_policy(row) -> DynamicPolicy:
    return DynamicPolicy(
        policy_id=str(row.policy_id),
        key=row.key,
        name=row.name,
        organization_id=row.organization_id,
        description=row.description,
        active=row.active,
    )


def _to_rule(row) -> PolicyRule:
    return PolicyRule(
        rule_id=str(row.rule_id),
        policy_id=str(row.policy_id),
        name=row.name,
        type=row.type,
        config=row.config,
        order=row.order,
        active=row.active,
        description=row.description,
    )


class DbPolicyStore(ChangeNotifier):
    # ── Policies ──────────────────────────────────────────────
    def list_policies(
        self, organization_id: Optional[str] = None
    ) -> tuple[DynamicPolicy, ...]:
        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow

        rows = PolicyRow.objects.all()
        if organization_id is not None:
            rows = rows.filter(organization_id=organization_id)
        rows = rows.order_by("organization_id", "key", "policy_id")
        return tuple(_to_policy(row) for row in rows)

    def get_policy(self, policy_id: str) -> DynamicPolicy | None:
        canonical = _canonical_uuid(policy_id)
        if canonical is None:
            return None

        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow

        row = PolicyRow.objects.filter(policy_id=canonical).first()
        return None if row is None else _to_policy(row)

    def find_policy_by_key(
        self, key: str, organization_id: str
    ) -> DynamicPolicy | None:
        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow

        row = PolicyRow.objects.filter(
            key=key, organization_id=organization_id
        ).first()
        return None if row is None else _to_policy(row)

    def save_policy(self, policy: DynamicPolicy) -> DynamicPolicy:
        canonical = _canonical_uuid(policy.policy_id)
        if canonical is None:
            raise ValueError(f"policy_id '{policy.policy_id}' is not a valid UUID.")

        from django.db import transaction

        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow

        with transaction.atomic():
            clash = (
                PolicyRow.objects.filter(
                    key=policy.key,
                    organization_id=policy.organization_id,
                )
                .exclude(policy_id=canonical)
                .exists()
            )
            if clash:
                raise ValueError(
                    f"Policy key '{policy.key}' already exists in "
                    f"organization '{policy.organization_id}'."
                )
            PolicyRow.objects.update_or_create(
                policy_id=canonical,
                defaults={
                    "organization_id": policy.organization_id,
                    "key": policy.key,
                    "name": policy.name,
                    "description": policy.description,
                    "active": policy.active,
                },
            )
            transaction.on_commit(self._notify)
        return policy

    def delete_policy(self, policy_id: str) -> bool:
        canonical = _canonical_uuid(policy_id)
        if canonical is None:
            return False

        from django.db import transaction

        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow
        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        with transaction.atomic():
            if RuleRow.objects.filter(policy_id=canonical).exists():
                raise ValueError(f"Policy '{policy_id}' still has rules.")
            deleted, _ = PolicyRow.objects.filter(policy_id=canonical).delete()
            if deleted:
                transaction.on_commit(self._notify)
        return deleted > 0

    # ── Rules ─────────────────────────────────────────────────
    def list_rules(self, policy_id: Optional[str] = None) -> tuple[PolicyRule, ...]:
        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        rows = RuleRow.objects.all()
        if policy_id is not None:
            canonical = _canonical_uuid(policy_id)
            if canonical is None:
                return tuple()
            rows = rows.filter(policy_id=canonical)
        rows = rows.order_by("policy_id", "order", "rule_id")
        return tuple(
            sorted(
                (_to_rule(row) for row in rows),
                key=lambda rule: (rule.policy_id,) + rule.sort_key(),
            )
        )

    def get_rule(self, rule_id: str) -> PolicyRule | None:
        canonical = _canonical_uuid(rule_id)
        if canonical is None:
            return None

        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        row = RuleRow.objects.filter(rule_id=canonical).first()
        return None if row is None else _to_rule(row)

    def count_rules(self, policy_id: str) -> int:
        canonical = _canonical_uuid(policy_id)
        if canonical is None:
            return 0

        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        return RuleRow.objects.filter(policy_id=canonical).count()

    def save_rules(self, rules: Iterable[PolicyRule]) -> tuple[PolicyRule, ...]:
        rules = tuple(rules)
        if not rules:
            return rules

        from django.db import transaction

        from gatekeeper.policy_store.models import DynamicPolicy as PolicyRow
        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        with transaction.atomic():
            for rule in rules:
                rule_uuid = _canonical_uuid(rule.rule_id)
                policy_uuid = _canonical_uuid(rule.policy_id)
                if rule_uuid is None or policy_uuid is None:
                    raise ValueError(
                        f"Rule '{rule.rule_id}' has a non-UUID identifier."
                    )
                if not PolicyRow.objects.filter(policy_id=policy_uuid).exists():
                    raise ValueError(
                        f"Rule '{rule.rule_id}' references unknown policy "
                        f"'{rule.policy_id}'."
                    )
                RuleRow.objects.update_or_create(
                    rule_id=rule_uuid,
                    defaults={
                        "policy_id": policy_uuid,
                        "name": rule.name,
                        "description": rule.description,
                        "type": rule.type,
                        "config": rule.config_dict(),
                        "order": rule.order,
                        "active": rule.active,
                    },
                )
            transaction.on_commit(self._notify)
        return rules

    def delete_rule(self, rule_id: str) -> bool:
        canonical = _canonical_uuid(rule_id)
        if canonical is None:
            return False

        from django.db import transaction

        from gatekeeper.policy_store.models import PolicyRule as RuleRow

        with transaction.atomic():
            deleted, _ = RuleRow.objects.filter(rule_id=canonical).delete()
            if deleted:
                transaction.on_commit(self._notify)
        return deleted > 0

"""
Gatekeeper Policy Store - Relational Policy State
=================================================
Organization-scoped dynamic policies and their ordered rules.
"""

from __future__ import annotations

from django.db import models


class DynamicPolicy(models.Model):
    policy_id = models.UUIDField(primary_key=True, editable=False)
    organization_id = models.CharField(max_length=64)
    key = models.CharField(max_length=100)
    name = models.CharField(max_length=150)
    description = models.TextField(default="", blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "gk_dynamic_policies"
        ordering = ["organization_id", "key", "policy_id"]
        indexes = [
            models.Index(
                fields=["organization_id", "active"],
                name="idx_policy_org_active",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "key"],
                name="uq_policy_org_key",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.key} ({self.organization_id})"


class PolicyRule(models.Model):
    rule_id = models.UUIDField(primary_key=True, editable=False)
    policy = models.ForeignKey(
        DynamicPolicy,
        on_delete=models.PROTECT,
        related_name="rules",
        db_column="policy_id",
    )
    name = models.CharField(max_length=150)
    description = models.TextField(null=True, blank=True)
    type = models.CharField(max_length=50)
    config = models.JSONField(default=dict, blank=True)
    order = models.IntegerField(default=1)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "gk_policy_rules"
        ordering = ["policy_id", "order", "rule_id"]
        indexes = [
            models.Index(fields=["policy", "order"], name="idx_rule_policy_order"),
        ]

    def __str__(self) -> str:
        return f"{self.name} [{self.type}]"

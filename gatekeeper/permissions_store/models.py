"""
Gatekeeper Permissions Store - Relational RBAC State
====================================================
Permission catalog rows, organization-scoped roles, and the
user → role references behind User.roles.
"""

from __future__ import annotations

from django.db import models


class Permission(models.Model):
    slug = models.CharField(primary_key=True, max_length=100)
    resource = models.CharField(max_length=50)
    action = models.CharField(max_length=50)
    name = models.CharField(max_length=150)
    description = models.CharField(max_length=255, default="", blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "gk_permissions"
        ordering = ["resource", "action"]
        constraints = [
            models.UniqueConstraint(
                fields=["resource", "action"],
                name="uq_permission_resource_action",
            ),
        ]

    def __str__(self) -> str:
        return self.slug


class Role(models.Model):
    role_id = models.UUIDField(primary_key=True, editable=False)
    organization_id = models.CharField(max_length=64)
    name = models.CharField(max_length=150)
    slug = models.CharField(max_length=100)
    description = models.TextField(null=True, blank=True)
    is_default = models.BooleanField(default=False)
    permissions = models.ManyToManyField(
        Permission,
        related_name="roles",
        blank=True,
        db_table="gk_role_permissions",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "gk_roles"
        ordering = ["organization_id", "slug", "role_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "slug"],
                name="uq_role_org_slug",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.slug} ({self.organization_id})"


class RoleAssignment(models.Model):
    user_id = models.CharField(max_length=255)
    role = models.ForeignKey(
        Role,
        on_delete=models.PROTECT,
        related_name="assignments",
        db_column="role_id",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "gk_role_assignments"
        ordering = ["user_id", "role_id", "id"]
        indexes = [
            models.Index(fields=["user_id"], name="idx_role_asg_user"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "role"],
                name="uq_role_assignment_user_role",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}:{self.role_id}"

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Permission",
            fields=[
                (
                    "slug",
                    models.CharField(max_length=100, primary_key=True, serialize=False),
                ),
                ("resource", models.CharField(max_length=50)),
                ("action", models.CharField(max_length=50)),
                ("name", models.CharField(max_length=150)),
                (
                    "description",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "gk_permissions",
                "ordering": ["resource", "action"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("resource", "action"),
                        name="uq_permission_resource_action",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Role",
            fields=[
                (
                    "role_id",
                    models.UUIDField(editable=False, primary_key=True, serialize=False),
                ),
                ("organization_id", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=150)),
                ("slug", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, null=True)),
                ("is_default", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "permissions",
                    models.ManyToManyField(
                        blank=True,
                        db_table="gk_role_permissions",
                        related_name="roles",
                        to="gatekeeper_permissions_store.permission",
                    ),
                ),
            ],
            options={
                "db_table": "gk_roles",
                "ordering": ["organization_id", "slug", "role_id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("organization_id", "slug"),
                        name="uq_role_org_slug",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoleAssignment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("user_id", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "role",
                    models.ForeignKey(
                        db_column="role_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="assignments",
                        to="gatekeeper_permissions_store.role",
                    ),
                ),
            ],
            options={
                "db_table": "gk_role_assignments",
                "ordering": ["user_id", "role_id", "id"],
                "indexes": [
                    models.Index(fields=["user_id"], name="idx_role_asg_user"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user_id", "role"),
                        name="uq_role_assignment_user_role",
                    ),
                ],
            },
        ),
    ]

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DynamicPolicy",
            fields=[
                (
                    "policy_id",
                    models.UUIDField(editable=False, primary_key=True, serialize=False),
                ),
                ("organization_id", models.CharField(max_length=64)),
                ("key", models.CharField(max_length=100)),
                ("name", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True, default="")),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "gk_dynamic_policies",
                "ordering": ["organization_id", "key", "policy_id"],
                "indexes": [
                    models.Index(
                        fields=["organization_id", "active"],
                        name="idx_policy_org_active",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("organization_id", "key"),
                        name="uq_policy_org_key",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PolicyRule",
            fields=[
                (
                    "rule_id",
                    models.UUIDField(editable=False, primary_key=True, serialize=False),
                ),
                ("name", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True, null=True)),
                ("type", models.CharField(max_length=50)),
                ("config", models.JSONField(blank=True, default=dict)),
                ("order", models.IntegerField(default=1)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "policy",
                    models.ForeignKey(
                        db_column="policy_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="rules",
                        to="gatekeeper_policy_store.dynamicpolicy",
                    ),
                ),
            ],
            options={
                "db_table": "gk_policy_rules",
                "ordering": ["policy_id", "order", "rule_id"],
                "indexes": [
                    models.Index(
                        fields=["policy", "order"],
                        name="idx_rule_policy_order",
                    ),
                ],
            },
        ),
    ]

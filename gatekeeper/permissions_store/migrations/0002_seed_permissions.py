"""
Seed the permission catalog once at deployment.
Idempotent: skipped when any permission row already exists.
"""

from django.db import migrations


def seed_permissions(apps, schema_editor):
    from gatekeeper.permissions.catalog import default_permissions

    Permission = apps.get_model("gatekeeper_permissions_store", "Permission")
    if Permission.objects.exists():
        return

    Permission.objects.bulk_create(
        [
            Permission(
                slug=permission.slug,
                resource=permission.resource,
                action=permission.action,
                name=permission.name,
                description=permission.description,
            )
            for permission in default_permissions()
        ]
    )


class Migration(migrations.Migration):
    dependencies = [
        ("gatekeeper_permissions_store", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_permissions, migrations.RunPython.noop),
    ]

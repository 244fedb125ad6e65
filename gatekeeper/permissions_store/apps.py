"""
Gatekeeper Permissions Store - App Configuration
================================================
Persistent permission catalog, roles, and user role assignments.
"""

from django.apps import AppConfig


class PermissionsStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "gatekeeper.permissions_store"
    label = "gatekeeper_permissions_store"
    verbose_name = "Gatekeeper Permissions Store"

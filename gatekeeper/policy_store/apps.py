"""
Gatekeeper Policy Store - App Configuration
===========================================
Persistent dynamic policies and their rules.
"""

from django.apps import AppConfig


class PolicyStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "gatekeeper.policy_store"
    label = "gatekeeper_policy_store"
    verbose_name = "Gatekeeper Policy Store"

"""
Gatekeeper – Django Settings (Infrastructure Only)
==================================================
Django provides the ORM and migrations for the two persistence apps.
The decision engine itself does not depend on Django being configured.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get(
    "GATEKEEPER_SECRET_KEY", "gatekeeper-dev-key-replace-before-deployment"
)

DEBUG = os.environ.get("GATEKEEPER_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── Gatekeeper persistence ────────────────────────────
    "gatekeeper.permissions_store",
    "gatekeeper.policy_store",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
# Roles and policies use UUIDs explicitly. This is a Django fallback only.
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Engine ────────────────────────────────────────────────────
GATEKEEPER = {
    "BYPASS_ROLES": ["admin", "superadmin"],
    "SANDBOX": {
        "MAX_STEPS": 10_000,
        "MAX_SECONDS": 0.05,
        "MAX_SEQUENCE_LENGTH": 10_000,
        "MAX_EXPONENT": 1_000,
    },
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "gatekeeper": {
            "handlers": ["console"],
            "level": os.environ.get("GATEKEEPER_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

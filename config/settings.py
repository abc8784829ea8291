"""
UnitEcon - Django Settings (Infrastructure Only)
==================================================
Django serves as the container for the relational blob store behind
the persistence gateway. The finance engine does not depend on Django;
only core.storage.service and engines/finance/wiring.py do.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("UNITECON_SECRET_KEY", "unitecon-dev-key-replace-before-deployment")

DEBUG = os.environ.get("UNITECON_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── UnitEcon Modules ──────────────────────────────────
    "core.storage.apps.CoreStorageConfig",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("UNITECON_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Sync Coordinator ──────────────────────────────────────────
# Read by engines/finance/wiring.py via SyncConfig.from_mapping().
UNITECON_SYNC = {
    "DEBOUNCE_MS": int(os.environ.get("UNITECON_SYNC_DEBOUNCE_MS", "500")),
    "DATA_KEY": os.environ.get("UNITECON_DATA_KEY", "finance_data"),
    "SCENARIOS_KEY": os.environ.get("UNITECON_SCENARIOS_KEY", "finance_scenarios"),
    "VALIDATION_CACHE_SIZE": int(os.environ.get("UNITECON_VALIDATION_CACHE_SIZE", "128")),
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "unitecon": {
            "handlers": ["console"],
            "level": os.environ.get("UNITECON_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

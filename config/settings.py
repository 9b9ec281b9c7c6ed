"""
DineIn - Django Settings (Infrastructure Only)
================================================
Django serves as the framework container for the event store and the
HTTP adapter. Engines never read these settings; the adapter wiring
passes plain values in.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dinein-dev-key-replace-before-deployment")

DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "core.event_store",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL ───────────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

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
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── DineIn ────────────────────────────────────────────────────
# ONLINE_FEE_RATE is a percentage of the net total charged on the
# online payment path. EVENT_STORE is "memory" or "database".
DINEIN = {
    "CURRENCY": os.environ.get("DINEIN_CURRENCY", "USD"),
    "ONLINE_FEE_RATE": os.environ.get("DINEIN_ONLINE_FEE_RATE", "3"),
    "PAYMENT_GATEWAY_SECRET": os.environ.get("DINEIN_PAYMENT_GATEWAY_SECRET", ""),
    "EVENT_STORE": os.environ.get("DINEIN_EVENT_STORE", "memory"),
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "dinein": {
            "handlers": ["console"],
            "level": os.environ.get("DINEIN_LOG_LEVEL", "INFO"),
        },
    },
}

"""
Development settings for Slotwise.

These settings override the base settings for local development environments.
"""

from .base import *  # noqa: F401,F403

SECRET_KEY = env("SECRET_KEY", "django-insecure-development-key-not-for-production")

DEBUG = env("DEBUG", "True") == "True"

ALLOWED_HOSTS = ["*"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": env("POSTGRES_DB", "slotwise"),
        "USER": env("POSTGRES_USER", "slotwise"),
        "PASSWORD": env("POSTGRES_PASSWORD", "slotwise"),
        "HOST": env("POSTGRES_HOST", "localhost"),
        "PORT": env("POSTGRES_PORT", "5432"),
        "CONN_MAX_AGE": 300,
    }
}

if env("USE_SQLITE", "False").lower() == "true":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# Allow a local run without Redis
if env("USE_LOCMEM_CACHE", "False").lower() == "true":
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "slotwise-dev",
        }
    }

CORS_ALLOW_ALL_ORIGINS = True

LOGGING["loggers"]["slotwise"]["level"] = "DEBUG"
LOGGING["loggers"]["apps"]["level"] = "DEBUG"

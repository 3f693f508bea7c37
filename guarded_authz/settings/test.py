"""
Test settings for the guarded_authz app.
"""

import os

from guarded_authz import ROOT_DIRECTORY

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": "default.db",
        "USER": "",
        "PASSWORD": "",
        "HOST": "",
        "PORT": "",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "guarded-authz-tests",
    }
}

INSTALLED_APPS = (
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.messages",
    "django.contrib.sessions",
    "guarded_authz.apps.GuardedAuthzConfig",
)

MIDDLEWARE = [
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

SECRET_KEY = "test-secret-key"

USE_TZ = True

# guarded_authz configuration
GUARDED_AUTHZ_GUARDS = ["web", "api"]
GUARDED_AUTHZ_DEFAULT_GUARD = "web"
GUARDED_AUTHZ_CACHE_TTL = 24 * 60 * 60
GUARDED_AUTHZ_CACHE_KEY_PREFIX = "guarded_authz.tests"
GUARDED_AUTHZ_STORE_READ_RETRIES = 1
CASBIN_MODEL = os.path.join(ROOT_DIRECTORY, "engine", "config", "model.conf")

"""
Configurações para CI (GitHub Actions e outros pipelines).

Usa SQLite em memória e storage de estáticos sem manifest, sem integrações externas.
"""

from __future__ import annotations

from .base import *  # noqa: F401, F403

DEBUG = False
SECRET_KEY = "ci-secret-key-not-for-production"
ALLOWED_HOSTS = ["testserver", "localhost", "127.0.0.1"]

# SQLite em memória: mais rápido e não deixa arquivos
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Sem collectstatic nos testes
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

# Desabilita integrações externas durante testes
X_CLIENT_ID = "ci-client"
X_CLIENT_SECRET = "ci-secret"
X_CALLBACK_URL = "http://testserver/callback"
TWITTERAPI_IO_KEY = "ci-key"
WEBHOOK_URL = "http://webhook.invalid/score"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "ci-cache",
    }
}

"""Development settings."""

from __future__ import annotations

from .base import *  # noqa

DEBUG = env.bool("DJANGO_DEBUG", default=True)

SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="django-insecure-dev-secret-key",
)

ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS", default=["127.0.0.1", "localhost"])

# Em dev o callback do X costuma apontar para localhost
X_CALLBACK_URL = env("X_CALLBACK_URL", default="http://127.0.0.1:8000/callback")

# Cookie de sessão sem Secure para funcionar em http://localhost
SESSION_COOKIE_SECURE = False

INSTALLED_APPS += ["debug_toolbar"]  # noqa: F405

INTERNAL_IPS = ["127.0.0.1", "localhost"]

MIDDLEWARE = [
    "debug_toolbar.middleware.DebugToolbarMiddleware",
] + MIDDLEWARE  # noqa: F405

# Debug Toolbar: mostra painel lateral com tempo de request e templates
DEBUG_TOOLBAR_CONFIG = {
    "SHOW_TOOLBAR_CALLBACK": lambda request: DEBUG,
}

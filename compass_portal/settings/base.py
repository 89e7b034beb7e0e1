"""Base Django settings shared across all environments."""

from __future__ import annotations

from pathlib import Path

import environ

# --------------------------------------------------------------------------------------
# Paths & environment
# --------------------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent.parent
APPS_DIR = BASE_DIR / "compass_portal"

env = environ.Env(
    DJANGO_DEBUG=(bool, False),
    DJANGO_ALLOWED_HOSTS=(list, []),
)

ENV_FILE = BASE_DIR / ".env"
if ENV_FILE.exists():
    environ.Env.read_env(str(ENV_FILE))

# --------------------------------------------------------------------------------------
# Core settings
# --------------------------------------------------------------------------------------

SECRET_KEY = env("DJANGO_SECRET_KEY", default="django-insecure-change-me")
DEBUG = env.bool("DJANGO_DEBUG", default=False)
ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS", default=[])

# --------------------------------------------------------------------------------------
# Applications & middleware
# --------------------------------------------------------------------------------------

DJANGO_APPS = [
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS: list[str] = []

LOCAL_APPS: list[str] = [
    "gauge",
    "x_integration",
    "sentiment",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "compass_portal.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "compass_portal.wsgi.application"
ASGI_APPLICATION = "compass_portal.asgi.application"

# --------------------------------------------------------------------------------------
# Database
# --------------------------------------------------------------------------------------

# Nenhum app guarda estado em banco; mantido para o runner de testes do Django.
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# --------------------------------------------------------------------------------------
# Sessions (cookie assinado, sem estado no servidor)
# --------------------------------------------------------------------------------------

SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
SESSION_COOKIE_NAME = env("SESSION_COOKIE_NAME", default="fs_sess")
SESSION_COOKIE_AGE = env.int("SESSION_COOKIE_AGE", default=60 * 60 * 24 * 3)
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
MESSAGE_STORAGE = "django.contrib.messages.storage.cookie.CookieStorage"

# --------------------------------------------------------------------------------------
# Internationalisation
# --------------------------------------------------------------------------------------

LANGUAGE_CODE = env("DJANGO_LANGUAGE_CODE", default="en-us")
TIME_ZONE = env("DJANGO_TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

# --------------------------------------------------------------------------------------
# Static & media files
# --------------------------------------------------------------------------------------

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STATICFILES_DIRS: list[Path] = [BASE_DIR / "static"]
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# Arte de fundo (strongly-bearish.png, ..., strongly-bullish.png) e fontes
ASSETS_DIR = Path(env("GAUGE_ASSETS_DIR", default=str(BASE_DIR / "static" / "assets")))

# --------------------------------------------------------------------------------------
# X (Twitter) OAuth2 + twitterapi.io
# --------------------------------------------------------------------------------------

X_CLIENT_ID = env("X_CLIENT_ID", default="")
X_CLIENT_SECRET = env("X_CLIENT_SECRET", default="")
X_CALLBACK_URL = env("X_CALLBACK_URL", default="")
TWITTERAPI_IO_KEY = env("TWITTERAPI_IO_KEY", default="")
TWEET_COUNT = env("TWEET_COUNT", default="25")
INCLUDE_REPLIES = env("INCLUDE_REPLIES", default="false")
X_USER_AGENT = env("X_USER_AGENT", default="Fairscale-Compass/1.0")

# --------------------------------------------------------------------------------------
# Scoring webhook
# --------------------------------------------------------------------------------------

WEBHOOK_URL = env("WEBHOOK_URL", default="")
WEBHOOK_TIMEOUT = env.int("WEBHOOK_TIMEOUT", default=60)
# Com tallies zerados, usa a contagem de posts enviados como total (score 50)
SCORE_COUNT_FALLBACK = env.bool("SCORE_COUNT_FALLBACK", default=True)

# --------------------------------------------------------------------------------------
# Gauge rendering
# --------------------------------------------------------------------------------------

# "raster" (PNG gerado no servidor) ou "canvas" (desenhado no navegador)
GAUGE_RENDER_MODE = env("GAUGE_RENDER_MODE", default="raster")
GAUGE_ARC_SLICES = env.int("GAUGE_ARC_SLICES", default=24)

# Valores brutos: o parse tolerante e os limites ficam em gauge.config.RenderConfig
GAUGE_RAW_CONFIG = {
    "GAUGE_LEFT": env("GAUGE_LEFT", default="500"),
    "GAUGE_RIGHT": env("GAUGE_RIGHT", default="500"),
    "GAUGE_TOP": env("GAUGE_TOP", default="100"),
    "GAUGE_BOTTOM": env("GAUGE_BOTTOM", default="400"),
    "THRESH_SB": env("THRESH_SB", default="20"),
    "THRESH_B": env("THRESH_B", default="40"),
    "THRESH_N": env("THRESH_N", default="60"),
    "THRESH_BU": env("THRESH_BU", default="80"),
    "NEEDLE_LEN_SCALE": env("NEEDLE_LEN_SCALE", default="1.0"),
    "NEEDLE_WIDTH_FRAC": env("NEEDLE_WIDTH_FRAC", default="0.025"),
    "PFP_X": env("PFP_X", default="175"),
    "PFP_Y": env("PFP_Y", default="200"),
    "PFP_SIZE": env("PFP_SIZE", default="100"),
    "HANDLE_X": env("HANDLE_X", default="300"),
    "HANDLE_Y": env("HANDLE_Y", default="200"),
    "HANDLE_FONT_PX": env("HANDLE_FONT_PX", default="70"),
    "HANDLE_COLOR": env("HANDLE_COLOR", default="#ffffff"),
}

# --------------------------------------------------------------------------------------
# Misc
# --------------------------------------------------------------------------------------
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CSRF_TRUSTED_ORIGINS = env.list("DJANGO_CSRF_TRUSTED_ORIGINS", default=[])
SECURE_PROXY_SSL_HEADER = env.tuple(
    "DJANGO_SECURE_PROXY_SSL_HEADER", default=None
) or None

REQUEST_TIMING_THRESHOLD_MS = env.int("REQUEST_TIMING_THRESHOLD_MS", default=500)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s [%(levelname)s] %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": env("DJANGO_LOG_LEVEL", default="INFO"),
    },
    "loggers": {
        "gauge": {
            "handlers": ["console"],
            "level": env("GAUGE_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "matplotlib": {
            "level": "WARNING",
        },
    },
}

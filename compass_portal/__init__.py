import os

DEFAULT_SETTINGS_MODULE = "compass_portal.settings.dev"

os.environ.setdefault("DJANGO_SETTINGS_MODULE", DEFAULT_SETTINGS_MODULE)

__all__ = ["DEFAULT_SETTINGS_MODULE"]

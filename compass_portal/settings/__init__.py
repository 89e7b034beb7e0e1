"""
Settings package initializer.

The actual settings module is selected via the `DJANGO_SETTINGS_MODULE`
environment variable. Management commands default to the development
configuration (`compass_portal.settings.dev`), production entrypoints
point to `compass_portal.settings.prod` and the test suite runs with
`compass_portal.settings.ci`.
"""

from __future__ import annotations

import os

DEFAULT_SETTINGS_MODULE = "compass_portal.settings.dev"

# Não sobrescreve se a variável já estiver definida externamente.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", DEFAULT_SETTINGS_MODULE)

__all__ = ["DEFAULT_SETTINGS_MODULE"]

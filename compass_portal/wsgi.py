"""WSGI entrypoint (gunicorn compass_portal.wsgi:application -c gunicorn.conf.py)."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "compass_portal.settings.prod")

application = get_wsgi_application()

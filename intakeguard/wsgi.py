"""WSGI config for IntakeGuard."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "intakeguard.settings.dev")

application = get_wsgi_application()

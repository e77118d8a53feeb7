"""
Celery application for IntakeGuard.

Beat runs the periodic review-queue workers registered in
settings.QUEUE_WORKERS (see settings.base.CELERY_BEAT_SCHEDULE).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "intakeguard.settings.dev")

app = Celery("intakeguard")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

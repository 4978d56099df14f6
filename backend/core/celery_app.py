# core/celery_app.py

import os

from celery import Celery

# Set the default Django settings module for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

app = Celery("core")

# Broker, result backend and beat schedule come from CELERY_* settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up contracts.tasks
app.autodiscover_tasks()

app.conf.task_serializer = "json"
app.conf.result_serializer = "json"
app.conf.accept_content = ["json"]

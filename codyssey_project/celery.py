import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "codyssey_project.settings")

app = Celery("codyssey_project")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

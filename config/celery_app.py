from celery import Celery
from celery.signals import setup_logging

from config.bootstrap import use_default_settings

use_default_settings()

app = Celery("collabhub")

# All celery settings live in Django settings under the CELERY_ prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")


@setup_logging.connect
def config_loggers(*args, **kwargs):
    """Workers log through the same LOGGING dict as the web process."""
    from logging.config import dictConfig  # noqa: PLC0415

    from django.conf import settings  # noqa: PLC0415

    dictConfig(settings.LOGGING)


# Picks up collabhub.tasks.tasks and any other <app>.tasks module.
app.autodiscover_tasks()

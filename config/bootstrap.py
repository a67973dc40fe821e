import os

LOCAL_SETTINGS = "config.settings.local"
PRODUCTION_SETTINGS = "config.settings.production"


def use_default_settings() -> str:
    """Select the settings module for wsgi/asgi/celery entrypoints.

    An explicit ``DJANGO_SETTINGS_MODULE`` (pytest passes ``--ds``) always
    wins. Otherwise ``BUILD_ENV=local`` picks the local settings and anything
    else the production ones.
    """
    build_env = os.environ.get("BUILD_ENV", "production").lower()
    module = LOCAL_SETTINGS if build_env == "local" else PRODUCTION_SETTINGS
    return os.environ.setdefault("DJANGO_SETTINGS_MODULE", module)

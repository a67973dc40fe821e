"""
ASGI entrypoint for collabhub.

Socket.IO wraps Django: Engine.IO polling and WebSocket upgrades under
``settings.SOCKETIO_PATH`` go to the realtime server, everything else to the
Django application.

https://docs.djangoproject.com/en/dev/howto/deployment/asgi/
"""

from django.core.asgi import get_asgi_application

from config.bootstrap import use_default_settings

use_default_settings()

# Django must be set up before the realtime module imports models.
django_application = get_asgi_application()

from django.conf import settings  # noqa: E402
from socketio import ASGIApp  # noqa: E402

from collabhub.realtime.socketio import sio  # noqa: E402

application = ASGIApp(
    sio,
    other_asgi_app=django_application,
    socketio_path=settings.SOCKETIO_PATH,
)

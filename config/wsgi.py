"""
WSGI entrypoint for collabhub.

Serves the REST API only. Socket.IO needs the ASGI application in
``config.asgi``; run that under uvicorn when realtime events are required.
"""

from django.core.wsgi import get_wsgi_application

from config.bootstrap import use_default_settings

use_default_settings()

application = get_wsgi_application()

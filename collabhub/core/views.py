from __future__ import annotations

from typing import Any

from django.core.exceptions import ImproperlyConfigured
from rest_framework import status as http_status
from rest_framework.response import Response

from collabhub.core.cache import CollabCache
from collabhub.realtime.publisher import get_publisher


def envelope(message: str, *, status: int = http_status.HTTP_200_OK, **data: Any):
    return Response({"success": True, "message": message, **data}, status=status)


class ServiceMixin:
    """Build the view's domain service with the process cache and publisher."""

    service_class: type | None = None

    def get_service(self):
        if self.service_class is None:
            msg = f"{type(self).__name__} must define service_class"
            raise ImproperlyConfigured(msg)
        return self.service_class(cache=CollabCache(), publisher=get_publisher())

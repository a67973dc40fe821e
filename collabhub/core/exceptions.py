from __future__ import annotations

import logging
from typing import Any

from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    """Request is well-formed but clashes with current state (duplicate, full...)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = _("The request conflicts with the current state.")
    default_code = "conflict"


def _first_message(data: Any) -> str:
    if isinstance(data, dict):
        if "detail" in data:
            return str(data["detail"])
        for field, value in data.items():
            message = _first_message(value)
            return message if field == "non_field_errors" else f"{field}: {message}"
        return ""
    if isinstance(data, (list, tuple)):
        return _first_message(data[0]) if data else ""
    return str(data)


def api_exception_handler(exc, context):
    """Wrap DRF errors in the ``{"success": false, "message": ...}`` envelope."""
    response = exception_handler(exc, context)
    view = context.get("view")
    view_name = type(view).__name__ if view is not None else "unknown"
    if response is None:
        logger.error("Unhandled error in %s", view_name, exc_info=exc)
        return None

    message = _first_message(response.data)
    if response.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s failed: %s", view_name, message, exc_info=exc)
    else:
        logger.info("%s rejected (%s): %s", view_name, response.status_code, message)

    body: dict[str, Any] = {"success": False, "message": message}
    if isinstance(response.data, dict) and "detail" not in response.data:
        body["errors"] = response.data
    response.data = body
    return response

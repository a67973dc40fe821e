"""Liveness probe: database, Redis and the shared cache.

``ok`` when every component answers, ``degraded`` when the database answers
but Redis or the cache does not (the API still serves, uncached), ``down``
when the database is unreachable.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import redis
from django.conf import settings
from django.core.cache import caches
from django.db import connection
from django.http import JsonResponse

from collabhub.realtime.socketio import online_users

logger = logging.getLogger(__name__)


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Health check: database unreachable: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


def check_redis() -> dict[str, Any]:
    url = getattr(settings, "REDIS_URL", None)
    if not url:
        return {"ok": False, "error": "REDIS_URL not configured"}
    try:
        redis.Redis.from_url(
            url, socket_timeout=0.5, socket_connect_timeout=0.5
        ).ping()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Health check: redis unreachable: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


def check_cache() -> dict[str, Any]:
    """Write and read back a throwaway key through the collab cache alias."""
    cache = caches[getattr(settings, "COLLAB_CACHE_ALIAS", "default")]
    key = f"health:{uuid.uuid4().hex}"
    try:
        cache.set(key, "1", 5)
        ok = cache.get(key) == "1"
        cache.delete(key)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Health check: cache unreachable: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True} if ok else {"ok": False, "error": "cache read-back failed"}


def health(request):
    components = {"db": check_db(), "redis": check_redis(), "cache": check_cache()}
    if not components["db"]["ok"]:
        state = "down"
    elif all(c["ok"] for c in components.values()):
        state = "ok"
    else:
        state = "degraded"
    return JsonResponse(
        {
            "status": state,
            "components": components,
            "realtime": {"online_users": len(online_users)},
        },
        status=200 if state == "ok" else 503,
    )

from unittest import mock

import pytest

pytestmark = pytest.mark.django_db


def test_health_ok(client):
    with mock.patch("config.health.redis.Redis.ping", return_value=True):
        r = client.get("/health/")
    assert r.status_code == 200
    assert r.json() == {
        "status": "ok",
        "components": {
            "db": {"ok": True},
            "redis": {"ok": True},
            "cache": {"ok": True},
        },
        "realtime": mock.ANY,
    }


def test_health_degraded_without_redis(client):
    with mock.patch(
        "config.health.redis.Redis.ping", side_effect=ConnectionError("refused")
    ):
        r = client.get("/health/")
    assert r.status_code == 503
    body = r.json()
    assert body["status"] == "degraded"
    assert body["components"]["redis"] == {"ok": False, "error": "refused"}
    assert body["components"]["db"] == {"ok": True}


def test_health_degraded_when_cache_fails(client):
    broken = mock.Mock()
    broken.set.side_effect = ConnectionError("cache gone")
    with (
        mock.patch("config.health.redis.Redis.ping", return_value=True),
        mock.patch("config.health.caches") as caches,
    ):
        caches.__getitem__.return_value = broken
        r = client.get("/health/")
    assert r.status_code == 503
    assert r.json()["components"]["cache"] == {"ok": False, "error": "cache gone"}


def test_health_reports_missing_redis_url(client, settings):
    settings.REDIS_URL = ""
    r = client.get("/health/")
    assert r.json()["components"]["redis"]["error"] == "REDIS_URL not configured"


def test_api_errors_use_envelope(client):
    r = client.get("/api/v1/tasks/")
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert r.json()["message"]

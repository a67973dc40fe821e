import pytest
from django.core.cache import caches
from rest_framework.test import APIClient

from collabhub.realtime import socketio as realtime_socketio
from collabhub.realtime.publisher import get_publisher
from collabhub.users.tests.factories import make_user


@pytest.fixture(autouse=True)
def _clear_caches():
    for cache in caches.all():
        cache.clear()
    yield
    for cache in caches.all():
        cache.clear()


@pytest.fixture(autouse=True)
def _reset_realtime():
    get_publisher().clear()
    realtime_socketio.online_users.clear()
    yield
    get_publisher().clear()
    realtime_socketio.online_users.clear()


@pytest.fixture
def publisher():
    return get_publisher()


@pytest.fixture
def user(db):
    return make_user("alice")


@pytest.fixture
def other_user(db):
    return make_user("bob")


@pytest.fixture
def third_user(db):
    return make_user("carol")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def client_for():
    def build(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return build

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from collabhub.users.tests.factories import TEST_PASSWORD
from collabhub.users.tests.factories import make_user

pytestmark = pytest.mark.django_db


def obtain_tokens(client, username: str, password: str) -> tuple[str, str]:
    r = client.post(
        "/api/v1/auth/jwt/create/",
        {"username": username, "password": password},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK, r.content
    return r.data["access"], r.data["refresh"]


def test_register_returns_user_and_tokens():
    client = APIClient()
    r = client.post(
        "/api/v1/auth/register/",
        {"username": "newbie", "email": "newbie@example.com", "password": "s3cret-pass"},
        format="json",
    )
    assert r.status_code == status.HTTP_201_CREATED, r.content
    assert r.data["success"] is True
    assert r.data["user"]["username"] == "newbie"
    assert set(r.data["tokens"]) == {"access", "refresh"}


def test_register_rejects_taken_username():
    make_user("taken")
    r = APIClient().post(
        "/api/v1/auth/register/",
        {"username": "taken", "email": "fresh@example.com", "password": "s3cret-pass"},
        format="json",
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data == {"success": False, "message": "username already taken"}


def test_jwt_verify_endpoint():
    make_user("verifyuser")
    client = APIClient()
    access, _ = obtain_tokens(client, "verifyuser", TEST_PASSWORD)

    r = client.post("/api/v1/auth/jwt/verify/", {"token": access}, format="json")
    assert r.status_code == status.HTTP_200_OK

    bad = access[:-2] + "ab"
    r = client.post("/api/v1/auth/jwt/verify/", {"token": bad}, format="json")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_bearer_token_authenticates_requests():
    make_user("bearer")
    client = APIClient()
    access, _ = obtain_tokens(client, "bearer", TEST_PASSWORD)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    r = client.get("/api/v1/users/me/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["user"]["username"] == "bearer"


def test_protected_endpoint_requires_token():
    r = APIClient().get("/api/v1/tasks/")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.data["success"] is False

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from collabhub.core.cache import CollabCache
from collabhub.core.cache import entity_key
from collabhub.users.tests.factories import make_user

pytestmark = pytest.mark.django_db


def test_user_list_is_public_and_paginated(user, other_user):
    r = APIClient().get("/api/v1/users/", {"limit": 1})
    assert r.status_code == status.HTTP_200_OK
    assert len(r.data["users"]) == 1
    assert r.data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}


def test_search_requires_query():
    r = APIClient().get("/api/v1/users/search/")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "search query is required"


def test_search_matches_username_and_email(user, other_user):
    r = APIClient().get("/api/v1/users/search/", {"q": "ALI"})
    assert [u["username"] for u in r.data["users"]] == ["alice"]


def test_profile_is_cached_and_invalidated_on_update(api_client, user):
    r = api_client.get(f"/api/v1/users/{user.pk}/")
    assert r.status_code == status.HTTP_200_OK
    assert CollabCache().get(entity_key("user", user.pk))["username"] == "alice"

    r = api_client.patch("/api/v1/users/me/", {"bio": "Builds things"}, format="json")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["user"]["bio"] == "Builds things"

    r = api_client.get(f"/api/v1/users/{user.pk}/")
    assert r.data["user"]["bio"] == "Builds things"


def test_username_change_conflict(api_client, other_user):
    r = api_client.patch("/api/v1/users/me/", {"username": "bob"}, format="json")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "username already taken"


def test_missing_profile_is_404(api_client):
    r = api_client.get("/api/v1/users/99999/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data == {"success": False, "message": "user not found"}


def test_change_password(api_client, user):
    r = api_client.post(
        "/api/v1/users/me/change-password/",
        {"current_password": "wrong", "new_password": "An0ther-Pass!"},
        format="json",
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST

    r = api_client.post(
        "/api/v1/users/me/change-password/",
        {"current_password": "TestPass123!", "new_password": "An0ther-Pass!"},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK
    user.refresh_from_db()
    assert user.check_password("An0ther-Pass!")


def test_dashboard_combines_stats(api_client, user, other_user):
    api_client.post(
        "/api/v1/tasks/",
        {
            "title": "Write docs",
            "description": "Cover the API",
            "assign_to": other_user.pk,
            "due_date": "2030-01-01T00:00:00Z",
        },
        format="json",
    )
    r = api_client.get("/api/v1/users/me/dashboard/")
    assert r.status_code == status.HTTP_200_OK
    dashboard = r.data["dashboard"]
    assert dashboard["tasks"]["total_tasks"] == 1
    assert dashboard["meetings"]["total_meetings"] == 0
    assert dashboard["unread_notifications"] == 0


def test_dashboard_refreshes_after_new_task(client_for, user, other_user):
    bob = client_for(other_user)
    assert bob.get("/api/v1/users/me/dashboard/").data["dashboard"]["tasks"][
        "total_tasks"
    ] == 0
    client_for(user).post(
        "/api/v1/tasks/",
        {
            "title": "Review PR",
            "description": "Look at the diff",
            "assign_to": other_user.pk,
            "due_date": "2030-01-01T00:00:00Z",
        },
        format="json",
    )
    dashboard = bob.get("/api/v1/users/me/dashboard/").data["dashboard"]
    assert dashboard["tasks"]["total_tasks"] == 1
    assert dashboard["unread_notifications"] == 1


def test_make_user_defaults_email():
    assert make_user("zed").email == "zed@example.com"

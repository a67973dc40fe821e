from datetime import timedelta

import pytest
from django.db import transaction
from django.utils import timezone
from rest_framework import status

from collabhub.core.cache import CollabCache
from collabhub.notifications.models import Notification
from collabhub.realtime.publisher import room_for_user
from collabhub.tasks.models import Task
from collabhub.tasks.services import TaskService

pytestmark = pytest.mark.django_db

DUE = "2030-01-01T00:00:00Z"


def create_task(client, assignee, **extra):
    payload = {
        "title": "Ship v1",
        "description": "Cut the release",
        "assign_to": assignee.pk,
        "due_date": DUE,
        **extra,
    }
    r = client.post("/api/v1/tasks/", payload, format="json")
    assert r.status_code == status.HTTP_201_CREATED, r.data
    return r.data["task"]


def test_create_task_notifies_assignee_after_commit(
    api_client, user, other_user, publisher, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        task = create_task(api_client, other_user, priority="high")

    assert task["assign_to"]["id"] == other_user.pk
    assert task["assigned_by"]["id"] == user.pk
    assert task["priority"] == "high"
    assert task["project"] is None
    notification = Notification.objects.get(recipient=other_user)
    assert notification.notification_type == Notification.Type.TASK_ASSIGNED
    [event] = publisher.named("new_notification")
    assert event.room == room_for_user(other_user.pk)
    assert event.payload["sender"]["username"] == "alice"


def test_create_task_unknown_assignee(api_client):
    r = api_client.post(
        "/api/v1/tasks/",
        {"title": "Orphan", "assign_to": 424242},
        format="json",
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "AssignedTo user not found"


def test_create_task_rejects_bad_priority(api_client, other_user):
    r = api_client.post(
        "/api/v1/tasks/",
        {"title": "Odd", "assign_to": other_user.pk, "priority": "whenever"},
        format="json",
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["success"] is False
    assert "priority" in r.data["errors"]


def test_only_assigner_can_update_or_delete(api_client, client_for, other_user):
    task = create_task(api_client, other_user)
    bob = client_for(other_user)

    r = bob.put(f"/api/v1/tasks/{task['id']}/", {"title": "Mine now"}, format="json")
    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.data["message"] == "Only the user who assigned this task can update it"

    r = bob.delete(f"/api/v1/tasks/{task['id']}/")
    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert Task.objects.filter(pk=task["id"]).exists()

    r = api_client.patch(
        f"/api/v1/tasks/{task['id']}/", {"title": "Ship v1.0"}, format="json"
    )
    assert r.status_code == status.HTTP_200_OK
    assert r.data["task"]["title"] == "Ship v1.0"


def test_only_assignee_updates_status(api_client, client_for, user, other_user):
    task = create_task(api_client, other_user)

    r = api_client.put(
        f"/api/v1/tasks/{task['id']}/status/", {"status": "completed"}, format="json"
    )
    assert r.status_code == status.HTTP_403_FORBIDDEN

    r = client_for(other_user).put(
        f"/api/v1/tasks/{task['id']}/status/", {"status": "completed"}, format="json"
    )
    assert r.status_code == status.HTTP_200_OK
    assert r.data["task"]["status"] == "completed"
    assert Notification.objects.filter(
        recipient=user, notification_type=Notification.Type.TASK_STATUS_UPDATED
    ).exists()


def test_status_filter_listing_sees_status_change(api_client, client_for, other_user):
    task = create_task(api_client, other_user)
    r = api_client.get("/api/v1/tasks/", {"status": "completed"})
    assert r.data["tasks"] == []

    client_for(other_user).put(
        f"/api/v1/tasks/{task['id']}/status/", {"status": "completed"}, format="json"
    )

    r = api_client.get("/api/v1/tasks/", {"status": "completed"})
    assert [t["id"] for t in r.data["tasks"]] == [task["id"]]
    r = api_client.get("/api/v1/tasks/", {"status": "pending"})
    assert r.data["tasks"] == []


def test_reassign_invalidates_both_assignees(
    api_client, client_for, user, other_user, third_user
):
    task = create_task(api_client, other_user)
    bob, carol = client_for(other_user), client_for(third_user)
    assert len(bob.get("/api/v1/tasks/my/").data["tasks"]) == 1
    assert carol.get("/api/v1/tasks/my/").data["tasks"] == []
    by_bob = api_client.get("/api/v1/tasks/", {"assign_to": other_user.pk})
    assert len(by_bob.data["tasks"]) == 1

    r = api_client.put(
        f"/api/v1/tasks/{task['id']}/reassign/",
        {"assign_to": third_user.pk},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK

    assert bob.get("/api/v1/tasks/my/").data["tasks"] == []
    assert [t["id"] for t in carol.get("/api/v1/tasks/my/").data["tasks"]] == [
        task["id"]
    ]
    by_bob = api_client.get("/api/v1/tasks/", {"assign_to": other_user.pk})
    assert by_bob.data["tasks"] == []
    detail = api_client.get(f"/api/v1/tasks/{task['id']}/").data["task"]
    assert detail["assign_to"]["id"] == third_user.pk
    kinds = set(
        Notification.objects.filter(recipient=other_user).values_list(
            "notification_type", flat=True
        )
    )
    assert Notification.Type.TASK_UNASSIGNED in kinds


def test_reassign_to_missing_user(api_client, other_user):
    task = create_task(api_client, other_user)
    r = api_client.put(
        f"/api/v1/tasks/{task['id']}/reassign/", {"assign_to": 999999}, format="json"
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "New assignee not found"


def test_delete_drops_cached_detail(api_client, other_user):
    task = create_task(api_client, other_user)
    assert api_client.get(f"/api/v1/tasks/{task['id']}/").status_code == 200
    assert api_client.delete(f"/api/v1/tasks/{task['id']}/").status_code == 200
    r = api_client.get(f"/api/v1/tasks/{task['id']}/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Task not found"


def test_stats(api_client, client_for, other_user):
    first = create_task(api_client, other_user)
    create_task(api_client, other_user, title="Second")
    client_for(other_user).put(
        f"/api/v1/tasks/{first['id']}/status/", {"status": "completed"}, format="json"
    )
    Task.objects.create(
        title="Late",
        assign_to=other_user,
        due_date=timezone.now() - timedelta(days=2),
    )
    stats = client_for(other_user).get("/api/v1/tasks/stats/").data["stats"]
    assert stats["total_tasks"] == 3
    assert stats["completed_tasks"] == 1
    assert stats["overdue_tasks"] == 1
    assert stats["completion_rate"] == 33.33


def test_clear_cache(api_client, other_user):
    create_task(api_client, other_user)
    api_client.get("/api/v1/tasks/")
    Task.objects.update(title="Changed behind the cache")
    r = api_client.post("/api/v1/tasks/clear-cache/")
    assert r.status_code == status.HTTP_200_OK
    tasks = api_client.get("/api/v1/tasks/").data["tasks"]
    assert tasks[0]["title"] == "Changed behind the cache"


@pytest.mark.parametrize(
    ("method", "suffix", "payload", "message"),
    [
        ("put", "", {"title": "Hijacked"}, "Only the user who assigned this task can update it"),
        ("delete", "", None, "Only the user who assigned this task can delete it"),
        ("put", "reassign/", "assign_to", "Only the user who assigned this task can reassign it"),
        ("put", "status/", {"status": "completed"}, "Only the assigned user can update task status"),
    ],
)
def test_third_user_cannot_touch_task(
    api_client, client_for, other_user, third_user, method, suffix, payload, message
):
    task = create_task(api_client, other_user)
    if payload == "assign_to":
        payload = {"assign_to": third_user.pk}
    carol = client_for(third_user)

    r = getattr(carol, method)(
        f"/api/v1/tasks/{task['id']}/{suffix}", payload, format="json"
    )

    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.data["message"] == message
    stored = Task.objects.get(pk=task["id"])
    assert (stored.title, stored.status, stored.assign_to_id) == (
        "Ship v1",
        "pending",
        other_user.pk,
    )


def test_assignee_progresses_then_assigner_deletes(api_client, client_for, other_user):
    task = create_task(api_client, other_user)
    bob = client_for(other_user)
    url = f"/api/v1/tasks/{task['id']}/"

    r = bob.put(url, {"title": "Renamed by bob"}, format="json")
    assert r.status_code == status.HTTP_403_FORBIDDEN
    r = bob.put(f"{url}status/", {"status": "in_progress"}, format="json")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["task"]["status"] == "in_progress"
    assert bob.get(url).data["task"]["status"] == "in_progress"

    assert api_client.delete(url).status_code == status.HTTP_200_OK

    for client in (api_client, bob):
        r = client.get(url)
        assert r.status_code == status.HTTP_404_NOT_FOUND
        assert r.data["message"] == "Task not found"


def test_rolled_back_update_leaves_no_cached_view(api_client, user, other_user):
    task = Task.objects.create(title="Ship v1", assign_to=other_user, assigned_by=user)
    service = TaskService()
    assert service.retrieve(task.pk)["title"] == "Ship v1"

    with pytest.raises(RuntimeError), transaction.atomic():
        service.update(user, task.pk, {"title": "Phantom"})
        msg = "request failed after the update"
        raise RuntimeError(msg)

    assert Task.objects.get(pk=task.pk).title == "Ship v1"
    assert TaskService().retrieve(task.pk)["title"] == "Ship v1"
    r = api_client.get(f"/api/v1/tasks/{task.pk}/")
    assert r.data["task"]["title"] == "Ship v1"


def test_update_view_is_cached_once_committed(
    api_client, other_user, django_capture_on_commit_callbacks
):
    task = create_task(api_client, other_user)
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        r = api_client.patch(
            f"/api/v1/tasks/{task['id']}/", {"title": "Ship v2"}, format="json"
        )
        assert r.status_code == status.HTTP_200_OK
        assert CollabCache().get_entity("task", task["id"]) is None

    assert callbacks
    assert CollabCache().get_entity("task", task["id"])["title"] == "Ship v2"
    listed = api_client.get("/api/v1/tasks/").data["tasks"]
    assert [t["title"] for t in listed] == ["Ship v2"]


@pytest.mark.parametrize("value", ["1.5", "bob"])
def test_assignee_filter_must_be_a_whole_number(api_client, other_user, value):
    create_task(api_client, other_user)
    r = api_client.get("/api/v1/tasks/", {"assign_to": value})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert "assign_to" in r.data["errors"]

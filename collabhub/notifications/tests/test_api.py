import pytest
from rest_framework import status

from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.realtime.events.notifications import build_notification_payload
from collabhub.realtime.publisher import room_for_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def service(publisher):
    return NotificationService(publisher=publisher)


def notify(service, recipient, sender=None, title="Heads up"):
    return service.notify(
        recipient.pk,
        sender=sender,
        notification_type=Notification.Type.TASK_ASSIGNED,
        title=title,
        message="Something happened",
        related_link="/tasks/1",
    )


def test_notify_publishes_after_commit(
    service, user, other_user, publisher, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        notification = notify(service, other_user, sender=user)
    [event] = publisher.events
    assert event.room == room_for_user(other_user.pk)
    assert event.event == "new_notification"
    assert event.payload == build_notification_payload(notification)
    assert event.payload["type"] == "task_assigned"
    assert event.payload["link"] == "/tasks/1"


def test_notify_without_recipient_is_noop(service, publisher):
    assert service.notify(None, notification_type="x", title="t", message="m") is None
    assert not Notification.objects.exists()


def test_system_notification_has_no_sender(service, api_client, user):
    notify(service, user)
    [item] = api_client.get("/api/v1/notifications/").data["notifications"]
    assert item["sender"] is None
    assert item["unread"] is True


def test_list_is_newest_first_and_cached(service, api_client, user):
    notify(service, user, title="first")
    notify(service, user, title="second")
    r = api_client.get("/api/v1/notifications/")
    assert [n["title"] for n in r.data["notifications"]] == ["second", "first"]
    assert r.data["pagination"]["total"] == 2
    notify(service, user, title="third")
    r = api_client.get("/api/v1/notifications/")
    assert r.data["pagination"]["total"] == 3


def test_unread_count_and_mark_read(service, api_client, user):
    first = notify(service, user)
    notify(service, user)
    assert api_client.get("/api/v1/notifications/unread-count/").data["count"] == 2

    r = api_client.put(f"/api/v1/notifications/{first.pk}/read/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["notification"]["is_read"] is True
    assert api_client.get("/api/v1/notifications/unread-count/").data["count"] == 1

    r = api_client.post(f"/api/v1/notifications/{first.pk}/mark-read/")
    assert r.status_code == status.HTTP_200_OK


def test_mark_all_read_only_touches_own(service, api_client, client_for, user, other_user):
    notify(service, user)
    notify(service, user)
    notify(service, other_user)
    r = api_client.post("/api/v1/notifications/mark-all-read/")
    assert r.data["updated"] == 2
    assert api_client.get("/api/v1/notifications/unread-count/").data["count"] == 0
    bob = client_for(other_user)
    assert bob.get("/api/v1/notifications/unread-count/").data["count"] == 1


def test_cannot_touch_someone_elses(service, api_client, other_user):
    theirs = notify(service, other_user)
    r = api_client.put(f"/api/v1/notifications/{theirs.pk}/read/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Notification not found"
    assert api_client.delete(f"/api/v1/notifications/{theirs.pk}/").status_code == 404
    assert Notification.objects.filter(pk=theirs.pk, is_read=False).exists()


def test_delete(service, api_client, user):
    mine = notify(service, user)
    assert api_client.get("/api/v1/notifications/unread-count/").data["count"] == 1
    assert api_client.delete(f"/api/v1/notifications/{mine.pk}/").status_code == 200
    assert api_client.get("/api/v1/notifications/unread-count/").data["count"] == 0
    assert api_client.get("/api/v1/notifications/").data["notifications"] == []

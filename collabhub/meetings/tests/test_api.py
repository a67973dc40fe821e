import pytest
from rest_framework import status

from collabhub.meetings.models import Meeting
from collabhub.notifications.models import Notification

pytestmark = pytest.mark.django_db

START = "2030-03-01T10:00:00Z"
END = "2030-03-01T11:00:00Z"


def meeting_payload(assignee, **extra):
    return {
        "title": "Sprint planning",
        "assigned_to": assignee.pk,
        "start_date": START,
        "end_date": END,
        "type": "online",
        "meeting_link": "https://meet.example.com/sprint",
        **extra,
    }


def create_meeting(client, assignee, **extra):
    r = client.post("/api/v1/meetings/", meeting_payload(assignee, **extra), format="json")
    assert r.status_code == status.HTTP_201_CREATED, r.data
    return r.data["meeting"]


def test_create_meeting(api_client, user, other_user):
    meeting = create_meeting(api_client, other_user)
    assert meeting["assigned_to"]["id"] == other_user.pk
    assert meeting["assigned_by"]["id"] == user.pk
    assert meeting["status"] == "scheduled"
    assert Notification.objects.filter(
        recipient=other_user, notification_type=Notification.Type.MEETING_ASSIGNED
    ).exists()


@pytest.mark.parametrize(
    ("extra", "field"),
    [
        ({"end_date": "2030-03-01T09:00:00Z"}, "end_date"),
        ({"meeting_link": ""}, "meeting_link"),
    ],
)
def test_create_meeting_validation(api_client, other_user, extra, field):
    r = api_client.post(
        "/api/v1/meetings/", meeting_payload(other_user, **extra), format="json"
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert field in r.data["errors"]


def test_in_person_meeting_needs_no_link(api_client, other_user):
    meeting = create_meeting(
        api_client, other_user, type="in-person", meeting_link="", location="Room 4"
    )
    assert meeting["location"] == "Room 4"


def test_unknown_attendees_rejected(api_client, other_user):
    r = api_client.post(
        "/api/v1/meetings/",
        meeting_payload(other_user, attendees=[other_user.pk, 987654]),
        format="json",
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "Some attendees not found"
    assert not Meeting.objects.exists()


def test_reschedule_checks_dates_and_owner(api_client, client_for, other_user):
    meeting = create_meeting(api_client, other_user)
    url = f"/api/v1/meetings/{meeting['id']}/reschedule/"

    r = client_for(other_user).put(url, {"start_date": START}, format="json")
    assert r.status_code == status.HTTP_403_FORBIDDEN

    r = api_client.put(url, {"start_date": "2030-03-01T12:00:00Z"}, format="json")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert "end_date" in r.data["errors"]

    r = api_client.put(
        url,
        {"start_date": "2030-03-02T10:00:00Z", "end_date": "2030-03-02T11:00:00Z"},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK
    assert r.data["meeting"]["start_date"].startswith("2030-03-02T10:00:00")


def test_attendees_see_meeting_in_their_list(
    api_client, client_for, other_user, third_user
):
    meeting = create_meeting(api_client, other_user)
    carol = client_for(third_user)
    assert carol.get("/api/v1/meetings/my/").data["meetings"] == []

    r = api_client.put(
        f"/api/v1/meetings/{meeting['id']}/attendees/",
        {"attendees": [third_user.pk]},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK
    assert [a["id"] for a in r.data["meeting"]["attendees"]] == [third_user.pk]
    assert [m["id"] for m in carol.get("/api/v1/meetings/my/").data["meetings"]] == [
        meeting["id"]
    ]


def test_reassign_updates_filtered_listings(api_client, client_for, other_user, third_user):
    meeting = create_meeting(api_client, other_user)
    listed = api_client.get("/api/v1/meetings/", {"assigned_to": other_user.pk})
    assert len(listed.data["meetings"]) == 1

    r = api_client.put(
        f"/api/v1/meetings/{meeting['id']}/reassign/",
        {"assigned_to": third_user.pk},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK

    listed = api_client.get("/api/v1/meetings/", {"assigned_to": other_user.pk})
    assert listed.data["meetings"] == []
    listed = api_client.get("/api/v1/meetings/", {"assigned_to": third_user.pk})
    assert len(listed.data["meetings"]) == 1
    assert Notification.objects.filter(
        recipient=other_user, notification_type=Notification.Type.MEETING_UNASSIGNED
    ).exists()


def test_status_by_assignee_only(api_client, client_for, other_user):
    meeting = create_meeting(api_client, other_user)
    url = f"/api/v1/meetings/{meeting['id']}/status/"
    assert (
        api_client.put(url, {"status": "completed"}, format="json").status_code
        == status.HTTP_403_FORBIDDEN
    )
    r = client_for(other_user).put(url, {"status": "completed"}, format="json")
    assert r.status_code == status.HTTP_200_OK
    stats = client_for(other_user).get("/api/v1/meetings/stats/").data["stats"]
    assert stats["total_meetings"] == 1
    assert stats["completed_meetings"] == 1


def test_missing_meeting(api_client):
    r = api_client.get("/api/v1/meetings/123456/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Meeting not found"


@pytest.mark.parametrize(
    ("method", "suffix", "payload", "message"),
    [
        ("put", "", {"title": "Hijacked"}, "Only the user who assigned this meeting can update it"),
        ("delete", "", None, "Only the user who assigned this meeting can delete it"),
        ("put", "reassign/", "self", "Only the user who assigned this meeting can reassign it"),
        ("put", "attendees/", "self", "Only the user who assigned this meeting can update attendees"),
        (
            "put",
            "reschedule/",
            {"start_date": "2030-03-02T10:00:00Z", "end_date": "2030-03-02T11:00:00Z"},
            "Only the user who assigned this meeting can reschedule it",
        ),
        ("put", "status/", {"status": "completed"}, "Only the assigned user can update meeting status"),
    ],
)
def test_third_user_cannot_touch_meeting(
    api_client, client_for, other_user, third_user, method, suffix, payload, message
):
    meeting = create_meeting(api_client, other_user)
    if payload == "self":
        key = "assigned_to" if suffix == "reassign/" else "attendees"
        payload = {key: third_user.pk if key == "assigned_to" else [third_user.pk]}
    carol = client_for(third_user)

    r = getattr(carol, method)(
        f"/api/v1/meetings/{meeting['id']}/{suffix}", payload, format="json"
    )

    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.data["message"] == message
    stored = Meeting.objects.get(pk=meeting["id"])
    assert (stored.title, stored.status, stored.assigned_to_id) == (
        "Sprint planning",
        "scheduled",
        other_user.pk,
    )
    assert not stored.attendees.exists()


def test_assigner_deletes_meeting(api_client, client_for, other_user):
    meeting = create_meeting(api_client, other_user)
    bob = client_for(other_user)
    url = f"/api/v1/meetings/{meeting['id']}/"
    assert bob.get(url).status_code == status.HTTP_200_OK
    assert len(bob.get("/api/v1/meetings/my/").data["meetings"]) == 1

    r = bob.delete(url)
    assert r.status_code == status.HTTP_403_FORBIDDEN

    r = api_client.delete(url)
    assert r.status_code == status.HTTP_200_OK
    assert not Meeting.objects.filter(pk=meeting["id"]).exists()
    for client in (api_client, bob):
        r = client.get(url)
        assert r.status_code == status.HTTP_404_NOT_FOUND
        assert r.data["message"] == "Meeting not found"
    assert bob.get("/api/v1/meetings/my/").data["meetings"] == []


def test_assignee_filter_must_be_a_whole_number(api_client, other_user):
    create_meeting(api_client, other_user)
    r = api_client.get("/api/v1/meetings/", {"assigned_to": f"{other_user.pk}.5"})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert "assigned_to" in r.data["errors"]

import re

import pytest
from rest_framework import status

from collabhub.collaboration.models import CodeSession
from collabhub.collaboration.models import SessionParticipant
from collabhub.notifications.models import Notification
from collabhub.realtime.publisher import room_for_session
from collabhub.users.tests.factories import make_user

pytestmark = pytest.mark.django_db

BASE = "/api/v1/code-sessions/"


def create_session(client, **extra):
    payload = {"title": "Pairing", "language": "python", "is_public": True, **extra}
    r = client.post(BASE, payload, format="json")
    assert r.status_code == status.HTTP_201_CREATED, r.data
    return r.data["session"]


def test_create_makes_owner_a_participant(api_client, user):
    session = create_session(api_client, tags=["kata"])
    assert session["owner"]["id"] == user.pk
    assert session["participant_count"] == 1
    assert session["participants"][0]["user"]["id"] == user.pk
    assert session["max_participants"] == 10
    assert session["invite_code"] is None


@pytest.mark.parametrize("cap", [1, 51])
def test_max_participants_bounds(api_client, cap):
    r = api_client.post(BASE, {"title": "x", "max_participants": cap}, format="json")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert "max_participants" in r.data["errors"]


def test_join_until_full(
    api_client, client_for, other_user, third_user, publisher,
    django_capture_on_commit_callbacks,
):
    session = create_session(api_client, max_participants=3)
    with django_capture_on_commit_callbacks(execute=True):
        r = client_for(other_user).post(f"{BASE}{session['id']}/join/")
    assert r.status_code == status.HTTP_200_OK
    [joined] = publisher.named("user_joined_session")
    assert joined.room == room_for_session(session["id"])
    assert joined.payload["participant_count"] == 2

    assert client_for(third_user).post(f"{BASE}{session['id']}/join/").status_code == 200
    late = client_for(make_user("dave"))
    r = late.post(f"{BASE}{session['id']}/join/")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "Session is full"

    # Rejoining while full only refreshes activity.
    r = client_for(other_user).post(f"{BASE}{session['id']}/join/")
    assert r.status_code == status.HTTP_200_OK
    assert SessionParticipant.objects.filter(session_id=session["id"]).count() == 3


def test_private_session_can_be_joined_by_id(
    api_client, client_for, other_user, publisher,
    django_capture_on_commit_callbacks,
):
    session = create_session(api_client, is_public=False)
    bob = client_for(other_user)
    assert bob.get(f"{BASE}public/sessions/").data["sessions"] == []

    with django_capture_on_commit_callbacks(execute=True):
        r = bob.post(f"{BASE}{session['id']}/join/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["session"]["participant_count"] == 2
    assert len(publisher.named("user_joined_session")) == 1

    # Joining again refreshes activity without a second announcement.
    with django_capture_on_commit_callbacks(execute=True):
        assert bob.post(f"{BASE}{session['id']}/join/").status_code == 200
    assert len(publisher.named("user_joined_session")) == 1
    mine = bob.get(f"{BASE}user/sessions/").data["sessions"]
    assert [s["id"] for s in mine] == [session["id"]]


def test_join_ended_session_is_404(api_client, client_for, other_user):
    session = create_session(api_client)
    assert api_client.put(f"{BASE}{session['id']}/end/").status_code == 200
    r = client_for(other_user).post(f"{BASE}{session['id']}/join/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Session not found or access denied"


def test_invite_user_notifies_and_lists_session(api_client, client_for, other_user):
    session = create_session(api_client, is_public=False)
    bob = client_for(other_user)
    r = api_client.post(
        f"{BASE}{session['id']}/invite/", {"invited_user_id": other_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_200_OK
    assert Notification.objects.filter(
        recipient=other_user, notification_type=Notification.Type.SESSION_INVITE
    ).exists()
    r = api_client.post(
        f"{BASE}{session['id']}/invite/", {"invited_user_id": other_user.pk}, format="json"
    )
    assert r.data["message"] == "User is already invited to this session"

    # Invited sessions show up before joining.
    mine = bob.get(f"{BASE}user/sessions/").data["sessions"]
    assert [s["id"] for s in mine] == [session["id"]]
    assert bob.post(f"{BASE}{session['id']}/join/").status_code == 200
    assert bob.get(f"{BASE}{session['id']}/").data["session"]["participant_count"] == 2


def test_invite_code_flow(api_client, client_for, other_user, settings):
    session = create_session(api_client, is_public=False)
    r = api_client.post(f"{BASE}{session['id']}/invite-code/")
    data = r.data["data"]
    assert re.fullmatch(r"[A-Za-z0-9]{8}", data["invite_code"])
    assert data["invite_link"] == (
        f"{settings.CLIENT_URL}/code-collaboration/join/{data['invite_code']}"
    )

    bob = client_for(other_user)
    preview = bob.get(f"{BASE}join/{data['invite_code']}/").data["data"]
    assert preview["can_join"] is True
    assert preview["session"]["id"] == session["id"]

    r = bob.post(f"{BASE}join/{data['invite_code']}/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["data"]["participant_count"] == 2
    assert other_user.pk in r.data["data"]["invited_users"]

    r = bob.post(f"{BASE}join/NOPE1234/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Invalid invite code or session not found"


def test_only_owner_generates_invites(api_client, client_for, other_user):
    session = create_session(api_client)
    r = client_for(other_user).post(f"{BASE}{session['id']}/invite-code/")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Session not found or you are not the owner"


def test_code_and_cursor_updates(
    api_client, client_for, user, other_user, publisher,
    django_capture_on_commit_callbacks,
):
    session = create_session(api_client)
    url = f"{BASE}{session['id']}/"
    with django_capture_on_commit_callbacks(execute=True):
        r = api_client.put(
            f"{url}code/",
            {"code": "print('hi')\n", "cursor_position": {"line": 1, "column": 0}},
            format="json",
        )
    assert r.status_code == status.HTTP_200_OK
    [event] = publisher.named("code_updated")
    assert event.payload["code"] == "print('hi')\n"
    assert event.payload["updated_by"] == user.pk
    assert api_client.get(url).data["session"]["code"] == "print('hi')\n"

    with django_capture_on_commit_callbacks(execute=True):
        api_client.put(
            f"{url}cursor/", {"cursor_position": {"line": 3, "column": 7}}, format="json"
        )
    [cursor] = publisher.named("cursor_updated")
    assert cursor.payload["cursor_position"] == {"line": 3, "column": 7}
    [me] = api_client.get(url).data["session"]["participants"]
    assert me["cursor_position"] == {"line": 3, "column": 7}

    r = client_for(other_user).put(f"{url}code/", {"code": "x"}, format="json")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Session not found or user not in session"


def test_last_save_wins(api_client, client_for, other_user):
    session = create_session(api_client)
    bob = client_for(other_user)
    bob.post(f"{BASE}{session['id']}/join/")
    api_client.put(f"{BASE}{session['id']}/code/", {"code": "a = 1"}, format="json")
    bob.put(f"{BASE}{session['id']}/code/", {"code": "b = 2"}, format="json")
    assert CodeSession.objects.get().code == "b = 2"


def test_leave(api_client, client_for, other_user, publisher, django_capture_on_commit_callbacks):
    session = create_session(api_client)
    bob = client_for(other_user)
    bob.post(f"{BASE}{session['id']}/join/")
    with django_capture_on_commit_callbacks(execute=True):
        assert bob.post(f"{BASE}{session['id']}/leave/").status_code == 200
    [event] = publisher.named("user_left_session")
    assert event.payload == {"session_id": session["id"], "user_id": other_user.pk}
    assert bob.post(f"{BASE}{session['id']}/leave/").status_code == 404


def test_end_session(
    api_client, client_for, user, other_user, publisher,
    django_capture_on_commit_callbacks,
):
    session = create_session(api_client)
    assert client_for(other_user).put(f"{BASE}{session['id']}/end/").status_code == 404
    with django_capture_on_commit_callbacks(execute=True):
        r = api_client.put(f"{BASE}{session['id']}/end/")
    assert r.status_code == status.HTTP_200_OK
    [event] = publisher.named("session_ended")
    assert event.payload == {"session_id": session["id"], "ended_by": user.pk}

    assert api_client.get(f"{BASE}{session['id']}/").status_code == 404
    assert api_client.get(f"{BASE}public/sessions/").data["sessions"] == []
    assert api_client.put(f"{BASE}{session['id']}/end/").status_code == 404


def test_public_listing_by_language(api_client):
    create_session(api_client)
    js = create_session(api_client, title="Frontend", language="javascript")
    create_session(api_client, title="Secret", is_public=False)
    r = api_client.get(f"{BASE}public/sessions/")
    assert r.data["pagination"]["total"] == 2
    r = api_client.get(f"{BASE}public/sessions/", {"language": "javascript"})
    assert [s["id"] for s in r.data["sessions"]] == [js["id"]]


def test_stats(api_client, client_for, other_user):
    first = create_session(api_client)
    create_session(api_client, language="go")
    create_session(api_client, title="More python")
    client_for(other_user).post(f"{BASE}{first['id']}/join/")
    stats = api_client.get(f"{BASE}stats/overview/").data["stats"]
    assert stats["total_sessions"] == 3
    assert stats["active_sessions"] == 3
    assert stats["total_participants"] == 4
    assert stats["popular_languages"][0] == {"language": "python", "count": 2}

    api_client.put(f"{BASE}{first['id']}/end/")
    stats = api_client.get(f"{BASE}stats/overview/").data["stats"]
    assert stats["active_sessions"] == 2
    assert stats["average_session_duration"] == 0


def test_delete(api_client, client_for, other_user):
    session = create_session(api_client)
    assert client_for(other_user).delete(f"{BASE}{session['id']}/").status_code == 404
    assert api_client.delete(f"{BASE}{session['id']}/").status_code == 200
    assert not CodeSession.objects.exists()

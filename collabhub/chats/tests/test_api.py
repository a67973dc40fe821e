import pytest
from rest_framework import status

from collabhub.chats.models import Message
from collabhub.notifications.models import Notification
from collabhub.realtime.publisher import room_for_chat

pytestmark = pytest.mark.django_db


def open_direct(client, other):
    r = client.post("/api/v1/chats/", {"participants": [other.pk]}, format="json")
    assert r.status_code in {status.HTTP_200_OK, status.HTTP_201_CREATED}, r.data
    return r


def send(client, chat_id, content="hello", **extra):
    r = client.post(
        "/api/v1/chats/messages/",
        {"chat_id": chat_id, "content": content, **extra},
        format="json",
    )
    assert r.status_code == status.HTTP_201_CREATED, r.data
    return r.data["data"]


def test_direct_chat_is_reused(api_client, client_for, user, other_user):
    first = open_direct(api_client, other_user)
    assert first.status_code == status.HTTP_201_CREATED
    assert first.data["message"] == "Chat created successfully"
    assert {p["id"] for p in first.data["chat"]["participants"]} == {user.pk, other_user.pk}

    again = open_direct(client_for(other_user), user)
    assert again.status_code == status.HTTP_200_OK
    assert again.data["message"] == "Chat already exists"
    assert again.data["chat"]["id"] == first.data["chat"]["id"]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"participants": [2, 3]}, "Direct chat must have exactly 2 participants"),
        ({"participants": [2], "type": "group"}, "Group chat name is required"),
        ({"participants": [424242]}, "Some participants not found"),
    ],
)
def test_create_chat_validation(api_client, other_user, third_user, payload, message):
    payload = {
        **payload,
        "participants": [
            {2: other_user.pk, 3: third_user.pk}.get(pk, pk)
            for pk in payload["participants"]
        ],
    }
    r = api_client.post("/api/v1/chats/", payload, format="json")
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == message


def test_group_needs_another_member(api_client, user):
    r = api_client.post(
        "/api/v1/chats/",
        {"participants": [user.pk], "type": "group", "name": "Solo"},
        format="json",
    )
    assert r.data["message"] == "Group chat must have at least 2 participants"


def test_send_message_fans_out(
    api_client, user, other_user, publisher, django_capture_on_commit_callbacks
):
    chat = open_direct(api_client, other_user).data["chat"]
    with django_capture_on_commit_callbacks(execute=True):
        message = send(api_client, chat["id"], "ship it")

    assert message["sender"]["id"] == user.pk
    assert message["content"] == "ship it"
    [new] = publisher.named("new_message")
    assert new.room == room_for_chat(chat["id"])
    assert new.payload["id"] == message["id"]
    [updated] = publisher.named("chat_updated")
    assert updated.payload["last_message"]["content"] == "ship it"
    assert [e.event for e in publisher.events if e.room == room_for_chat(chat["id"])] == [
        "new_message",
        "chat_updated",
    ]
    assert Notification.objects.filter(
        recipient=other_user, notification_type=Notification.Type.NEW_MESSAGE
    ).count() == 1


def test_outsider_cannot_send_or_read(api_client, client_for, other_user, third_user):
    chat = open_direct(api_client, other_user).data["chat"]
    carol = client_for(third_user)
    r = carol.post(
        "/api/v1/chats/messages/", {"chat_id": chat["id"], "content": "hi"}, format="json"
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Chat not found or access denied"
    assert carol.get(f"/api/v1/chats/{chat['id']}/messages/").status_code == 404
    assert not Message.objects.exists()


def test_blank_message_rejected(api_client, other_user):
    chat = open_direct(api_client, other_user).data["chat"]
    r = api_client.post(
        "/api/v1/chats/messages/", {"chat_id": chat["id"], "content": "   "}, format="json"
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "Message content is required"


def test_reply_must_be_in_same_chat(api_client, other_user, third_user):
    first = open_direct(api_client, other_user).data["chat"]
    second = open_direct(api_client, third_user).data["chat"]
    original = send(api_client, first["id"])
    r = api_client.post(
        "/api/v1/chats/messages/",
        {"chat_id": second["id"], "content": "re", "reply_to": original["id"]},
        format="json",
    )
    assert r.data["message"] == "Reply target not found"
    reply = send(api_client, first["id"], "re", reply_to=original["id"])
    assert reply["reply_to"]["id"] == original["id"]


def test_message_pages_are_chronological(api_client, other_user):
    chat = open_direct(api_client, other_user).data["chat"]
    for n in range(5):
        send(api_client, chat["id"], f"m{n}")
    r = api_client.get(f"/api/v1/chats/{chat['id']}/messages/", {"limit": 2})
    assert [m["content"] for m in r.data["messages"]] == ["m3", "m4"]
    assert r.data["pagination"]["total"] == 5
    r = api_client.get(f"/api/v1/chats/{chat['id']}/messages/", {"limit": 2, "page": 2})
    assert [m["content"] for m in r.data["messages"]] == ["m1", "m2"]


def test_unread_count_and_mark_read(
    api_client, client_for, user, other_user, publisher, django_capture_on_commit_callbacks
):
    chat = open_direct(api_client, other_user).data["chat"]
    send(api_client, chat["id"], "one")
    send(api_client, chat["id"], "two")
    bob = client_for(other_user)
    assert bob.get("/api/v1/chats/unread-count/").data["unread_count"] == 2
    [listed] = bob.get("/api/v1/chats/").data["chats"]
    assert listed["unread_count"] == 2

    with django_capture_on_commit_callbacks(execute=True):
        r = bob.put(f"/api/v1/chats/{chat['id']}/read/")
    assert r.data["marked_count"] == 2
    [event] = publisher.named("message_read")
    assert event.payload["user_id"] == other_user.pk
    assert len(event.payload["message_ids"]) == 2

    assert bob.get("/api/v1/chats/unread-count/").data["unread_count"] == 0
    assert bob.get("/api/v1/chats/").data["chats"][0]["unread_count"] == 0
    assert bob.put(f"/api/v1/chats/{chat['id']}/read/").data["marked_count"] == 0
    # Own messages never count as unread.
    assert api_client.get("/api/v1/chats/unread-count/").data["unread_count"] == 0


def test_edit_and_soft_delete(
    api_client, client_for, other_user, publisher, django_capture_on_commit_callbacks
):
    chat = open_direct(api_client, other_user).data["chat"]
    message = send(api_client, chat["id"], "typo")
    url = f"/api/v1/chats/messages/{message['id']}/"

    r = client_for(other_user).put(url, {"content": "hijack"}, format="json")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Message not found or access denied"

    with django_capture_on_commit_callbacks(execute=True):
        r = api_client.put(url, {"content": "fixed"}, format="json")
    assert r.data["data"]["is_edited"] is True
    assert publisher.named("message_updated")[0].payload["content"] == "fixed"

    with django_capture_on_commit_callbacks(execute=True):
        r = api_client.delete(url)
    assert r.status_code == status.HTTP_200_OK
    [event] = publisher.named("message_deleted")
    assert event.payload == {"message_id": message["id"], "chat_id": chat["id"]}
    assert Message.objects.get(pk=message["id"]).is_deleted
    assert api_client.get(f"/api/v1/chats/{chat['id']}/messages/").data["messages"] == []
    assert api_client.delete(url).status_code == status.HTTP_404_NOT_FOUND

"""Global Socket.IO server shared by chat, code sessions and notifications.

Frontend convention:
- Socket.IO path: /ws/socket.io/
- Auth: `auth.token` (JWT access token); `?token=` and an
  `Authorization: Bearer` header are accepted as fallbacks.

Every socket joins its personal room `user:<id>`. Chat and code-session
rooms (`chat:<id>`, `session:<id>`) are joined explicitly and only by
participants. Relays go to the room, excluding the sending socket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from django.conf import settings
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from collabhub.chats.models import Chat
from collabhub.collaboration.models import SessionParticipant
from collabhub.realtime.publisher import room_for_chat
from collabhub.realtime.publisher import room_for_session
from collabhub.realtime.publisher import room_for_user

logger = logging.getLogger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=getattr(settings, "SOCKETIO_CORS_ALLOWED_ORIGINS", "*"),
    logger=False,
    engineio_logger=False,
)

# user id -> most recently connected sid
online_users: dict[int, str] = {}


@dataclass(frozen=True)
class SocketUser:
    user_id: int
    username: str
    avatar: str | None


@database_sync_to_async
def _get_user_from_access_token(token: str) -> SocketUser:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)
    return SocketUser(
        user_id=int(user.id),
        username=user.username,
        avatar=user.avatar or None,
    )


@database_sync_to_async
def _is_chat_participant(chat_id: Any, user_id: int) -> bool:
    return Chat.objects.filter(
        pk=chat_id, participants__id=user_id, is_active=True
    ).exists()


@database_sync_to_async
def _session_participant_count(session_id: Any, user_id: int) -> int | None:
    """Participant count of an active session, or None if the user is not in it."""
    participants = SessionParticipant.objects.filter(
        session_id=session_id, session__is_active=True
    )
    if not participants.filter(user_id=user_id).exists():
        return None
    return participants.count()


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from Socket.IO auth payload, query string or headers.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(environ, dict) and "QUERY_STRING" in environ:
        query_string = environ.get("QUERY_STRING", "")
    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")
    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    header = ""
    if isinstance(environ, dict):
        header = environ.get("HTTP_AUTHORIZATION", "") or ""
    if not header and isinstance(scope, dict):
        for name, value in scope.get("headers", []) or []:
            if name.lower() == b"authorization":
                header = value.decode(errors="ignore")
                break
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def _field(data: Any, name: str) -> Any:
    """Client events send either a bare id or a dict payload."""
    if isinstance(data, dict):
        return data.get(name)
    return data


async def _current_user(sid: str) -> dict[str, Any] | None:
    session = await sio.get_session(sid)
    if not isinstance(session, dict) or "user_id" not in session:
        return None
    return session


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    token = _extract_token(environ, auth)
    if not token:
        msg = "unauthorized"
        raise ConnectionRefusedError(msg)

    try:
        user = await _get_user_from_access_token(token)
    except TokenError as exc:
        message = str(exc)
        if "expired" in message.lower():
            msg = "jwt_expired"
            raise ConnectionRefusedError(msg) from exc
        msg = "unauthorized"
        raise ConnectionRefusedError(msg) from exc
    except AuthenticationFailed as exc:  # user not found / inactive, etc.
        msg = "unauthorized"
        raise ConnectionRefusedError(msg) from exc
    except Exception as exc:
        logger.exception("Socket.IO connect error")
        msg = "server_error"
        raise ConnectionRefusedError(msg) from exc

    await sio.save_session(
        sid,
        {"user_id": user.user_id, "username": user.username, "avatar": user.avatar},
    )
    await sio.enter_room(sid, room_for_user(user.user_id))
    online_users[user.user_id] = sid
    logger.info("User %s connected with socket %s", user.user_id, sid)

    await sio.emit(
        "connected",
        {"message": "Connected to realtime server", "user_id": user.user_id},
        to=sid,
    )
    await sio.emit(
        "user_online",
        {
            "user_id": user.user_id,
            "is_online": True,
            "last_seen": timezone.now().isoformat(),
        },
    )


@sio.event
async def disconnect(sid: str, reason: Any = None):
    session = await _current_user(sid)
    if session is None:
        return
    user_id = session["user_id"]
    online_users.pop(user_id, None)
    logger.info("User %s disconnected (%s)", user_id, reason)
    await sio.emit(
        "user_offline",
        {
            "user_id": user_id,
            "is_online": False,
            "last_seen": timezone.now().isoformat(),
        },
    )


# Chat ----------------------------------------------------------------------
@sio.event
async def join_chat(sid: str, data: Any):
    session = await _current_user(sid)
    chat_id = _field(data, "chat_id")
    if session is None or chat_id is None:
        return
    if not await _is_chat_participant(chat_id, session["user_id"]):
        await sio.emit(
            "error", {"message": "Chat not found or access denied"}, to=sid
        )
        return
    await sio.enter_room(sid, room_for_chat(chat_id))
    logger.debug("User %s joined chat %s", session["user_id"], chat_id)


@sio.event
async def leave_chat(sid: str, data: Any):
    chat_id = _field(data, "chat_id")
    if chat_id is None:
        return
    await sio.leave_room(sid, room_for_chat(chat_id))


async def _relay_typing(sid: str, data: Any, *, is_typing: bool) -> None:
    session = await _current_user(sid)
    chat_id = _field(data, "chat_id")
    if session is None or chat_id is None:
        return
    await sio.emit(
        "user_typing",
        {
            "user_id": session["user_id"],
            "username": session["username"],
            "chat_id": chat_id,
            "is_typing": is_typing,
        },
        room=room_for_chat(chat_id),
        skip_sid=sid,
    )


@sio.event
async def typing_start(sid: str, data: Any):
    await _relay_typing(sid, data, is_typing=True)


@sio.event
async def typing_stop(sid: str, data: Any):
    await _relay_typing(sid, data, is_typing=False)


@sio.event
async def mark_as_read(sid: str, data: Any):
    session = await _current_user(sid)
    chat_id = _field(data, "chat_id")
    if session is None or chat_id is None:
        return
    await sio.emit(
        "message_read",
        {
            "user_id": session["user_id"],
            "message_id": data.get("message_id") if isinstance(data, dict) else None,
            "chat_id": chat_id,
            "read_at": timezone.now().isoformat(),
        },
        room=room_for_chat(chat_id),
        skip_sid=sid,
    )


# Code sessions ---------------------------------------------------------------
@sio.event
async def join_session(sid: str, data: Any):
    session = await _current_user(sid)
    session_id = _field(data, "session_id")
    if session is None or session_id is None:
        return
    count = await _session_participant_count(session_id, session["user_id"])
    if count is None:
        await sio.emit(
            "error", {"message": "Session not found or access denied"}, to=sid
        )
        return
    await sio.enter_room(sid, room_for_session(session_id))
    await sio.emit(
        "user_joined_session",
        {
            "session_id": session_id,
            "user": {
                "id": session["user_id"],
                "username": session["username"],
                "avatar": session.get("avatar"),
            },
            "participant_count": count,
        },
        room=room_for_session(session_id),
        skip_sid=sid,
    )


@sio.event
async def leave_session(sid: str, data: Any):
    session = await _current_user(sid)
    session_id = _field(data, "session_id")
    if session is None or session_id is None:
        return
    await sio.leave_room(sid, room_for_session(session_id))
    await sio.emit(
        "user_left_session",
        {"session_id": session_id, "user_id": session["user_id"]},
        room=room_for_session(session_id),
        skip_sid=sid,
    )


def _in_session_room(sid: str, session_id: Any) -> bool:
    return room_for_session(session_id) in sio.rooms(sid)


@sio.event
async def code_change(sid: str, data: Any):
    session = await _current_user(sid)
    session_id = _field(data, "session_id")
    if session is None or session_id is None or not isinstance(data, dict):
        return
    if not _in_session_room(sid, session_id):
        return
    await sio.emit(
        "code_updated",
        {
            "session_id": session_id,
            "code": data.get("code", ""),
            "updated_by": session["user_id"],
            "cursor_position": data.get("cursor_position"),
        },
        room=room_for_session(session_id),
        skip_sid=sid,
    )


@sio.event
async def cursor_move(sid: str, data: Any):
    session = await _current_user(sid)
    session_id = _field(data, "session_id")
    if session is None or session_id is None or not isinstance(data, dict):
        return
    if not _in_session_room(sid, session_id):
        return
    await sio.emit(
        "cursor_updated",
        {
            "session_id": session_id,
            "user_id": session["user_id"],
            "cursor_position": data.get("cursor_position"),
        },
        room=room_for_session(session_id),
        skip_sid=sid,
    )


@sio.event
async def user_typing_session(sid: str, data: Any):
    session = await _current_user(sid)
    session_id = _field(data, "session_id")
    if session is None or session_id is None or not isinstance(data, dict):
        return
    if not _in_session_room(sid, session_id):
        return
    await sio.emit(
        "user_typing_session",
        {
            "session_id": session_id,
            "user_id": session["user_id"],
            "is_typing": bool(data.get("is_typing")),
        },
        room=room_for_session(session_id),
        skip_sid=sid,
    )

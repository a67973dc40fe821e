"""Event publishers handed to the domain services.

Services never reach for the Socket.IO server directly; they receive an
``EventPublisher`` and call ``to_room``/``to_user``/``to_chat``/``to_session``.
Emission is fire-and-forget: failures are logged and dropped, and events for
rooms nobody has joined simply vanish.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from functools import lru_cache
from typing import Any
from typing import Protocol

from asgiref.sync import async_to_sync
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


def room_for_user(user_id: Any) -> str:
    return f"user:{user_id}"


def room_for_chat(chat_id: Any) -> str:
    return f"chat:{chat_id}"


def room_for_session(session_id: Any) -> str:
    return f"session:{session_id}"


class EventPublisher(Protocol):
    def to_room(self, room: str, event: str, payload: dict[str, Any]) -> None: ...

    def to_user(self, user_id: Any, event: str, payload: dict[str, Any]) -> None: ...

    def to_chat(self, chat_id: Any, event: str, payload: dict[str, Any]) -> None: ...

    def to_session(
        self, session_id: Any, event: str, payload: dict[str, Any]
    ) -> None: ...


class BasePublisher:
    def to_room(self, room: str, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError

    def to_user(self, user_id: Any, event: str, payload: dict[str, Any]) -> None:
        self.to_room(room_for_user(user_id), event, payload)

    def to_chat(self, chat_id: Any, event: str, payload: dict[str, Any]) -> None:
        self.to_room(room_for_chat(chat_id), event, payload)

    def to_session(self, session_id: Any, event: str, payload: dict[str, Any]) -> None:
        self.to_room(room_for_session(session_id), event, payload)


class SocketIOPublisher(BasePublisher):
    """Emit through the shared AsyncServer from sync Django code."""

    def to_room(self, room: str, event: str, payload: dict[str, Any]) -> None:
        from collabhub.realtime.socketio import sio  # noqa: PLC0415

        try:
            async_to_sync(sio.emit)(event, payload, room=room)
        except Exception:  # noqa: BLE001 - realtime delivery is best-effort
            logger.exception("Realtime emit of %s to %s failed", event, room)


@dataclass(frozen=True)
class PublishedEvent:
    room: str
    event: str
    payload: dict[str, Any]


@dataclass
class MemoryPublisher(BasePublisher):
    """Records events in-process; used by the test settings."""

    events: list[PublishedEvent] = field(default_factory=list)

    def to_room(self, room: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append(PublishedEvent(room=room, event=event, payload=payload))

    def named(self, event: str) -> list[PublishedEvent]:
        return [e for e in self.events if e.event == event]

    def clear(self) -> None:
        self.events.clear()


@lru_cache(maxsize=1)
def get_publisher() -> BasePublisher:
    return import_string(settings.REALTIME_PUBLISHER)()

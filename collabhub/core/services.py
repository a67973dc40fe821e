from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction

from collabhub.core.cache import CollabCache
from collabhub.realtime.publisher import get_publisher

if TYPE_CHECKING:
    from collabhub.realtime.publisher import EventPublisher


class Service:
    """Base for domain services: carries the injected cache and event publisher."""

    def __init__(
        self,
        *,
        cache: CollabCache | None = None,
        publisher: EventPublisher | None = None,
    ):
        self.cache = cache if cache is not None else CollabCache()
        self.publisher = publisher if publisher is not None else get_publisher()

    # Events are published once the surrounding transaction (if any) commits.
    def emit_to_chat(self, chat_id: Any, event: str, payload: dict[str, Any]) -> None:
        transaction.on_commit(partial(self.publisher.to_chat, chat_id, event, payload))

    def emit_to_session(
        self, session_id: Any, event: str, payload: dict[str, Any]
    ) -> None:
        transaction.on_commit(
            partial(self.publisher.to_session, session_id, event, payload)
        )

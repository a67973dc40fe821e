"""Chat persistence, caching and realtime fan-out.

Every mutation invalidates the message pages of the chat and the chat lists
of all participants, then publishes to the ``chat:<id>`` room once the
transaction has committed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db.models import Count
from django.db.models import F
from django.db.models import Prefetch
from django.utils import timezone
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError

from collabhub.chats.api.serializers import ChatSerializer
from collabhub.chats.api.serializers import MessageSerializer
from collabhub.chats.models import Chat
from collabhub.chats.models import Message
from collabhub.chats.models import MessageRead
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Chat not found or access denied"
MESSAGE_DENIED = "Message not found or access denied"


def chats_tag(user_id: Any) -> str:
    return f"chats:user:{user_id}"


def messages_tag(chat_id: Any) -> str:
    return f"chat:{chat_id}:messages"


def chat_queryset():
    return Chat.objects.select_related(
        "created_by", "last_message__sender"
    ).prefetch_related("participants")


def message_queryset():
    return Message.objects.select_related("sender", "reply_to").prefetch_related(
        Prefetch("reads", queryset=MessageRead.objects.order_by("read_at"))
    )


class ChatService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(self, chat: Chat, user_ids: Iterable[Any] | None = None) -> None:
        if user_ids is None:
            user_ids = chat.participants.values_list("pk", flat=True)
        user_ids = list(user_ids)
        self.cache.invalidate_tags(
            messages_tag(chat.pk), *(chats_tag(u) for u in user_ids)
        )
        self.cache.invalidate_user_lists(user_ids, "chat_unread")

    def _participating(self, user: User, chat_id: Any) -> Chat:
        chat = Chat.for_participant(user).filter(pk=chat_id).first()
        if chat is None:
            raise NotFound(ACCESS_DENIED)
        return chat

    def _chat_view(self, chat_id: Any) -> dict[str, Any]:
        return ChatSerializer(chat_queryset().get(pk=chat_id)).data

    def _message_view(self, message_id: Any) -> dict[str, Any]:
        return MessageSerializer(message_queryset().get(pk=message_id)).data

    # Chats -------------------------------------------------------------
    def create_chat(self, user: User, data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        """Create a chat, or return the existing direct chat for the same pair.

        Returns the chat view and whether a new chat was created.
        """
        chat_type = data.get("type", Chat.Type.DIRECT)
        participant_ids = list(dict.fromkeys([*data["participants"], user.pk]))
        if chat_type == Chat.Type.DIRECT and len(participant_ids) != 2:  # noqa: PLR2004
            msg = "Direct chat must have exactly 2 participants"
            raise ValidationError(msg)
        if chat_type == Chat.Type.GROUP:
            if len(participant_ids) < 2:  # noqa: PLR2004
                msg = "Group chat must have at least 2 participants"
                raise ValidationError(msg)
            if not data.get("name", "").strip():
                msg = "Group chat name is required"
                raise ValidationError(msg)
        participants = list(User.objects.filter(pk__in=participant_ids))
        if len(participants) != len(participant_ids):
            msg = "Some participants not found"
            raise ValidationError(msg)

        if chat_type == Chat.Type.DIRECT:
            other_id = next(pk for pk in participant_ids if pk != user.pk)
            existing = (
                Chat.objects.filter(type=Chat.Type.DIRECT, participants=user)
                .filter(participants=other_id)
                .first()
            )
            if existing is not None:
                return self._chat_view(existing.pk), False

        chat = Chat.objects.create(
            type=chat_type,
            name=data.get("name", "") if chat_type == Chat.Type.GROUP else "",
            description=(
                data.get("description", "") if chat_type == Chat.Type.GROUP else ""
            ),
            created_by=user,
        )
        chat.participants.set(participants)
        self.invalidate(chat, participant_ids)
        logger.info("Chat %s created by user %s", chat.pk, user.pk)
        return self._chat_view(chat.pk), True

    def list_chats(self, user: User, page: int, limit: int) -> dict[str, Any]:
        def produce():
            queryset = chat_queryset().filter(pk__in=Chat.for_participant(user)).order_by(
                F("last_message_at").desc(nulls_last=True), "-updated_at"
            )
            chats, pagination = paginate(queryset, page, limit)
            unread = dict(
                Message.objects.filter(chat__in=chats, is_deleted=False)
                .exclude(sender=user)
                .exclude(reads__user=user)
                .values_list("chat")
                .annotate(n=Count("id"))
                .order_by()
            )
            views = []
            for chat in chats:
                view = dict(ChatSerializer(chat).data)
                view["unread_count"] = unread.get(chat.pk, 0)
                views.append(view)
            return {"chats": views, "pagination": pagination}

        return self.cache.get_or_set(
            user_key(user.pk, f"chats:{page}:{limit}"),
            produce,
            ttl("listing"),
            tags=[chats_tag(user.pk)],
        )

    # Messages ----------------------------------------------------------
    def list_messages(
        self, user: User, chat_id: Any, page: int, limit: int
    ) -> dict[str, Any]:
        self._participating(user, chat_id)

        def produce():
            # Newest page first, each page in chronological order.
            queryset = message_queryset().filter(chat_id=chat_id, is_deleted=False)
            messages, pagination = paginate(
                queryset.order_by("-created_at", "-pk"), page, limit
            )
            return {
                "messages": MessageSerializer(reversed(messages), many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            f"chat:{chat_id}:messages:{page}:{limit}",
            produce,
            ttl("listing"),
            tags=[messages_tag(chat_id)],
        )

    def send_message(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        content = data.get("content", "")
        if not content.strip():
            msg = "Message content is required"
            raise ValidationError(msg)
        chat = self._participating(user, data["chat_id"])
        reply_to_id = data.get("reply_to")
        if reply_to_id is not None and not chat.messages.filter(pk=reply_to_id).exists():
            msg = "Reply target not found"
            raise ValidationError(msg)

        message = Message.objects.create(
            chat=chat,
            sender=user,
            content=content,
            type=data.get("type", Message.Type.TEXT),
            attachments=data.get("attachments", []),
            reply_to_id=reply_to_id,
        )
        chat.last_message = message
        chat.last_message_at = message.created_at
        chat.save(update_fields=["last_message", "last_message_at", "updated_at"])

        participant_ids = list(chat.participants.values_list("pk", flat=True))
        self.invalidate(chat, participant_ids)

        message_view = self._message_view(message.pk)
        chat_view = self._chat_view(chat.pk)
        where = "chat" if chat.type == Chat.Type.DIRECT else chat.name
        self.notifications.notify_many(
            [pk for pk in participant_ids if pk != user.pk],
            sender=user,
            notification_type=Notification.Type.NEW_MESSAGE,
            title="New message",
            message=f"New message in {where}",
            related_link=f"/chats/{chat.pk}",
        )
        self.emit_to_chat(chat.pk, "new_message", message_view)
        self.emit_to_chat(chat.pk, "chat_updated", chat_view)
        return message_view

    def _own_message(self, user: User, message_id: Any) -> Message:
        message = (
            Message.objects.select_related("chat")
            .filter(pk=message_id, sender=user, is_deleted=False)
            .first()
        )
        if message is None:
            raise NotFound(MESSAGE_DENIED)
        return message

    def update_message(
        self, user: User, message_id: Any, content: str
    ) -> dict[str, Any]:
        if not content.strip():
            msg = "Message content is required"
            raise ValidationError(msg)
        message = self._own_message(user, message_id)
        message.content = content
        message.is_edited = True
        message.edited_at = timezone.now()
        message.save(update_fields=["content", "is_edited", "edited_at", "updated_at"])
        self.invalidate(message.chat)
        view = self._message_view(message.pk)
        self.emit_to_chat(message.chat_id, "message_updated", view)
        return view

    def delete_message(self, user: User, message_id: Any) -> None:
        message = self._own_message(user, message_id)
        message.soft_delete()
        message.save(update_fields=["is_deleted", "deleted_at", "content", "updated_at"])
        self.invalidate(message.chat)
        self.emit_to_chat(
            message.chat_id,
            "message_deleted",
            {"message_id": message.pk, "chat_id": message.chat_id},
        )

    def mark_read(self, user: User, chat_id: Any) -> int:
        chat = self._participating(user, chat_id)
        unread_ids = list(
            chat.messages.exclude(sender=user)
            .exclude(reads__user=user)
            .values_list("pk", flat=True)
        )
        now = timezone.now()
        MessageRead.objects.bulk_create(
            [MessageRead(message_id=pk, user=user, read_at=now) for pk in unread_ids],
            ignore_conflicts=True,
        )
        self.cache.invalidate_tags(messages_tag(chat.pk), chats_tag(user.pk))
        self.cache.invalidate_user_lists([user.pk], "chat_unread")
        if unread_ids:
            self.emit_to_chat(
                chat.pk,
                "message_read",
                {
                    "user_id": user.pk,
                    "chat_id": chat.pk,
                    "message_ids": unread_ids,
                    "read_at": now.isoformat(),
                },
            )
        return len(unread_ids)

    def unread_count(self, user: User) -> int:
        def produce():
            return (
                Message.objects.filter(
                    chat__in=Chat.for_participant(user), is_deleted=False
                )
                .exclude(sender=user)
                .exclude(reads__user=user)
                .count()
            )

        return self.cache.get_or_set(
            user_key(user.pk, "chat_unread"), produce, ttl("stats")
        )

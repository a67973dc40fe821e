from __future__ import annotations

from rest_framework import serializers

from collabhub.chats.models import Chat
from collabhub.chats.models import Message
from collabhub.core.refs import Populated
from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import optional_user_summary
from collabhub.core.refs import related
from collabhub.core.refs import user_summary


def participant_summary(user) -> dict:
    return {**user_summary(Populated(user)), "email": user.email}


class MessageSerializer(serializers.ModelSerializer):
    sender = RelatedSummaryField("sender")
    reply_to = serializers.SerializerMethodField()
    read_by = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "chat",
            "sender",
            "content",
            "type",
            "attachments",
            "reply_to",
            "is_edited",
            "edited_at",
            "is_deleted",
            "read_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_reply_to(self, obj: Message) -> dict | None:
        reply = related(obj, "reply_to")
        if not isinstance(reply, Populated):
            return None if reply is None else {"id": reply.id}
        return {
            "id": reply.entity.pk,
            "content": reply.entity.content,
            "sender": reply.entity.sender_id,
        }

    def get_read_by(self, obj: Message) -> list[dict]:
        return [
            {"user": read.user_id, "read_at": read.read_at} for read in obj.reads.all()
        ]


class ChatSerializer(serializers.ModelSerializer):
    created_by = RelatedSummaryField("created_by", render=optional_user_summary)
    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            "id",
            "type",
            "name",
            "description",
            "created_by",
            "participants",
            "last_message",
            "last_message_at",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Chat) -> list[dict]:
        return [participant_summary(user) for user in obj.participants.all()]

    def get_last_message(self, obj: Chat) -> dict | None:
        last = related(obj, "last_message")
        if not isinstance(last, Populated):
            return None
        message = last.entity
        return {
            "id": message.pk,
            "content": message.content,
            "sender": optional_user_summary(related(message, "sender")),
            "created_at": message.created_at,
        }


class CreateChatSerializer(serializers.Serializer):
    participants = serializers.ListField(
        child=serializers.IntegerField(), allow_empty=False
    )
    type = serializers.ChoiceField(choices=Chat.Type.choices, default=Chat.Type.DIRECT)
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    description = serializers.CharField(
        max_length=500, required=False, allow_blank=True
    )


class SendMessageSerializer(serializers.Serializer):
    chat_id = serializers.IntegerField()
    content = serializers.CharField(max_length=5000, allow_blank=True, trim_whitespace=False)
    type = serializers.ChoiceField(choices=Message.Type.choices, default=Message.Type.TEXT)
    attachments = serializers.ListField(
        child=serializers.JSONField(), required=False, default=list
    )
    reply_to = serializers.IntegerField(required=False, allow_null=True)


class UpdateMessageSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=5000, allow_blank=True, trim_whitespace=False)

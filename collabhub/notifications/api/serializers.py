from __future__ import annotations

from rest_framework import serializers

from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import optional_user_summary
from collabhub.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    sender = RelatedSummaryField("sender", render=optional_user_summary)
    unread = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = (
            "id",
            "recipient",
            "sender",
            "title",
            "message",
            "notification_type",
            "is_read",
            "unread",
            "created_at",
            "related_link",
        )
        read_only_fields = fields

    def get_unread(self, obj: Notification) -> bool:
        return not bool(obj.is_read)

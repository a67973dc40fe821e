from rest_framework import serializers

from collabhub.core.refs import RelatedSummaryField
from collabhub.social.models import FriendRequest


class FriendRequestSerializer(serializers.ModelSerializer):
    sender = RelatedSummaryField("sender")
    receiver = RelatedSummaryField("receiver")

    class Meta:
        model = FriendRequest
        fields = ["id", "sender", "receiver", "status", "created_at", "updated_at"]
        read_only_fields = fields


class SendFriendRequestSerializer(serializers.Serializer):
    receiver_id = serializers.IntegerField()


class RespondFriendRequestSerializer(serializers.Serializer):
    ACTIONS = ("accept", "reject")

    request_id = serializers.IntegerField()
    action = serializers.ChoiceField(choices=ACTIONS)


class FriendRequestFilterSerializer(serializers.Serializer):
    type = serializers.ChoiceField(
        choices=("sent", "received", "all"), default="all", required=False
    )


class FollowSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()

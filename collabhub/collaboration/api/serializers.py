from rest_framework import serializers

from collabhub.chats.api.serializers import participant_summary
from collabhub.collaboration.models import CodeSession
from collabhub.collaboration.models import SessionParticipant
from collabhub.core.refs import Populated
from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import user_summary


def owner_summary(ref) -> dict:
    if isinstance(ref, Populated):
        return participant_summary(ref.entity)
    return user_summary(ref)


class CursorPositionSerializer(serializers.Serializer):
    line = serializers.IntegerField(min_value=0)
    column = serializers.IntegerField(min_value=0)


class SessionParticipantSerializer(serializers.ModelSerializer):
    user = RelatedSummaryField("user", render=owner_summary)
    cursor_position = CursorPositionSerializer(read_only=True, allow_null=True)

    class Meta:
        model = SessionParticipant
        fields = ["user", "joined_at", "last_active", "cursor_position"]


class CodeSessionSerializer(serializers.ModelSerializer):
    owner = RelatedSummaryField("owner", render=owner_summary)
    participants = SessionParticipantSerializer(many=True, read_only=True)
    participant_count = serializers.SerializerMethodField()
    invited_users = serializers.SerializerMethodField()

    class Meta:
        model = CodeSession
        fields = [
            "id",
            "title",
            "description",
            "language",
            "code",
            "owner",
            "participants",
            "participant_count",
            "is_active",
            "is_public",
            "max_participants",
            "invite_code",
            "invited_users",
            "tags",
            "ended_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_participant_count(self, obj: CodeSession) -> int:
        return len(obj.participants.all())

    def get_invited_users(self, obj: CodeSession) -> list[int]:
        return [user.pk for user in obj.invited_users.all()]


class CodeSessionCreateSerializer(serializers.ModelSerializer):
    tags = serializers.ListField(
        child=serializers.CharField(max_length=20), required=False, default=list
    )

    class Meta:
        model = CodeSession
        fields = [
            "title",
            "description",
            "language",
            "code",
            "is_public",
            "max_participants",
            "tags",
        ]


class SessionListParamsSerializer(serializers.Serializer):
    language = serializers.ChoiceField(
        choices=CodeSession.Language.choices, required=False
    )


class UpdateCodeSerializer(serializers.Serializer):
    code = serializers.CharField(allow_blank=True, trim_whitespace=False)
    cursor_position = CursorPositionSerializer(required=False)


class UpdateCursorSerializer(serializers.Serializer):
    cursor_position = CursorPositionSerializer()


class InviteUserSerializer(serializers.Serializer):
    invited_user_id = serializers.IntegerField()

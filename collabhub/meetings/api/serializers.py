from rest_framework import serializers

from collabhub.core.refs import Populated
from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import project_summary
from collabhub.core.refs import user_summary
from collabhub.meetings.models import Meeting

END_BEFORE_START = "End date must be after start date"
LINK_REQUIRED = "Meeting link is required for online meetings"


class MeetingSerializer(serializers.ModelSerializer):
    assigned_to = RelatedSummaryField("assigned_to")
    assigned_by = RelatedSummaryField("assigned_by")
    project = RelatedSummaryField("project", render=project_summary)
    attendees = serializers.SerializerMethodField()

    class Meta:
        model = Meeting
        fields = [
            "id",
            "title",
            "description",
            "type",
            "status",
            "assigned_to",
            "assigned_by",
            "project",
            "start_date",
            "end_date",
            "location",
            "meeting_link",
            "tags",
            "attendees",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_attendees(self, obj: Meeting) -> list[dict]:
        return [user_summary(Populated(user)) for user in obj.attendees.all()]


class MeetingCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(
        max_length=1000, required=False, allow_blank=True
    )
    type = serializers.ChoiceField(choices=Meeting.Type.choices, default=Meeting.Type.ONLINE)
    assigned_to = serializers.IntegerField()
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    meeting_link = serializers.URLField(max_length=500, required=False, allow_blank=True)
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, default=list
    )
    project = serializers.IntegerField(required=False, allow_null=True)
    attendees = serializers.ListField(
        child=serializers.IntegerField(), required=False, default=list
    )

    def validate(self, attrs):
        if attrs["end_date"] <= attrs["start_date"]:
            raise serializers.ValidationError({"end_date": END_BEFORE_START})
        if attrs["type"] == Meeting.Type.ONLINE and not attrs.get("meeting_link"):
            raise serializers.ValidationError({"meeting_link": LINK_REQUIRED})
        return attrs


class MeetingUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(
        max_length=1000, required=False, allow_blank=True
    )
    type = serializers.ChoiceField(choices=Meeting.Type.choices, required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    meeting_link = serializers.URLField(max_length=500, required=False, allow_blank=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    project = serializers.IntegerField(required=False, allow_null=True)


class MeetingRescheduleSerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    meeting_link = serializers.URLField(max_length=500, required=False, allow_blank=True)


class MeetingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Meeting.Status.choices)


class MeetingReassignSerializer(serializers.Serializer):
    assigned_to = serializers.IntegerField()


class MeetingAttendeesSerializer(serializers.Serializer):
    attendees = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)

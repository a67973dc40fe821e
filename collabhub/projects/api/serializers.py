from __future__ import annotations

from rest_framework import serializers

from collabhub.core.refs import Populated
from collabhub.core.refs import Reference
from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import optional_user_summary
from collabhub.core.refs import related
from collabhub.projects.models import Priority
from collabhub.projects.models import Project
from collabhub.projects.models import ProjectLink
from collabhub.projects.models import ProjectMember


def team_summary(ref):
    if isinstance(ref, Populated):
        team = ref.entity
        return {"id": team.pk, "name": team.name, "description": team.description}
    if isinstance(ref, Reference):
        return {"id": ref.id}
    return None


class ProjectMemberSerializer(serializers.ModelSerializer):
    user = RelatedSummaryField("user")

    class Meta:
        model = ProjectMember
        fields = ["user", "role", "joined_at"]
        read_only_fields = fields


class ProjectLinkSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectLink
        fields = ["id", "title", "url", "type"]


class ProjectSerializer(serializers.ModelSerializer):
    """Full project view including member, link, task and meeting summaries."""

    created_by = RelatedSummaryField("created_by")
    team = RelatedSummaryField("team", render=team_summary)
    members = ProjectMemberSerializer(source="memberships", many=True, read_only=True)
    links = ProjectLinkSerializer(many=True, read_only=True)
    tasks = serializers.SerializerMethodField()
    meetings = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            "id",
            "name",
            "description",
            "logo",
            "status",
            "priority",
            "start_date",
            "end_date",
            "created_by",
            "team",
            "members",
            "member_count",
            "links",
            "tags",
            "progress",
            "is_public",
            "allow_member_invites",
            "allow_member_tasks",
            "allow_member_meetings",
            "tasks",
            "meetings",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_tasks(self, obj: Project) -> list[dict]:
        return [
            {
                "id": task.pk,
                "title": task.title,
                "status": task.status,
                "priority": task.priority,
                "assign_to": optional_user_summary(related(task, "assign_to")),
            }
            for task in obj.tasks.all()
        ]

    def get_meetings(self, obj: Project) -> list[dict]:
        return [
            {
                "id": meeting.pk,
                "title": meeting.title,
                "status": meeting.status,
                "type": meeting.type,
                "start_date": meeting.start_date,
                "assigned_to": optional_user_summary(related(meeting, "assigned_to")),
            }
            for meeting in obj.meetings.all()
        ]

    def get_member_count(self, obj: Project) -> int:
        return len(obj.memberships.all())


class ProjectWriteSerializer(serializers.ModelSerializer):
    members = serializers.ListField(
        child=serializers.IntegerField(), write_only=True, required=False
    )
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False
    )

    class Meta:
        model = Project
        fields = [
            "name",
            "description",
            "logo",
            "status",
            "priority",
            "start_date",
            "end_date",
            "team",
            "tags",
            "progress",
            "is_public",
            "allow_member_invites",
            "allow_member_tasks",
            "allow_member_meetings",
            "members",
        ]

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end <= start:
            raise serializers.ValidationError(
                {"end_date": "End date must be after start date"}
            )
        return attrs


class ProjectListParamsSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=Project.Status.choices, required=False, allow_blank=True, default=""
    )
    priority = serializers.ChoiceField(
        choices=Priority.choices, required=False, allow_blank=True, default=""
    )
    search = serializers.CharField(required=False, allow_blank=True, default="")


class AddProjectMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(
        choices=ProjectMember.Role.choices, default=ProjectMember.Role.MEMBER
    )


class RemoveProjectMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class ProjectMemberRoleSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=ProjectMember.Role.choices)


class UpdateProjectLinkSerializer(serializers.Serializer):
    link_id = serializers.IntegerField()
    title = serializers.CharField(max_length=200, required=False)
    url = serializers.URLField(max_length=500, required=False)
    type = serializers.ChoiceField(choices=ProjectLink.Type.choices, required=False)


class RemoveProjectLinkSerializer(serializers.Serializer):
    link_id = serializers.IntegerField()

from __future__ import annotations

from rest_framework import serializers

from collabhub.core.refs import Populated
from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import user_summary
from collabhub.teams.models import Team
from collabhub.teams.models import TeamMember
from collabhub.users.api.serializers import avatar_url


class TeamMemberSerializer(serializers.ModelSerializer):
    user = RelatedSummaryField("user")

    class Meta:
        model = TeamMember
        fields = ["user", "role", "joined_at"]
        read_only_fields = fields


class TeamMemberListSerializer(serializers.ModelSerializer):
    """Flat member rows used by assignment dropdowns."""

    id = serializers.IntegerField(source="user.id")
    username = serializers.CharField(source="user.username")
    email = serializers.EmailField(source="user.email")
    avatar = serializers.SerializerMethodField()

    class Meta:
        model = TeamMember
        fields = ["id", "username", "email", "avatar", "role"]
        read_only_fields = fields

    def get_avatar(self, obj: TeamMember) -> str:
        return avatar_url(obj.user)


class TeamSerializer(serializers.ModelSerializer):
    created_by = RelatedSummaryField("created_by")
    members = TeamMemberSerializer(source="memberships", many=True, read_only=True)
    projects = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = [
            "id",
            "name",
            "description",
            "created_by",
            "members",
            "projects",
            "member_count",
            "is_active",
            "allow_member_invites",
            "allow_project_creation",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_projects(self, obj: Team) -> list[dict]:
        return [
            {
                "id": project.pk,
                "name": project.name,
                "status": project.status,
                "progress": project.progress,
                "created_by": user_summary(Populated(project.created_by)),
            }
            for project in obj.projects.all()
        ]

    def get_member_count(self, obj: Team) -> int:
        return len(obj.memberships.all())


class TeamWriteSerializer(serializers.ModelSerializer):
    members = serializers.ListField(
        child=serializers.IntegerField(), write_only=True, required=False
    )

    class Meta:
        model = Team
        fields = [
            "name",
            "description",
            "is_active",
            "allow_member_invites",
            "allow_project_creation",
            "members",
        ]


class TeamListParamsSerializer(serializers.Serializer):
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, allow_blank=True, default="")


class AddTeamMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(
        choices=TeamMember.Role.choices, default=TeamMember.Role.MEMBER
    )


class RemoveTeamMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class TeamMemberRoleSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=TeamMember.Role.choices)

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model

from collabhub.projects.models import Project
from collabhub.projects.models import ProjectMember
from collabhub.teams.models import Team
from collabhub.teams.models import TeamMember

User = get_user_model()


@dataclass
class RoleContext:
    user: User
    project_role: str | None
    team_role: str | None


def create_user_with_role(
    username: str,
    *,
    project: Project | None = None,
    project_role: str | None = None,
    team: Team | None = None,
    team_role: str | None = None,
) -> RoleContext:
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="TestPass123!",  # noqa: S106
    )
    if project is not None and project_role is not None:
        ProjectMember.objects.create(project=project, user=user, role=project_role)
    if team is not None and team_role is not None:
        TeamMember.objects.create(team=team, user=user, role=team_role)
    return RoleContext(user=user, project_role=project_role, team_role=team_role)

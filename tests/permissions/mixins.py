from __future__ import annotations

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from collabhub.projects.models import Project
from collabhub.projects.models import ProjectMember
from collabhub.teams.models import Team
from collabhub.teams.models import TeamMember
from tests.permissions.factories import RoleContext
from tests.permissions.factories import create_user_with_role

User = get_user_model()

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
ROLE_VIEWER = "viewer"
ROLE_OUTSIDER = "outsider"
MEMBER_ROLES = [ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER, ROLE_VIEWER]


class RoleAPITestCase(APITestCase):
    """One project and one team, with a user holding each membership role."""

    def setUp(self):
        super().setUp()
        owner = User.objects.create_user(
            username="owner",
            email="owner@example.com",
            password="TestPass123!",  # noqa: S106
        )
        self.team = Team.objects.create(name="Platform", created_by=owner)
        TeamMember.objects.create(team=self.team, user=owner, role=TeamMember.Role.OWNER)
        self.project = Project.objects.create(
            name="Ship v1",
            description="Release train",
            start_date=timezone.now(),
            created_by=owner,
            team=self.team,
        )
        ProjectMember.objects.create(
            project=self.project, user=owner, role=ProjectMember.Role.OWNER
        )
        self.roles: dict[str, RoleContext] = {
            ROLE_OWNER: RoleContext(
                user=owner, project_role=ROLE_OWNER, team_role=ROLE_OWNER
            ),
        }
        for role in (ROLE_ADMIN, ROLE_MEMBER, ROLE_VIEWER):
            self.roles[role] = create_user_with_role(
                role,
                project=self.project,
                project_role=role,
                team=self.team,
                # Teams have no viewer role.
                team_role=ROLE_MEMBER if role == ROLE_VIEWER else role,
            )
        self.roles[ROLE_OUTSIDER] = create_user_with_role(ROLE_OUTSIDER)
        self.newcomer = create_user_with_role("newcomer").user

    # Utilities -------------------------------------------------------------
    def authenticate(self, role: str):
        self.client.force_authenticate(user=self.roles[role].user)

    def assert_http_status(self, response, expected_status: int):
        msg = getattr(response, "data", response)
        assert response.status_code == expected_status, msg

    def get(self, url_name: str, *, role: str, reverse_kwargs=None, **kwargs):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.get(url, **kwargs)

    def post(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.post(url, data=payload or {}, format="json", **kwargs)

    def put(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.put(url, data=payload or {}, format="json", **kwargs)

    def patch(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.patch(url, data=payload or {}, format="json", **kwargs)

    def delete(
        self, url_name: str, *, role: str, payload=None, reverse_kwargs=None, **kwargs
    ):
        self.authenticate(role)
        url = reverse(url_name, kwargs=reverse_kwargs)
        return self.client.delete(url, data=payload, format="json", **kwargs)

    def assert_allowed(self, response):
        assert response.status_code in (
            status.HTTP_200_OK,
            status.HTTP_201_CREATED,
        ), response.data
        assert response.data["success"] is True

    def assert_denied(self, response, code=status.HTTP_404_NOT_FOUND):
        """Rows outside the caller's role look exactly like missing rows."""
        assert response.status_code == code, response.data
        assert response.data["success"] is False

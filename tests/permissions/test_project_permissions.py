from rest_framework import status

from collabhub.projects.models import ProjectLink
from collabhub.projects.models import ProjectMember
from tests.permissions.mixins import MEMBER_ROLES
from tests.permissions.mixins import ROLE_ADMIN
from tests.permissions.mixins import ROLE_MEMBER
from tests.permissions.mixins import ROLE_OUTSIDER
from tests.permissions.mixins import ROLE_OWNER
from tests.permissions.mixins import ROLE_VIEWER
from tests.permissions.mixins import RoleAPITestCase


class ProjectPermissionTests(RoleAPITestCase):
    def detail_kwargs(self):
        return {"pk": self.project.pk}

    def test_every_member_can_read(self):
        for role in MEMBER_ROLES:
            with self.subTest(role=role):
                response = self.get(
                    "api_v1:projects-detail", role=role, reverse_kwargs=self.detail_kwargs()
                )
                self.assert_allowed(response)
                assert response.data["project"]["member_count"] == len(MEMBER_ROLES)
        denied = self.get(
            "api_v1:projects-detail",
            role=ROLE_OUTSIDER,
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_denied(denied)
        assert denied.data["message"] == "Project not found"

    def test_update_requires_owner_or_admin(self):
        matrix = {
            ROLE_OWNER: True,
            ROLE_ADMIN: True,
            ROLE_MEMBER: False,
            ROLE_VIEWER: False,
            ROLE_OUTSIDER: False,
        }
        for role, allowed in matrix.items():
            with self.subTest(role=role):
                response = self.patch(
                    "api_v1:projects-detail",
                    role=role,
                    payload={"progress": 10},
                    reverse_kwargs=self.detail_kwargs(),
                )
                if allowed:
                    self.assert_allowed(response)
                else:
                    self.assert_denied(response)
                    assert (
                        response.data["message"]
                        == "Project not found or insufficient permissions"
                    )

    def test_links_require_contributor(self):
        matrix = {
            ROLE_OWNER: True,
            ROLE_ADMIN: True,
            ROLE_MEMBER: True,
            ROLE_VIEWER: False,
            ROLE_OUTSIDER: False,
        }
        for role, allowed in matrix.items():
            with self.subTest(role=role):
                response = self.post(
                    "api_v1:projects-links",
                    role=role,
                    payload={"title": f"{role} link", "url": "https://example.com"},
                    reverse_kwargs=self.detail_kwargs(),
                )
                if allowed:
                    self.assert_allowed(response)
                else:
                    self.assert_denied(response)
        assert ProjectLink.objects.count() == 3

    def test_adding_members_requires_owner_or_admin(self):
        denied = self.post(
            "api_v1:projects-members",
            role=ROLE_MEMBER,
            payload={"user_id": self.newcomer.pk},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_denied(denied)
        allowed = self.post(
            "api_v1:projects-members",
            role=ROLE_ADMIN,
            payload={"user_id": self.newcomer.pk, "role": ROLE_VIEWER},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_allowed(allowed)
        assert ProjectMember.objects.get(user=self.newcomer).role == ROLE_VIEWER

    def test_admin_cannot_remove_owner(self):
        response = self.delete(
            "api_v1:projects-members",
            role=ROLE_ADMIN,
            payload={"user_id": self.roles[ROLE_OWNER].user.pk},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_http_status(response, status.HTTP_400_BAD_REQUEST)
        assert response.data["message"] == "Cannot remove the project owner"

    def test_role_changes_and_delete_are_owner_only(self):
        target = self.roles[ROLE_MEMBER].user.pk
        denied = self.put(
            "api_v1:projects-member-role",
            role=ROLE_ADMIN,
            payload={"user_id": target, "role": ROLE_ADMIN},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_denied(denied)
        allowed = self.put(
            "api_v1:projects-member-role",
            role=ROLE_OWNER,
            payload={"user_id": target, "role": ROLE_ADMIN},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_allowed(allowed)

        for role in (ROLE_ADMIN, ROLE_MEMBER):
            with self.subTest(role=role):
                self.assert_denied(
                    self.delete(
                        "api_v1:projects-detail",
                        role=role,
                        reverse_kwargs=self.detail_kwargs(),
                    )
                )
        self.assert_allowed(
            self.delete(
                "api_v1:projects-detail",
                role=ROLE_OWNER,
                reverse_kwargs=self.detail_kwargs(),
            )
        )

    def test_closed_team_blocks_member_project_creation(self):
        self.team.allow_project_creation = False
        self.team.save(update_fields=["allow_project_creation"])
        payload = {
            "name": "Side quest",
            "description": "x",
            "start_date": "2030-01-01T00:00:00Z",
            "team": self.team.pk,
        }
        denied = self.post("api_v1:projects-list", role=ROLE_MEMBER, payload=payload)
        self.assert_denied(denied, status.HTTP_403_FORBIDDEN)
        assert (
            denied.data["message"]
            == "This team does not allow members to create projects"
        )
        allowed = self.post("api_v1:projects-list", role=ROLE_ADMIN, payload=payload)
        self.assert_http_status(allowed, status.HTTP_201_CREATED)

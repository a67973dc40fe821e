from rest_framework import status

from collabhub.teams.models import TeamMember
from tests.permissions.mixins import ROLE_ADMIN
from tests.permissions.mixins import ROLE_MEMBER
from tests.permissions.mixins import ROLE_OUTSIDER
from tests.permissions.mixins import ROLE_OWNER
from tests.permissions.mixins import ROLE_VIEWER
from tests.permissions.mixins import RoleAPITestCase


class TeamPermissionTests(RoleAPITestCase):
    def detail_kwargs(self):
        return {"pk": self.team.pk}

    def test_members_and_outsiders(self):
        self.assert_allowed(
            self.get("api_v1:teams-members", role=ROLE_VIEWER, reverse_kwargs=self.detail_kwargs())
        )
        denied = self.get(
            "api_v1:teams-members", role=ROLE_OUTSIDER, reverse_kwargs=self.detail_kwargs()
        )
        self.assert_denied(denied)
        assert denied.data["message"] == "Team not found"

    def test_update_requires_manager(self):
        matrix = {ROLE_OWNER: True, ROLE_ADMIN: True, ROLE_MEMBER: False, ROLE_OUTSIDER: False}
        for role, allowed in matrix.items():
            with self.subTest(role=role):
                response = self.patch(
                    "api_v1:teams-detail",
                    role=role,
                    payload={"description": role},
                    reverse_kwargs=self.detail_kwargs(),
                )
                if allowed:
                    self.assert_allowed(response)
                else:
                    self.assert_denied(response)

    def test_admin_adds_member_with_role(self):
        response = self.post(
            "api_v1:teams-members",
            role=ROLE_ADMIN,
            payload={"user_id": self.newcomer.pk, "role": ROLE_ADMIN},
            reverse_kwargs=self.detail_kwargs(),
        )
        self.assert_allowed(response)
        assert TeamMember.objects.get(team=self.team, user=self.newcomer).role == ROLE_ADMIN

    def test_role_change_is_owner_only(self):
        payload = {"user_id": self.roles[ROLE_MEMBER].user.pk, "role": ROLE_ADMIN}
        self.assert_denied(
            self.put(
                "api_v1:teams-member-role",
                role=ROLE_ADMIN,
                payload=payload,
                reverse_kwargs=self.detail_kwargs(),
            )
        )
        self.assert_allowed(
            self.put(
                "api_v1:teams-member-role",
                role=ROLE_OWNER,
                payload=payload,
                reverse_kwargs=self.detail_kwargs(),
            )
        )

    def test_delete_is_owner_only(self):
        self.assert_denied(
            self.delete("api_v1:teams-detail", role=ROLE_ADMIN, reverse_kwargs=self.detail_kwargs())
        )
        response = self.delete(
            "api_v1:teams-detail", role=ROLE_OWNER, reverse_kwargs=self.detail_kwargs()
        )
        self.assert_http_status(response, status.HTTP_200_OK)
        self.project.refresh_from_db()
        assert self.project.team_id is None

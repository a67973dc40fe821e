import pytest
from rest_framework import status

from collabhub.notifications.models import Notification
from collabhub.teams.models import Team
from collabhub.teams.models import TeamMember

pytestmark = pytest.mark.django_db


def create_team(client, **extra):
    r = client.post(
        "/api/v1/teams/", {"name": "Platform", "description": "Core", **extra}, format="json"
    )
    assert r.status_code == status.HTTP_201_CREATED, r.data
    return r.data["team"]


def test_create_team_with_members(api_client, user, other_user):
    team = create_team(api_client, members=[other_user.pk, 9999])
    assert team["member_count"] == 2
    roles = {m["user"]["id"]: m["role"] for m in team["members"]}
    assert roles == {user.pk: "owner", other_user.pk: "member"}
    assert Notification.objects.filter(
        recipient=other_user, notification_type=Notification.Type.TEAM_INVITE
    ).exists()


def test_team_list_only_shows_visible_teams(api_client, client_for, other_user, third_user):
    create_team(api_client, members=[other_user.pk])
    assert len(client_for(other_user).get("/api/v1/teams/").data["teams"]) == 1
    assert client_for(third_user).get("/api/v1/teams/").data["teams"] == []


def test_new_member_sees_team_after_add(api_client, client_for, other_user):
    team = create_team(api_client)
    bob = client_for(other_user)
    assert bob.get("/api/v1/teams/").data["teams"] == []
    assert bob.get(f"/api/v1/teams/{team['id']}/").status_code == 404

    r = api_client.post(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": other_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_200_OK

    assert [t["id"] for t in bob.get("/api/v1/teams/").data["teams"]] == [team["id"]]
    members = bob.get(f"/api/v1/teams/{team['id']}/members/").data["members"]
    assert {m["username"] for m in members} == {"alice", "bob"}


def test_duplicate_member_rejected(api_client, other_user):
    team = create_team(api_client, members=[other_user.pk])
    r = api_client.post(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": other_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "User is already a member of this team"


def test_member_cannot_manage_team(api_client, client_for, other_user, third_user):
    team = create_team(api_client, members=[other_user.pk])
    bob = client_for(other_user)
    r = bob.put(f"/api/v1/teams/{team['id']}/", {"name": "Hijacked"}, format="json")
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Team not found or insufficient permissions"
    r = bob.post(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": third_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_admin_can_manage_but_not_remove_owner(api_client, client_for, user, other_user):
    team = create_team(api_client, members=[other_user.pk])
    r = api_client.put(
        f"/api/v1/teams/{team['id']}/members/role/",
        {"user_id": other_user.pk, "role": "admin"},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK
    bob = client_for(other_user)
    r = bob.patch(f"/api/v1/teams/{team['id']}/", {"name": "Platform II"}, format="json")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["team"]["name"] == "Platform II"

    r = bob.delete(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "Cannot remove the team owner"


def test_owner_role_is_fixed(api_client, user):
    team = create_team(api_client)
    r = api_client.put(
        f"/api/v1/teams/{team['id']}/members/role/",
        {"user_id": user.pk, "role": "member"},
        format="json",
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.data["message"] == "Cannot change the team owner's role"


def test_remove_member_drops_their_listing(api_client, client_for, other_user):
    team = create_team(api_client, members=[other_user.pk])
    bob = client_for(other_user)
    assert len(bob.get("/api/v1/teams/").data["teams"]) == 1
    r = api_client.delete(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": other_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_200_OK
    assert bob.get("/api/v1/teams/").data["teams"] == []
    r = api_client.delete(
        f"/api/v1/teams/{team['id']}/members/", {"user_id": other_user.pk}, format="json"
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.data["message"] == "Member not found"


def test_only_creator_deletes(api_client, client_for, other_user):
    team = create_team(api_client, members=[other_user.pk])
    TeamMember.objects.filter(user=other_user).update(role=TeamMember.Role.ADMIN)
    assert client_for(other_user).delete(f"/api/v1/teams/{team['id']}/").status_code == 404
    assert api_client.delete(f"/api/v1/teams/{team['id']}/").status_code == 200
    assert not Team.objects.exists()


def test_is_active_filter(api_client):
    create_team(api_client)
    create_team(api_client, name="Legacy", is_active=False)
    r = api_client.get("/api/v1/teams/", {"is_active": "false"})
    assert [t["name"] for t in r.data["teams"]] == ["Legacy"]
    r = api_client.get("/api/v1/teams/")
    assert len(r.data["teams"]) == 2


def test_stats(api_client, other_user):
    create_team(api_client, members=[other_user.pk])
    stats = api_client.get("/api/v1/teams/stats/").data["stats"]
    assert stats["total_teams"] == 1
    assert stats["total_members"] == 2
    assert stats["total_projects"] == 0

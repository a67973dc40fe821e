from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db.models import Count
from django.db.models import Prefetch
from django.db.models import Q
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError

from collabhub.core.cache import listing_key
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.teams.api.serializers import TeamMemberListSerializer
from collabhub.teams.api.serializers import TeamSerializer
from collabhub.teams.models import Team
from collabhub.teams.models import TeamMember
from collabhub.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

TEAM = "team"
NOT_FOUND = "Team not found"
NOT_PERMITTED = "Team not found or insufficient permissions"


def teams_tag(user_id: Any) -> str:
    return f"teams:user:{user_id}"


def team_queryset():
    return Team.objects.select_related("created_by").prefetch_related(
        Prefetch(
            "memberships", queryset=TeamMember.objects.select_related("user")
        ),
        "projects__created_by",
    )


class TeamService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(self, team: Team, extra_user_ids: Iterable[Any] = ()) -> None:
        user_ids = {team.created_by_id, *extra_user_ids}
        user_ids.update(team.memberships.values_list("user_id", flat=True))
        self.cache.invalidate_entity(TEAM, team.pk)
        self.cache.invalidate_tags(*(teams_tag(u) for u in user_ids))
        self.cache.invalidate_user_lists(user_ids, "team_stats")

    def invalidate_team(self, team_id: Any) -> None:
        team = Team.objects.filter(pk=team_id).first()
        if team is not None:
            self.invalidate(team)

    def _view(self, team_id: Any) -> dict[str, Any]:
        view = TeamSerializer(team_queryset().get(pk=team_id)).data
        self.cache.cache_entity(TEAM, team_id, view)
        return view

    # Lookups -----------------------------------------------------------
    def _visible(self, user: User, team_id: Any) -> Team:
        team = Team.visible_to(user).filter(pk=team_id).first()
        if team is None:
            raise NotFound(NOT_FOUND)
        return team

    def _managed(self, user: User, team_id: Any) -> Team:
        team = Team.objects.filter(pk=team_id).first()
        if team is None or not team.is_manager(user.pk):
            raise NotFound(NOT_PERMITTED)
        return team

    def _created(self, user: User, team_id: Any) -> Team:
        team = Team.objects.filter(pk=team_id, created_by=user).first()
        if team is None:
            raise NotFound(NOT_PERMITTED)
        return team

    # Operations --------------------------------------------------------
    def create(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        data = dict(data)
        member_ids = data.pop("members", [])
        team = Team.objects.create(created_by=user, **data)
        TeamMember.objects.create(team=team, user=user, role=TeamMember.Role.OWNER)
        # Unknown ids are skipped.
        extra = list(User.objects.filter(pk__in=member_ids).exclude(pk=user.pk))
        TeamMember.objects.bulk_create(
            [TeamMember(team=team, user=member) for member in extra]
        )
        for member in extra:
            self._notify_added(user, team, member.pk)
        self.invalidate(team)
        logger.info("Team %s created by user %s", team.pk, user.pk)
        return self._view(team.pk)

    def list(  # noqa: PLR0913
        self,
        user: User,
        *,
        is_active: bool | None = None,
        search: str = "",
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        params = {
            "is_active": is_active,
            "search": search,
            "page": page,
            "limit": limit,
        }

        def produce():
            queryset = team_queryset().filter(
                pk__in=Team.visible_to(user).values("pk")
            )
            if is_active is not None:
                queryset = queryset.filter(is_active=is_active)
            if search:
                queryset = queryset.filter(
                    Q(name__icontains=search) | Q(description__icontains=search)
                )
            teams, pagination = paginate(queryset, page, limit)
            return {
                "teams": TeamSerializer(teams, many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            listing_key(user_key(user.pk, "teams"), params),
            produce,
            ttl("listing"),
            tags=[teams_tag(user.pk)],
        )

    def retrieve(self, user: User, team_id: Any) -> dict[str, Any]:
        self._visible(user, team_id)
        cached = self.cache.get_entity(TEAM, team_id)
        if cached is not None:
            return cached
        return self._view(team_id)

    def update(self, user: User, team_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        team = self._managed(user, team_id)
        for field, value in data.items():
            if field != "members":
                setattr(team, field, value)
        team.save()
        self.invalidate(team)
        return self._view(team.pk)

    def delete(self, user: User, team_id: Any) -> None:
        team = self._created(user, team_id)
        self.invalidate(team)
        team.delete()
        logger.info("Team %s deleted by user %s", team_id, user.pk)

    def add_member(
        self, user: User, team_id: Any, member_id: Any, role: str
    ) -> dict[str, Any]:
        team = self._managed(user, team_id)
        if team.memberships.filter(user_id=member_id).exists():
            msg = "User is already a member of this team"
            raise ValidationError(msg)
        if not User.objects.filter(pk=member_id).exists():
            msg = "User not found"
            raise NotFound(msg)
        TeamMember.objects.create(team=team, user_id=member_id, role=role)
        self._notify_added(user, team, member_id)
        self.invalidate(team)
        return self._view(team.pk)

    def remove_member(self, user: User, team_id: Any, member_id: Any) -> dict[str, Any]:
        team = self._managed(user, team_id)
        if str(team.created_by_id) == str(member_id):
            msg = "Cannot remove the team owner"
            raise ValidationError(msg)
        deleted, _ = team.memberships.filter(user_id=member_id).delete()
        if not deleted:
            msg = "Member not found"
            raise NotFound(msg)
        self.invalidate(team, extra_user_ids=[member_id])
        return self._view(team.pk)

    def update_member_role(
        self, user: User, team_id: Any, member_id: Any, role: str
    ) -> dict[str, Any]:
        team = self._created(user, team_id)
        if str(team.created_by_id) == str(member_id):
            msg = "Cannot change the team owner's role"
            raise ValidationError(msg)
        updated = team.memberships.filter(user_id=member_id).update(role=role)
        if not updated:
            msg = "Member not found"
            raise NotFound(msg)
        self.invalidate(team)
        return self._view(team.pk)

    def members(self, user: User, team_id: Any) -> list[dict[str, Any]]:
        team = self._visible(user, team_id)
        memberships = team.memberships.select_related("user")
        return TeamMemberListSerializer(memberships, many=True).data

    def stats(self, user: User) -> dict[str, Any]:
        def produce():
            teams = Team.visible_to(user)
            roles = dict(
                TeamMember.objects.filter(user=user, team__in=teams)
                .values_list("role")
                .annotate(n=Count("id"))
            )
            totals = Team.objects.filter(pk__in=teams.values("pk")).aggregate(
                members=Count("memberships", distinct=True),
                projects=Count("projects", distinct=True),
            )
            return {
                "total_teams": teams.count(),
                "active_teams": teams.filter(is_active=True).count(),
                "total_members": totals["members"],
                "total_projects": totals["projects"],
                "teams_by_role": {
                    "owner": teams.filter(created_by=user).count(),
                    "admin": roles.get(TeamMember.Role.ADMIN, 0),
                    "member": roles.get(TeamMember.Role.MEMBER, 0),
                },
            }

        return self.cache.get_or_set(
            user_key(user.pk, "team_stats"), produce, ttl("stats")
        )

    def _notify_added(self, user: User, team: Team, member_id: Any) -> None:
        self.notifications.notify(
            member_id,
            sender=user,
            notification_type=Notification.Type.TEAM_INVITE,
            title="Added to team",
            message=f"{user.username} added you to the team {team.name}",
            related_link=f"/teams/{team.pk}",
        )

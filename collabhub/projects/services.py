from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db.models import Avg
from django.db.models import Count
from django.db.models import Prefetch
from django.db.models import Q
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from collabhub.core.cache import entity_key
from collabhub.core.cache import listing_key
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.meetings.models import Meeting
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.projects.api.serializers import ProjectSerializer
from collabhub.projects.models import Priority
from collabhub.projects.models import Project
from collabhub.projects.models import ProjectLink
from collabhub.projects.models import ProjectMember
from collabhub.tasks.models import Task
from collabhub.teams.models import Team
from collabhub.teams.services import TeamService
from collabhub.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

PROJECT = "project"
NOT_FOUND = "Project not found"
NOT_PERMITTED = "Project not found or insufficient permissions"


def projects_tag(user_id: Any) -> str:
    return f"projects:user:{user_id}"


def project_queryset():
    return Project.objects.select_related("created_by", "team").prefetch_related(
        Prefetch(
            "memberships", queryset=ProjectMember.objects.select_related("user")
        ),
        "links",
        Prefetch("tasks", queryset=Task.objects.select_related("assign_to")),
        Prefetch("meetings", queryset=Meeting.objects.select_related("assigned_to")),
    )


class ProjectService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    @property
    def teams(self) -> TeamService:
        return TeamService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(
        self,
        project: Project,
        extra_user_ids: Iterable[Any] = (),
        extra_team_ids: Iterable[Any] = (),
    ) -> None:
        user_ids = {project.created_by_id, *extra_user_ids}
        user_ids.update(project.memberships.values_list("user_id", flat=True))
        self.cache.invalidate_entity(PROJECT, project.pk)
        self.cache.invalidate_tags(*(projects_tag(u) for u in user_ids))
        self.cache.invalidate_user_lists(user_ids, "project_stats")
        for team_id in {project.team_id, *extra_team_ids} - {None}:
            self.teams.invalidate_team(team_id)

    def invalidate_project(self, project_id: Any) -> None:
        """Drop caches for a project a task or meeting points at, if it still exists."""
        if project_id is None:
            return
        project = Project.objects.filter(pk=project_id).first()
        if project is None:
            self.cache.invalidate_entity(PROJECT, project_id)
            return
        self.invalidate(project)

    def _view(self, project_id: Any) -> dict[str, Any]:
        view = ProjectSerializer(project_queryset().get(pk=project_id)).data
        self.cache.cache_entity(PROJECT, project_id, view)
        return view

    # Lookups -----------------------------------------------------------
    def _visible(self, user: User, project_id: Any) -> Project:
        project = Project.visible_to(user).filter(pk=project_id).first()
        if project is None:
            raise NotFound(NOT_FOUND)
        return project

    def _allowed(self, user: User, project_id: Any, check: str) -> Project:
        project = Project.objects.filter(pk=project_id).first()
        if project is None or not getattr(project, check)(user.pk):
            raise NotFound(NOT_PERMITTED)
        return project

    def _managed(self, user: User, project_id: Any) -> Project:
        return self._allowed(user, project_id, "is_manager")

    def _contributed(self, user: User, project_id: Any) -> Project:
        return self._allowed(user, project_id, "is_contributor")

    def _created(self, user: User, project_id: Any) -> Project:
        project = Project.objects.filter(pk=project_id, created_by=user).first()
        if project is None:
            raise NotFound(NOT_PERMITTED)
        return project

    def _check_team(self, user: User, team: Team | None) -> None:
        if team is None:
            return
        if not Team.visible_to(user).filter(pk=team.pk).exists():
            msg = "Team not found"
            raise NotFound(msg)
        if not team.allow_project_creation and not team.is_manager(user.pk):
            msg = "This team does not allow members to create projects"
            raise PermissionDenied(msg)

    # Operations --------------------------------------------------------
    def create(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        data = dict(data)
        member_ids = data.pop("members", [])
        self._check_team(user, data.get("team"))
        project = Project.objects.create(created_by=user, **data)
        ProjectMember.objects.create(
            project=project, user=user, role=ProjectMember.Role.OWNER
        )
        extra = list(User.objects.filter(pk__in=member_ids).exclude(pk=user.pk))
        ProjectMember.objects.bulk_create(
            [ProjectMember(project=project, user=member) for member in extra]
        )
        for member in extra:
            self._notify_added(user, project, member.pk)
        self.invalidate(project)
        logger.info("Project %s created by user %s", project.pk, user.pk)
        return self._view(project.pk)

    def list(  # noqa: PLR0913
        self,
        user: User,
        *,
        status: str = "",
        priority: str = "",
        search: str = "",
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        params = {
            "status": status,
            "priority": priority,
            "search": search,
            "page": page,
            "limit": limit,
        }

        def produce():
            queryset = project_queryset().filter(
                pk__in=Project.visible_to(user).values("pk")
            )
            if status:
                queryset = queryset.filter(status=status)
            if priority:
                queryset = queryset.filter(priority=priority)
            if search:
                queryset = queryset.filter(
                    Q(name__icontains=search)
                    | Q(description__icontains=search)
                    | Q(tags__icontains=search)
                )
            projects, pagination = paginate(queryset, page, limit)
            return {
                "projects": ProjectSerializer(projects, many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            listing_key(user_key(user.pk, "projects"), params),
            produce,
            ttl("listing"),
            tags=[projects_tag(user.pk)],
        )

    def retrieve(self, user: User, project_id: Any) -> dict[str, Any]:
        self._visible(user, project_id)
        cached = self.cache.get_entity(PROJECT, project_id)
        if cached is not None:
            return cached
        return self._view(project_id)

    def update(
        self, user: User, project_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        project = self._managed(user, project_id)
        old_team_id = project.team_id
        data = {k: v for k, v in data.items() if k != "members"}
        if "team" in data and data["team"] is not None:
            if data["team"].pk != old_team_id:
                self._check_team(user, data["team"])
        for field, value in data.items():
            setattr(project, field, value)
        if project.end_date and project.end_date <= project.start_date:
            raise ValidationError({"end_date": "End date must be after start date"})
        project.save()
        self.invalidate(project, extra_team_ids=[old_team_id])
        return self._view(project.pk)

    def delete(self, user: User, project_id: Any) -> None:
        project = self._created(user, project_id)
        self.invalidate(project)
        # Tasks and meetings keep pointing at the deleted id.
        self.cache.delete(
            *(
                entity_key("task", pk)
                for pk in Task.objects.filter(project_id=project.pk).values_list(
                    "pk", flat=True
                )
            ),
            *(
                entity_key("meeting", pk)
                for pk in Meeting.objects.filter(project_id=project.pk).values_list(
                    "pk", flat=True
                )
            ),
        )
        project.delete()
        logger.info("Project %s deleted by user %s", project_id, user.pk)

    def add_member(
        self, user: User, project_id: Any, member_id: Any, role: str
    ) -> dict[str, Any]:
        project = self._managed(user, project_id)
        if project.memberships.filter(user_id=member_id).exists():
            msg = "User is already a member of this project"
            raise ValidationError(msg)
        if not User.objects.filter(pk=member_id).exists():
            msg = "User not found"
            raise NotFound(msg)
        ProjectMember.objects.create(project=project, user_id=member_id, role=role)
        self._notify_added(user, project, member_id)
        self.invalidate(project)
        return self._view(project.pk)

    def remove_member(
        self, user: User, project_id: Any, member_id: Any
    ) -> dict[str, Any]:
        project = self._managed(user, project_id)
        if str(project.created_by_id) == str(member_id):
            msg = "Cannot remove the project owner"
            raise ValidationError(msg)
        deleted, _ = project.memberships.filter(user_id=member_id).delete()
        if not deleted:
            msg = "Member not found"
            raise NotFound(msg)
        self.invalidate(project, extra_user_ids=[member_id])
        return self._view(project.pk)

    def update_member_role(
        self, user: User, project_id: Any, member_id: Any, role: str
    ) -> dict[str, Any]:
        project = self._created(user, project_id)
        if str(project.created_by_id) == str(member_id):
            msg = "Cannot change the project owner's role"
            raise ValidationError(msg)
        updated = project.memberships.filter(user_id=member_id).update(role=role)
        if not updated:
            msg = "Member not found"
            raise NotFound(msg)
        self.invalidate(project)
        return self._view(project.pk)

    def add_link(
        self, user: User, project_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        project = self._contributed(user, project_id)
        ProjectLink.objects.create(project=project, **data)
        self.invalidate(project)
        return self._view(project.pk)

    def update_link(
        self, user: User, project_id: Any, link_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        project = self._contributed(user, project_id)
        link = project.links.filter(pk=link_id).first()
        if link is None:
            msg = "Link not found"
            raise NotFound(msg)
        for field, value in data.items():
            setattr(link, field, value)
        link.save()
        self.invalidate(project)
        return self._view(project.pk)

    def remove_link(self, user: User, project_id: Any, link_id: Any) -> dict[str, Any]:
        project = self._contributed(user, project_id)
        project.links.filter(pk=link_id).delete()
        self.invalidate(project)
        return self._view(project.pk)

    def stats(self, user: User) -> dict[str, Any]:
        def produce():
            projects = Project.objects.filter(
                pk__in=Project.visible_to(user).values("pk")
            )
            by_status = dict(
                projects.values_list("status").annotate(n=Count("id")).order_by()
            )
            by_priority = dict(
                projects.values_list("priority").annotate(n=Count("id")).order_by()
            )
            tasks = Task.objects.filter(project_id__in=projects.values("pk"))
            meetings = Meeting.objects.filter(project_id__in=projects.values("pk"))
            average = projects.aggregate(avg=Avg("progress"))["avg"] or 0
            return {
                "total_projects": projects.count(),
                "active_projects": by_status.get(Project.Status.ACTIVE, 0),
                "completed_projects": by_status.get(Project.Status.COMPLETED, 0),
                "on_hold_projects": by_status.get(Project.Status.ON_HOLD, 0),
                "cancelled_projects": by_status.get(Project.Status.CANCELLED, 0),
                "total_members": ProjectMember.objects.filter(
                    project__in=projects
                ).count(),
                "total_tasks": tasks.count(),
                "completed_tasks": tasks.filter(
                    status=Task.Status.COMPLETED
                ).count(),
                "total_meetings": meetings.count(),
                "completed_meetings": meetings.filter(
                    status=Meeting.Status.COMPLETED
                ).count(),
                "average_progress": round(average),
                "projects_by_priority": {
                    value: by_priority.get(value, 0) for value in Priority.values
                },
                "projects_by_status": {
                    value: by_status.get(value, 0) for value in Project.Status.values
                },
            }

        return self.cache.get_or_set(
            user_key(user.pk, "project_stats"), produce, ttl("stats")
        )

    def clear_cache(self, user: User) -> None:
        self.cache.invalidate_tags(projects_tag(user.pk))
        self.cache.invalidate_user_lists([user.pk], "project_stats")
        logger.info("Project caches cleared for user %s", user.pk)

    def _notify_added(self, user: User, project: Project, member_id: Any) -> None:
        self.notifications.notify(
            member_id,
            sender=user,
            notification_type=Notification.Type.PROJECT_INVITE,
            title="Added to project",
            message=f"{user.username} added you to the project {project.name}",
            related_link=f"/projects/{project.pk}",
        )

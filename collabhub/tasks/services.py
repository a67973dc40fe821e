from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.core.mail import send_mail
from django.db.models import Q
from django.template.loader import render_to_string
from django.utils import timezone
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied

from collabhub.core.cache import filter_tags
from collabhub.core.cache import listing_key
from collabhub.core.cache import snapshot_tags
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.projects.models import Priority
from collabhub.projects.models import Project
from collabhub.projects.services import ProjectService
from collabhub.projects.services import projects_tag
from collabhub.tasks.api.filters import TaskFilter
from collabhub.tasks.api.serializers import TaskSerializer
from collabhub.tasks.models import Task
from collabhub.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

TASK = "task"
RESOURCE = "tasks"
FILTER_FIELDS = ("status", "priority", "assign_to", "assigned_by")
USER_RESOURCES = ("tasks", "task_stats", "dashboard")


def task_queryset():
    return Task.objects.select_related("assign_to", "assigned_by", "project")


def snapshot(task: Task) -> dict[str, Any]:
    return {
        "status": task.status,
        "priority": task.priority,
        "assign_to": task.assign_to_id,
        "assigned_by": task.assigned_by_id,
        "project": task.project_id,
    }


def clean_filters(data: dict[str, Any]) -> dict[str, Any]:
    filters = {}
    for field in FILTER_FIELDS:
        value = data.get(field)
        if value in (None, ""):
            continue
        filters[field] = value
    return filters


def overdue_label(due_date, now=None) -> str | None:
    """``TODAY``, ``3 DAYS`` and so on; None while the task is not yet due."""
    now = now or timezone.now()
    if now <= due_date:
        return None
    days = (now - due_date) // timedelta(days=1)
    if days == 0:
        return "TODAY"
    return f"{days} DAY{'S' if days > 1 else ''}"


class TaskService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(self, *snapshots: dict[str, Any] | None) -> None:
        """Drop every listing, per-user and project cache either snapshot touches."""
        present = [s for s in snapshots if s is not None]
        user_ids = {s[f] for s in present for f in ("assign_to", "assigned_by")}
        user_ids.discard(None)
        self.cache.invalidate_user_lists(user_ids, *USER_RESOURCES)
        self.cache.invalidate_tags(*snapshot_tags(RESOURCE, FILTER_FIELDS, *present))
        self.cache.invalidate_tags(*(projects_tag(u) for u in user_ids))
        projects = ProjectService(cache=self.cache, publisher=self.publisher)
        for project_id in {s["project"] for s in present} - {None}:
            projects.invalidate_project(project_id)

    def _view(self, task_id: Any) -> dict[str, Any]:
        view = TaskSerializer(task_queryset().get(pk=task_id)).data
        self.cache.cache_entity(TASK, task_id, view)
        return view

    def _write_through(self, task_id: Any) -> dict[str, Any]:
        view = TaskSerializer(task_queryset().get(pk=task_id)).data
        self.cache.write_through(TASK, task_id, view)
        return view

    def _get(self, task_id: Any) -> Task:
        task = Task.objects.filter(pk=task_id).first()
        if task is None:
            msg = "Task not found"
            raise NotFound(msg)
        return task

    def _assigned_by(self, user: User, task_id: Any, verb: str) -> Task:
        task = self._get(task_id)
        if task.assigned_by_id != user.pk:
            msg = f"Only the user who assigned this task can {verb} it"
            raise PermissionDenied(msg)
        return task

    def _check_project(self, user: User, project_id: Any) -> None:
        if project_id is None:
            return
        if not Project.visible_to(user).filter(pk=project_id).exists():
            msg = "Project not found"
            raise NotFound(msg)

    # Operations --------------------------------------------------------
    def create(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        data = dict(data)
        assignee = User.objects.filter(pk=data.pop("assign_to")).first()
        if assignee is None:
            msg = "AssignedTo user not found"
            raise NotFound(msg)
        project_id = data.pop("project", None)
        self._check_project(user, project_id)
        task = Task.objects.create(
            assign_to=assignee, assigned_by=user, project_id=project_id, **data
        )
        view = self._write_through(task.pk)
        self.invalidate(snapshot(task))
        self.notifications.notify(
            assignee.pk,
            sender=user,
            notification_type=Notification.Type.TASK_ASSIGNED,
            title="New task assigned",
            message=f'{user.username} assigned you a new task: "{task.title}"',
            related_link=f"/tasks/{task.pk}",
        )
        logger.info("Task %s assigned by %s to %s", task.pk, user.pk, assignee.pk)
        return view

    def list(self, filters: dict[str, Any], page: int, limit: int) -> dict[str, Any]:
        filters = clean_filters(filters)

        def produce():
            queryset = TaskFilter(filters, queryset=task_queryset()).qs
            tasks, pagination = paginate(queryset, page, limit)
            return {
                "tasks": TaskSerializer(tasks, many=True).data,
                "pagination": pagination,
            }

        key = listing_key(RESOURCE, {**filters, "page": page, "limit": limit})
        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=filter_tags(RESOURCE, filters)
        )

    def mine(self, user: User) -> list[dict[str, Any]]:
        cached = self.cache.get_user_list(user.pk, "tasks")
        if cached is not None:
            return cached
        tasks = task_queryset().filter(Q(assign_to=user) | Q(assigned_by=user))
        view = TaskSerializer(tasks, many=True).data
        self.cache.cache_user_list(user.pk, "tasks", view)
        return view

    def retrieve(self, task_id: Any) -> dict[str, Any]:
        cached = self.cache.get_entity(TASK, task_id)
        if cached is not None:
            return cached
        self._get(task_id)
        return self._view(task_id)

    def update(self, user: User, task_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        task = self._assigned_by(user, task_id, "update")
        before = snapshot(task)
        data = dict(data)
        if "project" in data:
            if data["project"] != task.project_id:
                self._check_project(user, data["project"])
            task.project_id = data.pop("project")
        for field, value in data.items():
            setattr(task, field, value)
        task.save()
        view = self._write_through(task.pk)
        self.invalidate(before, snapshot(task))
        self.notifications.notify(
            task.assign_to_id,
            sender=user,
            notification_type=Notification.Type.TASK_UPDATED,
            title="Task updated",
            message=f'{user.username} updated task "{task.title}"',
            related_link=f"/tasks/{task.pk}",
        )
        return view

    def update_status(self, user: User, task_id: Any, status: str) -> dict[str, Any]:
        task = self._get(task_id)
        if task.assign_to_id != user.pk:
            msg = "Only the assigned user can update task status"
            raise PermissionDenied(msg)
        before = snapshot(task)
        task.status = status
        task.save(update_fields=["status", "updated_at"])
        view = self._write_through(task.pk)
        self.invalidate(before, snapshot(task))
        self.notifications.notify(
            task.assigned_by_id,
            sender=user,
            notification_type=Notification.Type.TASK_STATUS_UPDATED,
            title="Task status updated",
            message=(
                f'{user.username} updated task "{task.title}" status to {status}'
            ),
            related_link=f"/tasks/{task.pk}",
        )
        return view

    def reassign(self, user: User, task_id: Any, assign_to: Any) -> dict[str, Any]:
        task = self._assigned_by(user, task_id, "reassign")
        assignee = User.objects.filter(pk=assign_to).first()
        if assignee is None:
            msg = "New assignee not found"
            raise NotFound(msg)
        before = snapshot(task)
        old_assignee_id = task.assign_to_id
        task.assign_to = assignee
        task.save(update_fields=["assign_to", "updated_at"])
        view = self._write_through(task.pk)
        self.invalidate(before, snapshot(task))
        self.notifications.notify(
            assignee.pk,
            sender=user,
            notification_type=Notification.Type.TASK_REASSIGNED,
            title="Task reassigned to you",
            message=f'{user.username} reassigned task "{task.title}" to you',
            related_link=f"/tasks/{task.pk}",
        )
        if old_assignee_id != assignee.pk:
            self.notifications.notify(
                old_assignee_id,
                sender=user,
                notification_type=Notification.Type.TASK_UNASSIGNED,
                title="Task reassigned",
                message=f'Task "{task.title}" has been reassigned',
                related_link="/tasks",
            )
        return view

    def delete(self, user: User, task_id: Any) -> None:
        task = self._assigned_by(user, task_id, "delete")
        before = snapshot(task)
        task.delete()
        self.cache.invalidate_entity(TASK, task_id)
        self.invalidate(before)
        logger.info("Task %s deleted by user %s", task_id, user.pk)

    def stats(self, user: User) -> dict[str, Any]:
        def produce():
            now = timezone.now()
            tasks = Task.objects.filter(Q(assign_to=user) | Q(assigned_by=user))
            total = tasks.count()
            completed = tasks.filter(status=Task.Status.COMPLETED).count()
            rate = round(completed / total * 100, 2) if total else 0
            return {
                "total_tasks": total,
                "completed_tasks": completed,
                "pending_tasks": tasks.filter(status=Task.Status.PENDING).count(),
                "in_progress_tasks": tasks.filter(
                    status=Task.Status.IN_PROGRESS
                ).count(),
                "overdue_tasks": tasks.filter(due_date__lt=now)
                .exclude(status=Task.Status.COMPLETED)
                .count(),
                "tasks_this_week": tasks.filter(
                    created_at__gte=now - timedelta(days=7)
                ).count(),
                "tasks_this_month": tasks.filter(
                    created_at__gte=now - timedelta(days=30)
                ).count(),
                "completion_rate": rate,
            }

        return self.cache.get_or_set(
            user_key(user.pk, "task_stats"), produce, ttl("stats")
        )

    def clear_cache(self, user: User) -> None:
        tags = [f"{RESOURCE}:all"]
        tags += [f"{RESOURCE}:status:{value}" for value in Task.Status.values]
        tags += [f"{RESOURCE}:priority:{value}" for value in Priority.values]
        tags += [f"{RESOURCE}:{field}:{user.pk}" for field in ("assign_to", "assigned_by")]
        self.cache.invalidate_tags(*tags)
        self.cache.invalidate_user_lists([user.pk], *USER_RESOURCES)
        logger.info("Task caches cleared by user %s", user.pk)


def send_overdue_emails(tasks: Iterable[Task] | None = None) -> int:
    """Email assignees of overdue, unfinished tasks once per task."""
    if tasks is None:
        tasks = (
            Task.objects.filter(
                due_date__lt=timezone.now(),
                overdue_email_sent=False,
                assign_to__isnull=False,
            )
            .exclude(status=Task.Status.COMPLETED)
            .select_related("assign_to")
        )
    sent = 0
    for task in tasks:
        overdue_by = overdue_label(task.due_date)
        if overdue_by is None or not task.assign_to.email:
            continue
        context = {
            "username": task.assign_to.username,
            "task": task,
            "overdue_by": overdue_by,
            "button_url": f"{settings.CLIENT_URL}/tasks/{task.pk}",
        }
        send_mail(
            subject=f"Task Overdue {task.title}",
            message=render_to_string("tasks/email/task_overdue.txt", context),
            from_email=None,
            recipient_list=[task.assign_to.email],
            html_message=render_to_string("tasks/email/task_overdue.html", context),
        )
        task.overdue_email_sent = True
        task.save(update_fields=["overdue_email_sent"])
        sent += 1
    logger.info("Sent %d overdue task emails", sent)
    return sent

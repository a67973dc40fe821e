from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from collabhub.core.cache import filter_tags
from collabhub.core.cache import listing_key
from collabhub.core.cache import snapshot_tags
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.meetings.api.filters import MeetingFilter
from collabhub.meetings.api.serializers import END_BEFORE_START
from collabhub.meetings.api.serializers import LINK_REQUIRED
from collabhub.meetings.api.serializers import MeetingSerializer
from collabhub.meetings.models import Meeting
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.projects.models import Project
from collabhub.projects.services import ProjectService
from collabhub.projects.services import projects_tag
from collabhub.users.models import User

logger = logging.getLogger(__name__)

MEETING = "meeting"
RESOURCE = "meetings"
FILTER_FIELDS = ("status", "type", "assigned_to", "assigned_by")
USER_RESOURCES = ("meetings", "meeting_stats", "dashboard")


def meeting_queryset():
    return Meeting.objects.select_related(
        "assigned_to", "assigned_by", "project"
    ).prefetch_related("attendees")


def snapshot(meeting: Meeting) -> dict[str, Any]:
    return {
        "status": meeting.status,
        "type": meeting.type,
        "assigned_to": meeting.assigned_to_id,
        "assigned_by": meeting.assigned_by_id,
        "project": meeting.project_id,
        "attendees": list(meeting.attendees.values_list("pk", flat=True)),
    }


def clean_filters(data: dict[str, Any]) -> dict[str, Any]:
    filters = {}
    for field in FILTER_FIELDS:
        value = data.get(field)
        if value in (None, ""):
            continue
        filters[field] = value
    return filters


def validate_schedule(meeting: Meeting) -> None:
    if meeting.end_date <= meeting.start_date:
        raise ValidationError({"end_date": END_BEFORE_START})
    if meeting.type == Meeting.Type.ONLINE and not meeting.meeting_link:
        raise ValidationError({"meeting_link": LINK_REQUIRED})


class MeetingService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(self, *snapshots: dict[str, Any] | None) -> None:
        present = [s for s in snapshots if s is not None]
        user_ids = {s[f] for s in present for f in ("assigned_to", "assigned_by")}
        for s in present:
            user_ids.update(s["attendees"])
        user_ids.discard(None)
        self.cache.invalidate_user_lists(user_ids, *USER_RESOURCES)
        self.cache.invalidate_tags(*snapshot_tags(RESOURCE, FILTER_FIELDS, *present))
        self.cache.invalidate_tags(*(projects_tag(u) for u in user_ids))
        projects = ProjectService(cache=self.cache, publisher=self.publisher)
        for project_id in {s["project"] for s in present} - {None}:
            projects.invalidate_project(project_id)

    def _view(self, meeting_id: Any) -> dict[str, Any]:
        view = MeetingSerializer(meeting_queryset().get(pk=meeting_id)).data
        self.cache.cache_entity(MEETING, meeting_id, view)
        return view

    def _write_through(self, meeting_id: Any) -> dict[str, Any]:
        view = MeetingSerializer(meeting_queryset().get(pk=meeting_id)).data
        self.cache.write_through(MEETING, meeting_id, view)
        return view

    def _get(self, meeting_id: Any) -> Meeting:
        meeting = Meeting.objects.filter(pk=meeting_id).first()
        if meeting is None:
            msg = "Meeting not found"
            raise NotFound(msg)
        return meeting

    def _assigned_by(self, user: User, meeting_id: Any, verb: str) -> Meeting:
        meeting = self._get(meeting_id)
        if meeting.assigned_by_id != user.pk:
            msg = f"Only the user who assigned this meeting can {verb}"
            raise PermissionDenied(msg)
        return meeting

    def _check_project(self, user: User, project_id: Any) -> None:
        if project_id is None:
            return
        if not Project.visible_to(user).filter(pk=project_id).exists():
            msg = "Project not found"
            raise NotFound(msg)

    def _attendees(self, attendee_ids: list[Any]) -> list[User]:
        unique_ids = list(dict.fromkeys(attendee_ids))
        users = list(User.objects.filter(pk__in=unique_ids))
        if len(users) != len(unique_ids):
            msg = "Some attendees not found"
            raise ValidationError(msg)
        return users

    def _notify(self, recipient_id, user, notification_type, title, message, meeting):  # noqa: PLR0913
        self.notifications.notify(
            recipient_id,
            sender=user,
            notification_type=notification_type,
            title=title,
            message=message,
            related_link=f"/meetings/{meeting.pk}",
        )

    # Operations --------------------------------------------------------
    def create(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        data = dict(data)
        assignee = User.objects.filter(pk=data.pop("assigned_to")).first()
        if assignee is None:
            msg = "AssignedTo user not found"
            raise NotFound(msg)
        attendees = self._attendees(data.pop("attendees", []))
        project_id = data.pop("project", None)
        self._check_project(user, project_id)
        meeting = Meeting.objects.create(
            assigned_to=assignee, assigned_by=user, project_id=project_id, **data
        )
        meeting.attendees.set(attendees)
        view = self._write_through(meeting.pk)
        self.invalidate(snapshot(meeting))
        self._notify(
            assignee.pk,
            user,
            Notification.Type.MEETING_ASSIGNED,
            "New meeting assigned",
            f'{user.username} assigned you a meeting: "{meeting.title}"',
            meeting,
        )
        logger.info("Meeting %s assigned by %s to %s", meeting.pk, user.pk, assignee.pk)
        return view

    def list(self, filters: dict[str, Any], page: int, limit: int) -> dict[str, Any]:
        filters = clean_filters(filters)

        def produce():
            queryset = MeetingFilter(filters, queryset=meeting_queryset()).qs
            meetings, pagination = paginate(queryset, page, limit)
            return {
                "meetings": MeetingSerializer(meetings, many=True).data,
                "pagination": pagination,
            }

        key = listing_key(RESOURCE, {**filters, "page": page, "limit": limit})
        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=filter_tags(RESOURCE, filters)
        )

    def mine(self, user: User) -> list[dict[str, Any]]:
        cached = self.cache.get_user_list(user.pk, "meetings")
        if cached is not None:
            return cached
        meetings = meeting_queryset().filter(
            Q(assigned_to=user) | Q(assigned_by=user) | Q(attendees=user)
        ).distinct()
        view = MeetingSerializer(meetings, many=True).data
        self.cache.cache_user_list(user.pk, "meetings", view)
        return view

    def retrieve(self, meeting_id: Any) -> dict[str, Any]:
        cached = self.cache.get_entity(MEETING, meeting_id)
        if cached is not None:
            return cached
        self._get(meeting_id)
        return self._view(meeting_id)

    def update(
        self, user: User, meeting_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        meeting = self._assigned_by(user, meeting_id, "update it")
        before = snapshot(meeting)
        data = dict(data)
        if "project" in data:
            if data["project"] != meeting.project_id:
                self._check_project(user, data["project"])
            meeting.project_id = data.pop("project")
        for field, value in data.items():
            setattr(meeting, field, value)
        validate_schedule(meeting)
        meeting.save()
        view = self._write_through(meeting.pk)
        self.invalidate(before, snapshot(meeting))
        self._notify(
            meeting.assigned_to_id,
            user,
            Notification.Type.MEETING_UPDATED,
            "Meeting updated",
            f'{user.username} updated meeting "{meeting.title}"',
            meeting,
        )
        return view

    def update_status(
        self, user: User, meeting_id: Any, status: str
    ) -> dict[str, Any]:
        meeting = self._get(meeting_id)
        if meeting.assigned_to_id != user.pk:
            msg = "Only the assigned user can update meeting status"
            raise PermissionDenied(msg)
        before = snapshot(meeting)
        meeting.status = status
        meeting.save(update_fields=["status", "updated_at"])
        view = self._write_through(meeting.pk)
        self.invalidate(before, snapshot(meeting))
        self._notify(
            meeting.assigned_by_id,
            user,
            Notification.Type.MEETING_STATUS_UPDATED,
            "Meeting status updated",
            f'{user.username} updated meeting "{meeting.title}" status to {status}',
            meeting,
        )
        return view

    def reschedule(
        self, user: User, meeting_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        meeting = self._assigned_by(user, meeting_id, "reschedule it")
        before = snapshot(meeting)
        for field, value in data.items():
            if value:
                setattr(meeting, field, value)
        validate_schedule(meeting)
        meeting.save()
        view = self._write_through(meeting.pk)
        self.invalidate(before, snapshot(meeting))
        self._notify(
            meeting.assigned_to_id,
            user,
            Notification.Type.MEETING_RESCHEDULED,
            "Meeting rescheduled",
            f'{user.username} rescheduled meeting "{meeting.title}"',
            meeting,
        )
        return view

    def reassign(
        self, user: User, meeting_id: Any, assigned_to: Any
    ) -> dict[str, Any]:
        meeting = self._assigned_by(user, meeting_id, "reassign it")
        assignee = User.objects.filter(pk=assigned_to).first()
        if assignee is None:
            msg = "New assignee not found"
            raise NotFound(msg)
        before = snapshot(meeting)
        old_assignee_id = meeting.assigned_to_id
        meeting.assigned_to = assignee
        meeting.save(update_fields=["assigned_to", "updated_at"])
        view = self._write_through(meeting.pk)
        self.invalidate(before, snapshot(meeting))
        self._notify(
            assignee.pk,
            user,
            Notification.Type.MEETING_REASSIGNED,
            "Meeting reassigned to you",
            f'{user.username} reassigned meeting "{meeting.title}" to you',
            meeting,
        )
        if old_assignee_id != assignee.pk:
            self._notify(
                old_assignee_id,
                user,
                Notification.Type.MEETING_UNASSIGNED,
                "Meeting reassigned",
                f'Meeting "{meeting.title}" has been reassigned',
                meeting,
            )
        return view

    def update_attendees(
        self, user: User, meeting_id: Any, attendee_ids: list[Any]
    ) -> dict[str, Any]:
        meeting = self._assigned_by(user, meeting_id, "update attendees")
        attendees = self._attendees(attendee_ids)
        before = snapshot(meeting)
        meeting.attendees.set(attendees)
        meeting.save(update_fields=["updated_at"])
        view = self._write_through(meeting.pk)
        self.invalidate(before, snapshot(meeting))
        return view

    def delete(self, user: User, meeting_id: Any) -> None:
        meeting = self._assigned_by(user, meeting_id, "delete it")
        before = snapshot(meeting)
        meeting.delete()
        self.cache.invalidate_entity(MEETING, meeting_id)
        self.invalidate(before)
        logger.info("Meeting %s deleted by user %s", meeting_id, user.pk)

    def stats(self, user: User) -> dict[str, Any]:
        def produce():
            now = timezone.now()
            meetings = Meeting.objects.filter(Q(assigned_to=user) | Q(assigned_by=user))
            total = meetings.count()
            completed = meetings.filter(status=Meeting.Status.COMPLETED).count()
            return {
                "total_meetings": total,
                "scheduled_meetings": meetings.filter(
                    status=Meeting.Status.SCHEDULED
                ).count(),
                "completed_meetings": completed,
                "cancelled_meetings": meetings.filter(
                    status=Meeting.Status.CANCELLED
                ).count(),
                "pending_meetings": meetings.filter(
                    status=Meeting.Status.PENDING
                ).count(),
                "meetings_this_week": meetings.filter(
                    created_at__gte=now - timedelta(days=7)
                ).count(),
                "meetings_this_month": meetings.filter(
                    created_at__gte=now - timedelta(days=30)
                ).count(),
                "completion_rate": round(completed / total * 100, 2) if total else 0,
            }

        return self.cache.get_or_set(
            user_key(user.pk, "meeting_stats"), produce, ttl("stats")
        )

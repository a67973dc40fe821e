from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class Notification(models.Model):
    class Type(models.TextChoices):
        TASK_ASSIGNED = "task_assigned", _("Task Assigned")
        TASK_UPDATED = "task_updated", _("Task Updated")
        TASK_STATUS_UPDATED = "task_status_updated", _("Task Status Updated")
        TASK_REASSIGNED = "task_reassigned", _("Task Reassigned")
        TASK_UNASSIGNED = "task_unassigned", _("Task Unassigned")
        TASK_DUE_SOON = "task_due_soon", _("Task Due Soon")
        MEETING_ASSIGNED = "meeting_assigned", _("Meeting Assigned")
        MEETING_UPDATED = "meeting_updated", _("Meeting Updated")
        MEETING_STATUS_UPDATED = "meeting_status_updated", _("Meeting Status Updated")
        MEETING_RESCHEDULED = "meeting_rescheduled", _("Meeting Rescheduled")
        MEETING_REASSIGNED = "meeting_reassigned", _("Meeting Reassigned")
        MEETING_UNASSIGNED = "meeting_unassigned", _("Meeting Unassigned")
        FRIEND_REQUEST = "friend_request", _("Friend Request")
        FRIEND_ACCEPTED = "friend_accepted", _("Friend Request Accepted")
        FRIEND_REJECTED = "friend_rejected", _("Friend Request Rejected")
        NEW_FOLLOWER = "new_follower", _("New Follower")
        NEW_MESSAGE = "new_message", _("New Message")
        PROJECT_INVITE = "project_invite", _("Project Invite")
        TEAM_INVITE = "team_invite", _("Team Invite")
        SESSION_INVITE = "session_invite", _("Code Session Invite")
        OTHER = "other", _("Other")

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications"
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_notifications",
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    notification_type = models.CharField(
        max_length=50, choices=Type.choices, default=Type.OTHER
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    related_link = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notif_recipient_read_idx"),
        ]

    def __str__(self):
        return f"{self.title} - {self.recipient}"

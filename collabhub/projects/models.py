from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class Priority(models.TextChoices):
    LOW = "low", _("Low")
    MEDIUM = "medium", _("Medium")
    HIGH = "high", _("High")
    URGENT = "urgent", _("Urgent")


class Project(models.Model):
    class Status(models.TextChoices):
        PLANNING = "planning", _("Planning")
        ACTIVE = "active", _("Active")
        ON_HOLD = "on_hold", _("On hold")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")

    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500)
    logo = models.URLField(max_length=500, blank=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PLANNING
    )
    priority = models.CharField(
        max_length=10, choices=Priority.choices, default=Priority.MEDIUM
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="created_projects",
    )
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects",
    )
    tags = models.JSONField(default=list, blank=True)
    progress = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(100)]
    )
    is_public = models.BooleanField(default=False)
    allow_member_invites = models.BooleanField(default=True)
    allow_member_tasks = models.BooleanField(default=True)
    allow_member_meetings = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="project_status_idx"),
            models.Index(fields=["priority"], name="project_priority_idx"),
        ]

    def __str__(self):
        return self.name

    @classmethod
    def visible_to(cls, user):
        return cls.objects.filter(
            Q(created_by=user) | Q(memberships__user=user)
        ).distinct()

    def member_role(self, user_id):
        if self.created_by_id == user_id:
            return ProjectMember.Role.OWNER
        membership = self.memberships.filter(user_id=user_id).first()
        return membership.role if membership else None

    def is_manager(self, user_id) -> bool:
        return self.member_role(user_id) in {
            ProjectMember.Role.OWNER,
            ProjectMember.Role.ADMIN,
        }

    def is_contributor(self, user_id) -> bool:
        role = self.member_role(user_id)
        return role is not None and role != ProjectMember.Role.VIEWER


class ProjectMember(models.Model):
    class Role(models.TextChoices):
        OWNER = "owner", _("Owner")
        ADMIN = "admin", _("Admin")
        MEMBER = "member", _("Member")
        VIEWER = "viewer", _("Viewer")

    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="memberships"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["project", "user"], name="uniq_project_member"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} in {self.project_id} ({self.role})"


class ProjectLink(models.Model):
    class Type(models.TextChoices):
        REPOSITORY = "repository", _("Repository")
        DOCUMENTATION = "documentation", _("Documentation")
        DESIGN = "design", _("Design")
        OTHER = "other", _("Other")

    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, related_name="links"
    )
    title = models.CharField(max_length=200)
    url = models.URLField(max_length=500)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.OTHER)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return self.title

import secrets
import string

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

INVITE_ALPHABET = string.ascii_letters + string.digits
INVITE_CODE_LENGTH = 8


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


class CodeSession(models.Model):
    class Language(models.TextChoices):
        JAVASCRIPT = "javascript", "JavaScript"
        TYPESCRIPT = "typescript", "TypeScript"
        PYTHON = "python", "Python"
        JAVA = "java", "Java"
        CPP = "cpp", "C++"
        CSHARP = "csharp", "C#"
        GO = "go", "Go"
        RUST = "rust", "Rust"
        PHP = "php", "PHP"
        RUBY = "ruby", "Ruby"
        SWIFT = "swift", "Swift"
        KOTLIN = "kotlin", "Kotlin"
        HTML = "html", "HTML"
        CSS = "css", "CSS"
        SQL = "sql", "SQL"
        JSON = "json", "JSON"
        XML = "xml", "XML"
        YAML = "yaml", "YAML"
        MARKDOWN = "markdown", "Markdown"

    title = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    language = models.CharField(
        max_length=20, choices=Language.choices, default=Language.JAVASCRIPT
    )
    code = models.TextField(blank=True, default="")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_code_sessions",
    )
    is_active = models.BooleanField(default=True)
    is_public = models.BooleanField(default=False)
    max_participants = models.PositiveSmallIntegerField(
        default=10, validators=[MinValueValidator(2), MaxValueValidator(50)]
    )
    invite_code = models.CharField(max_length=16, unique=True, null=True, blank=True)
    invited_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name="code_session_invites"
    )
    tags = models.JSONField(default=list, blank=True)
    ended_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["owner", "is_active"], name="session_owner_active_idx"),
            models.Index(fields=["is_public", "is_active"], name="session_public_active_idx"),
            models.Index(fields=["language", "is_active"], name="session_language_idx"),
        ]

    def __str__(self):
        return self.title

    @classmethod
    def accessible_to(cls, user):
        """Active sessions the user owns or participates in."""
        return cls.objects.filter(
            Q(owner=user) | Q(participants__user=user), is_active=True
        ).distinct()

    def end(self):
        self.is_active = False
        self.ended_at = timezone.now()


class SessionParticipant(models.Model):
    session = models.ForeignKey(
        CodeSession, on_delete=models.CASCADE, related_name="participants"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="code_session_participations",
    )
    joined_at = models.DateTimeField(default=timezone.now)
    last_active = models.DateTimeField(default=timezone.now)
    cursor_line = models.PositiveIntegerField(null=True, blank=True)
    cursor_column = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["session", "user"], name="uniq_session_participant"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} in session {self.session_id}"

    @property
    def cursor_position(self):
        if self.cursor_line is None:
            return None
        return {"line": self.cursor_line, "column": self.cursor_column or 0}

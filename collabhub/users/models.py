from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.db.models import EmailField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for collabhub.
    Profile fields live on the user row; the social graph is kept in
    the social app (friendships, requests, follows).
    """

    class Role(models.TextChoices):
        USER = "user", _("User")
        ADMIN = "admin", _("Admin")

    email = EmailField(_("email address"), unique=True)
    role = CharField(max_length=10, choices=Role.choices, default=Role.USER)
    avatar = models.URLField(max_length=500, blank=True)
    bio = CharField(max_length=500, blank=True)
    location = CharField(max_length=100, blank=True)
    website = models.URLField(max_length=200, blank=True)
    social_links = models.JSONField(default=dict, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    phone = CharField(max_length=20, blank=True)
    is_private = models.BooleanField(default=False)
    email_verified = models.BooleanField(default=False)
    # Audit timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

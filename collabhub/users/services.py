from __future__ import annotations

import logging
from functools import partial
from typing import Any
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth import password_validation
from django.contrib.auth.tokens import default_token_generator
from django.core import signing
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Count
from django.db.models import Q
from django.template.loader import render_to_string
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError

from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.exceptions import Conflict
from collabhub.core.services import Service
from collabhub.meetings.services import MeetingService
from collabhub.notifications.services import NotificationService
from collabhub.tasks.services import TaskService
from collabhub.users.api.serializers import UserSerializer
from collabhub.users.models import User

logger = logging.getLogger(__name__)

PROFILE = "user"
VERIFY_EMAIL_SALT = "collabhub.users.verify-email"

# kind -> (subject, client route the mailed link opens)
ACCOUNT_EMAILS = {
    "verify_email": ("Verify Email", "verify-email"),
    "password_reset": ("Reset Password", "reset-password"),
}


def users_with_follow_counts():
    return User.objects.annotate(
        followers_count=Count("follower_links", distinct=True),
        following_count=Count("following_links", distinct=True),
    )


def verification_token(user: User) -> str:
    return signing.dumps({"id": user.pk, "email": user.email}, salt=VERIFY_EMAIL_SALT)


def send_account_email(kind: str, user_id: Any, token: str) -> None:
    """Mail a verification or password reset token with a link back to the client."""
    subject, route = ACCOUNT_EMAILS[kind]
    user = User.objects.get(pk=user_id)
    query = urlencode({"email": user.email, "token": token})
    context = {
        "username": user.username,
        "token": token,
        "button_url": f"{settings.CLIENT_URL}/{route}?{query}",
    }
    send_mail(
        subject=subject,
        message=render_to_string(f"users/email/{kind}.txt", context),
        from_email=None,
        recipient_list=[user.email],
        html_message=render_to_string(f"users/email/{kind}.html", context),
    )
    logger.info("Sent %s email to user %s", kind, user.pk)


class UserService(Service):
    def profile(self, user_id: Any) -> dict[str, Any]:
        cached = self.cache.get_entity(PROFILE, user_id)
        if cached is not None:
            return cached
        user = users_with_follow_counts().filter(pk=user_id).first()
        if user is None:
            msg = "user not found"
            raise NotFound(msg)
        view = UserSerializer(user).data
        self.cache.cache_entity(PROFILE, user_id, view)
        return view

    def update_profile(self, user: User, serializer) -> dict[str, Any]:
        serializer.save()
        self.invalidate_profiles(user.pk)
        logger.info("Profile updated for user %s", user.pk)
        return self.profile(user.pk)

    def invalidate_profiles(self, *user_ids: Any) -> None:
        for user_id in user_ids:
            self.cache.invalidate_entity(PROFILE, user_id)

    # Account emails ------------------------------------------------------
    @staticmethod
    def _by_email(email: str) -> User:
        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            msg = "user not found"
            raise NotFound(msg)
        return user

    @staticmethod
    def _mail(kind: str, user: User, token: str) -> None:
        from collabhub.users.tasks import send_account_email_task  # noqa: PLC0415

        transaction.on_commit(
            partial(send_account_email_task.delay, kind, user.pk, token)
        )

    def send_verification(self, user: User) -> None:
        self._mail("verify_email", user, verification_token(user))

    def resend_verification(self, email: str) -> None:
        user = self._by_email(email)
        if user.email_verified:
            msg = "email already verified"
            raise Conflict(msg)
        self.send_verification(user)

    def verify_email(self, email: str, token: str) -> None:
        user = User.objects.filter(email__iexact=email).first()
        try:
            payload = signing.loads(
                token,
                salt=VERIFY_EMAIL_SALT,
                max_age=settings.EMAIL_VERIFICATION_TIMEOUT,
            )
        except signing.BadSignature:
            payload = None
        if user is None or payload != {"id": user.pk, "email": user.email}:
            msg = "invalid or expired verification code"
            raise ValidationError(msg)
        if not user.email_verified:
            user.email_verified = True
            user.save(update_fields=["email_verified", "updated_at"])
            self.invalidate_profiles(user.pk)
        logger.info("Email verified for user %s", user.pk)

    def request_password_reset(self, email: str) -> None:
        user = self._by_email(email)
        self._mail("password_reset", user, default_token_generator.make_token(user))
        logger.info("Password reset requested for user %s", user.pk)

    def reset_password(self, email: str, token: str, new_password: str) -> None:
        """Tokens die with the password they were issued for, so each works once."""
        user = User.objects.filter(email__iexact=email).first()
        if user is None or not default_token_generator.check_token(user, token):
            msg = "invalid or expired reset code"
            raise ValidationError(msg)
        try:
            password_validation.validate_password(new_password, user)
        except DjangoValidationError as exc:
            raise ValidationError({"new_password": exc.messages}) from exc
        user.set_password(new_password)
        user.save(update_fields=["password"])
        logger.info("Password reset for user %s", user.pk)

    @staticmethod
    def search(term: str):
        return User.objects.filter(
            Q(username__icontains=term) | Q(email__icontains=term)
        ).order_by("-created_at")

    def dashboard(self, user: User) -> dict[str, Any]:
        """Task and meeting stats plus unread notifications, cached per user."""

        def produce():
            deps = {"cache": self.cache, "publisher": self.publisher}
            return {
                "tasks": TaskService(**deps).stats(user),
                "meetings": MeetingService(**deps).stats(user),
                "unread_notifications": NotificationService(**deps).unread_count(user),
            }

        return self.cache.get_or_set(
            user_key(user.pk, "dashboard"), produce, ttl("dashboard")
        )

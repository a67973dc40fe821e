from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction
from rest_framework.exceptions import NotFound

from collabhub.core.cache import listing_key
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.notifications.api.serializers import NotificationSerializer
from collabhub.notifications.models import Notification
from collabhub.realtime.events.notifications import publish_notification_created

if TYPE_CHECKING:
    from collabhub.users.models import User

logger = logging.getLogger(__name__)


def notifications_tag(user_id: Any) -> str:
    return f"notifications:user:{user_id}"


class NotificationService(Service):
    def notify(  # noqa: PLR0913
        self,
        recipient_id: Any,
        *,
        notification_type: str,
        title: str,
        message: str,
        sender: User | None = None,
        related_link: str = "",
    ) -> Notification | None:
        """Create a notification and push it to the recipient's room after commit."""
        if recipient_id is None:
            return None
        notification = Notification.objects.create(
            recipient_id=recipient_id,
            sender=sender,
            notification_type=notification_type,
            title=title,
            message=message,
            related_link=related_link,
        )
        self.invalidate_for(recipient_id)
        transaction.on_commit(
            lambda: publish_notification_created(self.publisher, notification)
        )
        return notification

    def notify_many(self, recipient_ids, **kwargs) -> list[Notification]:
        created = []
        for recipient_id in dict.fromkeys(recipient_ids):
            notification = self.notify(recipient_id, **kwargs)
            if notification is not None:
                created.append(notification)
        return created

    def invalidate_for(self, user_id: Any) -> None:
        self.cache.invalidate_tags(notifications_tag(user_id))
        self.cache.delete(
            user_key(user_id, "notifications_unread"), user_key(user_id, "dashboard")
        )

    def list_for(self, user: User, page: int, limit: int) -> dict[str, Any]:
        key = listing_key(
            user_key(user.pk, "notifications"), {"page": page, "limit": limit}
        )

        def produce():
            queryset = Notification.objects.filter(recipient=user).select_related(
                "sender"
            )
            items, pagination = paginate(queryset, page, limit)
            return {
                "notifications": NotificationSerializer(items, many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=[notifications_tag(user.pk)]
        )

    def unread_count(self, user: User) -> int:
        return self.cache.get_or_set(
            user_key(user.pk, "notifications_unread"),
            lambda: Notification.objects.filter(recipient=user, is_read=False).count(),
            ttl("stats"),
        )

    def _owned(self, user: User, notification_id: Any):
        return Notification.objects.filter(pk=notification_id, recipient=user)

    def mark_read(self, user: User, notification_id: Any) -> dict[str, Any]:
        updated = self._owned(user, notification_id).update(is_read=True)
        if not updated:
            msg = "Notification not found"
            raise NotFound(msg)
        self.invalidate_for(user.pk)
        notification = (
            self._owned(user, notification_id).select_related("sender").get()
        )
        return NotificationSerializer(notification).data

    def mark_all_read(self, user: User) -> int:
        updated = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True
        )
        self.invalidate_for(user.pk)
        logger.info("Marked %d notifications read for user %s", updated, user.pk)
        return updated

    def delete(self, user: User, notification_id: Any) -> None:
        deleted, _ = self._owned(user, notification_id).delete()
        if not deleted:
            msg = "Notification not found"
            raise NotFound(msg)
        self.invalidate_for(user.pk)

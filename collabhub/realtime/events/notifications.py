from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from collabhub.core.refs import related
from collabhub.core.refs import optional_user_summary

if TYPE_CHECKING:  # import for type checking only
    from collabhub.notifications.models import Notification
    from collabhub.realtime.publisher import BasePublisher


def build_notification_payload(notification: Notification) -> dict[str, Any]:
    sender = related(notification, "sender")
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.notification_type,
        "link": notification.related_link,
        "sender": optional_user_summary(sender),
        "created_at": notification.created_at.isoformat(),
    }


def publish_notification_created(
    publisher: BasePublisher, notification: Notification
) -> None:
    """Publish a newly created Notification to the recipient in realtime."""

    payload = build_notification_payload(notification)
    publisher.to_user(notification.recipient_id, "new_notification", payload)

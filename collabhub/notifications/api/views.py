from __future__ import annotations

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService

from .serializers import NotificationSerializer


@extend_schema_view(
    list=extend_schema(tags=["Notifications"]),
    destroy=extend_schema(tags=["Notifications"]),
)
class NotificationViewSet(ServiceMixin, GenericViewSet):
    """Notifications for the authenticated user.

    - list: request.user's notifications, newest first, paginated
    - unread_count
    - mark_read / mark_all_read
    - destroy: deletes a notification (recipient only)
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    service_class = NotificationService
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user)

    def list(self, request):
        page, limit = page_params(request)
        data = self.get_service().list_for(request.user, page, limit)
        return envelope("Notifications fetched successfully", **data)

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Notification deleted successfully")

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        count = self.get_service().unread_count(request.user)
        return envelope("Unread count fetched successfully", count=count)

    @action(detail=True, methods=["post", "put"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_service().mark_read(request.user, pk)
        return envelope("Notification marked as read", notification=notification)

    @action(detail=False, methods=["post", "put"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = self.get_service().mark_all_read(request.user)
        return envelope("All notifications marked as read", updated=updated)

    @action(detail=True, methods=["put"])
    def read(self, request, pk=None):
        return self.mark_read(request, pk)

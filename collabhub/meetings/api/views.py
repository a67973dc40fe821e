from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.meetings.models import Meeting
from collabhub.meetings.services import MeetingService

from .filters import MeetingFilter
from .serializers import MeetingAttendeesSerializer
from .serializers import MeetingCreateSerializer
from .serializers import MeetingReassignSerializer
from .serializers import MeetingRescheduleSerializer
from .serializers import MeetingSerializer
from .serializers import MeetingStatusSerializer
from .serializers import MeetingUpdateSerializer


@extend_schema_view(
    list=extend_schema(tags=["Meetings"]),
    create=extend_schema(tags=["Meetings"], request=MeetingCreateSerializer),
    retrieve=extend_schema(tags=["Meetings"]),
    update=extend_schema(tags=["Meetings"], request=MeetingUpdateSerializer),
    partial_update=extend_schema(tags=["Meetings"], request=MeetingUpdateSerializer),
    destroy=extend_schema(tags=["Meetings"]),
)
class MeetingViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = MeetingSerializer
    queryset = Meeting.objects.all()
    filterset_class = MeetingFilter
    service_class = MeetingService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = MeetingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().create(request.user, serializer.validated_data)
        return envelope(
            "Meeting created and assigned successfully",
            status=status.HTTP_201_CREATED,
            meeting=meeting,
        )

    def list(self, request):
        page, limit = page_params(request)
        filterset = MeetingFilter(request.query_params, queryset=Meeting.objects.none())
        if not filterset.is_valid():
            raise ValidationError(filterset.errors)
        data = self.get_service().list(filterset.form.cleaned_data, page, limit)
        return envelope("Meetings fetched successfully", **data)

    def retrieve(self, request, pk=None):
        return envelope(
            "Meeting fetched successfully", meeting=self.get_service().retrieve(pk)
        )

    def update(self, request, pk=None):
        serializer = MeetingUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().update(
            request.user, pk, serializer.validated_data
        )
        return envelope("Meeting updated successfully", meeting=meeting)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Meeting deleted successfully")

    @action(detail=False, methods=["get"])
    def my(self, request):
        meetings = self.get_service().mine(request.user)
        return envelope("Meetings fetched successfully", meetings=meetings)

    @extend_schema(request=MeetingStatusSerializer)
    @action(detail=True, methods=["put", "patch"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = MeetingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().update_status(
            request.user, pk, serializer.validated_data["status"]
        )
        return envelope("Meeting status updated successfully", meeting=meeting)

    @extend_schema(request=MeetingRescheduleSerializer)
    @action(detail=True, methods=["put", "patch"])
    def reschedule(self, request, pk=None):
        serializer = MeetingRescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().reschedule(
            request.user, pk, serializer.validated_data
        )
        return envelope("Meeting rescheduled successfully", meeting=meeting)

    @extend_schema(request=MeetingReassignSerializer)
    @action(detail=True, methods=["put", "patch"])
    def reassign(self, request, pk=None):
        serializer = MeetingReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().reassign(
            request.user, pk, serializer.validated_data["assigned_to"]
        )
        return envelope("Meeting reassigned successfully", meeting=meeting)

    @extend_schema(request=MeetingAttendeesSerializer)
    @action(detail=True, methods=["put", "patch"])
    def attendees(self, request, pk=None):
        serializer = MeetingAttendeesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = self.get_service().update_attendees(
            request.user, pk, serializer.validated_data["attendees"]
        )
        return envelope("Meeting attendees updated successfully", meeting=meeting)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(
            "Meeting stats fetched successfully",
            stats=self.get_service().stats(request.user),
        )

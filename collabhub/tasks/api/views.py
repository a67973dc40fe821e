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
from collabhub.tasks.models import Task
from collabhub.tasks.services import TaskService

from .filters import TaskFilter
from .serializers import TaskCreateSerializer
from .serializers import TaskReassignSerializer
from .serializers import TaskSerializer
from .serializers import TaskStatusSerializer
from .serializers import TaskUpdateSerializer


@extend_schema_view(
    list=extend_schema(tags=["Tasks"]),
    create=extend_schema(tags=["Tasks"], request=TaskCreateSerializer),
    retrieve=extend_schema(tags=["Tasks"]),
    update=extend_schema(tags=["Tasks"], request=TaskUpdateSerializer),
    partial_update=extend_schema(tags=["Tasks"], request=TaskUpdateSerializer),
    destroy=extend_schema(tags=["Tasks"]),
)
class TaskViewSet(ServiceMixin, GenericViewSet):
    """Tasks assigned between users.

    Only the assigner may update, reassign or delete a task; only the
    assignee may change its status.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = TaskSerializer
    queryset = Task.objects.all()
    filterset_class = TaskFilter
    service_class = TaskService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().create(request.user, serializer.validated_data)
        return envelope(
            "Task created and assigned successfully",
            status=status.HTTP_201_CREATED,
            task=task,
        )

    def list(self, request):
        page, limit = page_params(request)
        filterset = TaskFilter(request.query_params, queryset=Task.objects.none())
        if not filterset.is_valid():
            raise ValidationError(filterset.errors)
        data = self.get_service().list(filterset.form.cleaned_data, page, limit)
        return envelope("Tasks fetched successfully", **data)

    def retrieve(self, request, pk=None):
        return envelope(
            "Task fetched successfully", task=self.get_service().retrieve(pk)
        )

    def update(self, request, pk=None):
        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().update(request.user, pk, serializer.validated_data)
        return envelope("Task updated successfully", task=task)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Task deleted successfully")

    @action(detail=False, methods=["get"])
    def my(self, request):
        tasks = self.get_service().mine(request.user)
        return envelope("Tasks fetched successfully", tasks=tasks)

    @extend_schema(request=TaskStatusSerializer)
    @action(detail=True, methods=["put", "patch"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = TaskStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().update_status(
            request.user, pk, serializer.validated_data["status"]
        )
        return envelope("Task status updated successfully", task=task)

    @extend_schema(request=TaskReassignSerializer)
    @action(detail=True, methods=["put", "patch"])
    def reassign(self, request, pk=None):
        serializer = TaskReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().reassign(
            request.user, pk, serializer.validated_data["assign_to"]
        )
        return envelope("Task reassigned successfully", task=task)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(
            "Task stats fetched successfully",
            stats=self.get_service().stats(request.user),
        )

    @action(detail=False, methods=["post"], url_path="clear-cache")
    def clear_cache(self, request):
        self.get_service().clear_cache(request.user)
        return envelope("All task caches cleared successfully")

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.projects.services import ProjectService

from .serializers import AddProjectMemberSerializer
from .serializers import ProjectLinkSerializer
from .serializers import ProjectListParamsSerializer
from .serializers import ProjectMemberRoleSerializer
from .serializers import ProjectWriteSerializer
from .serializers import RemoveProjectLinkSerializer
from .serializers import RemoveProjectMemberSerializer
from .serializers import UpdateProjectLinkSerializer


@extend_schema_view(
    list=extend_schema(tags=["Projects"]),
    create=extend_schema(tags=["Projects"]),
    retrieve=extend_schema(tags=["Projects"]),
    update=extend_schema(tags=["Projects"]),
    partial_update=extend_schema(tags=["Projects"]),
    destroy=extend_schema(tags=["Projects"]),
)
class ProjectViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = ProjectWriteSerializer
    service_class = ProjectService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = ProjectWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = self.get_service().create(request.user, serializer.validated_data)
        return envelope(
            "Project created successfully",
            status=status.HTTP_201_CREATED,
            project=project,
        )

    def list(self, request):
        page, limit = page_params(request, default_limit=10)
        params = ProjectListParamsSerializer(data=request.query_params.dict())
        params.is_valid(raise_exception=True)
        data = self.get_service().list(
            request.user, page=page, limit=limit, **params.validated_data
        )
        return envelope("Projects fetched successfully", **data)

    def retrieve(self, request, pk=None):
        project = self.get_service().retrieve(request.user, pk)
        return envelope("Project fetched successfully", project=project)

    def update(self, request, pk=None):
        serializer = ProjectWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        project = self.get_service().update(
            request.user, pk, serializer.validated_data
        )
        return envelope("Project updated successfully", project=project)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Project deleted successfully")

    @extend_schema(request=AddProjectMemberSerializer)
    @action(detail=True, methods=["post", "delete"])
    def members(self, request, pk=None):
        service = self.get_service()
        if request.method == "POST":
            serializer = AddProjectMemberSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            data = serializer.validated_data
            project = service.add_member(
                request.user, pk, data["user_id"], data["role"]
            )
            return envelope("Member added successfully", project=project)
        serializer = RemoveProjectMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = service.remove_member(
            request.user, pk, serializer.validated_data["user_id"]
        )
        return envelope("Member removed successfully", project=project)

    @extend_schema(request=ProjectMemberRoleSerializer)
    @action(detail=True, methods=["put"], url_path="members/role")
    def member_role(self, request, pk=None):
        serializer = ProjectMemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        project = self.get_service().update_member_role(
            request.user, pk, data["user_id"], data["role"]
        )
        return envelope("Member role updated successfully", project=project)

    @extend_schema(request=ProjectLinkSerializer)
    @action(detail=True, methods=["post", "put", "delete"])
    def links(self, request, pk=None):
        service = self.get_service()
        if request.method == "POST":
            serializer = ProjectLinkSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            project = service.add_link(request.user, pk, serializer.validated_data)
            return envelope("Link added successfully", project=project)
        if request.method == "PUT":
            serializer = UpdateProjectLinkSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            data = dict(serializer.validated_data)
            link_id = data.pop("link_id")
            project = service.update_link(request.user, pk, link_id, data)
            return envelope("Link updated successfully", project=project)
        serializer = RemoveProjectLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = service.remove_link(
            request.user, pk, serializer.validated_data["link_id"]
        )
        return envelope("Link removed successfully", project=project)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(
            "Project stats fetched successfully",
            stats=self.get_service().stats(request.user),
        )

    @action(detail=False, methods=["post"], url_path="clear-cache")
    def clear_cache(self, request):
        self.get_service().clear_cache(request.user)
        return envelope("Project cache cleared successfully")

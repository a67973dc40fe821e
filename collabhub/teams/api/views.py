from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.teams.services import TeamService

from .serializers import AddTeamMemberSerializer
from .serializers import RemoveTeamMemberSerializer
from .serializers import TeamListParamsSerializer
from .serializers import TeamMemberRoleSerializer
from .serializers import TeamWriteSerializer


@extend_schema_view(
    list=extend_schema(tags=["Teams"]),
    create=extend_schema(tags=["Teams"]),
    retrieve=extend_schema(tags=["Teams"]),
    update=extend_schema(tags=["Teams"]),
    partial_update=extend_schema(tags=["Teams"]),
    destroy=extend_schema(tags=["Teams"]),
)
class TeamViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = TeamWriteSerializer
    service_class = TeamService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = TeamWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = self.get_service().create(request.user, serializer.validated_data)
        return envelope(
            "Team created successfully", status=status.HTTP_201_CREATED, team=team
        )

    def list(self, request):
        page, limit = page_params(request, default_limit=10)
        params = TeamListParamsSerializer(data=request.query_params.dict())
        params.is_valid(raise_exception=True)
        data = self.get_service().list(
            request.user, page=page, limit=limit, **params.validated_data
        )
        return envelope("Teams fetched successfully", **data)

    def retrieve(self, request, pk=None):
        team = self.get_service().retrieve(request.user, pk)
        return envelope("Team fetched successfully", team=team)

    def update(self, request, pk=None):
        serializer = TeamWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        team = self.get_service().update(request.user, pk, serializer.validated_data)
        return envelope("Team updated successfully", team=team)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Team deleted successfully")

    @extend_schema(request=AddTeamMemberSerializer)
    @action(detail=True, methods=["get", "post", "delete"])
    def members(self, request, pk=None):
        service = self.get_service()
        if request.method == "GET":
            return envelope(
                "Team members fetched successfully",
                members=service.members(request.user, pk),
            )
        if request.method == "POST":
            serializer = AddTeamMemberSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            data = serializer.validated_data
            team = service.add_member(request.user, pk, data["user_id"], data["role"])
            return envelope("Member added successfully", team=team)
        serializer = RemoveTeamMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = service.remove_member(
            request.user, pk, serializer.validated_data["user_id"]
        )
        return envelope("Member removed successfully", team=team)

    @extend_schema(request=TeamMemberRoleSerializer)
    @action(detail=True, methods=["put"], url_path="members/role")
    def member_role(self, request, pk=None):
        serializer = TeamMemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        team = self.get_service().update_member_role(
            request.user, pk, data["user_id"], data["role"]
        )
        return envelope("Member role updated successfully", team=team)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(
            "Team stats fetched successfully",
            stats=self.get_service().stats(request.user),
        )

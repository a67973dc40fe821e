from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.collaboration.models import CodeSession
from collabhub.collaboration.services import CodeSessionService
from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope

from .serializers import CodeSessionCreateSerializer
from .serializers import CodeSessionSerializer
from .serializers import InviteUserSerializer
from .serializers import SessionListParamsSerializer
from .serializers import UpdateCodeSerializer
from .serializers import UpdateCursorSerializer

INVITE_CODE_PATTERN = r"join/(?P<invite_code>[A-Za-z0-9]+)"


@extend_schema_view(
    create=extend_schema(tags=["Code Sessions"], request=CodeSessionCreateSerializer),
    retrieve=extend_schema(tags=["Code Sessions"]),
    destroy=extend_schema(tags=["Code Sessions"]),
)
class CodeSessionViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = CodeSessionSerializer
    queryset = CodeSession.objects.all()
    service_class = CodeSessionService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = CodeSessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = self.get_service().create(request.user, serializer.validated_data)
        return envelope(
            "Code session created successfully",
            status=status.HTTP_201_CREATED,
            session=session,
        )

    def retrieve(self, request, pk=None):
        return envelope(
            "Code session fetched successfully",
            session=self.get_service().retrieve(request.user, pk),
        )

    def destroy(self, request, pk=None):
        self.get_service().delete(request.user, pk)
        return envelope("Session deleted successfully")

    @extend_schema(tags=["Code Sessions"])
    @action(detail=False, methods=["get"], url_path="user/sessions")
    def mine(self, request):
        page, limit = page_params(request, default_limit=10)
        data = self.get_service().mine(request.user, page, limit)
        return envelope("Code sessions fetched successfully", **data)

    @extend_schema(tags=["Code Sessions"], parameters=[SessionListParamsSerializer])
    @action(detail=False, methods=["get"], url_path="public/sessions")
    def public(self, request):
        page, limit = page_params(request, default_limit=10)
        params = SessionListParamsSerializer(data=request.query_params.dict())
        params.is_valid(raise_exception=True)
        data = self.get_service().public(
            page, limit, params.validated_data.get("language")
        )
        return envelope("Public code sessions fetched successfully", **data)

    @extend_schema(tags=["Code Sessions"])
    @action(detail=False, methods=["get"], url_path="stats/overview")
    def stats(self, request):
        return envelope(
            "Code session stats fetched successfully",
            stats=self.get_service().stats(),
        )

    @extend_schema(tags=["Code Sessions"], request=None)
    @action(detail=True, methods=["post"])
    def join(self, request, pk=None):
        session = self.get_service().join(request.user, pk)
        return envelope("Joined session successfully", session=session)

    @extend_schema(tags=["Code Sessions"], request=None)
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        self.get_service().leave(request.user, pk)
        return envelope("Left session successfully")

    @extend_schema(tags=["Code Sessions"], request=UpdateCodeSerializer)
    @action(detail=True, methods=["put"])
    def code(self, request, pk=None):
        serializer = UpdateCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().update_code(
            request.user,
            pk,
            serializer.validated_data["code"],
            serializer.validated_data.get("cursor_position"),
        )
        return envelope("Code updated successfully")

    @extend_schema(tags=["Code Sessions"], request=UpdateCursorSerializer)
    @action(detail=True, methods=["put"])
    def cursor(self, request, pk=None):
        serializer = UpdateCursorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().update_cursor(
            request.user, pk, serializer.validated_data["cursor_position"]
        )
        return envelope("Cursor updated successfully")

    @extend_schema(tags=["Code Sessions"], request=None)
    @action(detail=True, methods=["put"])
    def end(self, request, pk=None):
        self.get_service().end(request.user, pk)
        return envelope("Session ended successfully")

    @extend_schema(tags=["Code Sessions"], request=None)
    @action(detail=True, methods=["post"], url_path="invite-code")
    def invite_code(self, request, pk=None):
        data = self.get_service().generate_invite(request.user, pk)
        return envelope("Invite code generated successfully", data=data)

    @extend_schema(tags=["Code Sessions"], request=InviteUserSerializer)
    @action(detail=True, methods=["post"])
    def invite(self, request, pk=None):
        serializer = InviteUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().invite_user(
            request.user, pk, serializer.validated_data["invited_user_id"]
        )
        return envelope("User invited successfully")

    @extend_schema(tags=["Code Sessions"], request=None)
    @action(
        detail=False,
        methods=["get", "post"],
        url_path=INVITE_CODE_PATTERN,
        url_name="join-by-code",
    )
    def join_by_code(self, request, invite_code=None):
        service = self.get_service()
        if request.method == "GET":
            return envelope(
                "Code session fetched successfully",
                data=service.preview(request.user, invite_code),
            )
        session = service.join_by_code(request.user, invite_code)
        return envelope("Joined session successfully", data=session)

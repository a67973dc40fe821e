from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.social.services import FollowService
from collabhub.social.services import FriendService

from .serializers import FollowSerializer
from .serializers import FriendRequestFilterSerializer
from .serializers import RespondFriendRequestSerializer
from .serializers import SendFriendRequestSerializer


@extend_schema_view(
    list=extend_schema(tags=["Friends"]),
    destroy=extend_schema(tags=["Friends"]),
)
class FriendViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    service_class = FriendService
    lookup_value_regex = r"\d+"

    def list(self, request):
        friends = self.get_service().friends(request.user)
        return envelope("Friends fetched successfully", friends=friends)

    def destroy(self, request, pk=None):
        self.get_service().remove(request.user, pk)
        return envelope("Friend removed successfully")

    @extend_schema(request=SendFriendRequestSerializer)
    @action(detail=False, methods=["post"], url_path="request")
    def send_request(self, request):
        serializer = SendFriendRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        friend_request = self.get_service().send_request(
            request.user, serializer.validated_data["receiver_id"]
        )
        return envelope(
            "Friend request sent successfully",
            status=status.HTTP_201_CREATED,
            request=friend_request,
        )

    @action(detail=False, methods=["get"])
    def requests(self, request):
        params = FriendRequestFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        requests = self.get_service().list_requests(
            request.user, params.validated_data["type"]
        )
        return envelope("Friend requests fetched successfully", requests=requests)

    @extend_schema(request=RespondFriendRequestSerializer)
    @action(detail=False, methods=["post", "put"])
    def respond(self, request):
        serializer = RespondFriendRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        friend_request = self.get_service().respond(
            request.user, data["request_id"], data["action"]
        )
        return envelope(
            f"Friend request {data['action']}ed successfully", request=friend_request
        )

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return envelope(
            "Friend stats fetched successfully",
            stats=self.get_service().stats(request.user),
        )

    @action(detail=False, methods=["get"])
    def search(self, request):
        _, limit = page_params(request)
        users = self.get_service().search(
            request.user, request.query_params.get("search", "").strip(), limit
        )
        return envelope("Users fetched successfully", users=users)


@extend_schema_view(
    create=extend_schema(tags=["Follow"], request=FollowSerializer),
    destroy=extend_schema(tags=["Follow"]),
)
class FollowViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    service_class = FollowService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = FollowSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stats = self.get_service().follow(
            request.user, serializer.validated_data["user_id"]
        )
        return envelope(
            "User followed successfully", status=status.HTTP_201_CREATED, stats=stats
        )

    def destroy(self, request, pk=None):
        stats = self.get_service().unfollow(request.user, pk)
        return envelope("User unfollowed successfully", stats=stats)

    @action(detail=True, methods=["get"])
    def followers(self, request, pk=None):
        page, limit = page_params(request)
        data = self.get_service().followers(pk, page, limit)
        return envelope("Followers fetched successfully", **data)

    @action(detail=True, methods=["get"])
    def following(self, request, pk=None):
        page, limit = page_params(request)
        data = self.get_service().following(pk, page, limit)
        return envelope("Following fetched successfully", **data)

    @action(detail=True, methods=["get"])
    def stats(self, request, pk=None):
        return envelope(
            "Follow stats fetched successfully", stats=self.get_service().stats(pk)
        )

    @action(detail=True, methods=["get"], url_path="status")
    def follow_status(self, request, pk=None):
        return envelope(
            "Follow status fetched successfully",
            follow_status=self.get_service().status(request.user, pk),
        )

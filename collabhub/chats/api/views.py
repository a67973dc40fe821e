from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.viewsets import GenericViewSet

from collabhub.chats.models import Chat
from collabhub.chats.services import ChatService
from collabhub.core.pagination import page_params
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope

from .serializers import ChatSerializer
from .serializers import CreateChatSerializer
from .serializers import SendMessageSerializer
from .serializers import UpdateMessageSerializer


@extend_schema_view(
    list=extend_schema(tags=["Chats"]),
    create=extend_schema(tags=["Chats"], request=CreateChatSerializer),
)
class ChatViewSet(ServiceMixin, GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = ChatSerializer
    queryset = Chat.objects.all()
    service_class = ChatService
    lookup_value_regex = r"\d+"

    def create(self, request):
        serializer = CreateChatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chat, created = self.get_service().create_chat(
            request.user, serializer.validated_data
        )
        if created:
            return envelope(
                "Chat created successfully", status=status.HTTP_201_CREATED, chat=chat
            )
        return envelope("Chat already exists", chat=chat)

    def list(self, request):
        page, limit = page_params(request)
        data = self.get_service().list_chats(request.user, page, limit)
        return envelope("Chats fetched successfully", **data)

    @extend_schema(tags=["Chats"])
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        page, limit = page_params(request, default_limit=50)
        data = self.get_service().list_messages(request.user, pk, page, limit)
        return envelope("Messages fetched successfully", **data)

    @extend_schema(tags=["Chats"], request=SendMessageSerializer)
    @action(
        detail=False, methods=["post"], url_path="messages", url_name="send-message"
    )
    def send_message(self, request):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = self.get_service().send_message(
            request.user, serializer.validated_data
        )
        return envelope(
            "Message sent successfully",
            status=status.HTTP_201_CREATED,
            data=message,
        )

    @extend_schema(tags=["Chats"], request=UpdateMessageSerializer)
    @action(
        detail=False,
        methods=["put", "delete"],
        url_path=r"messages/(?P<message_id>\d+)",
        url_name="message-detail",
    )
    def message_detail(self, request, message_id=None):
        service = self.get_service()
        if request.method == "DELETE":
            service.delete_message(request.user, message_id)
            return envelope("Message deleted successfully")
        serializer = UpdateMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = service.update_message(
            request.user, message_id, serializer.validated_data["content"]
        )
        return envelope("Message updated successfully", data=message)

    @extend_schema(tags=["Chats"], request=None)
    @action(detail=True, methods=["put"])
    def read(self, request, pk=None):
        count = self.get_service().mark_read(request.user, pk)
        return envelope("Messages marked as read", marked_count=count)

    @extend_schema(tags=["Chats"])
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return envelope(
            "Unread count fetched successfully",
            unread_count=self.get_service().unread_count(request.user),
        )

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet
from rest_framework_simplejwt.tokens import RefreshToken

from collabhub.core.pagination import page_params
from collabhub.core.pagination import paginate
from collabhub.core.views import ServiceMixin
from collabhub.core.views import envelope
from collabhub.users.models import User
from collabhub.users.services import UserService

from .serializers import ChangePasswordSerializer
from .serializers import EmailSerializer
from .serializers import PasswordResetConfirmSerializer
from .serializers import ProfileUpdateSerializer
from .serializers import RegisterSerializer
from .serializers import UserListSerializer
from .serializers import UserSerializer
from .serializers import VerifyEmailSerializer


def _token_pair(user: User) -> dict[str, str]:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


class AnonymousAuthView(ServiceMixin, APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    service_class = UserService


@extend_schema(tags=["Authentication"], request=RegisterSerializer)
class RegisterView(AnonymousAuthView):
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        self.get_service().send_verification(user)
        return envelope(
            "User registered successfully",
            status=status.HTTP_201_CREATED,
            user=UserSerializer(user).data,
            tokens=_token_pair(user),
        )


@extend_schema(tags=["Authentication"], request=VerifyEmailSerializer)
class VerifyEmailView(AnonymousAuthView):
    def post(self, request):
        serializer = VerifyEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().verify_email(**serializer.validated_data)
        return envelope("Email verified successfully")


@extend_schema(tags=["Authentication"], request=EmailSerializer)
class ResendVerificationView(AnonymousAuthView):
    def post(self, request):
        serializer = EmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().resend_verification(serializer.validated_data["email"])
        return envelope("Verification code resent to email")


@extend_schema(tags=["Authentication"], request=EmailSerializer)
class PasswordResetView(AnonymousAuthView):
    def post(self, request):
        serializer = EmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().request_password_reset(serializer.validated_data["email"])
        return envelope("Password reset code sent to email")


@extend_schema(tags=["Authentication"], request=PasswordResetConfirmSerializer)
class PasswordResetConfirmView(AnonymousAuthView):
    def post(self, request):
        serializer = PasswordResetConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.get_service().reset_password(**serializer.validated_data)
        return envelope("Password reset successfully")


@extend_schema_view(
    list=extend_schema(tags=["Users"]),
    retrieve=extend_schema(tags=["Users"]),
)
class UserViewSet(ServiceMixin, GenericViewSet):
    serializer_class = UserListSerializer
    queryset = User.objects.all()
    service_class = UserService
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action in {"list", "retrieve", "search"}:
            return [AllowAny()]
        return [IsAuthenticated()]

    def list(self, request):
        page, limit = page_params(request)
        queryset = User.objects.order_by("-created_at")
        term = request.query_params.get("search", "").strip()
        if term:
            queryset = UserService.search(term)
        users, pagination = paginate(queryset, page, limit)
        return envelope(
            "Users fetched successfully",
            users=UserListSerializer(users, many=True).data,
            pagination=pagination,
        )

    def retrieve(self, request, pk=None):
        return envelope(
            "User fetched successfully", user=self.get_service().profile(pk)
        )

    @action(detail=False, methods=["get"])
    def search(self, request):
        term = request.query_params.get("q", "").strip()
        if not term:
            msg = "search query is required"
            raise ValidationError(msg)
        users = UserService.search(term)[:10]
        return envelope(
            "Users fetched successfully",
            users=UserListSerializer(users, many=True).data,
        )

    @action(detail=False, methods=["get", "patch", "put"])
    def me(self, request):
        service = self.get_service()
        if request.method == "GET":
            return envelope(
                "Profile fetched successfully", user=service.profile(request.user.pk)
            )
        serializer = ProfileUpdateSerializer(
            request.user, data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)
        user = service.update_profile(request.user, serializer)
        return envelope("Profile updated successfully", user=user)

    @action(detail=False, methods=["post"], url_path="me/change-password")
    def change_password(self, request):
        serializer = ChangePasswordSerializer(
            data=request.data, context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data["new_password"])
        request.user.save(update_fields=["password"])
        return envelope("Password changed successfully")

    @action(detail=False, methods=["get"], url_path="me/dashboard")
    def dashboard(self, request):
        return envelope(
            "Dashboard fetched successfully",
            dashboard=self.get_service().dashboard(request.user),
        )

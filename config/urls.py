from django.conf import settings
from django.contrib import admin
from django.urls import include
from django.urls import path
from drf_spectacular.utils import extend_schema
from drf_spectacular.views import SpectacularAPIView
from drf_spectacular.views import SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.views import TokenVerifyView

from collabhub.users.api.views import PasswordResetConfirmView
from collabhub.users.api.views import PasswordResetView
from collabhub.users.api.views import RegisterView
from collabhub.users.api.views import ResendVerificationView
from collabhub.users.api.views import VerifyEmailView

from .health import health as health_view

AUTH_TAG = extend_schema(tags=["Authentication"])


def _auth_view(view_class):
    """simplejwt views tagged under Authentication in the schema."""
    tagged = type(view_class.__name__, (view_class,), {})
    return AUTH_TAG(tagged).as_view()


auth_urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("verify-email/", VerifyEmailView.as_view(), name="verify-email"),
    path(
        "verify-email/resend/",
        ResendVerificationView.as_view(),
        name="verify-email-resend",
    ),
    path("password/reset/", PasswordResetView.as_view(), name="password-reset"),
    path(
        "password/reset/confirm/",
        PasswordResetConfirmView.as_view(),
        name="password-reset-confirm",
    ),
    path("jwt/create/", _auth_view(TokenObtainPairView), name="jwt-create"),
    path("jwt/refresh/", _auth_view(TokenRefreshView), name="jwt-refresh"),
    path("jwt/verify/", _auth_view(TokenVerifyView), name="jwt-verify"),
]

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path("health/", health_view, name="health"),
    path("api/v1/auth/", include(auth_urlpatterns)),
    path("api/v1/", include(("config.api_router", "api"), namespace="api_v1")),
    path("api/v1/schema/", SpectacularAPIView.as_view(), name="api-schema-v1"),
    path(
        "api/v1/docs/",
        SpectacularSwaggerView.as_view(url_name="api-schema-v1"),
        name="api-docs-v1",
    ),
    # Unversioned alias, same routes as /api/v1/.
    path("api/", include(("config.api_router", "api"), namespace="api")),
]

from urllib.parse import quote

from django.contrib.auth import password_validation
from rest_framework import serializers

from collabhub.core.exceptions import Conflict
from collabhub.users.models import User


def avatar_url(user: User) -> str:
    if user.avatar:
        return user.avatar
    return (
        "https://ui-avatars.com/api/"
        f"?name={quote(user.username)}&background=random&color=fff&size=128"
    )


class UserListSerializer(serializers.ModelSerializer[User]):
    avatar = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "email", "avatar", "role", "bio", "location"]

    def get_avatar(self, obj: User) -> str:
        return avatar_url(obj)


class UserSerializer(serializers.ModelSerializer[User]):
    """Full profile view; follower counts are annotated by the service."""

    avatar = serializers.SerializerMethodField()
    followers_count = serializers.IntegerField(read_only=True, default=0)
    following_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "avatar",
            "role",
            "bio",
            "location",
            "website",
            "social_links",
            "date_of_birth",
            "phone",
            "is_private",
            "email_verified",
            "followers_count",
            "following_count",
            "created_at",
        ]

    def get_avatar(self, obj: User) -> str:
        return avatar_url(obj)


class ProfileUpdateSerializer(serializers.ModelSerializer[User]):
    class Meta:
        model = User
        fields = [
            "username",
            "first_name",
            "last_name",
            "avatar",
            "bio",
            "location",
            "website",
            "social_links",
            "date_of_birth",
            "phone",
            "is_private",
        ]
        extra_kwargs = {
            # Uniqueness is reported as a conflict by validate_username.
            "username": {"validators": []},
        }

    def validate_username(self, value: str) -> str:
        taken = User.objects.filter(username=value).exclude(pk=self.instance.pk)
        if taken.exists():
            msg = "username already taken"
            raise Conflict(msg)
        return value

    def validate_social_links(self, value):
        if not isinstance(value, dict):
            msg = "Must be an object of network name to URL."
            raise serializers.ValidationError(msg)
        return value


class RegisterSerializer(serializers.ModelSerializer[User]):
    password = serializers.CharField(write_only=True, min_length=6)

    class Meta:
        model = User
        fields = ["username", "email", "password", "first_name", "last_name"]
        extra_kwargs = {
            "username": {"validators": []},
            "email": {"validators": []},
        }

    def validate(self, attrs):
        if User.objects.filter(email__iexact=attrs["email"]).exists():
            msg = "email already in use"
            raise Conflict(msg)
        if User.objects.filter(username=attrs["username"]).exists():
            msg = "username already taken"
            raise Conflict(msg)
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_current_password(self, value: str) -> str:
        user = self.context["request"].user
        if not user.check_password(value):
            msg = "current password is incorrect"
            raise serializers.ValidationError(msg)
        return value

    def validate_new_password(self, value: str) -> str:
        password_validation.validate_password(value, self.context["request"].user)
        return value


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField()


class VerifyEmailSerializer(EmailSerializer):
    token = serializers.CharField()


class PasswordResetConfirmSerializer(EmailSerializer):
    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True, min_length=6)

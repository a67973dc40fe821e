from django.contrib.auth import get_user_model

User = get_user_model()

TEST_PASSWORD = "TestPass123!"  # noqa: S105 - test credentials only


def make_user(username: str, **extra):
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(
        username=username,
        password=TEST_PASSWORD,
        **extra,
    )

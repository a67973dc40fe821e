from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from collabhub.users.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ["username", "email", "role", "is_private", "is_superuser"]
    search_fields = ["username", "email", "first_name", "last_name"]
    list_filter = ["role", "is_private", "email_verified", "is_staff"]
    fieldsets = (
        *BaseUserAdmin.fieldsets,
        (
            "Profile",
            {
                "fields": (
                    "role",
                    "avatar",
                    "bio",
                    "location",
                    "website",
                    "social_links",
                    "date_of_birth",
                    "phone",
                    "is_private",
                    "email_verified",
                )
            },
        ),
    )

from django.contrib import admin

from collabhub.collaboration import models


class SessionParticipantInline(admin.TabularInline):
    model = models.SessionParticipant
    extra = 0
    raw_id_fields = ["user"]


@admin.register(models.CodeSession)
class CodeSessionAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "language", "owner", "is_active", "is_public"]
    list_filter = ["language", "is_active", "is_public"]
    search_fields = ["title", "invite_code"]
    raw_id_fields = ["owner"]
    filter_horizontal = ["invited_users"]
    inlines = [SessionParticipantInline]

from django.contrib import admin

from collabhub.teams import models


class TeamMemberInline(admin.TabularInline):
    model = models.TeamMember
    extra = 0


@admin.register(models.Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "created_by", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "description"]
    inlines = [TeamMemberInline]

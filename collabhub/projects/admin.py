from django.contrib import admin

from collabhub.projects import models


class ProjectMemberInline(admin.TabularInline):
    model = models.ProjectMember
    extra = 0


class ProjectLinkInline(admin.TabularInline):
    model = models.ProjectLink
    extra = 0


@admin.register(models.Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "status", "priority", "created_by", "team"]
    list_filter = ["status", "priority", "is_public"]
    search_fields = ["name", "description"]
    inlines = [ProjectMemberInline, ProjectLinkInline]

from django.contrib import admin

from collabhub.tasks import models


@admin.register(models.Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "status", "priority", "assign_to", "assigned_by"]
    list_filter = ["status", "priority", "overdue_email_sent"]
    search_fields = ["title", "description"]
    raw_id_fields = ["assign_to", "assigned_by", "project"]

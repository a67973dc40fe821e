from django.contrib import admin

from collabhub.meetings import models


@admin.register(models.Meeting)
class MeetingAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "type", "status", "start_date", "assigned_to"]
    list_filter = ["type", "status"]
    search_fields = ["title", "description", "location"]
    raw_id_fields = ["assigned_to", "assigned_by", "project"]
    filter_horizontal = ["attendees"]

from django.contrib import admin

from collabhub.chats import models


@admin.register(models.Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ["id", "type", "name", "created_by", "last_message_at", "is_active"]
    list_filter = ["type", "is_active"]
    filter_horizontal = ["participants"]
    raw_id_fields = ["last_message"]


@admin.register(models.Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "chat", "sender", "type", "is_edited", "is_deleted"]
    list_filter = ["type", "is_deleted"]
    search_fields = ["content"]
    raw_id_fields = ["chat", "sender", "reply_to"]

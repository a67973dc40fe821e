from django.contrib import admin

from collabhub.social import models


@admin.register(models.FriendRequest)
class FriendRequestAdmin(admin.ModelAdmin):
    list_display = ["id", "sender", "receiver", "status", "created_at"]
    list_filter = ["status"]


@admin.register(models.Friendship)
class FriendshipAdmin(admin.ModelAdmin):
    list_display = ["id", "user1", "user2", "created_at"]


@admin.register(models.Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ["id", "follower", "following", "created_at"]

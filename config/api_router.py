from django.conf import settings
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from collabhub.chats.api.views import ChatViewSet
from collabhub.collaboration.api.views import CodeSessionViewSet
from collabhub.meetings.api.views import MeetingViewSet
from collabhub.notifications.api.views import NotificationViewSet
from collabhub.projects.api.views import ProjectViewSet
from collabhub.social.api.views import FollowViewSet
from collabhub.social.api.views import FriendViewSet
from collabhub.tasks.api.views import TaskViewSet
from collabhub.teams.api.views import TeamViewSet
from collabhub.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users", UserViewSet)
router.register("friends", FriendViewSet, basename="friends")
router.register("user/follow", FollowViewSet, basename="follow")
router.register("teams", TeamViewSet, basename="teams")
router.register("projects", ProjectViewSet, basename="projects")
router.register("tasks", TaskViewSet)
router.register("meetings", MeetingViewSet)
router.register("chats", ChatViewSet)
router.register("notifications", NotificationViewSet, basename="notifications")
router.register("code-sessions", CodeSessionViewSet)


app_name = "api"
urlpatterns = router.urls

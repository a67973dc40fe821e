from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db.models import Q
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from collabhub.core.cache import listing_key
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.exceptions import Conflict
from collabhub.core.pagination import paginate
from collabhub.core.refs import Populated
from collabhub.core.refs import user_summary
from collabhub.core.services import Service
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.social.api.serializers import FriendRequestSerializer
from collabhub.social.models import Follow
from collabhub.social.models import FriendRequest
from collabhub.social.models import Friendship
from collabhub.users.api.serializers import UserListSerializer
from collabhub.users.models import User
from collabhub.users.services import UserService

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

REQUEST_TYPES = ("sent", "received", "all")


def friend_search_tag(user_id: Any) -> str:
    return f"friends:search:{user_id}"


def follows_tag(user_id: Any) -> str:
    return f"follows:user:{user_id}"


def _get_user(user_id: Any) -> User:
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        msg = "User not found"
        raise NotFound(msg)
    return user


class FriendService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    def invalidate(self, user_ids: Iterable[Any]) -> None:
        user_ids = list(user_ids)
        self.cache.invalidate_user_lists(
            user_ids,
            "friends",
            "friend_stats",
            *(f"friend_requests:{kind}" for kind in REQUEST_TYPES),
        )
        self.cache.invalidate_tags(*(friend_search_tag(u) for u in user_ids))

    def send_request(self, sender: User, receiver_id: Any) -> dict[str, Any]:
        if str(sender.pk) == str(receiver_id):
            msg = "Cannot send friend request to yourself"
            raise ValidationError(msg)
        receiver = _get_user(receiver_id)
        if Friendship.between(sender, receiver).exists():
            msg = "Users are already friends"
            raise Conflict(msg)
        pending = FriendRequest.objects.filter(
            Q(sender=sender, receiver=receiver) | Q(sender=receiver, receiver=sender),
            status=FriendRequest.Status.PENDING,
        )
        if pending.exists():
            msg = "Friend request already exists"
            raise Conflict(msg)

        # A previously answered request from the same sender is reopened.
        friend_request, _ = FriendRequest.objects.update_or_create(
            sender=sender,
            receiver=receiver,
            defaults={"status": FriendRequest.Status.PENDING},
        )
        self.notifications.notify(
            receiver.pk,
            sender=sender,
            notification_type=Notification.Type.FRIEND_REQUEST,
            title="New friend request",
            message=f"{sender.username} sent you a friend request",
            related_link="/friends/requests",
        )
        self.invalidate([sender.pk, receiver.pk])
        logger.info(
            "Friend request %s: %s -> %s", friend_request.pk, sender.pk, receiver.pk
        )
        return FriendRequestSerializer(friend_request).data

    def list_requests(self, user: User, kind: str = "all") -> list[dict[str, Any]]:
        def produce():
            queryset = FriendRequest.objects.select_related("sender", "receiver")
            if kind == "sent":
                queryset = queryset.filter(sender=user)
            elif kind == "received":
                queryset = queryset.filter(receiver=user)
            else:
                queryset = queryset.filter(Q(sender=user) | Q(receiver=user))
            return FriendRequestSerializer(queryset, many=True).data

        return self.cache.get_or_set(
            user_key(user.pk, f"friend_requests:{kind}"), produce, ttl("listing")
        )

    def respond(self, user: User, request_id: Any, action: str) -> dict[str, Any]:
        friend_request = (
            FriendRequest.objects.select_related("sender", "receiver")
            .filter(pk=request_id)
            .first()
        )
        if friend_request is None:
            msg = "Friend request not found"
            raise NotFound(msg)
        if friend_request.receiver_id != user.pk:
            msg = "You can only respond to requests sent to you"
            raise PermissionDenied(msg)
        if friend_request.status != FriendRequest.Status.PENDING:
            msg = "Request has already been responded to"
            raise Conflict(msg)

        sender = friend_request.sender
        if action == "accept":
            if Friendship.between(sender, user).exists():
                msg = "Friendship already exists"
                raise Conflict(msg)
            Friendship.objects.create(user1=sender, user2=user)
            friend_request.status = FriendRequest.Status.ACCEPTED
            notification_type = Notification.Type.FRIEND_ACCEPTED
            message = f"{user.username} accepted your friend request"
        else:
            friend_request.status = FriendRequest.Status.REJECTED
            notification_type = Notification.Type.FRIEND_REJECTED
            message = f"{user.username} declined your friend request"
        friend_request.save(update_fields=["status", "updated_at"])

        self.notifications.notify(
            sender.pk,
            sender=user,
            notification_type=notification_type,
            title="Friend request update",
            message=message,
            related_link="/friends",
        )
        self.invalidate([sender.pk, user.pk])
        return FriendRequestSerializer(friend_request).data

    def friends(self, user: User) -> list[dict[str, Any]]:
        cached = self.cache.get_user_list(user.pk, "friends")
        if cached is not None:
            return cached
        friendships = Friendship.involving(user).select_related("user1", "user2")
        view = [
            {
                "id": friendship.pk,
                "friend": user_summary(Populated(friendship.other(user.pk))),
                "created_at": friendship.created_at.isoformat(),
            }
            for friendship in friendships
        ]
        self.cache.cache_user_list(user.pk, "friends", view)
        return view

    def remove(self, user: User, friend_id: Any) -> None:
        deleted, _ = Friendship.between(user.pk, friend_id).delete()
        if not deleted:
            msg = "Friendship not found"
            raise NotFound(msg)
        self.invalidate([user.pk, friend_id])

    def stats(self, user: User) -> dict[str, int]:
        def produce():
            return {
                "total_friends": Friendship.involving(user).count(),
                "pending_sent_requests": FriendRequest.objects.filter(
                    sender=user, status=FriendRequest.Status.PENDING
                ).count(),
                "pending_received_requests": FriendRequest.objects.filter(
                    receiver=user, status=FriendRequest.Status.PENDING
                ).count(),
            }

        return self.cache.get_or_set(
            user_key(user.pk, "friend_stats"), produce, ttl("stats")
        )

    def search(
        self, user: User, term: str = "", limit: int = 20
    ) -> list[dict[str, Any]]:
        def produce():
            excluded = {user.pk}
            for friendship in Friendship.involving(user):
                excluded.update((friendship.user1_id, friendship.user2_id))
            pending = FriendRequest.objects.filter(
                Q(sender=user) | Q(receiver=user), status=FriendRequest.Status.PENDING
            )
            for request in pending:
                excluded.update((request.sender_id, request.receiver_id))
            queryset = User.objects.exclude(pk__in=excluded)
            if term:
                queryset = queryset.filter(
                    Q(username__icontains=term) | Q(email__icontains=term)
                )
            matches = queryset.order_by("username")[:limit]
            return UserListSerializer(matches, many=True).data

        key = listing_key(
            f"search:friends:{user.pk}", {"search": term, "limit": limit}
        )
        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=[friend_search_tag(user.pk)]
        )


class FollowService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    def invalidate(self, *user_ids: Any) -> None:
        self.cache.invalidate_tags(*(follows_tag(u) for u in user_ids))
        self.cache.invalidate_user_lists(user_ids, "follow_stats")
        UserService(cache=self.cache, publisher=self.publisher).invalidate_profiles(
            *user_ids
        )

    def follow(self, user: User, target_id: Any) -> dict[str, Any]:
        if str(user.pk) == str(target_id):
            msg = "Cannot follow yourself"
            raise ValidationError(msg)
        target = _get_user(target_id)
        if Follow.objects.filter(follower=user, following=target).exists():
            msg = "Already following this user"
            raise Conflict(msg)
        Follow.objects.create(follower=user, following=target)
        self.notifications.notify(
            target.pk,
            sender=user,
            notification_type=Notification.Type.NEW_FOLLOWER,
            title="New follower",
            message=f"{user.username} started following you",
            related_link=f"/users/{user.pk}",
        )
        self.invalidate(user.pk, target.pk)
        return self.stats(target.pk)

    def unfollow(self, user: User, target_id: Any) -> dict[str, Any]:
        target = _get_user(target_id)
        deleted, _ = Follow.objects.filter(follower=user, following=target).delete()
        if not deleted:
            msg = "Not following this user"
            raise Conflict(msg)
        self.invalidate(user.pk, target.pk)
        return self.stats(target.pk)

    def _page(self, user_id: Any, direction: str, page: int, limit: int):
        _get_user(user_id)

        def produce():
            if direction == "followers":
                queryset = Follow.objects.filter(following_id=user_id).select_related(
                    "follower"
                )
                attr = "follower"
            else:
                queryset = Follow.objects.filter(follower_id=user_id).select_related(
                    "following"
                )
                attr = "following"
            links, pagination = paginate(queryset, page, limit)
            users = []
            for link in links:
                entry = dict(UserListSerializer(getattr(link, attr)).data)
                entry["followed_at"] = link.created_at.isoformat()
                users.append(entry)
            return {direction: users, "pagination": pagination}

        key = listing_key(
            f"follows:{direction}:{user_id}", {"page": page, "limit": limit}
        )
        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=[follows_tag(user_id)]
        )

    def followers(self, user_id: Any, page: int, limit: int) -> dict[str, Any]:
        return self._page(user_id, "followers", page, limit)

    def following(self, user_id: Any, page: int, limit: int) -> dict[str, Any]:
        return self._page(user_id, "following", page, limit)

    def stats(self, user_id: Any) -> dict[str, int]:
        _get_user(user_id)

        def produce():
            return {
                "followers_count": Follow.objects.filter(following_id=user_id).count(),
                "following_count": Follow.objects.filter(follower_id=user_id).count(),
            }

        return self.cache.get_or_set(
            user_key(user_id, "follow_stats"), produce, ttl("stats")
        )

    def status(self, user: User, target_id: Any) -> dict[str, bool]:
        target = _get_user(target_id)
        return {
            "is_following": Follow.objects.filter(
                follower=user, following=target
            ).exists(),
            "is_followed_by": Follow.objects.filter(
                follower=target, following=user
            ).exists(),
        }

"""Live code-collaboration sessions.

The stored ``code`` is a single blob: ``update_code`` overwrites it and the
most recent save wins. Concurrent saves from two participants are not merged.
Participant admission locks the session row, so the ``max_participants`` cap
holds under concurrent joins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.db import IntegrityError
from django.db import transaction
from django.db.models import Count
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound

from collabhub.collaboration.api.serializers import CodeSessionSerializer
from collabhub.collaboration.models import CodeSession
from collabhub.collaboration.models import SessionParticipant
from collabhub.collaboration.models import generate_invite_code
from collabhub.core.cache import listing_key
from collabhub.core.cache import ttl
from collabhub.core.cache import user_key
from collabhub.core.exceptions import Conflict
from collabhub.core.pagination import paginate
from collabhub.core.services import Service
from collabhub.notifications.models import Notification
from collabhub.notifications.services import NotificationService
from collabhub.users.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

SESSION = "code_session"
PUBLIC_TAG = "code_sessions:public"
STATS_KEY = "code_sessions:stats"
ACCESS_DENIED = "Session not found or access denied"
NOT_PARTICIPANT = "Session not found or user not in session"
NOT_OWNER = "Session not found or you are not the owner"
INVITE_ATTEMPTS = 5


def sessions_tag(user_id: Any) -> str:
    return f"code_sessions:user:{user_id}"


def session_queryset():
    return CodeSession.objects.select_related("owner").prefetch_related(
        "participants__user", "invited_users"
    )


def invite_link(code: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/code-collaboration/join/{code}"


class CodeSessionService(Service):
    @property
    def notifications(self) -> NotificationService:
        return NotificationService(cache=self.cache, publisher=self.publisher)

    # Cache -------------------------------------------------------------
    def invalidate(
        self, session: CodeSession, extra_user_ids: Iterable[Any] = ()
    ) -> None:
        user_ids = {
            session.owner_id,
            *session.participants.values_list("user_id", flat=True),
            *session.invited_users.values_list("pk", flat=True),
            *extra_user_ids,
        }
        self.cache.invalidate_entity(SESSION, session.pk)
        self.cache.invalidate_tags(PUBLIC_TAG, *(sessions_tag(u) for u in user_ids))
        self.cache.delete(STATS_KEY)

    def _view(self, session_id: Any) -> dict[str, Any]:
        view = CodeSessionSerializer(session_queryset().get(pk=session_id)).data
        self.cache.cache_entity(SESSION, session_id, view)
        return view

    # Lookups -----------------------------------------------------------
    def _accessible(self, user: User, session_id: Any) -> CodeSession:
        session = CodeSession.accessible_to(user).filter(pk=session_id).first()
        if session is None:
            raise NotFound(ACCESS_DENIED)
        return session

    def _owned(self, user: User, session_id: Any, **filters: Any) -> CodeSession:
        session = CodeSession.objects.filter(pk=session_id, owner=user, **filters).first()
        if session is None:
            raise NotFound(NOT_OWNER)
        return session

    def _participant(self, user: User, session_id: Any) -> SessionParticipant:
        participant = (
            SessionParticipant.objects.select_related("session")
            .filter(session_id=session_id, session__is_active=True, user=user)
            .first()
        )
        if participant is None:
            raise NotFound(NOT_PARTICIPANT)
        return participant

    # Sessions ----------------------------------------------------------
    def create(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        session = CodeSession.objects.create(owner=user, **data)
        SessionParticipant.objects.create(session=session, user=user)
        self.invalidate(session)
        logger.info("Code session %s created by user %s", session.pk, user.pk)
        return self._view(session.pk)

    def retrieve(self, user: User, session_id: Any) -> dict[str, Any]:
        self._accessible(user, session_id)
        cached = self.cache.get_entity(SESSION, session_id)
        if cached is not None:
            return cached
        return self._view(session_id)

    def mine(self, user: User, page: int, limit: int) -> dict[str, Any]:
        key = listing_key(user_key(user.pk, "code_sessions"), {"page": page, "limit": limit})

        def produce():
            queryset = (
                session_queryset()
                .filter(
                    Q(owner=user) | Q(participants__user=user) | Q(invited_users=user),
                    is_active=True,
                )
                .distinct()
                .order_by("-updated_at")
            )
            sessions, pagination = paginate(queryset, page, limit)
            return {
                "sessions": CodeSessionSerializer(sessions, many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            key, produce, ttl("listing"), tags=[sessions_tag(user.pk)]
        )

    def public(self, page: int, limit: int, language: str | None = None) -> dict[str, Any]:
        params = {"page": page, "limit": limit, "language": language}

        def produce():
            queryset = session_queryset().filter(is_active=True, is_public=True)
            if language:
                queryset = queryset.filter(language=language)
            sessions, pagination = paginate(queryset.order_by("-created_at"), page, limit)
            return {
                "sessions": CodeSessionSerializer(sessions, many=True).data,
                "pagination": pagination,
            }

        return self.cache.get_or_set(
            listing_key("code_sessions:public", params),
            produce,
            ttl("listing"),
            tags=[PUBLIC_TAG],
        )

    # Membership --------------------------------------------------------
    def _admit(self, session: CodeSession, user: User) -> bool:
        """Add ``user`` as a participant; returns False if already present.

        ``session`` must be locked with ``select_for_update``.
        """
        participant = session.participants.filter(user=user).first()
        if participant is not None:
            participant.last_active = timezone.now()
            participant.save(update_fields=["last_active"])
            return False
        if session.participants.count() >= session.max_participants:
            msg = "Session is full"
            raise Conflict(msg)
        SessionParticipant.objects.create(session=session, user=user)
        return True

    def _announce_join(self, session: CodeSession, user: User) -> None:
        self.emit_to_session(
            session.pk,
            "user_joined_session",
            {
                "session_id": session.pk,
                "user": {
                    "id": user.pk,
                    "username": user.username,
                    "avatar": user.avatar or None,
                },
                "participant_count": session.participants.count(),
            },
        )

    def join(self, user: User, session_id: Any) -> dict[str, Any]:
        with transaction.atomic():
            session = (
                CodeSession.objects.select_for_update()
                .filter(pk=session_id, is_active=True)
                .first()
            )
            if session is None:
                raise NotFound(ACCESS_DENIED)
            admitted = self._admit(session, user)
        self.invalidate(session)
        if admitted:
            self._announce_join(session, user)
        logger.info("User %s joined code session %s", user.pk, session.pk)
        return self._view(session.pk)

    def leave(self, user: User, session_id: Any) -> None:
        participant = self._participant(user, session_id)
        session = participant.session
        participant.delete()
        self.invalidate(session, [user.pk])
        self.emit_to_session(
            session.pk,
            "user_left_session",
            {"session_id": session.pk, "user_id": user.pk},
        )

    # Editing -----------------------------------------------------------
    def update_code(
        self,
        user: User,
        session_id: Any,
        code: str,
        cursor_position: dict[str, int] | None = None,
    ) -> None:
        participant = self._participant(user, session_id)
        session = participant.session
        # Last writer wins; no merge with concurrent saves.
        session.code = code
        session.save(update_fields=["code", "updated_at"])
        self._touch(participant, cursor_position)
        self.invalidate(session)
        self.emit_to_session(
            session.pk,
            "code_updated",
            {
                "session_id": session.pk,
                "code": code,
                "updated_by": user.pk,
                "cursor_position": cursor_position,
            },
        )

    def update_cursor(
        self, user: User, session_id: Any, cursor_position: dict[str, int]
    ) -> None:
        participant = self._participant(user, session_id)
        self._touch(participant, cursor_position)
        self.cache.invalidate_entity(SESSION, participant.session_id)
        self.emit_to_session(
            participant.session_id,
            "cursor_updated",
            {
                "session_id": participant.session_id,
                "user_id": user.pk,
                "cursor_position": cursor_position,
            },
        )

    @staticmethod
    def _touch(participant: SessionParticipant, cursor_position) -> None:
        participant.last_active = timezone.now()
        fields = ["last_active"]
        if cursor_position:
            participant.cursor_line = cursor_position["line"]
            participant.cursor_column = cursor_position["column"]
            fields += ["cursor_line", "cursor_column"]
        participant.save(update_fields=fields)

    # Lifecycle ---------------------------------------------------------
    def end(self, user: User, session_id: Any) -> None:
        session = self._owned(user, session_id, is_active=True)
        session.end()
        session.save(update_fields=["is_active", "ended_at", "updated_at"])
        self.invalidate(session)
        logger.info("Code session %s ended by user %s", session.pk, user.pk)
        self.emit_to_session(
            session.pk,
            "session_ended",
            {"session_id": session.pk, "ended_by": user.pk},
        )

    def delete(self, user: User, session_id: Any) -> None:
        session = self._owned(user, session_id)
        self.invalidate(session)
        session.delete()
        logger.info("Code session %s deleted by user %s", session_id, user.pk)

    def stats(self) -> dict[str, Any]:
        def produce():
            active = CodeSession.objects.filter(is_active=True)
            ended = CodeSession.objects.filter(is_active=False, ended_at__isnull=False)
            durations = [
                (s.ended_at - s.created_at).total_seconds()
                for s in ended.only("created_at", "ended_at")
            ]
            average = sum(durations) / len(durations) / 60 if durations else 0
            languages = (
                active.values("language")
                .annotate(count=Count("id"))
                .order_by("-count", "language")[:10]
            )
            return {
                "total_sessions": CodeSession.objects.count(),
                "active_sessions": active.count(),
                "total_participants": SessionParticipant.objects.filter(
                    session__is_active=True
                ).count(),
                "average_session_duration": round(average),
                "popular_languages": list(languages),
            }

        return self.cache.get_or_set(STATS_KEY, produce, ttl("stats"))

    # Invites -----------------------------------------------------------
    def generate_invite(self, user: User, session_id: Any) -> dict[str, str]:
        session = self._owned(user, session_id, is_active=True)
        for _ in range(INVITE_ATTEMPTS):
            code = generate_invite_code()
            try:
                with transaction.atomic():
                    CodeSession.objects.filter(pk=session.pk).update(
                        invite_code=code, updated_at=timezone.now()
                    )
            except IntegrityError:
                continue
            break
        else:
            msg = "Could not allocate a unique invite code"
            raise Conflict(msg)
        self.invalidate(session)
        return {"invite_code": code, "invite_link": invite_link(code)}

    def _by_code(self, invite_code: str, *, lock: bool = False) -> CodeSession:
        queryset = CodeSession.objects.select_for_update() if lock else session_queryset()
        session = queryset.filter(invite_code=invite_code, is_active=True).first()
        if session is None:
            msg = "Invalid invite code or session not found"
            raise NotFound(msg)
        return session

    def join_by_code(self, user: User, invite_code: str) -> dict[str, Any]:
        """Holding the code counts as an invitation; only a full session refuses."""
        with transaction.atomic():
            session = self._by_code(invite_code, lock=True)
            session.invited_users.add(user)
            admitted = self._admit(session, user)
        self.invalidate(session)
        if admitted:
            self._announce_join(session, user)
        return self._view(session.pk)

    def preview(self, user: User, invite_code: str) -> dict[str, Any]:
        session = self._by_code(invite_code)
        participants = session.participants.all()
        already = any(p.user_id == user.pk for p in participants)
        return {
            "session": CodeSessionSerializer(session).data,
            "can_join": already or len(participants) < session.max_participants,
        }

    def invite_user(self, user: User, session_id: Any, invited_user_id: Any) -> None:
        session = self._owned(user, session_id, is_active=True)
        invitee = User.objects.filter(pk=invited_user_id).first()
        if invitee is None:
            msg = "User not found"
            raise NotFound(msg)
        if session.invited_users.filter(pk=invitee.pk).exists():
            msg = "User is already invited to this session"
            raise Conflict(msg)
        session.invited_users.add(invitee)
        self.invalidate(session, [invitee.pk])
        self.notifications.notify(
            invitee.pk,
            sender=user,
            notification_type=Notification.Type.SESSION_INVITE,
            title="Code session invite",
            message=f"{user.username} invited you to the code session '{session.title}'",
            related_link=f"/code-collaboration/{session.pk}",
        )

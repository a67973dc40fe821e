"""Read-through / write-through cache used by the domain services.

Values stored here are response DTOs (plain JSON), never model instances.
Every backend failure is logged and reported as a miss so a broken cache
degrades the API to "always hit the database" instead of failing requests.

Listings whose keys depend on free-form filters are recorded under *tags*
(``tasks:status:pending``, ``chats:user:7``...). Mutations invalidate the
tags that cover every old and new value of the fields they touch, so no
key scanning is needed.

Inside a transaction, invalidations run immediately and once more after
commit, and any write made after an invalidation waits for the commit. A
rolled-back request therefore never leaves its views in the cache, and a
reader that refilled a listing from pre-commit rows is evicted again.
"""

from __future__ import annotations

import json
import logging
from functools import partial
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.core.cache import caches
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django_redis import get_redis_connection
from django_redis.cache import RedisCache

if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_TTLS = {
    "entity": 3600,
    "user_list": 1800,
    "listing": 300,
    "stats": 300,
    "dashboard": 900,
}

TAG_PREFIX = "tag:"


def ttl(kind: str) -> int:
    configured = getattr(settings, "COLLAB_CACHE_TTLS", {}) or {}
    return int(configured.get(kind, DEFAULT_TTLS[kind]))


def tag_ttl() -> int:
    # The index must outlive every entry it points to.
    return max(ttl(kind) for kind in DEFAULT_TTLS)


def listing_key(resource: str, params: dict[str, Any]) -> str:
    """Stable key for a filtered/paginated listing."""
    encoded = json.dumps(params, sort_keys=True, cls=DjangoJSONEncoder)
    return f"{resource}:{encoded}"


def entity_key(kind: str, entity_id: Any) -> str:
    return f"{kind}:{entity_id}"


def user_key(user_id: Any, resource: str) -> str:
    return f"user:{user_id}:{resource}"


def in_transaction() -> bool:
    return transaction.get_connection().in_atomic_block


class CollabCache:
    def __init__(self, alias: str | None = None):
        self.alias = alias or getattr(settings, "COLLAB_CACHE_ALIAS", "default")
        # Set once this instance invalidated something inside an open transaction.
        self.dirty = False

    @property
    def backend(self):
        return caches[self.alias]

    def redis_client(self):
        """Raw client when the alias is served by django-redis, else None."""
        if isinstance(self.backend, RedisCache):
            return get_redis_connection(self.alias)
        return None

    # Primitive operations -------------------------------------------------
    def get(self, key: str) -> Any | None:
        try:
            raw = self.backend.get(key)
        except Exception:  # noqa: BLE001 - cache must degrade, not crash
            logger.warning("Cache get failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    def set(
        self,
        key: str,
        value: Any,
        timeout: int,
        tags: Iterable[str] = (),
    ) -> None:
        tags = tuple(tags)
        if self.dirty and in_transaction():
            transaction.on_commit(partial(self._store, key, value, timeout, tags))
            return
        self._store(key, value, timeout, tags)

    def _store(self, key: str, value: Any, timeout: int, tags: tuple[str, ...]) -> None:
        try:
            payload = json.dumps(value, cls=DjangoJSONEncoder)
            self.backend.set(key, payload, timeout)
        except Exception:  # noqa: BLE001
            logger.warning("Cache set failed for %s", key, exc_info=True)
            return
        for tag in tags:
            self._tag(tag, key)

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        self._delete(keys)
        self._repeat_on_commit(self._delete, keys)

    def _delete(self, keys: tuple[str, ...]) -> None:
        try:
            self.backend.delete_many(list(keys))
        except Exception:  # noqa: BLE001
            logger.warning("Cache delete failed for %s", keys, exc_info=True)

    def _repeat_on_commit(self, func: Callable[..., None], *args: Any) -> None:
        if in_transaction():
            self.dirty = True
            transaction.on_commit(partial(func, *args))

    def get_or_set(
        self,
        key: str,
        producer: Callable[[], Any],
        timeout: int,
        tags: Iterable[str] = (),
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = producer()
        self.set(key, value, timeout, tags=tags)
        return value

    # Tags -----------------------------------------------------------------
    def _tag(self, tag: str, key: str) -> None:
        tag_key = f"{TAG_PREFIX}{tag}"
        try:
            client = self.redis_client()
            if client is not None:
                raw_key = self.backend.make_key(tag_key)
                pipe = client.pipeline()
                pipe.sadd(raw_key, key)
                pipe.expire(raw_key, tag_ttl())
                pipe.execute()
                return
            members = self.backend.get(tag_key) or []
            if key not in members:
                members.append(key)
            self.backend.set(tag_key, members, tag_ttl())
        except Exception:  # noqa: BLE001
            logger.warning("Cache tag update failed for %s", tag_key, exc_info=True)

    def tagged_keys(self, tag: str) -> list[str]:
        tag_key = f"{TAG_PREFIX}{tag}"
        try:
            client = self.redis_client()
            if client is not None:
                members = client.smembers(self.backend.make_key(tag_key))
                return sorted(m.decode() if isinstance(m, bytes) else m for m in members)
            return list(self.backend.get(tag_key) or [])
        except Exception:  # noqa: BLE001
            logger.warning("Cache tag read failed for %s", tag, exc_info=True)
            return []

    def _pop_tagged_keys(self, tag: str) -> list[str]:
        """Read and drop a tag index in one step where the backend allows it."""
        tag_key = f"{TAG_PREFIX}{tag}"
        client = self.redis_client()
        if client is None:
            keys = self.tagged_keys(tag)
            self._delete((tag_key,))
            return keys
        try:
            raw_key = self.backend.make_key(tag_key)
            pipe = client.pipeline()
            pipe.smembers(raw_key)
            pipe.delete(raw_key)
            members, _ = pipe.execute()
        except Exception:  # noqa: BLE001
            logger.warning("Cache tag read failed for %s", tag, exc_info=True)
            return []
        return [m.decode() if isinstance(m, bytes) else m for m in members]

    def invalidate_tags(self, *tags: str) -> None:
        tags = tuple(dict.fromkeys(tags))
        if not tags:
            return
        self._invalidate_tags(tags)
        self._repeat_on_commit(self._invalidate_tags, tags)

    def _invalidate_tags(self, tags: tuple[str, ...]) -> None:
        keys: list[str] = []
        for tag in tags:
            keys.extend(self._pop_tagged_keys(tag))
        if keys:
            logger.debug("Invalidating %d cache keys for tags %s", len(keys), tags)
            self._delete(tuple(dict.fromkeys(keys)))

    # Entity helpers -------------------------------------------------------
    def get_entity(self, kind: str, entity_id: Any) -> Any | None:
        return self.get(entity_key(kind, entity_id))

    def cache_entity(self, kind: str, entity_id: Any, view: Any) -> None:
        self.set(entity_key(kind, entity_id), view, ttl("entity"))

    def write_through(self, kind: str, entity_id: Any, view: Any) -> None:
        """Replace an entity view after a mutation, once the mutation commits."""
        key = entity_key(kind, entity_id)
        self.delete(key)
        self.set(key, view, ttl("entity"))

    def invalidate_entity(self, kind: str, entity_id: Any) -> None:
        self.delete(entity_key(kind, entity_id))

    # Per-user helpers -----------------------------------------------------
    def get_user_list(self, user_id: Any, resource: str) -> Any | None:
        return self.get(user_key(user_id, resource))

    def cache_user_list(self, user_id: Any, resource: str, view: Any) -> None:
        self.set(user_key(user_id, resource), view, ttl("user_list"))

    def invalidate_user_lists(self, user_ids: Iterable[Any], *resources: str) -> None:
        self.delete(
            *(
                user_key(user_id, resource)
                for user_id in dict.fromkeys(u for u in user_ids if u is not None)
                for resource in resources
            )
        )


def filter_tags(resource: str, filters: dict[str, Any]) -> list[str]:
    """Tags for a filtered listing: one per active filter, or ``<resource>:all``."""
    tags = [f"{resource}:{field}:{value}" for field, value in sorted(filters.items())]
    return tags or [f"{resource}:all"]


def snapshot_tags(
    resource: str, fields: Iterable[str], *snapshots: dict[str, Any] | None
) -> list[str]:
    """Tags covering every old and new value of ``fields`` across ``snapshots``.

    A listing filtered on ``status=pending`` only holds pending rows, so a row
    that was or is pending invalidates it through ``<resource>:status:pending``.
    """
    tags = [f"{resource}:all"]
    for snapshot in snapshots:
        if snapshot is None:
            continue
        tags.extend(
            f"{resource}:{field}:{snapshot[field]}"
            for field in fields
            if snapshot.get(field) is not None
        )
    return list(dict.fromkeys(tags))

"""Related-row access that never silently triggers a lazy query.

``related()`` inspects a foreign key on an instance and returns either a
``Populated`` wrapper (the row was joined in with ``select_related``) or a
bare ``Reference`` (only the id is known, including ids whose target row no
longer exists). Response shaping code matches on the two cases explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Generic
from typing import TypeVar
from typing import Union

from django.db import models
from rest_framework import serializers

T = TypeVar("T", bound=models.Model)


@dataclass(frozen=True)
class Reference:
    id: Any


@dataclass(frozen=True)
class Populated(Generic[T]):
    entity: T

    @property
    def id(self) -> Any:
        return self.entity.pk


Ref = Union[Reference, Populated]

DELETED_USER = {"id": "deleted-user", "username": "Deleted User", "avatar": None}


def related(instance: models.Model, field_name: str) -> Ref | None:
    """Return the relation as a ``Reference``/``Populated`` value, or None if unset."""
    field = instance._meta.get_field(field_name)  # noqa: SLF001
    raw_id = getattr(instance, field.attname)
    if raw_id is None:
        return None
    if field.is_cached(instance):
        entity = field.get_cached_value(instance)
        if entity is not None:
            return Populated(entity)
    return Reference(raw_id)


def user_summary(ref: Ref | None) -> dict[str, Any]:
    if isinstance(ref, Populated):
        user = ref.entity
        return {"id": user.pk, "username": user.username, "avatar": user.avatar or None}
    if isinstance(ref, Reference):
        return {"id": ref.id}
    return dict(DELETED_USER)


def optional_user_summary(ref: Ref | None) -> dict[str, Any] | None:
    return None if ref is None else user_summary(ref)


def project_summary(ref: Ref | None) -> dict[str, Any] | None:
    if isinstance(ref, Populated):
        project = ref.entity
        return {"id": project.pk, "name": project.name, "logo": project.logo or None}
    if isinstance(ref, Reference):
        # Unpopulated or dangling (the project row was deleted).
        return {"id": ref.id}
    return None


class RelatedSummaryField(serializers.Field):
    """Read-only field rendering a foreign key through a summary function."""

    def __init__(self, relation: str, render=user_summary, **kwargs):
        kwargs["source"] = "*"
        kwargs["read_only"] = True
        self.relation = relation
        self.render = render
        super().__init__(**kwargs)

    def to_representation(self, value):
        return self.render(related(value, self.relation))

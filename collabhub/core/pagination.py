from __future__ import annotations

import math
from typing import Any

from rest_framework import serializers

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class PageParamsSerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(
        min_value=1, max_value=MAX_LIMIT, default=DEFAULT_LIMIT
    )


def page_params(request, *, default_limit: int = DEFAULT_LIMIT) -> tuple[int, int]:
    params = PageParamsSerializer(
        data={
            "page": request.query_params.get("page", 1),
            "limit": request.query_params.get("limit", default_limit),
        }
    )
    params.is_valid(raise_exception=True)
    return params.validated_data["page"], params.validated_data["limit"]


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }


def paginate(queryset, page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    total = queryset.count()
    start = (page - 1) * limit
    return list(queryset[start : start + limit]), pagination_meta(page, limit, total)

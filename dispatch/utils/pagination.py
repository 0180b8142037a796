"""Offset pagination over an already-filtered sequence."""

import math
from typing import Sequence, TypeVar

from dispatch.schemas import Pagination

T = TypeVar("T")


def paginate(items: Sequence[T], page: int, limit: int) -> tuple[list[T], Pagination]:
    """Slice ``items`` for a 1-based ``page``."""
    total = len(items)
    start = (page - 1) * limit
    return list(items[start : start + limit]), Pagination(
        current=page,
        pages=math.ceil(total / limit) if total else 0,
        total=total,
    )

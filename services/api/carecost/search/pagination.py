"""Skip/limit windowing over an ordered result list.

Wire parameters arrive as strings. Anything unparseable falls back to a
default instead of failing the request.
"""

from __future__ import annotations

import math
import re
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from carecost.search.models import PageMeta

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_RADIUS_MILES = 50.0

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Any, default: int) -> int:
    """Leading-integer parse ("3", " 3 ", "3.7", "3abc" -> 3); 0 and junk -> default."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value or default
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    return int(match.group(1)) or default


def parse_page_params(
    page: Any,
    limit: Any,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Tuple[int, int]:
    page_num = max(1, parse_int(page, DEFAULT_PAGE))
    per_page = max(1, parse_int(limit, default_limit))
    return page_num, min(per_page, max_limit)


def parse_radius(value: Any, default: float = DEFAULT_RADIUS_MILES) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        radius = float(str(value).strip())
    except ValueError:
        return default
    if not math.isfinite(radius) or radius <= 0:
        return default
    return radius


def paginate(
    results: Sequence[T], page: Optional[int], limit: Optional[int]
) -> Tuple[List[T], PageMeta]:
    page_num = max(1, page or DEFAULT_PAGE)
    per_page = max(1, limit or DEFAULT_LIMIT)
    total = len(results)
    offset = (page_num - 1) * per_page
    window = list(results[offset : offset + per_page])
    meta = PageMeta(
        page=page_num,
        limit=per_page,
        total=total,
        pages=math.ceil(total / per_page),
    )
    return window, meta

"""Input validation shared by the ledger and settings services."""

import math
from typing import Any, Iterable, Optional, Tuple

from bson import ObjectId

from mess_api.core.config import settings
from mess_api.core.errors import InvalidInputError


def parse_object_id(value: Any, label: str = "id") -> ObjectId:
    """Coerce ``value`` to an ObjectId or raise InvalidInputError."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise InvalidInputError(f"Invalid {label}: {value!r}")


def validate_non_negative_amount(value: Any, label: str = "amount") -> float:
    """
    Validate a currency amount.

    Rules:
    - must be an int or float (bool is rejected)
    - must be finite and >= 0
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{label} must be a valid non-negative number")
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise InvalidInputError(f"{label} must be a valid non-negative number")
    return float(value)


def validate_items(items: Any) -> str:
    """Market items must be a non-empty string once trimmed."""
    if not isinstance(items, str) or not items.strip():
        raise InvalidInputError("items must be a non-empty description")
    return items.strip()


def validate_guest_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidInputError("guestCount must be a positive integer")
    return value


def parse_sort(sort_by: Optional[str], allowed: Iterable[str], default: Tuple[str, int]) -> Tuple[str, int]:
    """
    Parse ``field:asc|desc`` into a (field, direction) pair.

    A missing direction sorts descending. Fields outside ``allowed`` are
    rejected so callers cannot sort on arbitrary document keys.
    """
    if not sort_by:
        return default

    field, _, order = sort_by.partition(":")
    field = field.strip()
    order = order.strip().lower() or "desc"

    if field not in set(allowed):
        raise InvalidInputError(f"Cannot sort by {field!r}")
    if order not in ("asc", "desc"):
        raise InvalidInputError(f"Invalid sort order {order!r}")

    return field, 1 if order == "asc" else -1


def parse_pagination(page: Any = None, limit: Any = None) -> Tuple[int, int]:
    """1-indexed page and a limit clamped to MAX_PAGE_SIZE."""
    try:
        page_num = int(page) if page is not None else 1
        page_size = int(limit) if limit is not None else settings.DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        raise InvalidInputError("page and limit must be integers")

    if page_num < 1:
        raise InvalidInputError("page must be >= 1")
    if page_size < 1:
        raise InvalidInputError("limit must be >= 1")

    return page_num, min(page_size, settings.MAX_PAGE_SIZE)

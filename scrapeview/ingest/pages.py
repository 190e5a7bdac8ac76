from collections.abc import Mapping
from typing import Any

from scrapeview.errors import ErrorKind
from scrapeview.ingest.items import normalize_item, normalize_items
from scrapeview.logging import get_logger
from scrapeview.models import Item, Page

_logger = get_logger(__name__)

# Where the item array may live, most preferred first. The bare-array
# payload is checked after these.
ITEM_ARRAY_KEYS = ("data", "items", "results")
TOTAL_KEYS = ("total", "count")


def find_item_array(payload: Any) -> list | None:
    if isinstance(payload, Mapping):
        for key in ITEM_ARRAY_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        return None
    if isinstance(payload, list):
        return payload
    return None


def coerce_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def resolve_total(payload: Any, resolved_length: int) -> int:
    if isinstance(payload, Mapping):
        for key in TOTAL_KEYS:
            total = coerce_count(payload.get(key))
            if total is not None:
                return total
    return resolved_length


def extract_page(payload: Any, limit: int, offset: int) -> Page:
    """Turn any known /data response shape into a Page.

    limit and offset echo the request; pagination state belongs to the caller.
    A payload with no recognizable item array yields an empty page carrying
    ErrorKind.MALFORMED_PAYLOAD.
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if offset < 0:
        raise ValueError(f"offset must not be negative, got {offset}")

    raw_items = find_item_array(payload)
    if raw_items is None:
        _logger.warning("No item array in payload of type %s", type(payload).__name__)
        return Page(items=(), total=0, limit=limit, offset=offset, error=ErrorKind.MALFORMED_PAYLOAD)

    total = resolve_total(payload, len(raw_items))
    if len(raw_items) > limit:
        _logger.warning("Backend returned %d items for limit %d, truncating", len(raw_items), limit)
        raw_items = raw_items[:limit]

    return Page(items=tuple(normalize_items(raw_items)), total=total, limit=limit, offset=offset)


def extract_item(payload: Any) -> Item | None:
    """Single item from a /data/{id} response, either wrapped in `data` or bare."""
    if not isinstance(payload, Mapping):
        return None
    record = payload.get("data")
    if isinstance(record, Mapping):
        return normalize_item(record)
    if "status" in payload and not any(k in payload for k in ("id", "ID", "title", "Title")):
        return None
    return normalize_item(payload)

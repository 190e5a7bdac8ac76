import json
import math
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from scrapeview.constants import DEFAULT_TITLE, DEFAULT_URL, LOCAL_ID_PREFIX
from scrapeview.ingest.fields import (
    DESCRIPTION_ALIASES,
    ID_ALIASES,
    IMAGE_URL_ALIASES,
    METADATA_ALIASES,
    PRICE_ALIASES,
    SCRAPED_AT_ALIASES,
    TITLE_ALIASES,
    URL_ALIASES,
    resolve,
)
from scrapeview.logging import get_logger
from scrapeview.models import Item, ensure_utc

_logger = get_logger(__name__)

# Epoch values above this are taken as milliseconds
_EPOCH_MS_THRESHOLD = 1e11

_CURRENCY_CHARS = "$€£¥  "

# fromisoformat keeps microseconds only; Go sends nanoseconds
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def local_id() -> str:
    """Placeholder id for records the server sent without one. Not durable."""
    return f"{LOCAL_ID_PREFIX}{uuid4().hex[:12]}"


def coerce_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Mapping | list | tuple):
        try:
            return json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, int | float):
            if not math.isfinite(value):
                return None
            seconds = value / 1000 if abs(value) > _EPOCH_MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, UTC)
        if isinstance(value, str) and value.strip():
            text = value.strip()
            if text.lstrip("-").replace(".", "", 1).isdigit():
                return parse_timestamp(float(text))
            return ensure_utc(datetime.fromisoformat(_EXTRA_FRACTION.sub(r"\1", text)))
    except (ValueError, OverflowError, OSError):
        return None
    return None


def parse_price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().strip(_CURRENCY_CHARS).replace(",", "")
    try:
        price = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def parse_metadata(value: Any) -> dict[str, Any] | None:
    if isinstance(value, Mapping):
        return {coerce_str(k): v for k, v in value.items()}
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            parsed = json.loads(value)
        except (ValueError, RecursionError):
            return None
        return dict(parsed) if isinstance(parsed, dict) else None
    return None


def normalize_item(record: Any) -> Item:
    """Build a canonical Item from an untrusted record.

    Every field is resolved and coerced on its own; a field that cannot be
    used falls back to its default and is listed in Item.degraded.
    """
    degraded: set[str] = set()

    def text(name: str, aliases: tuple[str, ...], default: str, allow_blank: bool = True) -> str:
        value = resolve(record, aliases)
        if value is None:
            degraded.add(name)
            return default
        value = coerce_str(value)
        if not allow_blank and not value.strip():
            degraded.add(name)
            return default
        return value

    raw_id = resolve(record, ID_ALIASES)
    item_id = coerce_str(raw_id).strip() if raw_id is not None else ""
    if not item_id:
        degraded.add("id")
        item_id = local_id()

    scraped_at = parse_timestamp(resolve(record, SCRAPED_AT_ALIASES))
    if scraped_at is None:
        degraded.add("scraped_at")
        scraped_at = datetime.now(UTC)

    price = parse_price(resolve(record, PRICE_ALIASES))
    if price is None:
        degraded.add("price")
        price = 0.0

    metadata = parse_metadata(resolve(record, METADATA_ALIASES))
    if metadata is None:
        degraded.add("metadata")
        metadata = {}

    item = Item(
        id=item_id,
        title=text("title", TITLE_ALIASES, DEFAULT_TITLE, allow_blank=False),
        description=text("description", DESCRIPTION_ALIASES, ""),
        url=text("url", URL_ALIASES, DEFAULT_URL, allow_blank=False),
        image_url=text("image_url", IMAGE_URL_ALIASES, ""),
        price=price,
        scraped_at=scraped_at,
        metadata=metadata,
        degraded=frozenset(degraded),
    )
    if degraded:
        _logger.debug("Item %s normalized with defaults for: %s", item.id, ", ".join(sorted(degraded)))
    return item


def normalize_items(records: Iterable[Any]) -> list[Item]:
    return [normalize_item(r) for r in records]

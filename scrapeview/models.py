from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from scrapeview.constants import DEFAULT_TITLE, DEFAULT_URL, LOCAL_ID_PREFIX
from scrapeview.errors import ErrorKind


def ensure_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


@dataclass(frozen=True)
class Item:
    id: str
    title: str = DEFAULT_TITLE
    description: str = ""
    url: str = DEFAULT_URL
    image_url: str = ""
    price: float = 0.0
    scraped_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)
    # Fields that fell back to their default during normalization
    degraded: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    # Frozen only guards reassignment; metadata is a mutable dict, so items are unhashable
    __hash__ = None

    @property
    def is_local_id(self) -> bool:
        return self.id.startswith(LOCAL_ID_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "image_url": self.image_url,
            "price": self.price,
            "scraped_at": self.scraped_at.isoformat(),
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class Page:
    items: tuple[Item, ...]
    total: int
    limit: int
    offset: int
    error: ErrorKind | None = None

    def __post_init__(self):
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"offset must not be negative, got {self.offset}")
        if self.total < 0:
            raise ValueError(f"total must not be negative, got {self.total}")
        if len(self.items) > self.limit:
            raise ValueError(f"page holds {len(self.items)} items, more than limit {self.limit}")


class JobState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def running(self) -> bool:
        return self.state == JobState.RUNNING


@dataclass(frozen=True)
class Stats:
    total_items: int = 0
    latest_scrape: datetime | None = None

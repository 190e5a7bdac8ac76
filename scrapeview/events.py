from dataclasses import dataclass
from datetime import datetime

from scrapeview.errors import ErrorKind


@dataclass(frozen=True)
class JobStarted:
    url: str
    max_depth: int | None = None


@dataclass(frozen=True)
class JobCompleted:
    observed_at: datetime


@dataclass(frozen=True)
class PageLoaded:
    mode: str
    count: int
    total: int


@dataclass(frozen=True)
class LoadFailed:
    kind: ErrorKind
    message: str

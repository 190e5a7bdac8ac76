from dataclasses import dataclass
from enum import StrEnum

from scrapeview.errors import ErrorKind
from scrapeview.logging import get_logger
from scrapeview.models import Item, Page

_logger = get_logger(__name__)


class LoadMode(StrEnum):
    REPLACE = "replace"  # refresh / first page
    APPEND = "append"  # load more


@dataclass(frozen=True)
class StoreError:
    kind: ErrorKind
    message: str


class PaginatedStore:
    """Accumulated item list plus loading/error state for one listing.

    Every load is tagged with a sequence number from begin_load(). Responses
    are applied only if they carry the latest number issued, so a slow
    earlier request can never overwrite a newer one.

    Items are not de-duplicated: callers must not request overlapping
    offset windows in APPEND mode.
    """

    def __init__(self) -> None:
        self.items: list[Item] = []
        self.total = 0
        self.loading = False
        self.error: StoreError | None = None
        self._issued = 0

    @property
    def latest_seq(self) -> int:
        return self._issued

    @property
    def has_more(self) -> bool:
        return len(self.items) < self.total

    def begin_load(self) -> int:
        self.loading = True
        self.error = None
        self._issued += 1
        return self._issued

    def is_current(self, seq: int | None) -> bool:
        return seq is None or seq == self._issued

    def apply_page(self, page: Page, mode: LoadMode, seq: int | None = None) -> bool:
        if not self.is_current(seq):
            _logger.debug("Discarding stale page (seq %s, latest %d)", seq, self._issued)
            return False

        if mode == LoadMode.REPLACE:
            self.items = list(page.items)
        else:
            self.items = [*self.items, *page.items]
        self.total = page.total
        self.loading = False
        self.error = None
        return True

    def fail(self, error: StoreError, seq: int | None = None) -> bool:
        if not self.is_current(seq):
            _logger.debug("Discarding stale failure (seq %s, latest %d): %s", seq, self._issued, error.message)
            return False

        self.loading = False
        self.error = error
        return True

    def invalidate(self) -> None:
        """Make every in-flight response stale without touching loaded data."""
        self._issued += 1
        self.loading = False

    def reset(self) -> None:
        self.items = []
        self.total = 0
        self.error = None
        self.invalidate()

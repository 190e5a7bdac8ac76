from collections.abc import Mapping
from datetime import datetime
from typing import Any

from scrapeview.errors import ApiError, ErrorKind
from scrapeview.ingest.fields import resolve
from scrapeview.ingest.items import parse_timestamp
from scrapeview.ingest.pages import coerce_count
from scrapeview.models import JobState, JobStatus, Stats

STATE_ALIASES = ("state", "State")
SCRAPING_ALIASES = ("scraping", "Scraping", "running", "in_progress")
TIME_ALIASES = ("time", "Time", "timestamp")

TOTAL_ITEMS_ALIASES = ("total_items", "TotalItems", "totalItems", "total")
LATEST_SCRAPE_ALIASES = ("latest_scrape", "LatestScrape", "latestScrape")

# Go's zero time.Time, sent when nothing has been scraped yet
_ZERO_TIME_YEAR = 1


def parse_job_status(payload: Any) -> JobStatus:
    state = resolve(payload, STATE_ALIASES)
    if isinstance(state, str) and state.strip().lower() in (JobState.IDLE, JobState.RUNNING):
        job_state = JobState(state.strip().lower())
    else:
        scraping = resolve(payload, SCRAPING_ALIASES)
        if not isinstance(scraping, bool):
            raise ApiError(ErrorKind.MALFORMED_PAYLOAD, "Status response has neither state nor scraping flag")
        job_state = JobState.RUNNING if scraping else JobState.IDLE

    observed_at = parse_timestamp(resolve(payload, TIME_ALIASES))
    if observed_at is None:
        return JobStatus(state=job_state)
    return JobStatus(state=job_state, observed_at=observed_at)


def _latest_scrape(value: Any) -> datetime | None:
    parsed = parse_timestamp(value)
    if parsed is None or parsed.year <= _ZERO_TIME_YEAR:
        return None
    return parsed


def extract_stats(payload: Any) -> Stats:
    record = payload
    if isinstance(payload, Mapping):
        for key in ("stats", "data"):
            if isinstance(payload.get(key), Mapping):
                record = payload[key]
                break
    total = coerce_count(resolve(record, TOTAL_ITEMS_ALIASES))
    return Stats(
        total_items=total or 0,
        latest_scrape=_latest_scrape(resolve(record, LATEST_SCRAPE_ALIASES)),
    )

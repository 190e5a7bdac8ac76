import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrapeview.constants import (
    DEFAULT_API_PREFIX,
    DEFAULT_API_URL,
    DEFAULT_MAX_IDLE_POLLS,
    DEFAULT_MAX_POLLS,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_POLL_INTERVAL,
    MAX_PAGE_LIMIT,
    REQUEST_TIMEOUT,
    RETRY_ATTEMPTS,
    RETRY_INITIAL_WAIT,
    SORT_FIELDS,
    SORT_ORDERS,
)
from scrapeview.logging import get_logger

SCRAPEVIEW_DIR = Path.home() / ".scrapeview"
SETTINGS_PATH = SCRAPEVIEW_DIR / "settings.json"

_logger = get_logger(__name__)


def load_user_settings() -> dict:
    if not SETTINGS_PATH.exists():
        return {}
    try:
        data = json.loads(SETTINGS_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        _logger.warning("Failed to load user settings", exc_info=True)
        return {}
    if not isinstance(data, dict):
        _logger.warning("Ignoring user settings: expected a JSON object")
        return {}
    return data


def save_user_settings(settings: dict) -> None:
    SCRAPEVIEW_DIR.mkdir(exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(settings, indent=2))


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCRAPEVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    # Backend location
    api_url: str = DEFAULT_API_URL
    api_prefix: str = DEFAULT_API_PREFIX

    # Job status polling
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_idle_polls: int = DEFAULT_MAX_IDLE_POLLS
    max_polls: int = DEFAULT_MAX_POLLS

    # HTTP policy, shared by status queries and data fetches
    request_timeout: float = REQUEST_TIMEOUT
    retry_attempts: int = RETRY_ATTEMPTS
    retry_initial_wait: float = RETRY_INITIAL_WAIT

    # Listing defaults
    page_limit: int = DEFAULT_PAGE_LIMIT
    sort: str = "scraped_at"
    order: str = "desc"

    log_level: str = "INFO"

    @field_validator("api_url")
    @classmethod
    def _strip_api_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = v.strip("/")
        return f"/{v}" if v else ""

    @field_validator("poll_interval", "request_timeout")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("retry_attempts", "max_idle_polls", "max_polls")
    @classmethod
    def _validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    @field_validator("retry_initial_wait")
    @classmethod
    def _validate_retry_wait(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"retry_initial_wait must not be negative, got {v}")
        return v

    @field_validator("page_limit")
    @classmethod
    def _validate_page_limit(cls, v: int) -> int:
        if not 1 <= v <= MAX_PAGE_LIMIT:
            raise ValueError(f"page_limit must be 1-{MAX_PAGE_LIMIT}, got {v}")
        return v

    @field_validator("sort")
    @classmethod
    def _validate_sort(cls, v: str) -> str:
        if v not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {v}. Must be one of: {', '.join(sorted(SORT_FIELDS))}")
        return v

    @field_validator("order", mode="before")
    @classmethod
    def _validate_order(cls, v: str) -> str:
        v = str(v).lower()
        if v not in SORT_ORDERS:
            raise ValueError(f"order must be 'asc' or 'desc', got {v!r}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = str(v).upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def base_url(self) -> str:
        return f"{self.api_url}{self.api_prefix}"


PERSIST_KEYS = frozenset(
    {
        "api_url",
        "api_prefix",
        "poll_interval",
        "max_idle_polls",
        "max_polls",
        "page_limit",
        "sort",
        "order",
    }
)


def get_config() -> Config:
    settings = load_user_settings()

    # Build config: init args (settings.json) > env vars > defaults
    overrides = {k: settings[k] for k in PERSIST_KEYS if k in settings}
    return Config(**overrides)

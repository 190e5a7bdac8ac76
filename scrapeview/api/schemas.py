from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from scrapeview.constants import MAX_SCRAPE_DEPTH, MIN_SCRAPE_DEPTH
from scrapeview.errors import ApiError, ErrorKind


class ScrapeRequest(BaseModel):
    url: str = Field(..., min_length=1)
    max_depth: int | None = Field(default=None, ge=MIN_SCRAPE_DEPTH, le=MAX_SCRAPE_DEPTH)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        return v

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class ApiResponse:
    """Outcome of one backend call. Failures are values here, not exceptions."""

    status: Literal["success", "error"]
    payload: Any = None
    message: str | None = None
    error: ErrorKind | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, payload: Any, status_code: int | None = None) -> "ApiResponse":
        message = payload.get("message") if isinstance(payload, dict) else None
        return cls(
            status="success",
            payload=payload,
            message=message if isinstance(message, str) else None,
            status_code=status_code,
        )

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
    ) -> "ApiResponse":
        return cls(status="error", payload=payload, message=message, error=kind, status_code=status_code)

    def raise_for_error(self) -> None:
        if not self.ok:
            raise ApiError(self.error or ErrorKind.SERVER_ERROR, self.message or "Request failed", self.status_code)

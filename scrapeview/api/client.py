from typing import Any

import httpx
from pydantic import ValidationError

from scrapeview.api.schemas import ApiResponse, ScrapeRequest
from scrapeview.config import Config
from scrapeview.constants import (
    DATA_PATH,
    DATA_SEARCH_PATH,
    DATA_STATS_PATH,
    HEALTH_PATH,
    SCRAPE_PATH,
    SCRAPE_STATUS_PATH,
)
from scrapeview.errors import ErrorKind
from scrapeview.ingest.status import parse_job_status
from scrapeview.logging import get_logger
from scrapeview.models import JobStatus
from scrapeview.retry import with_retry

_logger = get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Server responded with status: {response.status_code}"


class ApiClient:
    """Async client for the scraping backend.

    Every call returns an ApiResponse. Transport failures, non-2xx statuses,
    undecodable bodies and explicit `status: "error"` bodies all come back as
    error responses, as do requests rejected by client-side validation;
    nothing here raises httpx or pydantic exceptions to the caller.
    """

    def __init__(self, config: Config | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or Config()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            timeout=self.config.request_timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._send = with_retry(self.config.retry_attempts, self.config.retry_initial_wait)(self._send_once)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def request(self, method: str, path: str, *, prefixed: bool = True, **kwargs: Any) -> ApiResponse:
        url = f"{self.config.api_prefix}{path}" if prefixed else path
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            _logger.warning("%s %s returned %d", method, url, code)
            return ApiResponse.failure(ErrorKind.SERVER_ERROR, _error_message(e.response), status_code=code)
        except httpx.HTTPError as e:
            _logger.warning("%s %s failed: %s", method, url, e)
            return ApiResponse.failure(ErrorKind.NETWORK_FAILURE, f"Network request failed: {e}")

        if not response.content:
            return ApiResponse.success(None, response.status_code)
        try:
            payload = response.json()
        except ValueError:
            _logger.warning("%s %s returned a non-JSON body", method, url)
            return ApiResponse.failure(
                ErrorKind.MALFORMED_PAYLOAD,
                "Response body is not valid JSON",
                status_code=response.status_code,
            )

        if isinstance(payload, dict) and payload.get("status") == "error":
            message = payload.get("message") or payload.get("error") or "Request failed"
            return ApiResponse.failure(
                ErrorKind.SERVER_ERROR,
                str(message),
                status_code=response.status_code,
                payload=payload,
            )
        return ApiResponse.success(payload, response.status_code)

    # --- Scrape jobs ---

    async def start_scrape(self, url: str, max_depth: int | None = None) -> ApiResponse:
        try:
            body = ScrapeRequest(url=url, max_depth=max_depth).to_body()
        except ValidationError as e:
            message = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            _logger.warning("Rejected scrape request for %r: %s", url, message)
            return ApiResponse.failure(ErrorKind.INVALID_REQUEST, message)
        return await self.request("POST", SCRAPE_PATH, json=body)

    async def get_status(self) -> ApiResponse:
        return await self.request("GET", SCRAPE_STATUS_PATH)

    async def fetch_job_status(self) -> JobStatus:
        """Current job status; raises ApiError when it cannot be observed."""
        response = await self.get_status()
        response.raise_for_error()
        return parse_job_status(response.payload)

    # --- Data ---

    async def get_data(
        self,
        limit: int,
        offset: int = 0,
        sort: str | None = None,
        order: str | None = None,
    ) -> ApiResponse:
        params = {
            "limit": limit,
            "offset": offset,
            "sort": sort or self.config.sort,
            "order": order or self.config.order,
        }
        return await self.request("GET", DATA_PATH, params=params)

    async def search(self, query: str, limit: int, offset: int = 0) -> ApiResponse:
        return await self.request("GET", DATA_SEARCH_PATH, params={"q": query, "limit": limit, "offset": offset})

    async def get_item(self, item_id: str | int) -> ApiResponse:
        return await self.request("GET", f"{DATA_PATH}/{item_id}")

    async def get_stats(self) -> ApiResponse:
        return await self.request("GET", DATA_STATS_PATH)

    async def health(self) -> ApiResponse:
        return await self.request("GET", HEALTH_PATH, prefixed=False)

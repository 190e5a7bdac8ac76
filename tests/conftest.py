import json
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime

import httpx
import pytest
import pytest_asyncio

from scrapeview.api.client import ApiClient
from scrapeview.config import Config

API = "/api/v1"


@pytest.fixture
def config() -> Config:
    return Config(
        _env_file=None,
        api_url="http://backend.test",
        poll_interval=0.01,
        retry_attempts=3,
        retry_initial_wait=0,
        request_timeout=1.0,
    )


def status_body(state: str) -> dict:
    return {
        "status": "success",
        "scraping": state == "running",
        "state": state,
        "time": datetime.now(UTC).isoformat(),
    }


class FakeBackend:
    """Scripted stand-in for the scraping backend, served through httpx.MockTransport."""

    def __init__(self, states: list[str] | None = None, data: object = None):
        self.states = list(states or ["running", "idle"])
        self.data = data if data is not None else {"status": "success", "data": [], "total": 0}
        self.requests: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == f"{API}/scrape":
            body = json.loads(request.content)
            return httpx.Response(202, json={"status": "success", "message": "Scraping started", "url": body["url"]})

        if path == f"{API}/scrape/status":
            state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
            return httpx.Response(200, json=status_body(state))

        if path == f"{API}/data":
            return httpx.Response(200, json=self.data)

        return httpx.Response(404, json={"status": "error", "message": "Not found"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


def make_client(config: Config, handler: Callable) -> ApiClient:
    return ApiClient(config, transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def client(config: Config, backend: FakeBackend) -> AsyncGenerator[ApiClient]:
    client = make_client(config, backend.handler)
    yield client
    await client.aclose()

from scrapeview.api.client import ApiClient
from scrapeview.api.schemas import ApiResponse
from scrapeview.channel import Channel
from scrapeview.config import Config
from scrapeview.errors import ErrorKind
from scrapeview.events import JobCompleted, JobStarted, LoadFailed, PageLoaded
from scrapeview.ingest.pages import extract_item, extract_page
from scrapeview.ingest.status import extract_stats
from scrapeview.jobs.poller import JobPoller, PollState
from scrapeview.logging import get_logger
from scrapeview.models import Item, JobStatus, Page, Stats
from scrapeview.store import LoadMode, PaginatedStore, StoreError

_logger = get_logger(__name__)


class ScrapeSession:
    """One screen's worth of state: a listing store plus the job being watched.

    start_job -> poller -> completion -> refresh -> store. close() tears it all
    down synchronously; responses that arrive afterwards are dropped.

    Polling is bounded by config.max_idle_polls and config.max_polls, so
    wait_for_job() always returns: COMPLETED, or CANCELLED with the poller's
    stop_reason saying why.
    """

    def __init__(
        self,
        client: ApiClient,
        store: PaginatedStore | None = None,
        channel: Channel | None = None,
        config: Config | None = None,
    ):
        self.client = client
        self.config = config or client.config
        self.store = store or PaginatedStore()
        self.channel = channel or Channel()
        self.poller: JobPoller | None = None
        self.limit = self.config.page_limit
        self.sort = self.config.sort
        self.order = self.config.order
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tracking_job(self) -> bool:
        return self.poller is not None and self.poller.active

    # --- Jobs ---

    async def start_job(self, url: str, max_depth: int | None = None) -> ApiResponse:
        if self._closed:
            raise RuntimeError("Session is closed")
        if self.tracking_job:
            raise ValueError("A scrape job is already being tracked")

        response = await self.client.start_scrape(url, max_depth)
        if not response.ok:
            _logger.warning("Failed to start scrape of %s: %s", url, response.message)
            return response
        if self._closed:
            return response

        self.poller = JobPoller(
            query=self.client.fetch_job_status,
            on_complete=self._on_job_completed,
            interval=self.config.poll_interval,
            job=url,
            max_idle_polls=self.config.max_idle_polls,
            max_polls=self.config.max_polls,
        )
        self.poller.start()
        self.channel.publish(JobStarted(url=url, max_depth=max_depth))
        _logger.info("Scrape of %s started", url)
        return response

    async def wait_for_job(self) -> PollState | None:
        if self.poller is None:
            return None
        return await self.poller.wait()

    async def _on_job_completed(self, status: JobStatus) -> None:
        self.channel.publish(JobCompleted(observed_at=status.observed_at))
        await self.refresh()

    # --- Listing ---

    async def refresh(self) -> bool:
        return await self.fetch_page(0, LoadMode.REPLACE)

    async def load_more(self) -> bool:
        if self.store.loading or not self.store.has_more:
            return False
        return await self.fetch_page(len(self.store.items), LoadMode.APPEND)

    async def fetch_page(self, offset: int, mode: LoadMode) -> bool:
        """Fetch one page into the store. Returns False if nothing was applied."""
        if self._closed:
            return False

        seq = self.store.begin_load()
        response = await self.client.get_data(self.limit, offset, self.sort, self.order)
        if self._closed:
            return False

        if not response.ok:
            self._fail(StoreError(response.error or ErrorKind.SERVER_ERROR, response.message or ""), seq)
            return False

        page = extract_page(response.payload, self.limit, offset)
        if page.error:
            self._fail(StoreError(page.error, "Invalid data format received from server"), seq)
            return False

        applied = self.store.apply_page(page, mode, seq)
        if applied:
            self.channel.publish(PageLoaded(mode=mode, count=len(page.items), total=page.total))
        return applied

    def _fail(self, error: StoreError, seq: int) -> None:
        if self.store.fail(error, seq):
            _logger.warning("Loading data failed (%s): %s", error.kind, error.message)
            self.channel.publish(LoadFailed(kind=error.kind, message=error.message))

    # --- Lookups that bypass the store ---

    async def search(self, query: str, offset: int = 0) -> Page | ApiResponse:
        response = await self.client.search(query, self.limit, offset)
        if not response.ok:
            return response
        return extract_page(response.payload, self.limit, offset)

    async def get_item(self, item_id: str | int) -> Item | ApiResponse:
        response = await self.client.get_item(item_id)
        if not response.ok:
            return response
        item = extract_item(response.payload)
        if item is None:
            return ApiResponse.failure(ErrorKind.MALFORMED_PAYLOAD, "Item not found in response")
        return item

    async def stats(self) -> Stats | ApiResponse:
        response = await self.client.get_stats()
        if not response.ok:
            return response
        return extract_stats(response.payload)

    # --- Teardown ---

    def close(self) -> None:
        """Stop polling and make every in-flight response discardable."""
        if self._closed:
            return
        self._closed = True
        if self.poller:
            self.poller.cancel()
        self.store.invalidate()

    async def aclose(self) -> None:
        self.close()
        if self.poller:
            await self.poller.wait()
        await self.channel.drain()

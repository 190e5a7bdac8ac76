import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum

from scrapeview.constants import DEFAULT_POLL_INTERVAL
from scrapeview.logging import get_logger
from scrapeview.models import JobState, JobStatus

_logger = get_logger(__name__)

type StatusQuery = Callable[[], Awaitable[JobStatus]]
type CompletionHandler = Callable[[JobStatus], Awaitable[None]]


class PollState(StrEnum):
    NOT_STARTED = "not_started"
    POLLING = "polling"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({PollState.COMPLETED, PollState.CANCELLED})


class StopReason(StrEnum):
    CANCELLED = "cancelled"  # by the caller
    NEVER_RUNNING = "never_running"
    POLL_LIMIT = "poll_limit"


class JobPoller:
    """Watches one scrape job until it finishes or the caller tears it down.

    Completion is edge-triggered: on_complete fires once, on the first
    observed running -> idle transition. The first observation only sets the
    baseline, so a job that is already idle never reports "just completed".

    At most one status query is in flight. If a query outlasts the interval,
    the ticks it overlapped are skipped rather than queued.

    The poller gives up (CANCELLED, with stop_reason set) after max_idle_polls
    idle observations without ever seeing the job run, or after max_polls
    status queries in total. Either bound may be None to disable it.
    """

    def __init__(
        self,
        query: StatusQuery,
        on_complete: CompletionHandler,
        interval: float = DEFAULT_POLL_INTERVAL,
        job: str = "scrape",
        max_idle_polls: int | None = None,
        max_polls: int | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        for name, bound in (("max_idle_polls", max_idle_polls), ("max_polls", max_polls)):
            if bound is not None and bound < 1:
                raise ValueError(f"{name} must be at least 1, got {bound}")
        self.query = query
        self.on_complete = on_complete
        self.interval = interval
        self.job = job
        self.max_idle_polls = max_idle_polls
        self.max_polls = max_polls

        self.state = PollState.NOT_STARTED
        self.stop_reason: StopReason | None = None
        self.previous: JobStatus | None = None
        self.polls = 0
        self.observations = 0
        self.skipped_ticks = 0
        self._idle_streak = 0
        self._seen_running = False
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self.state == PollState.POLLING

    def start(self) -> None:
        if self.state != PollState.NOT_STARTED:
            raise RuntimeError(f"Poller for {self.job} cannot start from state {self.state}")
        self.state = PollState.POLLING
        self._task = asyncio.create_task(self._loop())
        _logger.info("Polling %s status every %.1fs", self.job, self.interval)

    def cancel(self, reason: StopReason = StopReason.CANCELLED) -> None:
        """Stop polling now. Also interrupts a completion handler that is still running."""
        if self.state not in TERMINAL_STATES:
            self.state = PollState.CANCELLED
            self.stop_reason = reason
            _logger.info("Stopped polling %s (%s)", self.job, reason)
        if self._task and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait(self) -> PollState:
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
        return self.state

    async def observe(self, status: JobStatus) -> bool:
        """Apply one observation. Returns True if it completed the job."""
        if self.state != PollState.POLLING:
            return False

        previous, self.previous = self.previous, status
        self.observations += 1

        if status.state == JobState.RUNNING:
            self._seen_running = True
            self._idle_streak = 0
        else:
            self._idle_streak += 1

        if previous is not None and previous.state == JobState.RUNNING and status.state == JobState.IDLE:
            self.state = PollState.COMPLETED
            _logger.info("Job %s completed", self.job)
            try:
                await self.on_complete(status)
            except Exception:
                _logger.exception("Completion handler failed for %s", self.job)
            return True

        if (
            self.max_idle_polls is not None
            and not self._seen_running
            and self._idle_streak >= self.max_idle_polls
        ):
            _logger.warning("Job %s never observed running after %d polls", self.job, self._idle_streak)
            self.cancel(StopReason.NEVER_RUNNING)
        return False

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while self.state == PollState.POLLING:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            if self.state != PollState.POLLING:
                return
            await self._tick()
            if self.state != PollState.POLLING:
                return
            if self.max_polls is not None and self.polls >= self.max_polls:
                _logger.warning("Job %s still not finished after %d polls, giving up", self.job, self.polls)
                self.cancel(StopReason.POLL_LIMIT)
                return

            now = loop.time()
            next_tick += self.interval
            if now > next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                self.skipped_ticks += missed
                next_tick += missed * self.interval
                _logger.debug("Status query for %s overran, skipped %d tick(s)", self.job, missed)

    async def _tick(self) -> None:
        self.polls += 1
        try:
            status = await self.query()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _logger.warning("Status poll for %s failed: %s", self.job, e)
            return

        if self.state != PollState.POLLING:
            return  # cancelled while the query was in flight
        await self.observe(status)

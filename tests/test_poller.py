import asyncio

import pytest

from scrapeview.errors import ApiError, ErrorKind
from scrapeview.jobs.poller import JobPoller, PollState, StopReason
from scrapeview.models import JobState, JobStatus

RUNNING = JobStatus(state=JobState.RUNNING)
IDLE = JobStatus(state=JobState.IDLE)


class Script:
    """Status query that replays a fixed sequence, repeating the last entry."""

    def __init__(self, *steps: JobStatus | Exception):
        self.steps = list(steps)
        self.calls = 0

    async def __call__(self) -> JobStatus:
        self.calls += 1
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


class Completions:
    def __init__(self):
        self.seen: list[JobStatus] = []

    async def __call__(self, status: JobStatus) -> None:
        self.seen.append(status)


async def observe_all(statuses: list[JobStatus]) -> tuple[JobPoller, Completions]:
    done = Completions()
    poller = JobPoller(query=Script(IDLE), on_complete=done, interval=60)
    poller.start()
    for status in statuses:
        await poller.observe(status)
    poller.cancel()
    await poller.wait()
    return poller, done


class TestEdgeTrigger:
    @pytest.mark.asyncio
    async def test_running_running_idle_completes_once(self):
        done = Completions()
        poller = JobPoller(query=Script(RUNNING, RUNNING, IDLE), on_complete=done, interval=0.01)
        poller.start()

        state = await asyncio.wait_for(poller.wait(), timeout=2)

        assert state == PollState.COMPLETED
        assert len(done.seen) == 1
        assert poller.observations == 3

    @pytest.mark.asyncio
    async def test_idle_idle_never_completes(self):
        poller, done = await observe_all([IDLE, IDLE])
        assert done.seen == []
        assert poller.state == PollState.CANCELLED

    @pytest.mark.asyncio
    async def test_first_idle_observation_is_only_a_baseline(self):
        poller, done = await observe_all([IDLE, RUNNING, IDLE])
        assert len(done.seen) == 1

    @pytest.mark.asyncio
    async def test_completion_fires_after_the_transition_observation(self):
        done = Completions()
        poller = JobPoller(query=Script(IDLE), on_complete=done, interval=60)
        poller.start()
        assert not await poller.observe(RUNNING)
        assert not await poller.observe(RUNNING)
        assert done.seen == []
        assert await poller.observe(IDLE)
        assert done.seen == [IDLE]
        assert poller.state == PollState.COMPLETED
        poller.cancel()
        assert await poller.wait() == PollState.COMPLETED

    @pytest.mark.asyncio
    async def test_observations_after_completion_are_ignored(self):
        poller, done = await observe_all([RUNNING, IDLE, RUNNING, IDLE])
        assert len(done.seen) == 1
        assert poller.observations == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_query_failure_does_not_stop_polling(self):
        done = Completions()
        query = Script(RUNNING, ApiError(ErrorKind.NETWORK_FAILURE, "down"), IDLE)
        poller = JobPoller(query=query, on_complete=done, interval=0.01)
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.COMPLETED
        assert query.calls == 3
        assert len(done.seen) == 1

    @pytest.mark.asyncio
    async def test_failing_completion_handler_still_completes(self):
        async def explode(status: JobStatus) -> None:
            raise RuntimeError("handler bug")

        poller = JobPoller(query=Script(RUNNING, IDLE), on_complete=explode, interval=0.01)
        poller.start()
        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.COMPLETED


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_cannot_start_twice(self):
        poller = JobPoller(query=Script(RUNNING), on_complete=Completions(), interval=60)
        poller.start()
        with pytest.raises(RuntimeError):
            poller.start()
        poller.cancel()
        await poller.wait()

    @pytest.mark.asyncio
    async def test_cancelled_poller_cannot_restart(self):
        poller = JobPoller(query=Script(RUNNING), on_complete=Completions(), interval=60)
        poller.cancel()
        assert poller.state == PollState.CANCELLED
        with pytest.raises(RuntimeError):
            poller.start()

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            JobPoller(query=Script(RUNNING), on_complete=Completions(), interval=0)

    @pytest.mark.asyncio
    async def test_cancel_stops_ticks(self):
        query = Script(RUNNING)
        poller = JobPoller(query=query, on_complete=Completions(), interval=0.01)
        poller.start()
        await asyncio.sleep(0.05)
        poller.cancel()
        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.CANCELLED

        calls = query.calls
        await asyncio.sleep(0.05)
        assert query.calls == calls

    @pytest.mark.asyncio
    async def test_cancel_discards_in_flight_result(self):
        gate = asyncio.Event()
        started = asyncio.Event()
        done = Completions()
        poller = JobPoller(query=Script(RUNNING), on_complete=done, interval=0.01)

        async def slow_idle() -> JobStatus:
            started.set()
            await gate.wait()
            return IDLE

        poller.start()
        await poller.observe(RUNNING)
        poller.query = slow_idle
        await asyncio.wait_for(started.wait(), timeout=2)

        poller.cancel()
        gate.set()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.CANCELLED
        assert done.seen == []

    @pytest.mark.asyncio
    async def test_gives_up_when_job_never_runs(self):
        done = Completions()
        poller = JobPoller(query=Script(IDLE), on_complete=done, interval=0.01, max_idle_polls=3)
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.CANCELLED
        assert poller.observations == 3
        assert poller.stop_reason == StopReason.NEVER_RUNNING
        assert done.seen == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_polls(self):
        done = Completions()
        poller = JobPoller(query=Script(RUNNING), on_complete=done, interval=0.01, max_polls=4)
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.CANCELLED
        assert poller.polls == 4
        assert poller.stop_reason == StopReason.POLL_LIMIT
        assert done.seen == []

    @pytest.mark.asyncio
    async def test_failed_queries_count_towards_max_polls(self):
        poller = JobPoller(
            query=Script(ApiError(ErrorKind.NETWORK_FAILURE, "down")),
            on_complete=Completions(),
            interval=0.01,
            max_polls=3,
        )
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.CANCELLED
        assert poller.observations == 0
        assert poller.stop_reason == StopReason.POLL_LIMIT

    @pytest.mark.asyncio
    async def test_completion_on_last_allowed_poll_wins(self):
        done = Completions()
        poller = JobPoller(query=Script(RUNNING, IDLE), on_complete=done, interval=0.01, max_polls=2)
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.COMPLETED
        assert poller.stop_reason is None
        assert len(done.seen) == 1

    @pytest.mark.parametrize("bounds", [{"max_idle_polls": 0}, {"max_polls": 0}])
    def test_rejects_non_positive_bounds(self, bounds):
        with pytest.raises(ValueError):
            JobPoller(query=Script(IDLE), on_complete=Completions(), **bounds)

    @pytest.mark.asyncio
    async def test_caller_cancel_records_reason(self):
        poller = JobPoller(query=Script(RUNNING), on_complete=Completions(), interval=60)
        poller.start()
        poller.cancel()
        await poller.wait()
        assert poller.stop_reason == StopReason.CANCELLED


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_single_query_in_flight_and_overrun_ticks_skipped(self):
        in_flight = 0
        peak = 0
        calls = 0

        async def slow_query() -> JobStatus:
            nonlocal in_flight, peak, calls
            in_flight += 1
            peak = max(peak, in_flight)
            calls += 1
            await asyncio.sleep(0.05)
            in_flight -= 1
            return RUNNING if calls < 3 else IDLE

        poller = JobPoller(query=slow_query, on_complete=Completions(), interval=0.01)
        poller.start()

        assert await asyncio.wait_for(poller.wait(), timeout=2) == PollState.COMPLETED
        assert peak == 1
        assert calls == 3
        assert poller.skipped_ticks > 0

from scrapeview.jobs.poller import JobPoller, PollState, StopReason

__all__ = ["JobPoller", "PollState", "StopReason"]

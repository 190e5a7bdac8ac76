import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from scrapeview.constants import RETRY_ATTEMPTS, RETRY_INITIAL_WAIT, RETRY_MAX_WAIT, RETRYABLE_STATUS_CODES
from scrapeview.logging import get_logger

_logger = get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True

    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code in RETRYABLE_STATUS_CODES or code >= 500

    return False


def _log_retry(retry_state) -> None:
    _logger.warning(
        "Request failed (attempt %d), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


def with_retry(attempts: int = RETRY_ATTEMPTS, initial_wait: float = RETRY_INITIAL_WAIT):
    """Retry decorator for a single HTTP exchange.

    The wrapped coroutine must raise httpx errors (call raise_for_status()) for
    the policy to see them; the last error is re-raised once attempts run out.
    """
    return retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial_wait, max=RETRY_MAX_WAIT, jitter=2 if initial_wait else 0),
        reraise=True,
        before_sleep=_log_retry,
    )

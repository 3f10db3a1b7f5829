"""Composable retry policy for per-item work."""
import logging
from typing import Any, Awaitable, Callable, TypeVar
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from cartcheck.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed ({exc.__class__.__name__}: {exc}), "
        f"retrying in {retry_state.next_action.sleep if retry_state.next_action else 0:.1f}s"
    )


class RetryPolicy:
    """
    ``attempts`` retries after the first try, ``delay`` seconds apart.

    Only exceptions matching ``predicate`` are retried; anything else, and the
    last failure once attempts run out, propagates unchanged.
    """

    def __init__(
        self,
        attempts: int,
        delay: float,
        predicate: Callable[[BaseException], bool] = is_retryable,
    ):
        self.attempts = max(attempts, 0)
        self.delay = max(delay, 0.0)
        self.predicate = predicate

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts + 1),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception(self.predicate),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)

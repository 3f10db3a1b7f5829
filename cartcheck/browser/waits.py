"""Bounded polling primitives shared by the classifier and page reads."""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from cartcheck.browser.base import BrowserSession
from cartcheck.errors import is_session_invalid

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL = 0.5


async def poll_until(
    predicate: Callable[[], Awaitable[Optional[T]]],
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
) -> Optional[T]:
    """
    Evaluate ``predicate`` until it returns a truthy value or ``timeout`` elapses.
    Returns the truthy value, or None on timeout. The predicate is always
    evaluated at least once, and once more at the deadline.
    """
    deadline = time.monotonic() + max(timeout, 0.0)
    while True:
        result = await predicate()
        if result:
            return result
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval, remaining))


async def safe_read_text(session: BrowserSession, locator: str, timeout: float = 0) -> Optional[str]:
    """Trimmed text of a visible element, or None if absent or unreadable."""
    try:
        element = await session.find_visible(locator, timeout)
        if element is None:
            return None
        text = await session.read_text(element)
        return text.strip() if text is not None else None
    except Exception as e:
        if is_session_invalid(e):
            raise
        logger.debug(f"Could not read text for {locator}: {e}")
        return None


async def wait_text_not_empty(
    session: BrowserSession,
    locator: str,
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
) -> Optional[str]:
    """Wait for an element to show non-empty text. Returns it, or None on timeout."""

    async def _text() -> Optional[str]:
        return await safe_read_text(session, locator)

    return await poll_until(_text, timeout, interval)


async def wait_absent(
    session: BrowserSession,
    locator: str,
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
) -> bool:
    """Wait for an element to be gone or hidden. False if it is still visible at the deadline."""

    async def _gone() -> bool:
        try:
            return await session.find_visible(locator) is None
        except Exception as e:
            if is_session_invalid(e):
                raise
            logger.debug(f"Visibility check failed for {locator}: {e}")
            return False

    return bool(await poll_until(_gone, timeout, interval))

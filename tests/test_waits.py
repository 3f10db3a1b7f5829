"""Tests for the bounded polling primitives."""
import asyncio

import pytest

from cartcheck.browser.waits import poll_until, safe_read_text, wait_absent, wait_text_not_empty
from fakes import FakeElement, FakePage, FakeSession

SPINNER = "css=.spinner"
PRICE = "css=.price"


def _counter(results):
    """Async predicate returning ``results`` in order, repeating the last one."""
    calls = []

    async def predicate():
        calls.append(1)
        return results[min(len(calls), len(results)) - 1]

    return predicate, calls


def test_poll_returns_value_from_later_tick():
    predicate, calls = _counter([None, "", "ready"])
    assert asyncio.run(poll_until(predicate, timeout=1, interval=0.01)) == "ready"
    assert len(calls) == 3


def test_poll_timeout_returns_none():
    predicate, calls = _counter([False])
    assert asyncio.run(poll_until(predicate, timeout=0.05, interval=0.01)) is None
    assert len(calls) >= 2


def test_poll_evaluates_once_more_at_deadline():
    """An interval longer than the timeout still gets a last look at the deadline."""
    predicate, calls = _counter([None, "late"])
    assert asyncio.run(poll_until(predicate, timeout=0.05, interval=10)) == "late"
    assert len(calls) == 2


def test_poll_with_zero_timeout_evaluates_once():
    predicate, calls = _counter([None])
    assert asyncio.run(poll_until(predicate, timeout=0)) is None
    assert len(calls) == 1


class BlinkingSession(FakeSession):
    """Shows ``locator`` for the first ``visible_for`` visibility checks."""

    def __init__(self, locator, visible_for, **kwargs):
        super().__init__(**kwargs)
        self.locator = locator
        self.visible_for = visible_for
        self.checks = 0

    async def find_visible(self, locator, timeout=0):
        if locator != self.locator:
            return await super().find_visible(locator, timeout)
        self._call("find_visible")
        self.checks += 1
        return FakeElement() if self.checks <= self.visible_for else None


def test_wait_absent_after_some_ticks():
    session = BlinkingSession(SPINNER, visible_for=3)
    assert asyncio.run(wait_absent(session, SPINNER, timeout=1, interval=0.01))
    assert session.checks == 4


def test_wait_absent_false_when_still_visible():
    session = BlinkingSession(SPINNER, visible_for=1000)
    assert not asyncio.run(wait_absent(session, SPINNER, timeout=0.05, interval=0.01))


def test_wait_absent_propagates_session_loss():
    session = FakeSession(errors={"find_visible": RuntimeError("browser has been closed")})
    with pytest.raises(RuntimeError, match="has been closed"):
        asyncio.run(wait_absent(session, SPINNER, timeout=1, interval=0.01))


def test_wait_text_not_empty_skips_blank_text():
    price = FakeElement("  ")
    session = FakeSession(page=FakePage(elements={PRICE: price}))

    async def fill_later():
        task = asyncio.create_task(wait_text_not_empty(session, PRICE, timeout=1, interval=0.01))
        await asyncio.sleep(0.05)
        price.text = " $4.99 "
        return await task

    assert asyncio.run(fill_later()) == "$4.99"


def test_wait_text_not_empty_times_out():
    session = FakeSession(page=FakePage())
    assert asyncio.run(wait_text_not_empty(session, PRICE, timeout=0.05, interval=0.01)) is None


def test_safe_read_text_swallows_ordinary_errors():
    session = FakeSession(page=FakePage(elements={PRICE: FakeElement("x")}), errors={"read_text": ValueError("detached")})
    assert asyncio.run(safe_read_text(session, PRICE)) is None

"""Tests for error classification."""
import asyncio

from cartcheck.errors import (
    AuthenticationError,
    ErrorKind,
    SessionExpiredError,
    SessionInvalidError,
    TransientError,
    classify_error,
    error_message,
    is_network_like,
    is_retryable,
    is_session_invalid,
)


def test_session_invalid_patterns():
    assert is_session_invalid(Exception("invalid session id"))
    assert is_session_invalid(Exception("Target page, context or browser has been closed"))
    assert is_session_invalid(Exception("Browser has been closed."))
    assert is_session_invalid(SessionInvalidError("gone"))
    assert not is_session_invalid(Exception("element not found"))
    assert not is_session_invalid(None)


def test_network_error_page_is_not_session_loss():
    """net::ERR_INTERNET_DISCONNECTED mentions disconnection but the session is alive."""
    exc = Exception("page.goto: net::ERR_INTERNET_DISCONNECTED")
    assert not is_session_invalid(exc)
    assert classify_error(exc) == ErrorKind.TRANSIENT


def test_network_like():
    assert is_network_like(Exception("Timeout 30000ms exceeded"))
    assert is_network_like(asyncio.TimeoutError())
    assert is_network_like(TransientError("Search input not available after recovery."))
    assert not is_network_like(ValueError("bad value"))


def test_classify_error():
    assert classify_error(SessionExpiredError("again")) == ErrorKind.SESSION_EXPIRED
    assert classify_error(Exception("no such session")) == ErrorKind.SESSION_INVALID
    assert classify_error(Exception("connection closed")) == ErrorKind.SESSION_INVALID
    assert classify_error(Exception("dns lookup failed")) == ErrorKind.TRANSIENT
    assert classify_error(KeyError("x")) == ErrorKind.UNCLASSIFIED


def test_retryable():
    """Transient and unclassified retry; expiry, session loss and setup failures do not."""
    assert is_retryable(TransientError("t"))
    assert is_retryable(ValueError("odd"))
    assert not is_retryable(SessionExpiredError("x"))
    assert not is_retryable(Exception("invalid session id"))
    assert not is_retryable(AuthenticationError("bad password"))
    assert not is_retryable(KeyboardInterrupt())


def test_error_message_falls_back_to_class_name():
    assert error_message(ValueError("boom")) == "boom"
    assert error_message(TimeoutError()) == "TimeoutError"
    assert error_message(None) == ""

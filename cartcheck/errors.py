"""Error taxonomy and classification for per-item recovery.

Site outcomes (blocked, maintenance, no products) are values, not errors. The
exceptions here cover what can go wrong while driving a session, and
``classify_error`` maps any exception onto the recovery decision it implies.
"""
import asyncio
from enum import Enum


class CartcheckError(Exception):
    """Base class for application errors."""


class ConfigurationError(CartcheckError):
    """Invalid run configuration or empty work list."""


class NothingToProcessError(ConfigurationError):
    """Every input identifier is already checkpointed."""


class SessionSetupError(CartcheckError):
    """A session could not be opened or authenticated. Fatal to the batch."""


class AuthenticationError(SessionSetupError):
    """Login flow did not complete."""


class SessionExpiredError(CartcheckError):
    """Login required again right after re-authentication."""


class SessionInvalidError(CartcheckError):
    """The automation session is gone (browser closed, disconnected)."""


class TransientError(CartcheckError):
    """Network or timeout shaped failure; worth another attempt."""


class ErrorKind(str, Enum):
    SESSION_EXPIRED = "session_expired"
    SESSION_INVALID = "session_invalid"
    TRANSIENT = "transient"
    UNCLASSIFIED = "unclassified"


SESSION_INVALID_PATTERNS = (
    "invalid session id",
    "no such session",
    "disconnected",
    "not connected to devtools",
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
    "connection closed",
)

NETWORK_PATTERNS = (
    "net::err",
    "timeout",
    "connection",
    "dns",
)


def _message(exc: BaseException | None) -> str:
    if exc is None:
        return ""
    return str(exc).lower()


def is_session_invalid(exc: BaseException | None) -> bool:
    """Check if an error means the session handle is unusable."""
    if isinstance(exc, SessionInvalidError):
        return True
    message = _message(exc)
    # net::ERR_INTERNET_DISCONNECTED is a page load failure, the session is fine
    if "net::err" in message:
        return False
    return any(pattern in message for pattern in SESSION_INVALID_PATTERNS)


def is_network_like(exc: BaseException | None) -> bool:
    """Check if an error looks like a network or timeout failure."""
    if isinstance(exc, (TransientError, TimeoutError, asyncio.TimeoutError)):
        return True
    message = _message(exc)
    return any(pattern in message for pattern in NETWORK_PATTERNS)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to its recovery class."""
    if isinstance(exc, SessionExpiredError):
        return ErrorKind.SESSION_EXPIRED
    # "connection closed" is session loss, not a network blip
    if is_session_invalid(exc):
        return ErrorKind.SESSION_INVALID
    if is_network_like(exc):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNCLASSIFIED


def is_retryable(exc: BaseException) -> bool:
    """Default retry predicate: transient and unclassified errors only."""
    if not isinstance(exc, Exception) or isinstance(exc, SessionSetupError):
        return False
    return classify_error(exc) in (ErrorKind.TRANSIENT, ErrorKind.UNCLASSIFIED)


def error_message(exc: BaseException | None) -> str:
    """Message to surface in a FAILED record."""
    if exc is None:
        return ""
    message = str(exc)
    return message or exc.__class__.__name__

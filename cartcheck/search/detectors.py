"""Detect maintenance, blocked and offline pages from title, URL and source."""
import re
import logging

logger = logging.getLogger(__name__)


def _lower(value: str | None) -> str:
    return (value or "").lower()


def is_maintenance_page(title: str | None, url: str | None, source: str | None) -> bool:
    """
    Maintenance banner, title or URL.
    The bare word "maintenance" in the body is not enough: product copy
    ("low maintenance") would trip it.
    """
    t, u, s = _lower(title), _lower(url), _lower(source)

    if "maintenance" in t or "service unavailable" in t or "maintenance" in u:
        return True

    body_indicators = [
        r"scheduled maintenance",
        r"down for maintenance",
        r"under maintenance",
        r"temporarily unavailable",
        r"service unavailable",
    ]
    return any(re.search(pattern, s) for pattern in body_indicators)


def is_blocked_page(title: str | None, url: str | None, source: str | None) -> bool:
    """CAPTCHA or access-denied page."""
    t, u, s = _lower(title), _lower(url), _lower(source)

    # Strong signals from title or URL
    if "access denied" in t or "captcha" in t or "captcha" in u or "blocked" in u:
        return True

    has_captcha = any(
        indicator in s
        for indicator in ("recaptcha", "g-recaptcha", "verify you are human", "are you a robot")
    )
    access_denied = "access denied" in s or "unusual traffic" in s
    return has_captcha or access_denied


def is_offline_page(title: str | None, url: str | None) -> bool:
    """Browser error page shown when the network dropped."""
    if _lower(url).startswith("chrome-error://"):
        return True
    t = _lower(title)
    return "no internet" in t or "internet disconnected" in t or "dns" in t

"""Logging setup shared by the CLI and the API."""
import logging
import sys

from cartcheck.config import config

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once."""
    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())

    if not any(getattr(h, "_cartcheck", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._cartcheck = True
        root.addHandler(handler)

    # Playwright and asyncio are noisy at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

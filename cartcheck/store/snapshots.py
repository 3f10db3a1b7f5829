"""Best-effort diagnostic screenshots."""
import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional

from cartcheck.browser.base import BrowserSession
from cartcheck.config import config

logger = logging.getLogger(__name__)

CAPTURE_TIMEOUT = 15.0


def snapshot_name(name: str | None) -> str:
    """File-system safe prefix for a snapshot."""
    if not name:
        return "SHOT"
    return re.sub(r"[^a-zA-Z0-9._-]", "_", name)


class SnapshotService:
    """Captures point-in-time screenshots. Never raises, never blocks past its timeout."""

    def __init__(
        self,
        directory: Path | str | None = None,
        enabled: bool | None = None,
        timeout: float = CAPTURE_TIMEOUT,
    ):
        self.directory = Path(directory or config.SCREENSHOT_DIR)
        self.enabled = config.SCREENSHOTS_ENABLED if enabled is None else enabled
        self.timeout = timeout

    async def capture(self, session: Optional[BrowserSession], name: str) -> Optional[str]:
        """Save a screenshot as ``<name>_<millis>.png``. Returns the path, or None."""
        if not self.enabled or session is None:
            return None
        path = self.directory / f"{snapshot_name(name)}_{int(time.time() * 1000)}.png"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            saved = await asyncio.wait_for(session.capture_snapshot(path), timeout=self.timeout)
        except Exception as e:
            logger.debug(f"Screenshot {name} not captured: {e}")
            return None
        return str(saved) if saved else None

"""Append-only checkpoint log of completed identifiers."""
import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable
import aiofiles

from cartcheck.config import config

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Line-delimited log of identifiers whose result row has been written.

    Marking happens after the row is appended, so a crash between the two
    leaves an identifier unmarked and it is processed again on resume:
    duplicates are possible, gaps are not.
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path or config.CHECKPOINT_FILE)
        self._lock = asyncio.Lock()

    def load_processed(self) -> set[str]:
        """Read every checkpointed identifier. Missing log means first run."""
        if not self.path.exists():
            return set()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                # Blank lines come from trailing newlines or a write cut short
                return {line.strip() for line in f if line.strip()}
        except OSError as e:
            logger.warning(f"Could not read checkpoint {self.path}: {e}")
            return set()

    async def mark_processed(self, identifier: str) -> None:
        """Append one identifier. Failures are logged, never raised."""
        line = f"{identifier}\n"
        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                    await f.write(line)
            except OSError as e:
                logger.warning(f"Checkpoint append failed for {identifier}: {e}")

    def count(self) -> int:
        return len(self.load_processed())

    def remove(self, identifiers: Iterable[str]) -> int:
        """Rewrite the log without ``identifiers``. Returns how many entries were dropped."""
        drop = {i.strip() for i in identifiers if i and i.strip()}
        if not drop or not self.path.exists():
            return 0

        with open(self.path, "r", encoding="utf-8") as f:
            lines = [line.strip() for line in f if line.strip()]
        kept = [line for line in lines if line not in drop]

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.writelines(f"{line}\n" for line in kept)
        os.replace(tmp_path, self.path)

        removed = len(lines) - len(kept)
        logger.info(f"Removed {removed} checkpoint entries from {self.path}")
        return removed

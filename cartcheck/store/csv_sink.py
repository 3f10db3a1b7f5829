"""Per-batch CSV result files."""
import asyncio
import csv
import io
import logging
from pathlib import Path
from typing import Iterable, Optional
import aiofiles
from aiofiles.threadpool.text import AsyncTextIOWrapper

from cartcheck.models import CSV_HEADER, ResultRecord

logger = logging.getLogger(__name__)


def sanitize(value: Optional[str]) -> str:
    """Neutralize quotes and line breaks so every value stays a single cell."""
    if value is None:
        return ""
    return str(value).replace('"', "'").replace("\n", " ").replace("\r", " ").strip()


def format_row(values: Iterable[Optional[str]]) -> str:
    """One fully quoted CSV line, newline included."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([sanitize(v) for v in values])
    return buffer.getvalue()


def result_csv_path(output_dir: Path | str, batch_number: int, run_stamp: str) -> Path:
    """``<output_dir>/results_batch_<n>_<stamp>.csv``"""
    return Path(output_dir) / f"results_batch_{batch_number}_{run_stamp}.csv"


class CsvSinkRegistry:
    """
    Open CSV handles keyed by path.

    Each batch writes its own file; the registry itself is shared, so opening,
    writing and closing go through one lock.
    """

    def __init__(self):
        self._writers: dict[str, AsyncTextIOWrapper] = {}
        self._lock = asyncio.Lock()

    @property
    def open_paths(self) -> list[str]:
        return list(self._writers)

    async def init(self, path: Path | str) -> None:
        """Create or truncate the file and write the header."""
        key = str(path)
        async with self._lock:
            await self._close_locked(key)
            Path(key).parent.mkdir(parents=True, exist_ok=True)
            f = await aiofiles.open(key, "w", encoding="utf-8", newline="")
            self._writers[key] = f
            await f.write(format_row(CSV_HEADER))
            await f.flush()
        logger.debug(f"Initialized CSV {key}")

    async def append(self, path: Path | str, record: ResultRecord) -> None:
        """Append one record and flush it to disk."""
        key = str(path)
        line = format_row(record.csv_row())
        async with self._lock:
            f = self._writers.get(key)
            if f is None:
                Path(key).parent.mkdir(parents=True, exist_ok=True)
                f = await aiofiles.open(key, "a", encoding="utf-8", newline="")
                self._writers[key] = f
            await f.write(line)
            await f.flush()

    async def close(self, path: Path | str) -> None:
        """Flush and release the handle for ``path``. No-op if not open."""
        async with self._lock:
            await self._close_locked(str(path))

    async def close_all(self) -> None:
        async with self._lock:
            for key in list(self._writers):
                await self._close_locked(key)

    async def _close_locked(self, key: str) -> None:
        f = self._writers.pop(key, None)
        if f is None:
            return
        try:
            await f.flush()
        except Exception as e:
            logger.warning(f"Flush failed for {key}: {e}")
        try:
            await f.close()
        except Exception as e:
            logger.warning(f"Close failed for {key}: {e}")

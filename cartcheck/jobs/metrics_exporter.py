"""Metrics exporter for observability."""
import time
from pathlib import Path
from typing import Dict, Optional
import aiofiles
import orjson

from cartcheck.config import config


class MetricsExporter:
    """Appends metrics snapshots to a JSONL file."""

    def __init__(self, run_id: str, metrics_file: Path | str | None = None):
        self.run_id = run_id
        self.metrics_file = Path(metrics_file or config.METRICS_FILE)
        self.start_time = time.time()

    async def export_metrics(self, summary: Dict, batch: Optional[int] = None, event: str = "progress") -> None:
        """Write one line: timestamp, run id, event and the metrics summary."""
        metrics = {
            "ts": time.time(),
            "run_id": self.run_id,
            "event": event,
            "batch": batch,
            **{k: round(v, 3) if isinstance(v, float) else v for k, v in summary.items()},
        }

        self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
        line = orjson.dumps(metrics) + b"\n"
        async with aiofiles.open(self.metrics_file, "ab") as f:
            await f.write(line)


def read_recent_metrics(metrics_file: Path | str | None = None, limit: int = 100) -> list[dict]:
    """Last ``limit`` snapshots, oldest first. Unparseable lines are skipped."""
    path = Path(metrics_file or config.METRICS_FILE)
    if not path.exists():
        return []
    with open(path, "rb") as f:
        lines = f.readlines()[-limit:]
    snapshots = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            snapshots.append(orjson.loads(line))
        except orjson.JSONDecodeError:
            continue
    return snapshots

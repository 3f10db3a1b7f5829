"""Main job runner orchestrating batch lookups."""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from cartcheck.auth.session import LoginFunc, SessionManager, SessionSlot
from cartcheck.browser.base import BrowserDriver
from cartcheck.browser.playwright_driver import PlaywrightDriver
from cartcheck.config import config
from cartcheck.errors import ConfigurationError
from cartcheck.jobs.metrics import Metrics
from cartcheck.jobs.metrics_exporter import MetricsExporter
from cartcheck.jobs.partition import partition, read_identifiers
from cartcheck.jobs.recovery import Extractor, RecoveryController
from cartcheck.jobs.run_control import RunControl
from cartcheck.models import Batch
from cartcheck.search.classifier import OutcomeClassifier
from cartcheck.search.product import read_product
from cartcheck.site.login_page import login
from cartcheck.store.checkpoint import CheckpointStore
from cartcheck.store.csv_sink import CsvSinkRegistry, result_csv_path
from cartcheck.store.snapshots import SnapshotService

logger = logging.getLogger(__name__)

RUN_STAMP_FORMAT = "%Y%m%d_%H%M%S"
EXECUTION_MODES = ("sequential", "parallel")
METRICS_EXPORT_INTERVAL = 30


@dataclass
class RunSummary:
    """Outcome of one run."""

    run_id: str
    total: int = 0
    recorded: int = 0
    failed_batches: list[int] = field(default_factory=list)
    stopped_reason: Optional[str] = None
    csv_paths: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        """Every submitted identifier has a record and no batch failed."""
        return not self.failed_batches and self.stopped_reason is None and self.recorded >= self.total


class CheckRunner:
    """Partitions the input and runs each batch on its own session and CSV."""

    def __init__(
        self,
        identifiers: Optional[Iterable[str]] = None,
        input_file: Optional[str] = None,
        batch_size: Optional[int] = None,
        mode: Optional[str] = None,
        max_parallel_batches: Optional[int] = None,
        deduplicate: Optional[bool] = None,
        resume: bool = True,
        retry_count: Optional[int] = None,
        retry_sleep: Optional[float] = None,
        blocked_backoff: Optional[float] = None,
        screenshots: Optional[bool] = None,
        stop_after_minutes: Optional[float] = None,
        max_errors: Optional[int] = None,
        max_consecutive_errors: Optional[int] = None,
        max_blocked: Optional[int] = None,
        output_dir: Optional[str] = None,
        checkpoint_file: Optional[str] = None,
        metrics_file: Optional[str] = None,
        screenshot_dir: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        driver: Optional[BrowserDriver] = None,
        login_func: LoginFunc = login,
        classifier: Optional[OutcomeClassifier] = None,
        extractor: Extractor = read_product,
    ):
        self.batch_size = config.BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        self.mode = (mode or config.EXECUTION_MODE).lower()
        if self.mode not in EXECUTION_MODES:
            raise ConfigurationError(f"mode must be one of {', '.join(EXECUTION_MODES)}, got {self.mode!r}")

        self.identifiers = list(identifiers) if identifiers is not None else None
        self.input_file = input_file or config.UPC_FILE
        self.max_parallel_batches = (
            config.MAX_PARALLEL_BATCHES if max_parallel_batches is None else max_parallel_batches
        )
        self.deduplicate = config.DEDUPLICATE if deduplicate is None else deduplicate
        self.resume = resume
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)

        self.run_id = str(uuid.uuid4())
        self.run_stamp = datetime.now().strftime(RUN_STAMP_FORMAT)
        logger.info(f"Run ID: {self.run_id}")

        self.run_control = RunControl(
            stop_after_minutes=stop_after_minutes,
            max_errors=max_errors,
            max_consecutive_errors=max_consecutive_errors,
            max_blocked=max_blocked,
        )

        self.checkpoint = CheckpointStore(checkpoint_file)
        self.sink = CsvSinkRegistry()
        self.snapshots = SnapshotService(screenshot_dir, screenshots)
        self.sessions = SessionManager(
            driver or PlaywrightDriver(),
            username=username,
            password=password,
            login_func=login_func,
            snapshots=self.snapshots,
        )
        self.classifier = classifier or OutcomeClassifier()
        self.extractor = extractor
        self.retry_count = retry_count
        self.retry_sleep = retry_sleep
        self.blocked_backoff = blocked_backoff

        self.metrics = Metrics(0)
        self.metrics_exporter = MetricsExporter(self.run_id, metrics_file)
        self.summary = RunSummary(run_id=self.run_id)
        self.last_metrics_export = time.time()
        self.recovery: Optional[RecoveryController] = None

    def plan(self) -> list[Batch]:
        """Load input, drop checkpointed identifiers and split into batches."""
        processed = self.checkpoint.load_processed() if self.resume else set()
        if processed:
            logger.info(f"Checkpoint has {len(processed)} processed identifiers")
        raw = self.identifiers
        if raw is None:
            raw = read_identifiers(self.input_file, self.deduplicate)
        return partition(raw, self.batch_size, processed, self.deduplicate)

    async def run(self) -> RunSummary:
        """Run all batches and return the summary. Raises ConfigurationError when there is nothing to do."""
        batches = self.plan()
        total = sum(len(b) for b in batches)
        self.summary.total = total
        self.metrics = Metrics(total)
        self.run_control.start_time = time.time()
        self.recovery = RecoveryController(
            self.sessions,
            self.sink,
            self.checkpoint,
            self.classifier,
            self.snapshots,
            retry_count=self.retry_count,
            retry_sleep=self.retry_sleep,
            blocked_backoff=self.blocked_backoff,
            metrics=self.metrics,
            run_control=self.run_control,
            extractor=self.extractor,
        )

        logger.info("=" * 60)
        logger.info(f"Starting run: {total} identifiers in {len(batches)} batches of up to {self.batch_size}")
        logger.info(f"Mode: {self.mode} | Output: {self.output_dir} | Stamp: {self.run_stamp}")
        logger.info("=" * 60)

        try:
            if self.mode == "parallel":
                await self._run_parallel(batches)
            else:
                await self._run_sequential(batches)
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Interrupted, closing open sessions and files")
            self.run_control.request_stop("Interrupted")
            raise
        finally:
            await self.sink.close_all()
            self.summary.recorded = self.metrics.processed
            should_stop, reason = self.run_control.should_stop()
            if should_stop and self.summary.recorded < total:
                self.summary.stopped_reason = reason
            await self._final_report()

        return self.summary

    async def _run_sequential(self, batches: list[Batch]) -> None:
        for batch in batches:
            should_stop, reason = self.run_control.should_stop()
            if should_stop:
                logger.warning(f"Stop condition met before batch {batch.number}: {reason}")
                break
            await self._run_batch_guarded(batch)

    async def _run_parallel(self, batches: list[Batch]) -> None:
        limit = self.max_parallel_batches if self.max_parallel_batches > 0 else len(batches)
        semaphore = asyncio.Semaphore(limit)
        logger.info(f"Running {len(batches)} batches with up to {limit} at a time")

        async def run_one(batch: Batch) -> None:
            async with semaphore:
                should_stop, reason = self.run_control.should_stop()
                if should_stop:
                    logger.warning(f"Stop condition met before batch {batch.number}: {reason}")
                    return
                await self._run_batch_guarded(batch)

        await asyncio.gather(*(run_one(b) for b in batches), return_exceptions=True)

    async def _run_batch_guarded(self, batch: Batch) -> None:
        """A failing batch is logged and counted, never propagated to its siblings."""
        try:
            await self._run_batch(batch)
        except Exception as e:
            self.summary.failed_batches.append(batch.number)
            logger.error(f"Batch {batch.number} failed: {e}", exc_info=True)

    async def _run_batch(self, batch: Batch) -> None:
        csv_path = result_csv_path(self.output_dir, batch.number, self.run_stamp)
        slot = SessionSlot()
        logger.info(f"Batch {batch.number}: {len(batch)} identifiers -> {csv_path}")
        try:
            await self.sink.init(csv_path)
            self.summary.csv_paths.append(str(csv_path))
            slot.session = await self.sessions.open()

            for identifier in batch.identifiers:
                should_stop, reason = self.run_control.should_stop()
                if should_stop:
                    logger.warning(f"Stop condition met in batch {batch.number}: {reason}")
                    break
                await self.recovery.process(slot, csv_path, identifier)
                await self._maybe_export_metrics(batch.number)

            logger.info(f"Batch {batch.number} finished")
        finally:
            await self.sessions.close(slot.session)
            await self.sink.close(csv_path)

    async def _maybe_export_metrics(self, batch_number: int) -> None:
        if time.time() - self.last_metrics_export < METRICS_EXPORT_INTERVAL:
            return
        self.last_metrics_export = time.time()
        await self._export_metrics(batch=batch_number)

    async def _export_metrics(self, batch: Optional[int] = None, event: str = "progress") -> None:
        """Export current metrics."""
        summary = self.metrics.get_summary()
        summary.update(self.run_control.get_summary())
        try:
            await self.metrics_exporter.export_metrics(summary, batch=batch, event=event)
        except OSError as e:
            logger.warning(f"Metrics export failed: {e}")

    async def _final_report(self) -> None:
        """Generate final report."""
        summary = self.metrics.get_summary()
        run_summary = self.run_control.get_summary()

        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Run ID: {self.run_id}")
        logger.info(f"Elapsed: {run_summary['elapsed_minutes']:.2f} minutes")
        logger.info(f"Recorded: {summary['processed']}/{self.summary.total}")
        logger.info(f"Add to cart present: {summary['present']}")
        logger.info(f"Add to cart not present: {summary['not_present']}")
        logger.info(f"No product found: {summary['not_found']}")
        logger.info(f"Blocked: {summary['blocked']}")
        logger.info(f"Maintenance: {summary['maintenance']}")
        logger.info(f"Invalid UPC: {summary['invalid']}")
        logger.info(f"Failed: {summary['failed']}")
        logger.info(f"Session restarts: {self.sessions.restarts}")
        if self.summary.failed_batches:
            logger.info(f"Failed batches: {sorted(self.summary.failed_batches)}")
        if self.summary.stopped_reason:
            logger.info(f"Stopped early: {self.summary.stopped_reason}")
        logger.info(f"Throughput: {summary['rate']:.2f} items/s")
        logger.info("=" * 60)

        await self._export_metrics(event="final")

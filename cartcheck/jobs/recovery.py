"""Per-identifier processing with retry, re-login and session restart."""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from cartcheck.auth.session import SessionManager, SessionSlot
from cartcheck.browser.base import BrowserSession
from cartcheck.config import config
from cartcheck.errors import (
    SessionExpiredError,
    SessionSetupError,
    TransientError,
    error_message,
    is_session_invalid,
)
from cartcheck.jobs.metrics import Metrics
from cartcheck.jobs.retry import RetryPolicy
from cartcheck.jobs.run_control import RunControl
from cartcheck.models import (
    Outcome,
    ProductSnapshot,
    ResultRecord,
    SessionState,
    Status,
    is_valid_identifier,
    normalize_identifier,
)
from cartcheck.search.classifier import OutcomeClassifier
from cartcheck.search.detectors import is_offline_page
from cartcheck.search.product import read_product, snapshot_to_record
from cartcheck.store.checkpoint import CheckpointStore
from cartcheck.store.csv_sink import CsvSinkRegistry
from cartcheck.store.snapshots import SnapshotService

logger = logging.getLogger(__name__)

MSG_INVALID = "Invalid UPC format"
MSG_SESSION_EXPIRED = "Session expired; re-login did not recover."

# Terminal outcome -> (status, message, snapshot prefix)
TERMINAL_OUTCOMES = {
    Outcome.NO_PRODUCTS_FOUND: (Status.NO_PRODUCTS_FOUND, "No products found for this UPC", "NO_PRODUCTS_FOUND"),
    Outcome.BLOCKED: (Status.BLOCKED, "Blocked/CAPTCHA detected after search", "BLOCKED"),
    Outcome.MAINTENANCE: (Status.MAINTENANCE, "Site is in maintenance mode", "MAINTENANCE"),
}

Extractor = Callable[[BrowserSession], Awaitable[ProductSnapshot]]


class RecoveryController:
    """
    Drives one identifier to exactly one written record.

    Validate, search, classify, then record. A login wall gets one
    re-login and one more search. Transient and unclassified failures go
    through the retry policy. A lost session is restarted once and the item
    tried again on the fresh session. Whatever happens, one row is appended
    and then one checkpoint entry; a failed restart still records the item
    before raising SessionSetupError to end the batch.
    """

    def __init__(
        self,
        sessions: SessionManager,
        sink: CsvSinkRegistry,
        checkpoint: CheckpointStore,
        classifier: OutcomeClassifier,
        snapshots: SnapshotService,
        retry_count: Optional[int] = None,
        retry_sleep: Optional[float] = None,
        blocked_backoff: Optional[float] = None,
        metrics: Optional[Metrics] = None,
        run_control: Optional[RunControl] = None,
        extractor: Extractor = read_product,
    ):
        self.sessions = sessions
        self.sink = sink
        self.checkpoint = checkpoint
        self.classifier = classifier
        self.snapshots = snapshots
        self.retry = RetryPolicy(
            config.RETRY_COUNT if retry_count is None else retry_count,
            config.RETRY_SLEEP_MS / 1000 if retry_sleep is None else retry_sleep,
        )
        self.blocked_backoff = config.BLOCKED_BACKOFF_MS / 1000 if blocked_backoff is None else blocked_backoff
        self.metrics = metrics
        self.run_control = run_control
        self.extractor = extractor

    async def process(self, slot: SessionSlot, csv_path: Path | str, identifier: str) -> None:
        """
        Process one identifier and write its record.
        A restart replaces ``slot.session``; the batch keeps using and finally closes whatever the slot holds.
        """
        identifier = normalize_identifier(identifier)
        try:
            record = await self._resolve(slot, identifier)
        except SessionSetupError as e:
            logger.error(f"Session restart failed while processing {identifier}: {e}")
            await self._write(csv_path, self._failed_record(identifier, e))
            raise

        await self._write(csv_path, record)
        session = slot.session
        if session.state == SessionState.IN_USE:
            session.state = SessionState.AUTHENTICATED

        if record.status == Status.BLOCKED and self.blocked_backoff > 0:
            logger.warning(f"Blocked on {identifier}, backing off {self.blocked_backoff:.1f}s")
            await asyncio.sleep(self.blocked_backoff)

    async def _resolve(self, slot: SessionSlot, identifier: str) -> ResultRecord:
        if not is_valid_identifier(identifier):
            return ResultRecord(identifier=identifier, status=Status.INVALID_FORMAT, message=MSG_INVALID)

        restarted = False
        while True:
            try:
                return await self.retry.call(self._process_once, slot.session, identifier)
            except Exception as e:
                if is_session_invalid(e) and not restarted:
                    logger.warning(f"Session lost on {identifier} ({error_message(e)}), restarting")
                    restarted = True
                    await self.sessions.restart_slot(slot)
                    continue
                logger.error(f"Failed {identifier}: {error_message(e)}")
                return await self._failure(slot.session, identifier, e)

    async def _process_once(self, session: BrowserSession, identifier: str) -> ResultRecord:
        """One attempt: no writes, only snapshots."""
        session.state = SessionState.IN_USE
        await self._ensure_online(session)

        outcome = await self.classifier.search(session, identifier)
        if outcome == Outcome.LOGIN_REQUIRED:
            await self.sessions.reauthenticate(session)
            session.state = SessionState.IN_USE
            outcome = await self.classifier.search(session, identifier)
            if outcome == Outcome.LOGIN_REQUIRED:
                raise SessionExpiredError(MSG_SESSION_EXPIRED)

        if outcome == Outcome.OPENED:
            record = snapshot_to_record(identifier, await self.extractor(session))
            if record.status == Status.NOT_PRESENT:
                record = await self._with_snapshot(session, record, f"ADD_TO_CART_NOT_PRESENT_{identifier}")
            return record

        status, message, prefix = TERMINAL_OUTCOMES[outcome]
        record = ResultRecord(
            identifier=identifier,
            url=await self._current_url(session),
            status=status,
            message=message,
        )
        return await self._with_snapshot(session, record, f"{prefix}_{identifier}")

    async def _ensure_online(self, session: BrowserSession) -> None:
        """Reload once off a browser error page; still offline means a transient failure."""
        if not await self._is_offline(session):
            return
        logger.warning("Browser shows a network error page, reloading")
        await session.reload()
        await session.wait_until_loaded(20)
        if await self._is_offline(session):
            raise TransientError("Browser is offline (network error page after reload).")

    async def _is_offline(self, session: BrowserSession) -> bool:
        return is_offline_page(await session.title(), await session.current_url())

    async def _failure(self, session: BrowserSession, identifier: str, exc: BaseException) -> ResultRecord:
        record = self._failed_record(identifier, exc, await self._current_url(session))
        if is_session_invalid(exc):
            return record
        return await self._with_snapshot(session, record, f"FAILED_{identifier}")

    @staticmethod
    def _failed_record(identifier: str, exc: BaseException, url: str = "") -> ResultRecord:
        return ResultRecord(identifier=identifier, url=url, status=Status.FAILED, message=error_message(exc))

    async def _current_url(self, session: BrowserSession) -> str:
        try:
            return await session.current_url() or ""
        except Exception as e:
            logger.debug(f"Could not read current URL: {e}")
            return ""

    async def _with_snapshot(self, session: BrowserSession, record: ResultRecord, name: str) -> ResultRecord:
        path = await self.snapshots.capture(session, name)
        if path is None:
            return record
        return record.model_copy(update={"screenshot": path})

    async def _write(self, csv_path: Path | str, record: ResultRecord) -> None:
        """Append the row, then checkpoint it. A crash in between means a re-run, never a gap."""
        await self.sink.append(csv_path, record)
        await self.checkpoint.mark_processed(record.identifier)
        logger.info(f"{record.identifier} -> {record.status.value}{f' ({record.message})' if record.message else ''}")
        if self.metrics:
            self.metrics.record(record.status)
        if self.run_control:
            self.run_control.record(record.status)

"""Tests for per-identifier recovery: validation, re-login, retries, restarts and backoff."""
import asyncio
import csv

import pytest

from cartcheck.auth.session import SessionManager, SessionSlot
from cartcheck.errors import SessionSetupError, TransientError
from cartcheck.jobs.recovery import RecoveryController
from cartcheck.models import Outcome
from cartcheck.store.checkpoint import CheckpointStore
from cartcheck.store.csv_sink import CsvSinkRegistry
from cartcheck.store.snapshots import SnapshotService
from fakes import FakeDriver, FakePage, FakeSession, ScriptedClassifier, enabled_product, fake_login, missing_cart

UPC = "012345678912"


class Harness:
    def __init__(self, tmp_path, classifier, extractor=enabled_product, retry_count=1, blocked_backoff=0.0, driver=None):
        self.tmp_path = tmp_path
        self.driver = driver or FakeDriver()
        self.sessions = SessionManager(
            self.driver, base_url="https://shop.test", username="u", password="p", login_func=fake_login
        )
        self.checkpoint = CheckpointStore(tmp_path / "checkpoint.txt")
        self.csv_path = tmp_path / "results_batch_1_test.csv"
        self.shots = tmp_path / "shots"
        self.classifier = classifier
        self.controller = RecoveryController(
            self.sessions,
            CsvSinkRegistry(),
            self.checkpoint,
            classifier,
            SnapshotService(self.shots, enabled=True),
            retry_count=retry_count,
            retry_sleep=0,
            blocked_backoff=blocked_backoff,
            extractor=extractor,
        )
        self.first_session = None

    def run(self, identifiers):
        async def go():
            sink = self.controller.sink
            await sink.init(self.csv_path)
            slot = SessionSlot(await self.sessions.open())
            self.first_session = slot.session
            try:
                for identifier in identifiers:
                    await self.controller.process(slot, self.csv_path, identifier)
            finally:
                await sink.close_all()
            return slot.session

        return asyncio.run(go())

    def rows(self):
        with open(self.csv_path, "r", encoding="utf-8", newline="") as f:
            return list(csv.DictReader(f))

    def shot_names(self):
        if not self.shots.exists():
            return []
        return sorted(p.name for p in self.shots.iterdir())


def test_invalid_format_has_no_session_interaction(tmp_path):
    """Malformed identifiers are recorded without touching the session."""
    classifier = ScriptedClassifier()
    h = Harness(tmp_path, classifier)
    session = h.run(["12345", "ABCDEFGH"])

    assert session.calls == []
    assert classifier.calls == []
    assert h.shot_names() == []
    rows = h.rows()
    assert [(r["UPC"], r["Status"], r["AddToCart"], r["Message"]) for r in rows] == [
        ("12345", "INVALID_UPC", "NA", "Invalid UPC format"),
        ("ABCDEFGH", "INVALID_UPC", "NA", "Invalid UPC format"),
    ]
    assert h.checkpoint.load_processed() == {"12345", "ABCDEFGH"}


def test_leading_zero_identifier_is_searched(tmp_path):
    classifier = ScriptedClassifier()
    h = Harness(tmp_path, classifier)
    h.run([UPC])
    assert classifier.calls == [UPC]
    assert h.rows()[0]["Status"] == "ADD TO CART PRESENT"


def test_login_required_then_opened_is_success(tmp_path):
    """A login wall triggers one re-login and a second search."""
    classifier = ScriptedClassifier({UPC: [Outcome.LOGIN_REQUIRED, Outcome.OPENED]})
    h = Harness(tmp_path, classifier)
    session = h.run([UPC])

    rows = h.rows()
    assert len(rows) == 1
    assert rows[0]["Status"] == "ADD TO CART PRESENT"
    assert rows[0]["AddToCart"] == "YES"
    assert session.logins == 2
    assert classifier.calls == [UPC, UPC]


def test_login_required_twice_fails_without_retry(tmp_path):
    classifier = ScriptedClassifier({UPC: [Outcome.LOGIN_REQUIRED]})
    h = Harness(tmp_path, classifier, retry_count=3)
    h.run([UPC])

    rows = h.rows()
    assert [(r["Status"], r["Message"]) for r in rows] == [("FAILED", "Session expired; re-login did not recover.")]
    assert classifier.calls == [UPC, UPC]


def test_terminal_outcomes_get_snapshots(tmp_path):
    """Blocked, maintenance and no-products are recorded once each with a snapshot."""
    ids = ["11111111", "22222222", "33333333"]
    classifier = ScriptedClassifier(
        {
            ids[0]: [Outcome.NO_PRODUCTS_FOUND],
            ids[1]: [Outcome.BLOCKED],
            ids[2]: [Outcome.MAINTENANCE],
        }
    )
    h = Harness(tmp_path, classifier)
    h.run(ids)

    assert [(r["Status"], r["Message"], r["AddToCart"]) for r in h.rows()] == [
        ("NO PRODUCT FOUND", "No products found for this UPC", "NA"),
        ("BLOCKED", "Blocked/CAPTCHA detected after search", "NA"),
        ("MAINTENANCE", "Site is in maintenance mode", "NA"),
    ]
    names = h.shot_names()
    assert any(n.startswith("NO_PRODUCTS_FOUND_11111111_") for n in names)
    assert any(n.startswith("BLOCKED_22222222_") for n in names)
    assert any(n.startswith("MAINTENANCE_33333333_") for n in names)
    assert classifier.calls == ids


def test_not_present_gets_snapshot(tmp_path):
    h = Harness(tmp_path, ScriptedClassifier(), extractor=missing_cart)
    h.run([UPC])
    row = h.rows()[0]
    assert (row["Status"], row["AddToCart"], row["Message"]) == (
        "ADD TO CART NOT PRESENT",
        "NO",
        "Add to Cart button not displayed",
    )
    assert any(n.startswith(f"ADD_TO_CART_NOT_PRESENT_{UPC}_") for n in h.shot_names())


def test_blocked_backoff_delays_next_item(tmp_path):
    """With a 500 ms backoff the next item starts at least 500 ms after a block."""
    started = {}

    class TimedClassifier(ScriptedClassifier):
        async def search(self, session, identifier):
            started[identifier] = asyncio.get_running_loop().time()
            return await super().search(session, identifier)

    classifier = TimedClassifier({"11111111": [Outcome.BLOCKED], "22222222": [Outcome.OPENED]})
    h = Harness(tmp_path, classifier, blocked_backoff=0.5)
    h.run(["11111111", "22222222"])

    assert started["22222222"] - started["11111111"] >= 0.5
    assert [r["Status"] for r in h.rows()] == ["BLOCKED", "ADD TO CART PRESENT"]


def test_transient_error_is_retried(tmp_path):
    classifier = ScriptedClassifier({UPC: [TransientError("Timeout 30000ms exceeded"), Outcome.NO_PRODUCTS_FOUND]})
    h = Harness(tmp_path, classifier, retry_count=1)
    h.run([UPC])
    assert [r["Status"] for r in h.rows()] == ["NO PRODUCT FOUND"]
    assert classifier.calls == [UPC, UPC]
    assert h.checkpoint.path.read_text(encoding="utf-8") == f"{UPC}\n"


def test_exhausted_retries_record_failure_with_message(tmp_path):
    """Unclassified errors are retried, then surface their original message."""
    classifier = ScriptedClassifier({UPC: [ValueError("unexpected product layout")]})
    h = Harness(tmp_path, classifier, retry_count=2)
    h.run([UPC, "98765432"])

    rows = h.rows()
    assert [(r["UPC"], r["Status"], r["Message"]) for r in rows] == [
        (UPC, "FAILED", "unexpected product layout"),
        ("98765432", "ADD TO CART PRESENT", ""),
    ]
    assert classifier.calls.count(UPC) == 3
    assert any(n.startswith(f"FAILED_{UPC}_") for n in h.shot_names())


def test_session_loss_restarts_once_and_retries(tmp_path):
    """A lost session is replaced and the same item succeeds on the new one."""
    classifier = ScriptedClassifier({UPC: [RuntimeError("Target page, context or browser has been closed"), Outcome.OPENED]})
    h = Harness(tmp_path, classifier)
    session = h.run([UPC])

    assert session is not h.first_session
    assert h.first_session.closed
    assert len(h.driver.sessions) == 2
    assert h.sessions.restarts == 1
    assert [r["Status"] for r in h.rows()] == ["ADD TO CART PRESENT"]


def test_session_loss_twice_records_failure(tmp_path):
    classifier = ScriptedClassifier({UPC: [RuntimeError("invalid session id")]})
    h = Harness(tmp_path, classifier)
    h.run([UPC])

    assert h.sessions.restarts == 1
    rows = h.rows()
    assert [(r["Status"], r["Message"]) for r in rows] == [("FAILED", "invalid session id")]


def test_failed_restart_records_item_and_aborts_batch(tmp_path):
    """When the replacement session cannot be opened the item is still recorded."""
    driver = FakeDriver()
    classifier = ScriptedClassifier({UPC: [RuntimeError("no such session")]})
    h = Harness(tmp_path, classifier, driver=driver)

    original_open = driver.open_session

    async def open_then_fail():
        if driver.sessions:
            raise RuntimeError("browser failed to launch")
        return await original_open()

    driver.open_session = open_then_fail

    with pytest.raises(SessionSetupError):
        h.run([UPC, "98765432"])

    rows = h.rows()
    assert len(rows) == 1
    assert rows[0]["UPC"] == UPC
    assert rows[0]["Status"] == "FAILED"
    assert h.checkpoint.load_processed() == {UPC}


def test_offline_page_reloads_then_fails(tmp_path):
    """A browser error page is reloaded; staying offline is a transient failure."""
    offline = FakePage(url="chrome-error://chromewebdata/", title="")
    driver = FakeDriver(factory=lambda: FakeSession(page=offline))
    classifier = ScriptedClassifier()
    h = Harness(tmp_path, classifier, retry_count=1, driver=driver)
    session = h.run([UPC])

    assert session.reloads == 2
    assert classifier.calls == []
    row = h.rows()[0]
    assert row["Status"] == "FAILED"
    assert "offline" in row["Message"]

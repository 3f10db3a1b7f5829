"""Run a search and resolve the resulting page to exactly one Outcome."""
import asyncio
import logging
from typing import Optional

from cartcheck.browser.base import BrowserSession, Element
from cartcheck.browser.waits import poll_until
from cartcheck.config import config
from cartcheck.errors import TransientError, is_session_invalid
from cartcheck.models import Outcome
from cartcheck.search.detectors import is_blocked_page, is_maintenance_page
from cartcheck.site import locators
from cartcheck.site.login_page import open_home

logger = logging.getLogger(__name__)

RESULT_CLICK_ATTEMPTS = 3
MSG_RESULTS_VANISHED = "Search results disappeared before they could be opened."


class OutcomeClassifier:
    """
    Issues a search on the session and polls until a terminal signal shows up.

    Signals are checked in a fixed order on every tick: login wall,
    maintenance, blocked, "no results" banner, then product evidence. A
    blocked page usually has no results either, so it has to be checked
    first or it would be recorded as missing inventory. Without any signal
    before the timeout the outcome is NO_PRODUCTS_FOUND, never OPENED.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        poll_interval: float = 0.5,
        resubmit_after: float = 0.8,
        load_timeout: float = 20,
    ):
        self.base_url = base_url or config.BASE_URL
        self.timeout = config.SEARCH_TIMEOUT if timeout is None else timeout
        self.poll_interval = poll_interval
        self.resubmit_after = resubmit_after
        self.load_timeout = load_timeout

    async def search(self, session: BrowserSession, identifier: str) -> Outcome:
        """Search ``identifier`` and classify the page it lands on."""
        logger.info(f"Searching UPC: {identifier}")
        await session.wait_until_loaded(self.load_timeout)
        await session.apply_zoom()

        box = await self._ensure_search_ready(session)
        if box is None:
            outcome = await self._blocking_outcome(session)
            if outcome is not None:
                return outcome
            raise TransientError("Search input not available after recovery.")

        await session.type_text(box, identifier)
        url_before = await session.current_url()
        await session.press_enter(box)

        # Enter does not always submit; resubmit once if nothing navigated
        await asyncio.sleep(self.resubmit_after)
        if await session.current_url() == url_before:
            await self._resubmit(session, box)

        async def _tick() -> Optional[Outcome]:
            return await self.detect(session)

        outcome = await poll_until(_tick, self.timeout, self.poll_interval)
        if outcome is None:
            logger.warning(f"No result signal for {identifier} within {self.timeout}s, treating as no products")
            return Outcome.NO_PRODUCTS_FOUND
        if outcome is Outcome.OPENED:
            return await self._open_product(session)
        return outcome

    async def detect(self, session: BrowserSession) -> Optional[Outcome]:
        """One poll tick: the highest-precedence signal present, or None."""
        if await session.find_visible(locators.LOGIN_EMAIL) is not None:
            return Outcome.LOGIN_REQUIRED

        title, url, source = await self._page_text(session)
        if is_maintenance_page(title, url, source):
            return Outcome.MAINTENANCE
        if is_blocked_page(title, url, source):
            return Outcome.BLOCKED

        for banner in locators.NO_PRODUCTS_BANNERS:
            if await session.find_visible(banner) is not None:
                return Outcome.NO_PRODUCTS_FOUND

        if await session.find_all(locators.RESULT_LINK):
            return Outcome.OPENED
        if await session.find_visible(locators.PRODUCT_NAME) is not None:
            return Outcome.OPENED
        if await session.find_visible(locators.ADD_TO_CART) is not None:
            return Outcome.OPENED
        return None

    async def _page_text(self, session: BrowserSession) -> tuple[str, str, str]:
        values = []
        for read in (session.title, session.current_url, session.page_source):
            try:
                values.append(await read() or "")
            except Exception as e:
                if is_session_invalid(e):
                    raise
                logger.debug(f"Page read failed: {e}")
                values.append("")
        return values[0], values[1], values[2]

    async def _blocking_outcome(self, session: BrowserSession) -> Optional[Outcome]:
        """Explain why the search box is missing, if the page says so."""
        if await session.find_visible(locators.LOGIN_EMAIL, 1) is not None:
            return Outcome.LOGIN_REQUIRED
        title, url, source = await self._page_text(session)
        if is_maintenance_page(title, url, source):
            return Outcome.MAINTENANCE
        if is_blocked_page(title, url, source):
            return Outcome.BLOCKED
        return None

    async def _find_search_box(self, session: BrowserSession, timeout: float) -> Optional[Element]:
        box = await session.find_visible(locators.SEARCH_BOX, timeout)
        if box is None:
            box = await session.find_visible(locators.SEARCH_BOX_ALT, timeout)
        return box

    async def _ensure_search_ready(self, session: BrowserSession) -> Optional[Element]:
        box = await self._find_search_box(session, 3)
        if box is not None:
            return box

        logger.debug("Search box not visible, reopening home page")
        try:
            await open_home(session, self.base_url)
        except Exception as e:
            if is_session_invalid(e):
                raise
            logger.debug(f"Reopening home page failed: {e}")
        return await self._find_search_box(session, 5)

    async def _resubmit(self, session: BrowserSession, box: Element) -> None:
        logger.debug("No navigation after Enter, forcing form submit")
        try:
            await session.submit_form(box)
        except Exception as e:
            if is_session_invalid(e):
                raise
            logger.debug(f"Form submit failed, pressing Enter again: {e}")
            try:
                await session.press_enter(box)
            except Exception as e2:
                if is_session_invalid(e2):
                    raise
                logger.debug(f"Second Enter failed: {e2}")

    async def _open_product(self, session: BrowserSession) -> Outcome:
        """Follow the first result link, or accept the product page already shown."""
        links = await session.find_all(locators.RESULT_LINK)
        if not links:
            await session.wait_until_loaded(self.load_timeout)
            await session.apply_zoom()
            return Outcome.OPENED

        for attempt in range(1, RESULT_CLICK_ATTEMPTS + 1):
            links = await session.find_all(locators.RESULT_LINK)
            if not links:
                # Result list re-rendered away between ticks
                raise TransientError(MSG_RESULTS_VANISHED)
            try:
                await session.click(links[0])
                await session.wait_until_loaded(30)
                await session.apply_zoom()
                return Outcome.OPENED
            except Exception as e:
                if is_session_invalid(e) or attempt == RESULT_CLICK_ATTEMPTS:
                    raise
                logger.debug(f"Result click attempt {attempt} failed: {e}")
        raise TransientError(MSG_RESULTS_VANISHED)

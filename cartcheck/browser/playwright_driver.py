"""Playwright implementation of the automation session."""
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Locator,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from cartcheck.browser.base import BrowserSession
from cartcheck.config import config
from cartcheck.errors import SessionInvalidError, is_session_invalid

logger = logging.getLogger(__name__)

PAGE_LOAD_TIMEOUT_MS = 60_000
ACTION_TIMEOUT_MS = 10_000

CHROMIUM_ARGS = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-notifications",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


class PlaywrightSession(BrowserSession):
    """A dedicated Playwright instance, browser and page."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        zoom: float = 1.0,
    ):
        super().__init__()
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self.page = page
        self.zoom = zoom

    def _ensure_open(self) -> None:
        if self.page.is_closed():
            raise SessionInvalidError("Browser page has been closed")

    async def navigate(self, url: str) -> None:
        self._ensure_open()
        await self.page.goto(url, wait_until="domcontentloaded", timeout=PAGE_LOAD_TIMEOUT_MS)

    async def wait_until_loaded(self, timeout: float) -> None:
        await self.page.wait_for_load_state("load", timeout=timeout * 1000)

    async def find_visible(self, locator: str, timeout: float = 0) -> Optional[Locator]:
        self._ensure_open()
        element = self.page.locator(locator).first
        if timeout <= 0:
            # wait_for(timeout=0) would wait forever
            return element if await element.is_visible() else None
        try:
            await element.wait_for(state="visible", timeout=timeout * 1000)
            return element
        except PlaywrightTimeoutError:
            return None

    async def find_all(self, locator: str) -> list[Locator]:
        self._ensure_open()
        return await self.page.locator(locator).all()

    async def click(self, element: Locator) -> None:
        await element.scroll_into_view_if_needed(timeout=ACTION_TIMEOUT_MS)
        try:
            await element.click(timeout=ACTION_TIMEOUT_MS)
        except PlaywrightError as e:
            if is_session_invalid(e):
                raise
            # Overlay intercepting the click: fall back to a DOM click
            logger.debug(f"Native click failed, using DOM click: {e}")
            await element.evaluate("el => el.click()")

    async def type_text(self, element: Locator, text: str) -> None:
        await element.scroll_into_view_if_needed(timeout=ACTION_TIMEOUT_MS)
        await element.fill(text, timeout=ACTION_TIMEOUT_MS)

    async def press_enter(self, element: Locator) -> None:
        await element.press("Enter", timeout=ACTION_TIMEOUT_MS)

    async def submit_form(self, element: Locator) -> None:
        await element.evaluate("el => el.form && el.form.submit()")

    async def read_text(self, element: Locator) -> str:
        return await element.inner_text(timeout=ACTION_TIMEOUT_MS)

    async def inner_html(self, element: Locator) -> str:
        return await element.inner_html(timeout=ACTION_TIMEOUT_MS)

    async def get_attribute(self, element: Locator, name: str) -> Optional[str]:
        return await element.get_attribute(name, timeout=ACTION_TIMEOUT_MS)

    async def is_enabled(self, element: Locator) -> bool:
        return await element.is_enabled(timeout=ACTION_TIMEOUT_MS)

    async def current_url(self) -> str:
        self._ensure_open()
        return self.page.url

    async def title(self) -> str:
        self._ensure_open()
        return await self.page.title()

    async def page_source(self) -> str:
        self._ensure_open()
        return await self.page.content()

    async def reload(self) -> None:
        self._ensure_open()
        await self.page.reload(wait_until="domcontentloaded", timeout=PAGE_LOAD_TIMEOUT_MS)

    async def apply_zoom(self) -> None:
        try:
            await self.page.evaluate(
                f"document.documentElement.style.zoom = '{int(self.zoom * 100)}%'"
            )
        except PlaywrightError as e:
            if is_session_invalid(e):
                raise
            logger.debug(f"Zoom not applied: {e}")

    async def capture_snapshot(self, path: Path) -> Optional[Path]:
        await self.page.screenshot(path=str(path))
        return path

    async def close(self) -> None:
        for closer in (self._context.close, self._browser.close, self._playwright.stop):
            try:
                await closer()
            except Exception as e:
                logger.debug(f"Error while closing browser session: {e}")


class PlaywrightDriver:
    """Opens Chromium sessions with stable defaults for long runs."""

    def __init__(
        self,
        headless: bool | None = None,
        zoom: float | None = None,
        width: int = 1920,
        height: int = 1080,
    ):
        self.headless = config.HEADLESS if headless is None else headless
        self.zoom = config.WINDOW_ZOOM if zoom is None else zoom
        self.width = width
        self.height = height

    async def open_session(self) -> PlaywrightSession:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=CHROMIUM_ARGS + [f"--force-device-scale-factor={self.zoom}"],
            )
            context = await browser.new_context(
                viewport={"width": self.width, "height": self.height},
            )
            context.set_default_navigation_timeout(PAGE_LOAD_TIMEOUT_MS)
            context.set_default_timeout(30_000)
            page = await context.new_page()
        except Exception:
            await playwright.stop()
            raise

        logger.debug(f"Opened browser session (headless={self.headless})")
        return PlaywrightSession(playwright, browser, context, page, zoom=self.zoom)

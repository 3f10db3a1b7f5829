"""Storefront login flow."""
import logging

from cartcheck.browser.base import BrowserSession
from cartcheck.errors import AuthenticationError, is_session_invalid
from cartcheck.site import locators

logger = logging.getLogger(__name__)

PAGE_LOAD_TIMEOUT = 30


async def open_home(session: BrowserSession, base_url: str) -> None:
    """Open the storefront and dismiss the welcome popup if present."""
    await session.navigate(base_url)
    await session.wait_until_loaded(PAGE_LOAD_TIMEOUT)
    await session.apply_zoom()
    await dismiss_welcome_popup(session)


async def dismiss_welcome_popup(session: BrowserSession, timeout: float = 5) -> None:
    if await session.find_visible(locators.WELCOME_POPUP, timeout) is None:
        return
    accept = await session.find_visible(locators.ACCEPT_ALL, 10)
    if accept is not None:
        await session.click(accept)
        await session.wait_until_loaded(15)
        await session.apply_zoom()


async def _click(session: BrowserSession, locator: str, timeout: float) -> None:
    element = await session.find_visible(locator, timeout)
    if element is None:
        raise AuthenticationError(f"Login element not visible: {locator}")
    await session.click(element)


async def _type(session: BrowserSession, locator: str, value: str, timeout: float) -> None:
    element = await session.find_visible(locator, timeout)
    if element is None:
        raise AuthenticationError(f"Login field not visible: {locator}")
    await session.type_text(element, value)


async def login(session: BrowserSession, base_url: str, username: str, password: str) -> None:
    """
    Log in through the account menu.
    If the menu shows an existing login, log out first so the session is fresh.
    """
    await open_home(session, base_url)
    try:
        await _click(session, locators.ACCOUNT_ICON, 15)

        if await session.find_visible(locators.LOGIN_LINK, 5) is not None:
            await _click(session, locators.LOGIN_LINK, 10)
        elif await session.find_visible(locators.ALREADY_LOGGED_IN, 5) is not None:
            logger.info("Already logged in, logging out first")
            await _click(session, locators.LOGOUT_LINK, 10)
            await session.wait_until_loaded(15)
            await session.apply_zoom()
            await _click(session, locators.ACCOUNT_ICON, 10)
            await _click(session, locators.LOGIN_LINK, 10)
        else:
            raise AuthenticationError("Login menu not in expected state")

        await session.wait_until_loaded(15)
        await session.apply_zoom()

        await _type(session, locators.LOGIN_EMAIL, username, 20)
        await _type(session, locators.LOGIN_PASSWORD, password, 20)
        await _click(session, locators.LOGIN_SUBMIT, 20)

        await session.wait_until_loaded(20)
        await session.apply_zoom()
    except AuthenticationError:
        raise
    except Exception as e:
        if is_session_invalid(e):
            raise
        raise AuthenticationError(f"Login failed: {e}") from e

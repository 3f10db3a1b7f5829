"""Session lifecycle: open, authenticate, restart and close automation sessions."""
import logging
from typing import Awaitable, Callable, Optional
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from cartcheck.browser.base import BrowserDriver, BrowserSession
from cartcheck.config import config
from cartcheck.errors import (
    AuthenticationError,
    SessionSetupError,
    is_network_like,
    is_session_invalid,
)
from cartcheck.models import SessionState
from cartcheck.site.login_page import login
from cartcheck.store.snapshots import SnapshotService

logger = logging.getLogger(__name__)

LoginFunc = Callable[[BrowserSession, str, str, str], Awaitable[None]]


class SessionSlot:
    """The live session of one batch. A restart swaps it in place, so cleanup always closes the current one."""

    def __init__(self, session: Optional[BrowserSession] = None):
        self.session = session


class SessionManager:
    """Owns the open -> authenticate -> restart -> close cycle for batch sessions."""

    def __init__(
        self,
        driver: BrowserDriver,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        login_func: LoginFunc = login,
        snapshots: Optional[SnapshotService] = None,
    ):
        self.driver = driver
        self.base_url = base_url or config.BASE_URL
        self.username = username if username is not None else config.USERNAME
        self.password = password if password is not None else config.PASSWORD
        self.login_func = login_func
        self.snapshots = snapshots
        self.opened = 0
        self.restarts = 0

    async def open(self) -> BrowserSession:
        """Open a new session and log in. Raises SessionSetupError on failure."""
        try:
            session = await self._open_authenticated()
        except SessionSetupError:
            raise
        except Exception as e:
            raise SessionSetupError(f"Could not open an authenticated session: {e}") from e
        self.opened += 1
        return session

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(is_network_like),
        reraise=True,
    )
    async def _open_authenticated(self) -> BrowserSession:
        session = await self.driver.open_session()
        session.state = SessionState.CREATED
        try:
            await self.authenticate(session)
        except BaseException:
            await self.close(session)
            raise
        return session

    async def authenticate(self, session: BrowserSession) -> None:
        """Run the login flow on ``session``."""
        if not self.username or not self.password:
            raise AuthenticationError("USERNAME/PASSWORD must be provided")

        logger.info(f"Logging in as {self.username}...")
        try:
            await self.login_func(session, self.base_url, self.username, self.password)
        except Exception as e:
            if is_session_invalid(e):
                session.state = SessionState.INVALID
                raise
            logger.error(f"Login failed: {e}")
            if self.snapshots:
                await self.snapshots.capture(session, "LOGIN_FAIL")
            raise
        session.state = SessionState.AUTHENTICATED
        logger.info("Login completed")

    async def reauthenticate(self, session: BrowserSession) -> None:
        """Log in again on the same session after a login wall appeared."""
        logger.warning("Session expired, re-authenticating...")
        await self.authenticate(session)

    async def restart(self, session: Optional[BrowserSession]) -> BrowserSession:
        """Discard ``session`` and return a freshly authenticated one."""
        if session is not None:
            session.state = SessionState.INVALID
            await self.close(session)
        self.restarts += 1
        logger.warning("Restarting browser session")
        return await self.open()

    async def restart_slot(self, slot: SessionSlot) -> BrowserSession:
        """Restart the slot's session and store the replacement in the slot."""
        slot.session = await self.restart(slot.session)
        return slot.session

    async def close(self, session: Optional[BrowserSession]) -> None:
        """Close a session. Safe to call more than once."""
        if session is None or session.state == SessionState.CLOSED:
            return
        try:
            await session.close()
        except Exception as e:
            logger.debug(f"Error closing session: {e}")
        session.state = SessionState.CLOSED

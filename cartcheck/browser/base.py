"""Automation session interface consumed by the core.

Everything page-related goes through ``BrowserSession``. Locators are opaque
strings understood by the concrete driver; elements are opaque handles that
are only ever passed back to the same session.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Protocol

from cartcheck.models import SessionState

Element = Any


class BrowserSession(ABC):
    """One browsing context, driven by exactly one batch worker at a time."""

    def __init__(self) -> None:
        self.state = SessionState.CREATED

    @abstractmethod
    async def navigate(self, url: str) -> None: ...

    @abstractmethod
    async def wait_until_loaded(self, timeout: float) -> None: ...

    @abstractmethod
    async def find_visible(self, locator: str, timeout: float = 0) -> Optional[Element]:
        """Return the first visible match within ``timeout`` seconds, else None."""

    @abstractmethod
    async def find_all(self, locator: str) -> list[Element]: ...

    @abstractmethod
    async def click(self, element: Element) -> None: ...

    @abstractmethod
    async def type_text(self, element: Element, text: str) -> None:
        """Clear the field and type ``text``."""

    @abstractmethod
    async def press_enter(self, element: Element) -> None: ...

    @abstractmethod
    async def submit_form(self, element: Element) -> None:
        """Submit the form owning ``element`` directly."""

    @abstractmethod
    async def read_text(self, element: Element) -> str: ...

    @abstractmethod
    async def inner_html(self, element: Element) -> str: ...

    @abstractmethod
    async def get_attribute(self, element: Element, name: str) -> Optional[str]: ...

    @abstractmethod
    async def is_enabled(self, element: Element) -> bool: ...

    @abstractmethod
    async def current_url(self) -> str: ...

    @abstractmethod
    async def title(self) -> str: ...

    @abstractmethod
    async def page_source(self) -> str: ...

    @abstractmethod
    async def reload(self) -> None: ...

    @abstractmethod
    async def apply_zoom(self) -> None: ...

    @abstractmethod
    async def capture_snapshot(self, path: Path) -> Optional[Path]: ...

    @abstractmethod
    async def close(self) -> None: ...


class BrowserDriver(Protocol):
    """Factory for fresh, unauthenticated sessions."""

    async def open_session(self) -> BrowserSession: ...

"""Browser transport contract consumed by browser.* steps.

The engine never drives a browser itself. A host process (the server that
talks to the browser extension) supplies an object implementing this
interface; every call is a network round trip and may raise if the
extension disconnects mid-call.
"""

from abc import ABC, abstractmethod
from typing import Optional


class BrowserClient(ABC):
    """Remote browser capabilities."""

    @abstractmethod
    async def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        ...

    @abstractmethod
    async def click(self, selector: str) -> None:
        ...

    @abstractmethod
    async def type_text(self, selector: str, text: str, submit: bool) -> None:
        ...

    @abstractmethod
    async def scroll(self, direction: str, amount: int) -> None:
        ...

    @abstractmethod
    async def extract(self, selector: str) -> str:
        ...

    @abstractmethod
    async def extract_all(self, selector: str, separator: str) -> str:
        ...

    @abstractmethod
    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        ...

    @abstractmethod
    async def exists(self, selector: str, timeout_ms: int) -> bool:
        ...

    @abstractmethod
    async def hover(self, selector: str) -> None:
        ...

    @abstractmethod
    async def press_key(self, key: str, selector: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def focus(self) -> None:
        """Bring the target tab/window to the foreground."""
        ...

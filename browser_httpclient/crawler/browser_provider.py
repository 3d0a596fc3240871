"""
Browser binding abstraction layer for browser-httpclient.

Describes what the navigation engine needs from a browser-control binding
(launch, first page, request interception, request/response events,
navigation, selector waits, evaluation, cookies, close). The engine only
talks to these protocols; PlaywrightBinding is the shipped implementation
and tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from browser_httpclient.crawler.devices import Device
from browser_httpclient.utils.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# Data Classes
# ============================================================================


@dataclass
class Cookie:
    """
    Browser cookie data structure.

    Attributes:
        name: Cookie name.
        value: Cookie value.
        domain: Cookie domain.
        path: Cookie path.
        url: URL the cookie belongs to (alternative to domain/path).
        expires: Expiration timestamp.
        http_only: HTTP only flag.
        secure: Secure flag.
        same_site: SameSite attribute.
    """

    name: str
    value: str
    domain: str = ""
    path: str = "/"
    url: str | None = None
    expires: float | None = None
    http_only: bool = False
    secure: bool = False
    same_site: str = "Lax"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for Playwright compatibility."""
        result: dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": self.same_site,
        }
        if self.url and not self.domain:
            result["url"] = self.url
        else:
            result["domain"] = self.domain
            result["path"] = self.path
        if self.expires is not None:
            result["expires"] = self.expires
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cookie":
        """Create from dictionary (camelCase or snake_case keys)."""
        return cls(
            name=data.get("name", ""),
            value=data.get("value", ""),
            domain=data.get("domain", ""),
            path=data.get("path", "/"),
            url=data.get("url"),
            expires=data.get("expires"),
            http_only=data.get("httpOnly", data.get("http_only", False)),
            secure=data.get("secure", False),
            same_site=data.get("sameSite", data.get("same_site", "Lax")),
        )


# ============================================================================
# Binding Protocols
# ============================================================================


class RequestHandle(Protocol):
    """Read-only view of a browser request."""

    url: str
    method: str
    headers: dict[str, str]
    resource_type: str
    post_data: str | None


@runtime_checkable
class InterceptedRequest(Protocol):
    """A request paused by interception, waiting for a decision."""

    url: str
    method: str
    headers: dict[str, str]
    resource_type: str
    post_data: str | None

    async def abort(self) -> None:
        """Abort the request."""
        ...

    async def continue_(self, headers: dict[str, str] | None = None) -> None:
        """Forward the request, optionally with replaced headers."""
        ...


class ResponseHandle(Protocol):
    """Read-only view of a browser response."""

    url: str
    request_url: str
    status: int
    status_text: str
    headers: dict[str, str]


InterceptHandler = Callable[[InterceptedRequest], Awaitable[None]]
RequestListener = Callable[[RequestHandle], None]
ResponseListener = Callable[[ResponseHandle], None]


@runtime_checkable
class PageHandle(Protocol):
    """
    Protocol for a browser page (tab).

    All timeouts are in seconds.
    """

    @property
    def url(self) -> str:
        """URL the page currently shows."""
        ...

    async def route_requests(self, handler: InterceptHandler) -> None:
        """Enable interception; every request is passed to handler."""
        ...

    def on_request(self, listener: RequestListener) -> None:
        """Register a listener called for every request, in arrival order."""
        ...

    def on_response(self, listener: ResponseListener) -> None:
        """Register a listener called for every response, in arrival order."""
        ...

    async def emulate(self, device: Device) -> None:
        """Apply user agent and viewport."""
        ...

    async def set_cookies(self, cookies: list[Cookie]) -> None:
        """Seed cookies before navigation."""
        ...

    async def add_init_script(self, script: str) -> None:
        """Evaluate script in every new document before page scripts run."""
        ...

    async def goto(
        self,
        url: str,
        *,
        timeout: float,
        wait_until: str,
        referer: str | None = None,
    ) -> None:
        """Navigate and wait for the given load condition."""
        ...

    async def wait_for_selector(self, selector: str, *, timeout: float) -> None:
        """Wait until selector is attached to the document."""
        ...

    async def click(self, selector: str, *, timeout: float) -> None:
        """Click the element matching selector."""
        ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate a JavaScript expression or function in the page."""
        ...

    async def content(self) -> str:
        """Serialized HTML of the rendered document."""
        ...

    async def cookies(self) -> list[Cookie]:
        """Cookies visible to the page."""
        ...


@runtime_checkable
class BrowserBinding(Protocol):
    """
    Protocol for browser-control bindings.

    One binding instance serves exactly one navigation.
    """

    @property
    def name(self) -> str:
        """Unique name of the binding."""
        ...

    async def launch(self) -> None:
        """Start the browser process."""
        ...

    async def first_page(self) -> PageHandle:
        """The first tab of the launched browser."""
        ...

    async def close(self) -> None:
        """Close the browser and release every resource."""
        ...


class BaseBrowserBinding(ABC):
    """
    Abstract base class for browser bindings.

    Provides the closed-state bookkeeping shared by implementations.
    """

    def __init__(self, binding_name: str):
        self._name = binding_name
        self._is_closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    @abstractmethod
    async def launch(self) -> None:
        """Start the browser process."""

    @abstractmethod
    async def first_page(self) -> PageHandle:
        """The first tab of the launched browser."""

    async def close(self) -> None:
        """Mark the binding closed."""
        self._is_closed = True
        logger.debug("Browser binding closed", binding=self._name)

    def _check_closed(self) -> None:
        """Raise error if binding is closed."""
        if self._is_closed:
            raise RuntimeError(f"Binding '{self._name}' is closed")


BindingFactory = Callable[[], BrowserBinding]

"""
Pytest fixtures and configuration for browser-httpclient tests.

=============================================================================
Test Classification
=============================================================================

- @pytest.mark.unit: Single class/function, no browser
  - DEFAULT: Tests without marker are auto-classified as unit

- @pytest.mark.integration: Several components wired together over the
  in-memory fake binding (no browser process)

- @pytest.mark.e2e: Real Playwright browser and network
  - DEFAULT EXCLUDED: Must use `pytest -m e2e` to run

=============================================================================
Mock Strategy
=============================================================================

- Browser: FakeBinding / FakePage replay scripted request/response events
  through the same protocol the Playwright binding implements
- Configuration: Settings() defaults, config dir pointed at ./config
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

# Set test environment before importing anything else
os.environ["BROWSER_HTTPCLIENT_CONFIG_DIR"] = str(Path(__file__).parent.parent / "config")
os.environ["BROWSER_HTTPCLIENT_GENERAL__LOG_LEVEL"] = "DEBUG"

from browser_httpclient.crawler.browser_provider import BaseBrowserBinding, Cookie  # noqa: E402
from browser_httpclient.crawler.devices import Device  # noqa: E402
from browser_httpclient.utils.config import Settings, get_settings  # noqa: E402

# =============================================================================
# Pytest Hooks for Test Classification
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line("markers", "unit: Unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "integration: Components wired together over the fake binding"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests driving a real browser (excluded by default)"
    )


def pytest_collection_modifyitems(config, items):
    """
    Auto-apply markers and skip e2e tests unless selected.

    Tests without explicit markers are assumed to be unit tests.
    """
    markexpr = config.getoption("-m", default="")
    skip_e2e = pytest.mark.skip(reason="E2E tests need a browser. Run with: pytest -m e2e")

    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration", "e2e") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)

        if "e2e" not in markexpr and any(m.name == "e2e" for m in item.iter_markers()):
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Each test sees settings freshly loaded from the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of config files."""
    return Settings()


# =============================================================================
# Fake browser binding
# =============================================================================


@dataclass
class Scripted:
    """One exchange the fake page replays during goto()."""

    url: str
    resource_type: str = "document"
    status: int | None = 200
    status_text: str = "OK"
    headers: dict[str, str] = field(default_factory=lambda: {"content-type": "text/html"})
    method: str = "GET"
    request_headers: dict[str, str] = field(default_factory=dict)
    post_data: str | None = None
    routed: bool = True  # False for redirect hops, which skip interception


@dataclass
class FakeRequest:
    """Intercepted request handed to the route handler."""

    url: str
    method: str
    headers: dict[str, str]
    resource_type: str
    post_data: str | None = None
    aborted: bool = False
    continued: bool = False
    continued_headers: dict[str, str] | None = None

    async def abort(self) -> None:
        self.aborted = True

    async def continue_(self, headers: dict[str, str] | None = None) -> None:
        self.continued = True
        self.continued_headers = headers


@dataclass
class FakeResponse:
    url: str
    request_url: str
    status: int
    status_text: str
    headers: dict[str, str]


class FakePage:
    """
    In-memory PageHandle.

    goto() replays the scripted exchanges in order: request listeners first,
    then the route handler (unless the exchange is not routed), then response
    listeners unless the request was aborted or the exchange has no status. Failures are injected per call.
    """

    def __init__(
        self,
        exchanges: list[Scripted] | None = None,
        *,
        final_url: str | None = None,
        content: str = "<html><body>Hello</body></html>",
        goto_error: BaseException | None = None,
        setup_error: BaseException | None = None,
        content_errors: list[BaseException] | None = None,
        selector_errors: dict[str, BaseException] | None = None,
        browser_cookies: list[Cookie] | None = None,
    ) -> None:
        self.exchanges = exchanges or []
        self.final_url = final_url
        self.document = content
        self.goto_error = goto_error
        self.setup_error = setup_error
        self.content_errors = list(content_errors or [])
        self.selector_errors = selector_errors or {}
        self.browser_cookies = browser_cookies or []

        self._url = "about:blank"
        self._route_handler: Callable[[Any], Any] | None = None
        self._request_listeners: list[Callable[[Any], None]] = []
        self._response_listeners: list[Callable[[Any], None]] = []

        self.calls: list[str] = []
        self.intercepted: list[FakeRequest] = []
        self.goto_kwargs: dict[str, Any] = {}
        self.emulated: Device | None = None
        self.seeded_cookies: list[Cookie] = []
        self.init_scripts: list[str] = []
        self.clicked: list[str] = []
        self.evaluated: list[str] = []

    @property
    def url(self) -> str:
        return self._url

    async def route_requests(self, handler) -> None:
        self.calls.append("route_requests")
        self._route_handler = handler

    def on_request(self, listener) -> None:
        self.calls.append("on_request")
        self._request_listeners.append(listener)

    def on_response(self, listener) -> None:
        self.calls.append("on_response")
        self._response_listeners.append(listener)

    async def emulate(self, device: Device) -> None:
        self.calls.append("emulate")
        if self.setup_error is not None:
            raise self.setup_error
        self.emulated = device

    async def set_cookies(self, cookies: list[Cookie]) -> None:
        self.calls.append("set_cookies")
        self.seeded_cookies.extend(cookies)

    async def add_init_script(self, script: str) -> None:
        self.calls.append("add_init_script")
        self.init_scripts.append(script)

    async def goto(self, url, *, timeout, wait_until, referer=None) -> None:
        self.calls.append("goto")
        self.goto_kwargs = {
            "url": url,
            "timeout": timeout,
            "wait_until": wait_until,
            "referer": referer,
        }
        for scripted in self.exchanges:
            request = FakeRequest(
                url=scripted.url,
                method=scripted.method,
                headers=dict(scripted.request_headers),
                resource_type=scripted.resource_type,
                post_data=scripted.post_data,
            )
            for listener in self._request_listeners:
                listener(request)
            if self._route_handler is not None and scripted.routed:
                await self._route_handler(request)
            self.intercepted.append(request)
            if request.aborted or scripted.status is None:
                continue
            response = FakeResponse(
                url=scripted.url,
                request_url=scripted.url,
                status=scripted.status,
                status_text=scripted.status_text,
                headers=dict(scripted.headers),
            )
            for listener in self._response_listeners:
                listener(response)

        if self.goto_error is not None:
            raise self.goto_error
        self._url = self.final_url or url

    async def wait_for_selector(self, selector: str, *, timeout: float) -> None:
        self.calls.append(f"wait_for_selector:{selector}")
        error = self.selector_errors.get(selector)
        if error is not None:
            raise error

    async def click(self, selector: str, *, timeout: float) -> None:
        self.calls.append(f"click:{selector}")
        self.clicked.append(selector)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append("evaluate")
        self.evaluated.append(expression)
        return None

    async def content(self) -> str:
        self.calls.append("content")
        if self.content_errors:
            raise self.content_errors.pop(0)
        return self.document

    async def cookies(self) -> list[Cookie]:
        self.calls.append("cookies")
        return list(self.browser_cookies)


class FakeBinding(BaseBrowserBinding):
    """BrowserBinding serving one FakePage; counts close() calls."""

    def __init__(self, page: FakePage, *, launch_error: BaseException | None = None):
        super().__init__("fake")
        self.page = page
        self.launch_error = launch_error
        self.launched = False
        self.close_calls = 0

    async def launch(self) -> None:
        self._check_closed()
        if self.launch_error is not None:
            raise self.launch_error
        self.launched = True

    async def first_page(self) -> FakePage:
        self._check_closed()
        return self.page

    async def close(self) -> None:
        self.close_calls += 1
        await super().close()


@pytest.fixture
def make_binding():
    """Factory for FakeBinding; every created binding is kept in .created."""
    created: list[FakeBinding] = []

    def _make(*exchanges: Scripted, launch_error: BaseException | None = None, **page_kwargs):
        binding = FakeBinding(FakePage(list(exchanges), **page_kwargs), launch_error=launch_error)
        created.append(binding)
        return binding

    _make.created = created  # type: ignore[attr-defined]
    return _make

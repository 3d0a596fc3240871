"""
Playwright-based browser binding for browser-httpclient.

Implements the BrowserBinding / PageHandle protocols on top of the Playwright
async API. One PlaywrightBinding owns one browser process, one context and
one page, and serves exactly one navigation.

Device emulation on Chromium goes through a CDP session so the user agent and
metrics change on the live page; other engines fall back to viewport resize
plus a User-Agent header.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from playwright.async_api import (
        Browser,
        BrowserContext,
        Page,
        Playwright,
        Request,
        Response,
        Route,
    )
    from playwright.async_api._generated import SetCookieParam

from browser_httpclient.crawler.browser_provider import (
    BaseBrowserBinding,
    Cookie,
    InterceptHandler,
    RequestListener,
    ResponseListener,
)
from browser_httpclient.crawler.devices import Device
from browser_httpclient.utils.config import LaunchConfig, get_settings
from browser_httpclient.utils.logging import get_logger

logger = get_logger(__name__)


def _ms(seconds: float) -> float:
    return seconds * 1000


# ============================================================================
# Request / response views
# ============================================================================


@dataclass
class RequestView:
    """Snapshot of a Playwright request."""

    url: str
    method: str
    headers: dict[str, str]
    resource_type: str
    post_data: str | None = None

    @classmethod
    def from_request(cls, request: "Request") -> "RequestView":
        try:
            post_data = request.post_data
        except (UnicodeDecodeError, ValueError):
            # Binary bodies are not representable as text
            post_data = None
        return cls(
            url=request.url,
            method=request.method,
            headers=dict(request.headers),
            resource_type=request.resource_type,
            post_data=post_data,
        )


@dataclass
class ResponseView:
    """Snapshot of a Playwright response."""

    url: str
    request_url: str
    status: int
    status_text: str
    headers: dict[str, str]

    @classmethod
    def from_response(cls, response: "Response") -> "ResponseView":
        return cls(
            url=response.url,
            request_url=response.request.url,
            status=response.status,
            status_text=response.status_text,
            headers=dict(response.headers),
        )


class RoutedRequest(RequestView):
    """Intercepted request: a RequestView that can be aborted or continued."""

    def __init__(self, route: "Route", request: "Request") -> None:
        view = RequestView.from_request(request)
        super().__init__(
            url=view.url,
            method=view.method,
            headers=view.headers,
            resource_type=view.resource_type,
            post_data=view.post_data,
        )
        self._route = route

    async def abort(self) -> None:
        await self._route.abort()

    async def continue_(self, headers: dict[str, str] | None = None) -> None:
        if headers is None:
            await self._route.continue_()
        else:
            await self._route.continue_(headers=headers)


# ============================================================================
# Page adapter
# ============================================================================


class PlaywrightPage:
    """PageHandle implementation over a Playwright Page."""

    def __init__(self, page: "Page", browser_name: str) -> None:
        self._page = page
        self._browser_name = browser_name

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def raw(self) -> "Page":
        """The underlying Playwright page (for post-navigation callbacks)."""
        return self._page

    async def route_requests(self, handler: InterceptHandler) -> None:
        async def on_route(route: "Route", request: "Request") -> None:
            await handler(RoutedRequest(route, request))

        await self._page.route("**/*", on_route)

    def on_request(self, listener: RequestListener) -> None:
        self._page.on("request", lambda request: listener(RequestView.from_request(request)))

    def on_response(self, listener: ResponseListener) -> None:
        self._page.on("response", lambda response: listener(ResponseView.from_response(response)))

    async def emulate(self, device: Device) -> None:
        viewport = device.viewport
        await self._page.set_viewport_size({"width": viewport.width, "height": viewport.height})

        if self._browser_name != "chromium":
            await self._page.set_extra_http_headers({"user-agent": device.user_agent})
            return

        session = await self._page.context.new_cdp_session(self._page)
        await session.send("Network.setUserAgentOverride", {"userAgent": device.user_agent})
        await session.send(
            "Emulation.setDeviceMetricsOverride",
            {
                "width": viewport.width,
                "height": viewport.height,
                "deviceScaleFactor": viewport.device_scale_factor,
                "mobile": viewport.is_mobile,
                "screenOrientation": (
                    {"angle": 90, "type": "landscapePrimary"}
                    if viewport.is_landscape
                    else {"angle": 0, "type": "portraitPrimary"}
                ),
            },
        )
        await session.send(
            "Emulation.setTouchEmulationEnabled",
            {"enabled": viewport.has_touch},
        )

    async def set_cookies(self, cookies: list[Cookie]) -> None:
        cookie_dicts = cast("list[SetCookieParam]", [c.to_dict() for c in cookies])
        await self._page.context.add_cookies(cookie_dicts)

    async def add_init_script(self, script: str) -> None:
        await self._page.add_init_script(script=script)

    async def goto(
        self,
        url: str,
        *,
        timeout: float,
        wait_until: str,
        referer: str | None = None,
    ) -> None:
        await self._page.goto(
            url,
            timeout=_ms(timeout),
            wait_until=cast(Any, wait_until),
            referer=referer,
        )

    async def wait_for_selector(self, selector: str, *, timeout: float) -> None:
        handle = await self._page.wait_for_selector(
            selector,
            timeout=_ms(timeout),
            state="attached",
        )
        if handle is None:
            raise LookupError(f"No node found for selector: {selector}")

    async def click(self, selector: str, *, timeout: float) -> None:
        await self._page.click(selector, timeout=_ms(timeout))

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self._page.evaluate(expression, arg)

    async def content(self) -> str:
        return await self._page.content()

    async def cookies(self) -> list[Cookie]:
        raw_cookies = await self._page.context.cookies()
        return [Cookie.from_dict(cast(dict[str, Any], c)) for c in raw_cookies]


# ============================================================================
# Binding
# ============================================================================


class PlaywrightBinding(BaseBrowserBinding):
    """
    Browser binding using Playwright.

    Example:
        binding = PlaywrightBinding()
        await binding.launch()
        page = await binding.first_page()
        ...
        await binding.close()
    """

    def __init__(self, launch_config: LaunchConfig | None = None) -> None:
        super().__init__("playwright")
        self._config = launch_config or get_settings().launch
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: PlaywrightPage | None = None

    async def _ensure_playwright(self) -> "Playwright":
        """Ensure Playwright is initialized."""
        if self._playwright is None:
            try:
                from playwright.async_api import async_playwright

                self._playwright = await async_playwright().start()
                logger.debug("Playwright initialized")
            except ImportError as e:
                raise RuntimeError("Playwright not installed") from e
        return self._playwright

    async def launch(self) -> None:
        self._check_closed()
        playwright = await self._ensure_playwright()
        config = self._config

        browser_type = getattr(playwright, config.browser, None)
        if browser_type is None:
            raise RuntimeError(f"Unknown browser engine: {config.browser}")

        launch_kwargs: dict[str, Any] = {
            "headless": config.headless,
            "slow_mo": config.slow_mo,
        }
        if config.executable_path:
            launch_kwargs["executable_path"] = config.executable_path
        if config.channel:
            launch_kwargs["channel"] = config.channel
        if config.browser == "chromium":
            launch_kwargs["args"] = config.chrome_args()
            launch_kwargs["ignore_default_args"] = config.ignore_default_args
        elif config.args:
            launch_kwargs["args"] = config.args

        self._browser = await browser_type.launch(**launch_kwargs)

        if config.window_width and config.window_height:
            self._context = await self._browser.new_context(
                viewport={"width": config.window_width, "height": config.window_height},
            )
        else:
            self._context = await self._browser.new_context(no_viewport=True)

        logger.info(
            "Browser launched",
            browser=config.browser,
            headless=config.headless,
            channel=config.channel,
        )

    async def first_page(self) -> PlaywrightPage:
        self._check_closed()
        if self._context is None:
            raise RuntimeError("Browser not launched")
        if self._page is None:
            pages = self._context.pages
            page = pages[0] if pages else await self._context.new_page()
            self._page = PlaywrightPage(page, self._config.browser)
        return self._page

    async def close(self) -> None:
        """Close context, browser and Playwright; each step best-effort."""
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug("Context close failed", error=str(e))
            self._context = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("Browser close failed", error=str(e))
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed", error=str(e))
            self._playwright = None

        self._page = None
        await super().close()

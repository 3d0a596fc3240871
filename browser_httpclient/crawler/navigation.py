"""
Browser navigation orchestrator.

Drives one navigation through a fixed sequence of states:

    launch -> configure -> setup -> navigate -> post-navigation -> extract
    -> teardown -> synthesize

Each state can end the navigation early with a SoftError; whatever the ledger
holds at that point is still used to build the Answer. Teardown runs on every
exit path. The only exception raised to the caller is NavigationUsageError,
detected before a browser is launched.

Example:
    async with BrowserHttpClient() as client:
        answer = await client.ask("https://example.com", block_resources=["image"])
        print(answer.status, len(answer.content))
"""

import asyncio
import inspect
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from browser_httpclient.crawler.answer import (
    Answer,
    NavigationOutcome,
    new_answer,
    synthesize,
)
from browser_httpclient.crawler.browser_provider import (
    BindingFactory,
    BrowserBinding,
    Cookie,
    InterceptedRequest,
    PageHandle,
    RequestHandle,
    ResponseHandle,
)
from browser_httpclient.crawler.devices import DEFAULT_DEVICES, Device, resolve_device
from browser_httpclient.crawler.document_selector import select
from browser_httpclient.crawler.errors import (
    FailureKind,
    NavigationStage,
    NavigationUsageError,
    SoftError,
    classify_failure,
    extraction_failure,
)
from browser_httpclient.crawler.exchange_ledger import (
    ExchangeFeed,
    ExchangeLedger,
    RequestObserved,
    ResponseObserved,
)
from browser_httpclient.crawler.options import NavigationOptions, StorageSeed
from browser_httpclient.crawler.playwright_provider import PlaywrightBinding
from browser_httpclient.crawler.resource_policy import (
    Abort,
    decide,
    normalize_block_list,
)
from browser_httpclient.utils.config import Settings, get_settings
from browser_httpclient.utils.logging import (
    LogContext,
    get_logger,
    new_navigation_id,
)

logger = get_logger(__name__)

SCROLL_TO_BOTTOM = "() => window.scrollTo(0, document.body.scrollHeight)"


def normalize_url(url: Any) -> str:
    """Validate and normalize the requested URL.

    A missing scheme defaults to http; scheme and host are lower-cased.

    Raises:
        NavigationUsageError: url is missing, empty or not a string.
    """
    if url is None:
        raise NavigationUsageError("A URL is required")
    if not isinstance(url, str):
        raise NavigationUsageError(
            f"URL must be a string, got {type(url).__name__}",
            details={"type": type(url).__name__},
        )
    url = url.strip()
    if not url:
        raise NavigationUsageError("A URL is required")

    if "://" not in url:
        url = f"http://{url}"
    parts = urlsplit(url)
    if not parts.netloc and parts.scheme not in ("about", "data", "file"):
        raise NavigationUsageError(f"URL has no host: {url}", details={"url": url})
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment)
    )


def storage_script(seed: StorageSeed) -> str:
    """Init script writing local/session storage items before page scripts run."""
    local = json.dumps(seed.local)
    session = json.dumps(seed.session)
    return (
        "(() => {\n"
        f"  const local = {local};\n"
        f"  const session = {session};\n"
        "  for (const [k, v] of Object.entries(local)) window.localStorage.setItem(k, v);\n"
        "  for (const [k, v] of Object.entries(session)) window.sessionStorage.setItem(k, v);\n"
        "})();"
    )


class Navigation:
    """One navigation: owns the binding, the ledger and the answer skeleton.

    Not reusable; BrowserHttpClient creates one per ask().
    """

    def __init__(
        self,
        request_url: str,
        options: NavigationOptions,
        binding: BrowserBinding,
        *,
        device: Device | None = None,
        cookies: list[Cookie] | None = None,
        settings: Settings,
    ) -> None:
        self.request_url = request_url
        self.options = options
        self.binding = binding
        self.device = device
        self.cookies = cookies or []
        self._settings = settings

        self.ledger = ExchangeLedger()
        self.feed = ExchangeFeed(
            self.ledger,
            maxsize=settings.navigation.event_queue_size,
            trace=options.debug,
        )
        self.answer = new_answer(request_url)
        self.soft_errors: list[SoftError] = []
        self._block_list = normalize_block_list(options.block_resources)
        # Headers handed to continue_(), keyed by intercepted URL
        self._forwarded: dict[str, dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _intercept(self, request: InterceptedRequest) -> None:
        decision = decide(
            request.resource_type,
            self._block_list,
            request.headers,
            self.options.extra_headers,
        )
        try:
            if isinstance(decision, Abort):
                await request.abort()
            elif self.options.extra_headers:
                await request.continue_(decision.headers)
                self._forwarded[request.url] = dict(decision.headers)
            else:
                await request.continue_()
        except Exception as e:
            # Page torn down while the request was paused
            logger.debug(
                "Interception decision not applied",
                url=request.url[:120],
                error=str(e),
            )

    def _on_request(self, request: RequestHandle) -> None:
        self.feed.publish(
            RequestObserved(
                url=request.url,
                method=request.method,
                headers=dict(request.headers),
                resource_type=request.resource_type,
                body=request.post_data,
            )
        )

    def _on_response(self, response: ResponseHandle) -> None:
        self.feed.publish(
            ResponseObserved(
                url=response.request_url,
                status=response.status,
                status_text=response.status_text,
                headers=dict(response.headers),
                response_url=response.url,
            )
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _record(self, error: SoftError) -> SoftError:
        self.soft_errors.append(error)
        logger.warning(
            "Navigation soft error",
            stage=error.stage.value,
            kind=error.kind.value,
            status=error.status,
            message=error.message[:200],
        )
        return error

    async def _launch(self) -> PageHandle | None:
        try:
            await self.binding.launch()
            return await self.binding.first_page()
        except Exception as e:
            self._record(
                SoftError(
                    kind=FailureKind.UNCLASSIFIED,
                    status=500,
                    message=f"Browser launch failed: {e}",
                    stage=NavigationStage.LAUNCH,
                )
            )
            return None

    async def _configure(self, page: PageHandle) -> bool:
        """Install interception and ledger listeners before navigating."""
        try:
            await page.route_requests(self._intercept)
            page.on_request(self._on_request)
            page.on_response(self._on_response)
        except Exception as e:
            self._record(
                classify_failure(e, NavigationStage.SETUP, prefix="Interception setup failed: ")
            )
            return False
        return True

    async def _setup(self, page: PageHandle) -> bool:
        """Device emulation, cookies, storage and init script."""
        try:
            if self.device is not None:
                await page.emulate(self.device)
            if self.cookies:
                await page.set_cookies(self.cookies)
            if self.options.storage is not None:
                await page.add_init_script(storage_script(self.options.storage))
            if self.options.init_script:
                await page.add_init_script(self.options.init_script)
        except Exception as e:
            self._record(classify_failure(e, NavigationStage.SETUP, prefix="Page setup failed: "))
            return False
        return True

    async def _navigate(self, page: PageHandle) -> NavigationOutcome:
        goto = self.options.goto
        try:
            await page.goto(
                self.request_url,
                timeout=goto.timeout,
                wait_until=goto.wait_until,
                referer=goto.referer,
            )
        except Exception as e:
            return NavigationOutcome.soft_error(
                self._record(classify_failure(e, NavigationStage.NAVIGATE))
            )
        return NavigationOutcome.success(page.url)

    async def _close_popups(self, page: PageHandle) -> None:
        timeout = self.options.popup_timeout
        for selector in self.options.close_popups:
            try:
                await page.wait_for_selector(selector, timeout=timeout)
                await page.click(selector, timeout=timeout)
                logger.debug("Popup closed", selector=selector)
            except Exception as e:
                self._record(
                    classify_failure(
                        e,
                        NavigationStage.POPUP,
                        prefix=f"Popup {selector!r} not closed: ",
                    )
                )

    async def _wait_selector(self, page: PageHandle) -> None:
        gate = self.options.wait_selector
        if gate is None:
            return
        timeout = gate.timeout
        if timeout is None:
            timeout = self._settings.navigation.selector_timeout
        try:
            await page.wait_for_selector(gate.selector, timeout=timeout)
        except Exception as e:
            self._record(
                classify_failure(
                    e,
                    NavigationStage.WAIT_SELECTOR,
                    prefix=f"Waiting for selector {gate.selector!r} failed: ",
                )
            )

    async def _run_callback(self, page: PageHandle) -> None:
        callback = self.options.post_navigation
        if callback is None:
            return
        try:
            result = callback(page)
            if inspect.isawaitable(result):
                result = await result
            self.answer.post_navigation_result = result
        except Exception as e:
            self._record(
                classify_failure(
                    e,
                    NavigationStage.CALLBACK,
                    prefix="Post-navigation callback failed: ",
                )
            )

    async def _read_content(self, page: PageHandle) -> str | None:
        """Read the document, retrying exactly once."""
        try:
            return await page.content()
        except Exception as first:
            logger.debug("Content read failed, retrying", error=str(first))
        try:
            return await page.content()
        except Exception as e:
            self._record(extraction_failure(e))
            return None

    async def _extract(self, page: PageHandle) -> str:
        content = await self._read_content(page)
        if content is not None and self.options.scroll:
            try:
                await page.evaluate(SCROLL_TO_BOTTOM)
                await asyncio.sleep(self.options.scroll_settle)
            except Exception as e:
                self._record(extraction_failure(e))
            else:
                content = await self._read_content(page) or content

        if self.options.capture_cookies:
            try:
                self.answer.cookies = await page.cookies()
            except Exception as e:
                self._record(
                    classify_failure(e, NavigationStage.EXTRACT, prefix="Cookie capture failed: ")
                )
        return content or ""

    async def _teardown(self) -> None:
        await self.feed.drain()
        # Redirect hops bypass interception and keep the headers the browser reported
        for url, headers in self._forwarded.items():
            self.ledger.record_forwarded_headers(url, headers)
        if self.feed.dropped:
            logger.warning("Exchange events dropped", dropped=self.feed.dropped)
        if not self.options.close_browser:
            logger.debug("Browser left open", binding=self.binding.name)
            return
        try:
            await self.binding.close()
        except Exception as e:
            logger.warning("Browser close failed", error=str(e))

    def _dump_ledger(self) -> None:
        for exchange in self.ledger.all():
            logger.info("Ledger exchange", **exchange.to_dict())

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> Answer:
        """Run the navigation and return the Answer (never raises on browser failures)."""
        outcome = NavigationOutcome()
        content = ""
        logger.info("Navigation started", url=self.request_url)

        self.feed.start()
        try:
            page = await self._launch()
            if page is not None and await self._configure(page) and await self._setup(page):
                outcome = await self._navigate(page)
                if outcome.ok:
                    await self._close_popups(page)
                    await self._wait_selector(page)
                    await self._run_callback(page)
                    content = await self._extract(page)
                    outcome = NavigationOutcome.success(page.url)
        finally:
            await self._teardown()

        if self.options.debug:
            self._dump_ledger()

        selected = select(self.ledger, outcome.final_url)
        if selected is None:
            logger.info("No document exchange correlated", url=self.request_url)

        answer = synthesize(
            self.answer,
            selected,
            content,
            outcome,
            self.soft_errors,
            referer=self.options.goto.referer,
        )
        logger.info(
            "Navigation finished",
            url=self.request_url,
            final_url=answer.final_url,
            status=answer.status,
            soft_errors=len(answer.soft_errors),
            content_length=len(answer.content),
            duration=answer.time.duration,
        )
        return answer


class BrowserHttpClient:
    """
    HTTP-client-shaped facade over browser navigations.

    Each ask() builds a fresh binding, ledger and answer, so concurrent calls
    never share state. Bindings left open with close_browser=False are
    released by close().

    Logging is left to the host application, e.g.
    ``configure_logging(general=settings.general)`` at startup.

    Args:
        settings: Settings (defaults to get_settings()).
        devices: Device presets available by name.
        binding_factory: Creates one binding per navigation.
        **defaults: Option defaults applied to every ask().
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        devices: Mapping[str, Device] = DEFAULT_DEVICES,
        binding_factory: BindingFactory | None = None,
        **defaults: Any,
    ) -> None:
        self._settings = settings or get_settings()
        self._devices = devices
        self._binding_factory = binding_factory or (
            lambda: PlaywrightBinding(self._settings.launch)
        )
        self._defaults = NavigationOptions.from_settings(self._settings).merge(defaults)
        self._open_bindings: list[BrowserBinding] = []

    @property
    def defaults(self) -> NavigationOptions:
        return self._defaults

    def _resolve_device(self, options: NavigationOptions) -> Device | None:
        try:
            return resolve_device(options.device, self._devices)
        except KeyError as e:
            raise NavigationUsageError(
                f"Unknown device preset: {options.device}",
                details={"device": options.device, "known": sorted(self._devices)},
            ) from e
        except ValueError as e:
            raise NavigationUsageError(str(e), details={"device": options.device}) from e

    async def ask(self, url: str, **overrides: Any) -> Answer:
        """Navigate to url and return the Answer.

        Args:
            url: URL to navigate to (scheme defaults to http).
            **overrides: Per-call options, merged onto the client defaults.

        Returns:
            Answer for the navigation.

        Raises:
            NavigationUsageError: Invalid URL or options.
        """
        request_url = normalize_url(url)
        options = self._defaults.merge(overrides)
        device = self._resolve_device(options)
        cookies = [Cookie.from_dict(c) for c in options.cookies]

        binding = self._binding_factory()
        navigation = Navigation(
            request_url,
            options,
            binding,
            device=device,
            cookies=cookies,
            settings=self._settings,
        )
        with LogContext(navigation_id=new_navigation_id()):
            answer = await navigation.run()
        if not options.close_browser:
            self._open_bindings.append(binding)
        return answer

    async def close(self) -> None:
        """Close bindings kept open by close_browser=False."""
        bindings, self._open_bindings = self._open_bindings, []
        for binding in bindings:
            try:
                await binding.close()
            except Exception as e:
                logger.warning("Browser close failed", binding=binding.name, error=str(e))

    async def __aenter__(self) -> "BrowserHttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def ask(url: str, *, settings: Settings | None = None, **options: Any) -> Answer:
    """One-shot navigation with a throwaway client."""
    async with BrowserHttpClient(settings) as client:
        return await client.ask(url, **options)

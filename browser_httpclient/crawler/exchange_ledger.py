"""
Exchange ledger for one browser navigation.

Stores every request/response pair observed while a page loads, keyed by URL
in arrival order. Browser callbacks do not touch the ledger directly: they
publish events onto an ExchangeFeed, a bounded queue drained by a single
consumer task, so events are applied one at a time in the order the browser
delivered them.

Tie-break for a URL requested more than once in the same navigation:
the last request wins for the request fields, an already attached response
is preserved, and a second response for the same URL is ignored.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from browser_httpclient.crawler.resource_policy import ResourceType
from browser_httpclient.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Exchange:
    """One observed request paired with its (possibly absent) response.

    Attributes:
        url: Requested URL.
        method: HTTP method.
        request_headers: Request headers, keys lower-cased.
        request_body: Request payload, if any.
        resource_type: Browser resource classification.
        status: Response status code, None until a response arrives.
        status_text: Response status text.
        response_headers: Response headers, keys lower-cased.
        response_url: URL reported by the response.
    """

    url: str
    method: str = "GET"
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    resource_type: ResourceType = ResourceType.OTHER
    status: int | None = None
    status_text: str = ""
    response_headers: dict[str, str] = field(default_factory=dict)
    response_url: str | None = None

    @property
    def has_response(self) -> bool:
        """Whether a response has been merged in."""
        return self.status is not None

    @property
    def is_redirect(self) -> bool:
        return self.status is not None and 300 <= self.status < 400

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for debug dumps."""
        return {
            "url": self.url,
            "method": self.method,
            "resource_type": self.resource_type.value,
            "request_headers": self.request_headers,
            "request_body": self.request_body,
            "status": self.status,
            "status_text": self.status_text,
            "response_headers": self.response_headers,
            "response_url": self.response_url,
        }


def _lower_keys(headers: dict[str, str] | None) -> dict[str, str]:
    return {key.lower(): value for key, value in (headers or {}).items()}


class ExchangeLedger:
    """Per-navigation store of exchanges keyed by URL.

    Not shared between navigations; a fresh ledger is created for every call.
    """

    def __init__(self) -> None:
        self._exchanges: dict[str, Exchange] = {}

    def __len__(self) -> int:
        return len(self._exchanges)

    def __contains__(self, url: object) -> bool:
        return url in self._exchanges

    def record_request(
        self,
        url: str,
        method: str,
        headers: dict[str, str] | None,
        resource_type: ResourceType | str,
        body: str | None = None,
    ) -> Exchange:
        """Record an outgoing request.

        A repeated URL replaces the request fields of the earlier record and
        keeps any response already attached to it.

        Args:
            url: Requested URL.
            method: HTTP method.
            headers: Request headers.
            resource_type: Resource classification (enum or raw tag).
            body: Request payload.

        Returns:
            The stored Exchange.
        """
        if not isinstance(resource_type, ResourceType):
            resource_type = ResourceType.from_tag(resource_type)

        exchange = self._exchanges.get(url)
        if exchange is None:
            exchange = Exchange(url=url)
            self._exchanges[url] = exchange

        exchange.method = (method or "GET").upper()
        exchange.request_headers = _lower_keys(headers)
        exchange.request_body = body
        exchange.resource_type = resource_type
        return exchange

    def record_forwarded_headers(self, url: str, headers: dict[str, str]) -> Exchange | None:
        """Replace the request headers of url with those actually sent.

        Returns None when no request was recorded for url.
        """
        exchange = self._exchanges.get(url)
        if exchange is not None:
            exchange.request_headers = _lower_keys(headers)
        return exchange

    def record_response(
        self,
        url: str,
        status: int,
        status_text: str,
        headers: dict[str, str] | None,
        response_url: str | None = None,
    ) -> Exchange:
        """Attach a response to the exchange at url.

        Creates a response-only stub when the request was never seen (the
        browser can report responses for requests emitted before the
        listeners were attached).

        Args:
            url: URL of the originating request.
            status: HTTP status code.
            status_text: HTTP status text.
            headers: Response headers.
            response_url: URL reported by the response.

        Returns:
            The Exchange holding the response.
        """
        exchange = self._exchanges.get(url)
        if exchange is None:
            logger.debug("Response without recorded request", url=url[:120], status=status)
            exchange = Exchange(url=url)
            self._exchanges[url] = exchange

        if exchange.has_response:
            logger.debug(
                "Ignoring repeated response",
                url=url[:120],
                kept_status=exchange.status,
                ignored_status=status,
            )
            return exchange

        exchange.status = status
        exchange.status_text = status_text or ""
        exchange.response_headers = _lower_keys(headers)
        exchange.response_url = response_url or url
        return exchange

    def lookup(self, url: str) -> Exchange | None:
        """Get the exchange recorded for url."""
        return self._exchanges.get(url)

    def all(self) -> list[Exchange]:
        """All exchanges in insertion order (debug dumps only)."""
        return list(self._exchanges.values())


# ============================================================================
# Event feed
# ============================================================================


@dataclass(frozen=True)
class RequestObserved:
    """A request seen by the browser."""

    url: str
    method: str
    headers: dict[str, str]
    resource_type: str
    body: str | None = None


@dataclass(frozen=True)
class ResponseObserved:
    """A response seen by the browser."""

    url: str
    status: int
    status_text: str
    headers: dict[str, str]
    response_url: str | None = None


LedgerEvent = RequestObserved | ResponseObserved


class ExchangeFeed:
    """Ordered event queue between browser callbacks and the ledger.

    Browser callbacks call publish() synchronously in arrival order; one
    consumer task applies the events to the ledger. drain() stops the
    consumer after every queued event has been applied.

    Example:
        feed = ExchangeFeed(ledger)
        feed.start()
        page.on_request(lambda r: feed.publish(RequestObserved(...)))
        ...
        await feed.drain()
    """

    def __init__(
        self,
        ledger: ExchangeLedger,
        *,
        maxsize: int = 4096,
        trace: bool = False,
    ) -> None:
        """Initialize the feed.

        Args:
            ledger: Ledger receiving the events.
            maxsize: Queue bound.
            trace: Log every applied event at INFO level.
        """
        self._ledger = ledger
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._trace = trace
        self._consumer: asyncio.Task[None] | None = None
        self._closed = False
        self.dropped = 0

    @property
    def ledger(self) -> ExchangeLedger:
        return self._ledger

    def start(self) -> None:
        """Start the consumer task."""
        if self._consumer is None:
            self._consumer = asyncio.get_running_loop().create_task(self._consume())

    def publish(self, event: LedgerEvent) -> None:
        """Queue an event. Never raises into the browser binding."""
        if self._closed:
            logger.debug("Event after drain ignored", url=event.url[:120])
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Exchange event queue full, event dropped",
                url=event.url[:120],
                dropped=self.dropped,
            )

    def apply(self, event: LedgerEvent) -> None:
        """Apply one event to the ledger."""
        if isinstance(event, RequestObserved):
            self._ledger.record_request(
                event.url,
                event.method,
                event.headers,
                event.resource_type,
                event.body,
            )
        else:
            self._ledger.record_response(
                event.url,
                event.status,
                event.status_text,
                event.headers,
                event.response_url,
            )
        if self._trace:
            logger.info("Exchange event", **_describe(event))
        else:
            logger.debug("Exchange event", **_describe(event))

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self.apply(event)
            except Exception as e:
                logger.error("Failed to apply exchange event", url=event.url[:120], error=str(e))
            finally:
                self._queue.task_done()

    async def drain(self) -> ExchangeLedger:
        """Apply every pending event and stop the consumer.

        Returns:
            The ledger, complete for this navigation.
        """
        if self._closed:
            return self._ledger
        self._closed = True

        if self._consumer is None:
            # Never started: apply synchronously
            while not self._queue.empty():
                self.apply(self._queue.get_nowait())
            return self._ledger

        await self._queue.join()
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None
        return self._ledger


def _describe(event: LedgerEvent) -> dict[str, Any]:
    if isinstance(event, RequestObserved):
        return {
            "event_type": "request",
            "url": event.url[:120],
            "method": event.method,
            "resource_type": event.resource_type,
        }
    return {
        "event_type": "response",
        "url": event.url[:120],
        "status": event.status,
        "status_text": event.status_text,
    }

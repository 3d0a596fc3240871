"""
Tests for the exchange ledger and its event feed.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-EL-N-01 | request then response | Equivalence – normal | Paired exchange | Happy path |
| TC-EL-N-02 | headers with mixed case | Equivalence – normal | Keys lower-cased | Normalization |
| TC-EL-N-03 | same URL requested twice | Equivalence – normal | Last request wins, response kept | Tie-break |
| TC-EL-N-04 | second response for URL | Equivalence – normal | First response kept | Immutability |
| TC-EL-B-01 | response without request | Boundary – missing | Stub exchange created | Stub |
| TC-EL-B-02 | request only | Boundary – no response | has_response False | Terminal state |
| TC-EL-B-03 | lookup unknown URL | Boundary – missing | None | Lookup |
| TC-EL-N-05 | insertion order | Equivalence – normal | all() in arrival order | Ordering |
| TC-EL-N-06 | forwarded headers for recorded URL | Equivalence – normal | Request headers replaced, response kept | Interception |
| TC-EL-B-04 | forwarded headers for unknown URL | Boundary – missing | None, ledger unchanged | Interception |
| TC-EF-N-01 | events published then drained | Equivalence – normal | All applied in order | Consumer |
| TC-EF-N-02 | drain without start | Equivalence – normal | Applied synchronously | Fallback |
| TC-EF-B-01 | queue bound exceeded | Boundary – overflow | Dropped counted, no raise | Overflow |
| TC-EF-B-02 | publish after drain | Boundary – closed | Ignored | Late events |
| TC-EF-N-03 | drain twice | Equivalence – idempotent | Same ledger | Idempotence |
"""

import asyncio

import pytest

pytestmark = pytest.mark.unit

from browser_httpclient.crawler.exchange_ledger import (
    ExchangeFeed,
    ExchangeLedger,
    RequestObserved,
    ResponseObserved,
)
from browser_httpclient.crawler.resource_policy import ResourceType

URL = "http://example.test/"


class TestExchangeLedger:
    """Tests for ExchangeLedger."""

    def test_request_then_response_pairs(self) -> None:
        """Response is attached to the recorded request (TC-EL-N-01)."""
        # Given
        ledger = ExchangeLedger()

        # When
        ledger.record_request(URL, "get", {"Accept": "text/html"}, "document")
        ledger.record_response(URL, 200, "OK", {"Content-Type": "text/html"})

        # Then
        exchange = ledger.lookup(URL)
        assert exchange is not None
        assert exchange.method == "GET"
        assert exchange.resource_type is ResourceType.DOCUMENT
        assert exchange.status == 200
        assert exchange.status_text == "OK"
        assert exchange.response_url == URL
        assert exchange.has_response

    def test_header_keys_are_lower_cased(self) -> None:
        """Request and response header keys are normalized (TC-EL-N-02)."""
        ledger = ledger_with_document()

        exchange = ledger.lookup(URL)
        assert exchange is not None
        assert exchange.request_headers == {"accept": "text/html"}
        assert exchange.response_headers == {"content-type": "text/html"}

    def test_repeated_request_last_wins_and_keeps_response(self) -> None:
        """Second request replaces request fields, response preserved (TC-EL-N-03)."""
        # Given
        ledger = ledger_with_document()

        # When
        ledger.record_request(URL, "POST", {"X-Retry": "1"}, "xhr", body="a=1")

        # Then
        exchange = ledger.lookup(URL)
        assert exchange is not None
        assert exchange.method == "POST"
        assert exchange.request_headers == {"x-retry": "1"}
        assert exchange.request_body == "a=1"
        assert exchange.resource_type is ResourceType.OTHER
        assert exchange.status == 200
        assert len(ledger) == 1

    def test_second_response_is_ignored(self) -> None:
        """Attached response is never overwritten (TC-EL-N-04)."""
        ledger = ledger_with_document()

        ledger.record_response(URL, 304, "Not Modified", {})

        exchange = ledger.lookup(URL)
        assert exchange is not None
        assert exchange.status == 200
        assert exchange.response_headers == {"content-type": "text/html"}

    def test_response_without_request_creates_stub(self) -> None:
        """Unseen URL gets a response-only stub (TC-EL-B-01)."""
        ledger = ExchangeLedger()

        ledger.record_response(URL, 200, "OK", None, response_url=URL)

        exchange = ledger.lookup(URL)
        assert exchange is not None
        assert exchange.status == 200
        assert exchange.resource_type is ResourceType.OTHER
        assert exchange.request_headers == {}

    def test_request_without_response(self) -> None:
        """No response is a valid terminal state (TC-EL-B-02)."""
        ledger = ExchangeLedger()
        ledger.record_request("http://example.test/a.png", "GET", {}, "image")

        exchange = ledger.lookup("http://example.test/a.png")
        assert exchange is not None
        assert not exchange.has_response
        assert not exchange.is_redirect
        assert exchange.status is None

    def test_lookup_unknown(self) -> None:
        """Unknown URL returns None (TC-EL-B-03)."""
        assert ExchangeLedger().lookup(URL) is None
        assert URL not in ExchangeLedger()

    def test_all_keeps_arrival_order(self) -> None:
        """all() lists exchanges in insertion order (TC-EL-N-05)."""
        ledger = ExchangeLedger()
        for path in ("c", "a", "b"):
            ledger.record_request(f"{URL}{path}", "GET", {}, "script")

        assert [e.url for e in ledger.all()] == [f"{URL}c", f"{URL}a", f"{URL}b"]

    def test_forwarded_headers_replace_reported(self) -> None:
        """Headers sent by interception replace the reported ones (TC-EL-N-06)."""
        # Given
        ledger = ExchangeLedger()
        ledger.record_request(URL, "GET", {"Accept": "text/html"}, "document")
        ledger.record_response(URL, 200, "OK", {}, URL)

        # When
        exchange = ledger.record_forwarded_headers(URL, {"Accept": "text/html", "X-Token": "t1"})

        # Then
        assert exchange is ledger.lookup(URL)
        assert exchange.request_headers == {"accept": "text/html", "x-token": "t1"}
        assert exchange.status == 200

    def test_forwarded_headers_unknown_url(self) -> None:
        """Forwarded headers for an unrecorded URL create nothing (TC-EL-B-04)."""
        ledger = ExchangeLedger()

        assert ledger.record_forwarded_headers(URL, {"x-token": "t1"}) is None
        assert len(ledger) == 0

    def test_to_dict(self) -> None:
        exchange = ledger_with_document().lookup(URL)
        assert exchange is not None

        data = exchange.to_dict()

        assert data["resource_type"] == "document"
        assert data["status"] == 200
        assert data["response_headers"] == {"content-type": "text/html"}


class TestExchangeFeed:
    """Tests for ExchangeFeed."""

    @pytest.mark.asyncio
    async def test_events_applied_in_order(self) -> None:
        """Consumer applies every queued event before drain returns (TC-EF-N-01)."""
        # Given
        ledger = ExchangeLedger()
        feed = ExchangeFeed(ledger)
        feed.start()

        # When
        feed.publish(RequestObserved(URL, "GET", {}, "document"))
        feed.publish(RequestObserved(f"{URL}app.js", "GET", {}, "script"))
        feed.publish(ResponseObserved(URL, 200, "OK", {}))
        result = await feed.drain()

        # Then
        assert result is ledger
        assert [e.url for e in ledger.all()] == [URL, f"{URL}app.js"]
        exchange = ledger.lookup(URL)
        assert exchange is not None and exchange.status == 200

    @pytest.mark.asyncio
    async def test_drain_without_start(self) -> None:
        """Events queued before start() are applied on drain (TC-EF-N-02)."""
        ledger = ExchangeLedger()
        feed = ExchangeFeed(ledger)

        feed.publish(RequestObserved(URL, "GET", {}, "document"))
        await feed.drain()

        assert URL in ledger

    @pytest.mark.asyncio
    async def test_overflow_is_counted_not_raised(self) -> None:
        """Full queue drops the event and counts it (TC-EF-B-01)."""
        # Given: consumer not started so the queue cannot empty
        ledger = ExchangeLedger()
        feed = ExchangeFeed(ledger, maxsize=1)

        # When
        feed.publish(RequestObserved(URL, "GET", {}, "document"))
        feed.publish(RequestObserved(f"{URL}x", "GET", {}, "script"))
        await feed.drain()

        # Then
        assert feed.dropped == 1
        assert len(ledger) == 1

    @pytest.mark.asyncio
    async def test_publish_after_drain_ignored(self) -> None:
        """Late events do not reach the ledger (TC-EF-B-02)."""
        ledger = ExchangeLedger()
        feed = ExchangeFeed(ledger)
        feed.start()
        await feed.drain()

        feed.publish(RequestObserved(URL, "GET", {}, "document"))
        await asyncio.sleep(0)

        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_drain_twice(self) -> None:
        """Second drain returns the same ledger (TC-EF-N-03)."""
        ledger = ExchangeLedger()
        feed = ExchangeFeed(ledger, trace=True)
        feed.start()
        feed.publish(RequestObserved(URL, "GET", {}, "document"))

        first = await feed.drain()
        second = await feed.drain()

        assert first is second is ledger
        assert feed.ledger is ledger


def ledger_with_document() -> ExchangeLedger:
    ledger = ExchangeLedger()
    ledger.record_request(URL, "GET", {"Accept": "text/html"}, "document")
    ledger.record_response(URL, 200, "OK", {"Content-Type": "text/html"})
    return ledger

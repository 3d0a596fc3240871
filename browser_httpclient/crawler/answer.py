"""
Answer record and synthesis.

The Answer mirrors what a conventional HTTP client returns for one request
(status, headers, body, timing), built from the exchange the browser
actually rendered. A skeleton is created when navigation starts and filled
in place by synthesize() once the page has settled.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from browser_httpclient.crawler.browser_provider import Cookie
from browser_httpclient.crawler.errors import SoftError
from browser_httpclient.crawler.exchange_ledger import Exchange

STATUS_MESSAGE_SEPARATOR = "; "


@dataclass
class AnswerRequest:
    """Request side of the answer."""

    headers: dict[str, str] = field(default_factory=dict)
    payload: str = ""


@dataclass
class AnswerResponse:
    """Response side of the answer."""

    headers: dict[str, str] = field(default_factory=dict)
    content: str = ""


@dataclass
class AnswerTiming:
    """Wall-clock instants (UTC) and duration in seconds."""

    req: datetime | None = None
    res: datetime | None = None
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "req": self.req.isoformat() if self.req else None,
            "res": self.res.isoformat() if self.res else None,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnswerTiming":
        return cls(
            req=datetime.fromisoformat(data["req"]) if data.get("req") else None,
            res=datetime.fromisoformat(data["res"]) if data.get("res") else None,
            duration=float(data.get("duration", 0.0)),
        )


@dataclass
class Answer:
    """
    Result of one browser navigation.

    Every field has an explicit empty value; status == 0 means no document
    response was correlated and no failure supplied a status.

    Attributes:
        request_url: Normalized URL that was requested.
        final_url: URL the browser settled on ("" if navigation never completed).
        request_method: HTTP method of the document request.
        status: HTTP status code (0 if never determined).
        status_message: Status text, or the recorded failure messages.
        gzip: Response was gzip-encoded.
        deflate: Response was deflate-encoded.
        decompressed: gzip or deflate.
        https: Final (or requested) URL uses https.
        req: Request headers and payload.
        res: Response headers and rendered content.
        time: Request/response instants and duration.
        post_navigation_result: Value returned by the post-navigation callback.
        cookies: Cookie snapshot (empty unless captured).
        soft_errors: Failures recovered during the navigation.
    """

    request_url: str
    final_url: str = ""
    request_method: str = "GET"
    status: int = 0
    status_message: str = ""
    gzip: bool = False
    deflate: bool = False
    decompressed: bool = False
    https: bool = False
    req: AnswerRequest = field(default_factory=AnswerRequest)
    res: AnswerResponse = field(default_factory=AnswerResponse)
    time: AnswerTiming = field(default_factory=AnswerTiming)
    post_navigation_result: Any = None
    cookies: list[Cookie] = field(default_factory=list)
    soft_errors: list[SoftError] = field(default_factory=list)

    @property
    def content(self) -> str:
        return self.res.content

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-compatible dictionary.

        post_navigation_result is passed through as returned by the callback.
        """
        return {
            "request_url": self.request_url,
            "final_url": self.final_url,
            "request_method": self.request_method,
            "status": self.status,
            "status_message": self.status_message,
            "gzip": self.gzip,
            "deflate": self.deflate,
            "decompressed": self.decompressed,
            "https": self.https,
            "req": {"headers": dict(self.req.headers), "payload": self.req.payload},
            "res": {"headers": dict(self.res.headers), "content": self.res.content},
            "time": self.time.to_dict(),
            "post_navigation_result": self.post_navigation_result,
            "cookies": [c.to_dict() for c in self.cookies],
            "soft_errors": [e.to_dict() for e in self.soft_errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Answer":
        """Create from dictionary produced by to_dict()."""
        req = data.get("req") or {}
        res = data.get("res") or {}
        return cls(
            request_url=data.get("request_url", ""),
            final_url=data.get("final_url", ""),
            request_method=data.get("request_method", "GET"),
            status=int(data.get("status", 0)),
            status_message=data.get("status_message", ""),
            gzip=bool(data.get("gzip", False)),
            deflate=bool(data.get("deflate", False)),
            decompressed=bool(data.get("decompressed", False)),
            https=bool(data.get("https", False)),
            req=AnswerRequest(
                headers=dict(req.get("headers") or {}),
                payload=req.get("payload", ""),
            ),
            res=AnswerResponse(
                headers=dict(res.get("headers") or {}),
                content=res.get("content", ""),
            ),
            time=AnswerTiming.from_dict(data.get("time") or {}),
            post_navigation_result=data.get("post_navigation_result"),
            cookies=[Cookie.from_dict(c) for c in data.get("cookies") or []],
            soft_errors=[SoftError.from_dict(e) for e in data.get("soft_errors") or []],
        )


@dataclass(frozen=True)
class NavigationOutcome:
    """Result of the navigate step: settled URL or the failure that stopped it."""

    final_url: str = ""
    error: SoftError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, final_url: str) -> "NavigationOutcome":
        return cls(final_url=final_url)

    @classmethod
    def soft_error(cls, error: SoftError) -> "NavigationOutcome":
        return cls(error=error)


def new_answer(request_url: str, *, started_at: datetime | None = None) -> Answer:
    """Answer skeleton stamped with the request instant."""
    return Answer(
        request_url=request_url,
        time=AnswerTiming(req=started_at or datetime.now(UTC)),
    )


def _has_encoding(headers: dict[str, str], token: str) -> bool:
    return token in headers.get("content-encoding", "").lower()


def synthesize(
    answer: Answer,
    selected: Exchange | None,
    content: str,
    outcome: NavigationOutcome,
    soft_errors: Iterable[SoftError] = (),
    *,
    finished_at: datetime | None = None,
    referer: str | None = None,
) -> Answer:
    """Fill the answer skeleton from the navigation results.

    Status comes from the selected exchange when it carries a response;
    otherwise from the first failure that carries a status; otherwise it
    stays 0. Failure messages are joined into status_message and never
    replace a correlated document status.

    Args:
        answer: Skeleton from new_answer().
        selected: Document exchange, or None when nothing was correlated.
        content: Extracted document serialization.
        outcome: Result of the navigate step.
        soft_errors: Failures recorded in any state, in order.
        finished_at: Response instant (defaults to now, UTC).
        referer: Referer used for the navigation.

    Returns:
        The same Answer instance, filled in.
    """
    errors = list(soft_errors)
    if outcome.error is not None and outcome.error not in errors:
        errors.insert(0, outcome.error)
    messages = STATUS_MESSAGE_SEPARATOR.join(e.message for e in errors if e.message)

    # A navigation that never completed has no settled URL
    if outcome.ok:
        answer.final_url = outcome.final_url

    if selected is not None and selected.has_response:
        answer.status = selected.status or 0
        answer.status_message = messages or selected.status_text
    else:
        status_error = next((e for e in errors if e.sets_status), None)
        answer.status = status_error.status if status_error else 0
        answer.status_message = messages

    if selected is not None:
        answer.request_method = selected.method
        answer.req.headers = dict(selected.request_headers)
        answer.req.payload = selected.request_body or ""
        answer.res.headers = dict(selected.response_headers)
    if referer and "referer" not in answer.req.headers:
        answer.req.headers["referer"] = referer

    answer.res.content = content or ""

    answer.gzip = _has_encoding(answer.res.headers, "gzip")
    answer.deflate = _has_encoding(answer.res.headers, "deflate")
    answer.decompressed = answer.gzip or answer.deflate
    answer.https = (answer.final_url or answer.request_url).lower().startswith("https")

    answer.soft_errors = errors
    answer.time.res = finished_at or datetime.now(UTC)
    if answer.time.req is None:
        answer.time.req = answer.time.res
    answer.time.duration = max(0.0, (answer.time.res - answer.time.req).total_seconds())
    return answer

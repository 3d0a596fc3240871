"""
Failure classification for browser navigations.

Every failure raised by the browser binding during a navigation is recovered
locally and folded into the Answer as a SoftError. Kinds map onto the HTTP
status a conventional client would have reported:

- NAVIGATION: DNS / connection / protocol failure -> 503
- TIMEOUT: navigation or selector wait deadline -> 408
- SELECTOR_NOT_FOUND: selector wait finished without the node -> 404
- EXTRACTION: content read failed (no status, message only)
- UNCLASSIFIED: anything else -> 500

The only exception that escapes to the caller is NavigationUsageError,
raised before any browser resource is acquired.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Kinds of recoverable navigation failures."""

    NAVIGATION = "navigation"
    """Browser could not reach or load the URL (DNS, refused, protocol error)."""

    TIMEOUT = "timeout"
    """Navigation or selector wait exceeded its deadline."""

    SELECTOR_NOT_FOUND = "selector_not_found"
    """Selector wait completed without finding the node."""

    EXTRACTION = "extraction"
    """Reading the rendered document failed after navigation succeeded."""

    UNCLASSIFIED = "unclassified"
    """Any other failure reported by the binding."""


class NavigationStage(str, Enum):
    """Orchestrator state in which a failure was recorded."""

    LAUNCH = "launch"
    SETUP = "setup"
    NAVIGATE = "navigate"
    POPUP = "popup"
    WAIT_SELECTOR = "wait_selector"
    CALLBACK = "callback"
    EXTRACT = "extract"


STATUS_BY_KIND: dict[FailureKind, int] = {
    FailureKind.NAVIGATION: 503,
    FailureKind.TIMEOUT: 408,
    FailureKind.SELECTOR_NOT_FOUND: 404,
    FailureKind.UNCLASSIFIED: 500,
}

_NETWORK_ERROR_MARKERS = ("net::ERR", "NS_ERROR_", "Could not connect", "Connection refused")
_NODE_NOT_FOUND_MARKERS = ("No node found",)

# Stages whose failures never replace the answer status.
_NOTE_ONLY_STAGES = frozenset({NavigationStage.POPUP, NavigationStage.EXTRACT})


@dataclass(frozen=True)
class SoftError:
    """A recoverable failure folded into the Answer instead of being raised.

    Attributes:
        kind: Failure classification.
        status: Mapped HTTP status (0 for kinds without a status).
        message: Human-readable message, binding text preserved verbatim.
        stage: Orchestrator state that produced the failure.
    """

    kind: FailureKind
    status: int
    message: str
    stage: NavigationStage

    @property
    def sets_status(self) -> bool:
        """Whether this error may supply the answer status."""
        return self.status > 0 and self.stage not in _NOTE_ONLY_STAGES

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "status": self.status,
            "message": self.message,
            "stage": self.stage.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SoftError":
        """Create from dictionary."""
        return cls(
            kind=FailureKind(data["kind"]),
            status=int(data.get("status", 0)),
            message=data.get("message", ""),
            stage=NavigationStage(data["stage"]),
        )


class NavigationUsageError(ValueError):
    """Raised when the engine itself is misused by the caller.

    Examples: no URL given, a URL that is not a string, an unknown option
    name or an unknown device preset. Detected before any browser is launched.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


def _response_status(exc: BaseException) -> int | None:
    """Status of an HTTP response attached to an exception, if any."""
    response = getattr(exc, "response", None)
    if response is None:
        return None
    status = getattr(response, "status", None)
    if callable(status):
        status = status()
    return status if isinstance(status, int) and status > 0 else None


def classify_kind(exc: BaseException) -> FailureKind:
    """Classify a binding exception into a FailureKind.

    Args:
        exc: Exception raised by the browser binding.

    Returns:
        FailureKind for the exception.
    """
    message = str(exc)

    # Playwright's TimeoutError does not subclass the builtin one
    if isinstance(exc, TimeoutError) or type(exc).__name__ == "TimeoutError":
        return FailureKind.TIMEOUT

    if any(marker in message for marker in _NODE_NOT_FOUND_MARKERS):
        return FailureKind.SELECTOR_NOT_FOUND

    if any(marker in message for marker in _NETWORK_ERROR_MARKERS):
        return FailureKind.NAVIGATION

    return FailureKind.UNCLASSIFIED


def classify_failure(
    exc: BaseException,
    stage: NavigationStage,
    *,
    prefix: str = "",
) -> SoftError:
    """Convert a binding exception into a SoftError.

    Args:
        exc: Exception raised by the browser binding.
        stage: Orchestrator state that was running.
        prefix: Text prepended to the message (e.g. the failing call).

    Returns:
        SoftError carrying the mapped status.
    """
    kind = classify_kind(exc)
    status = _response_status(exc) or STATUS_BY_KIND.get(kind, 0)
    message = f"{prefix}{exc}" if prefix else str(exc)
    return SoftError(kind=kind, status=status, message=message, stage=stage)


def extraction_failure(exc: BaseException) -> SoftError:
    """SoftError for a content read that failed twice."""
    return SoftError(
        kind=FailureKind.EXTRACTION,
        status=0,
        message=f"Content extraction failed: {exc}",
        stage=NavigationStage.EXTRACT,
    )

"""
Resource policy for intercepted browser requests.

Pure decision over the configured block-list and extra headers: a request is
either aborted or continued with the merged header set. No state, no errors.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


class ResourceType(str, Enum):
    """Browser-reported request classification."""

    DOCUMENT = "document"
    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    FONT = "font"
    OTHER = "other"

    @classmethod
    def from_tag(cls, tag: str | None) -> "ResourceType":
        """Map a raw browser tag (xhr, media, fetch, ...) onto the enumeration."""
        try:
            return cls((tag or "").lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class Abort:
    """Abort the request before it reaches the network."""


@dataclass(frozen=True)
class Continue:
    """Forward the request with the given headers."""

    headers: dict[str, str] = field(default_factory=dict)


def merge_headers(
    original: Mapping[str, str],
    extra: Mapping[str, str] | None,
) -> dict[str, str]:
    """Merge extra headers onto original ones.

    Keys are compared case-insensitively and returned lower-cased; extra
    headers win on collision.

    Args:
        original: Headers the browser would send.
        extra: Caller-supplied headers.

    Returns:
        Merged header mapping.
    """
    merged = {key.lower(): value for key, value in original.items()}
    for key, value in (extra or {}).items():
        merged[key.lower()] = value
    return merged


def normalize_block_list(block_list: Iterable[str] | None) -> frozenset[str]:
    """Normalize resource-type tags to a lower-cased set."""
    return frozenset(tag.lower() for tag in (block_list or ()) if tag)


def is_blocked(resource_type: str, block_list: Iterable[str] | None) -> bool:
    """Check whether a resource type is on the block-list."""
    return (resource_type or "").lower() in normalize_block_list(block_list)


def decide(
    resource_type: str,
    block_list: Iterable[str] | None,
    request_headers: Mapping[str, str] | None = None,
    extra_headers: Mapping[str, str] | None = None,
) -> Abort | Continue:
    """Decide what to do with an intercepted request.

    Args:
        resource_type: Raw resource-type tag reported by the browser.
        block_list: Resource-type tags to abort.
        request_headers: Original request headers.
        extra_headers: Headers to merge onto the request.

    Returns:
        Abort, or Continue carrying the merged headers.
    """
    if is_blocked(resource_type, block_list):
        return Abort()
    return Continue(headers=merge_headers(request_headers or {}, extra_headers))

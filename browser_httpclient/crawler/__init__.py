"""
browser-httpclient crawler module.

Provides browser navigation with exchange correlation and answer synthesis.
"""

from browser_httpclient.crawler.answer import (
    Answer,
    AnswerRequest,
    AnswerResponse,
    AnswerTiming,
    NavigationOutcome,
    synthesize,
)
from browser_httpclient.crawler.browser_provider import (
    BaseBrowserBinding,
    BrowserBinding,
    Cookie,
    PageHandle,
)
from browser_httpclient.crawler.devices import DEFAULT_DEVICES, Device, Viewport, resolve_device
from browser_httpclient.crawler.document_selector import select
from browser_httpclient.crawler.errors import (
    FailureKind,
    NavigationStage,
    NavigationUsageError,
    SoftError,
)
from browser_httpclient.crawler.exchange_ledger import Exchange, ExchangeFeed, ExchangeLedger
from browser_httpclient.crawler.navigation import BrowserHttpClient, ask, normalize_url
from browser_httpclient.crawler.options import NavigationOptions
from browser_httpclient.crawler.playwright_provider import PlaywrightBinding
from browser_httpclient.crawler.resource_policy import Abort, Continue, ResourceType, decide

__all__ = [
    # Client
    "BrowserHttpClient",
    "ask",
    "normalize_url",
    "NavigationOptions",
    # Answer
    "Answer",
    "AnswerRequest",
    "AnswerResponse",
    "AnswerTiming",
    "NavigationOutcome",
    "synthesize",
    # Ledger and selection
    "Exchange",
    "ExchangeLedger",
    "ExchangeFeed",
    "select",
    # Policy
    "ResourceType",
    "Abort",
    "Continue",
    "decide",
    # Errors
    "FailureKind",
    "NavigationStage",
    "NavigationUsageError",
    "SoftError",
    # Bindings
    "BrowserBinding",
    "BaseBrowserBinding",
    "PageHandle",
    "PlaywrightBinding",
    "Cookie",
    # Devices
    "Device",
    "Viewport",
    "DEFAULT_DEVICES",
    "resolve_device",
]

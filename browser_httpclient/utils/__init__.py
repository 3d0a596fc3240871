"""
browser-httpclient utilities module.
"""

from browser_httpclient.utils.config import Settings, get_project_root, get_settings
from browser_httpclient.utils.logging import (
    LogContext,
    bind_context,
    configure_logging,
    ensure_logging_configured,
    get_logger,
    unbind_context,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_project_root",
    "get_logger",
    "configure_logging",
    "ensure_logging_configured",
    "bind_context",
    "unbind_context",
    "LogContext",
]

"""
Per-navigation options.

Every recognized option is an explicit field with a default taken from
settings. Caller overrides are merged onto the defaults field by field,
nested groups recursively; unknown option names and invalid values raise
NavigationUsageError before any browser is launched.
"""

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from browser_httpclient.crawler.browser_provider import Cookie
from browser_httpclient.crawler.devices import Device
from browser_httpclient.crawler.errors import NavigationUsageError
from browser_httpclient.utils.config import Settings, deep_merge, get_settings

WAIT_UNTIL_VALUES = frozenset({"load", "domcontentloaded", "networkidle", "commit"})

# Puppeteer spellings accepted for compatibility
_WAIT_UNTIL_ALIASES = {
    "networkidle0": "networkidle",
    "networkidle2": "networkidle",
}


class GotoOptions(BaseModel):
    """Options of the navigate step."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=30.0, ge=0, description="Navigation timeout in seconds")
    wait_until: str = Field(default="load", description="Load condition to wait for")
    referer: str | None = Field(default=None, description="Referer header for the navigation")

    @field_validator("wait_until")
    @classmethod
    def validate_wait_until(cls, v: str) -> str:
        v = _WAIT_UNTIL_ALIASES.get(v.lower(), v.lower())
        if v not in WAIT_UNTIL_VALUES:
            raise ValueError(f"wait_until must be one of {sorted(WAIT_UNTIL_VALUES)}")
        return v


class WaitSelectorOptions(BaseModel):
    """Post-navigation selector gate."""

    model_config = ConfigDict(extra="forbid")

    selector: str = Field(..., min_length=1)
    timeout: float | None = Field(default=None, ge=0, description="None = settings default")


class StorageSeed(BaseModel):
    """Web storage items written before page scripts run."""

    model_config = ConfigDict(extra="forbid")

    local: dict[str, str] = Field(default_factory=dict)
    session: dict[str, str] = Field(default_factory=dict)


class NavigationOptions(BaseModel):
    """Options for one navigation.

    Example:
        options = NavigationOptions.from_settings().merge(
            {"block_resources": ["image"], "goto": {"timeout": 10}}
        )
    """

    model_config = ConfigDict(extra="forbid")

    block_resources: list[str] = Field(default_factory=list)
    extra_headers: dict[str, str] = Field(default_factory=dict)
    device: str | dict[str, Any] | None = None
    cookies: list[dict[str, Any]] = Field(default_factory=list)
    storage: StorageSeed | None = None
    init_script: str | None = None
    goto: GotoOptions = Field(default_factory=GotoOptions)
    wait_selector: WaitSelectorOptions | None = None
    close_popups: list[str] = Field(default_factory=list)
    popup_timeout: float = Field(default=3.0, ge=0)
    post_navigation: Callable[[Any], Any] | None = None
    scroll: bool = False
    scroll_settle: float = Field(default=3.0, ge=0)
    capture_cookies: bool = False
    close_browser: bool = True
    debug: bool = False

    @field_validator("block_resources", mode="before")
    @classmethod
    def validate_block_resources(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        if isinstance(v, (set, frozenset, tuple)):
            return sorted(v)
        return v or []

    @field_validator("device", mode="before")
    @classmethod
    def validate_device(cls, v: Any) -> Any:
        if isinstance(v, Device):
            return v.to_dict()
        return v

    @field_validator("cookies", mode="before")
    @classmethod
    def validate_cookies(cls, v: Any) -> Any:
        if not v:
            return []
        return [c.to_dict() if isinstance(c, Cookie) else c for c in v]

    @field_validator("wait_selector", mode="before")
    @classmethod
    def validate_wait_selector(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"selector": v}
        return v

    @field_validator("close_popups", mode="before")
    @classmethod
    def validate_close_popups(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v or []

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "NavigationOptions":
        """Build the default options from settings."""
        defaults = (settings or get_settings()).navigation
        return cls(
            goto=GotoOptions(timeout=defaults.goto_timeout, wait_until=defaults.wait_until),
            popup_timeout=defaults.popup_timeout,
            scroll_settle=defaults.scroll_settle,
            close_browser=defaults.close_browser,
        )

    def merge(self, overrides: Mapping[str, Any] | None) -> "NavigationOptions":
        """Return new options with overrides applied field by field.

        Args:
            overrides: Caller-supplied options; nested groups (goto,
                wait_selector, storage) are merged recursively.

        Returns:
            Validated NavigationOptions.

        Raises:
            NavigationUsageError: Unknown option name or invalid value.
        """
        if not overrides:
            return self
        unknown = sorted(set(overrides) - set(type(self).model_fields))
        if unknown:
            raise NavigationUsageError(
                f"Unknown option(s): {', '.join(unknown)}",
                details={"unknown": unknown},
            )
        # Device and cookie objects are normalized by the validators
        base = self.model_dump(exclude={"post_navigation"})
        merged = deep_merge(base, _plain(overrides))
        if "post_navigation" not in overrides:
            merged["post_navigation"] = self.post_navigation
        try:
            return type(self).model_validate(merged)
        except ValidationError as e:
            raise NavigationUsageError(
                f"Invalid navigation options: {e.error_count()} error(s)",
                details={"errors": e.errors(include_url=False)},
            ) from e


def _plain(overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Turn nested option models into dicts so they merge recursively."""
    result: dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        elif isinstance(value, Mapping):
            value = dict(value)
        result[key] = value
    return result

"""
Device presets for browser emulation.

A small static table; the client receives it explicitly (see
BrowserHttpClient(devices=...)) instead of reading process-wide state.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Viewport:
    """Viewport metrics applied by device emulation."""

    width: int
    height: int
    device_scale_factor: float = 1.0
    is_mobile: bool = False
    has_touch: bool = False
    is_landscape: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "deviceScaleFactor": self.device_scale_factor,
            "isMobile": self.is_mobile,
            "hasTouch": self.has_touch,
            "isLandscape": self.is_landscape,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Viewport":
        """Create from dictionary (camelCase or snake_case keys)."""
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            device_scale_factor=float(
                data.get("deviceScaleFactor", data.get("device_scale_factor", 1.0))
            ),
            is_mobile=bool(data.get("isMobile", data.get("is_mobile", False))),
            has_touch=bool(data.get("hasTouch", data.get("has_touch", False))),
            is_landscape=bool(data.get("isLandscape", data.get("is_landscape", False))),
        )


@dataclass(frozen=True)
class Device:
    """User agent plus viewport.

    Attributes:
        name: Preset name.
        user_agent: User-Agent string.
        viewport: Viewport metrics.
    """

    name: str
    user_agent: str
    viewport: Viewport = field(default_factory=lambda: Viewport(1300, 900))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "userAgent": self.user_agent,
            "viewport": self.viewport.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Device":
        """Create from dictionary; requires a user agent and a viewport."""
        user_agent = data.get("userAgent", data.get("user_agent"))
        viewport = data.get("viewport")
        if not user_agent or not viewport:
            raise ValueError("Device requires 'user_agent' and 'viewport'")
        return cls(
            name=str(data.get("name", "custom")),
            user_agent=str(user_agent),
            viewport=viewport if isinstance(viewport, Viewport) else Viewport.from_dict(viewport),
        )


DEFAULT_DEVICES: Mapping[str, Device] = MappingProxyType(
    {
        "Desktop Linux": Device(
            name="Desktop Linux",
            user_agent=(
                "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
            ),
            viewport=Viewport(width=1300, height=900),
        ),
        "Desktop Windows": Device(
            name="Desktop Windows",
            user_agent=(
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
            ),
            viewport=Viewport(width=1300, height=900, device_scale_factor=0.5, is_landscape=True),
        ),
        "Desktop Macintosh": Device(
            name="Desktop Macintosh",
            user_agent=(
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
            ),
            viewport=Viewport(width=1300, height=900, device_scale_factor=0.5, is_landscape=True),
        ),
        "iPhone 7": Device(
            name="iPhone 7",
            user_agent=(
                "Mozilla/5.0 (iPhone; CPU iPhone OS 11_0 like Mac OS X) AppleWebKit/604.1.38 "
                "(KHTML, like Gecko) Version/11.0 Mobile/15A372 Safari/604.1"
            ),
            viewport=Viewport(
                width=375,
                height=667,
                device_scale_factor=2,
                is_mobile=True,
                has_touch=True,
            ),
        ),
    }
)


def resolve_device(
    spec: "str | Device | Mapping[str, Any] | None",
    presets: Mapping[str, Device] = DEFAULT_DEVICES,
) -> Device | None:
    """Resolve a device option into a Device.

    Args:
        spec: Preset name, Device, device mapping or None.
        presets: Lookup table for preset names.

    Returns:
        Device, or None when no emulation was requested.

    Raises:
        KeyError: Unknown preset name.
        ValueError: Incomplete device mapping.
    """
    if spec is None:
        return None
    if isinstance(spec, Device):
        return spec
    if isinstance(spec, str):
        if spec not in presets:
            raise KeyError(spec)
        return presets[spec]
    return Device.from_dict(spec)

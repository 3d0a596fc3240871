"""
Tests for device presets.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-DV-N-01 | "iPhone 7" | Equivalence – normal | Mobile preset | Preset lookup |
| TC-DV-N-02 | Device instance | Equivalence – normal | Same instance | Passthrough |
| TC-DV-N-03 | camelCase mapping | Equivalence – normal | Device built | Explicit device |
| TC-DV-N-04 | custom presets table | Equivalence – normal | Looked up there | Injected table |
| TC-DV-B-01 | None | Boundary – empty | None | No emulation |
| TC-DV-A-01 | unknown name | Abnormal – not found | KeyError | Unknown preset |
| TC-DV-A-02 | mapping without viewport | Abnormal – incomplete | ValueError | Validation |
| TC-DV-B-02 | presets table | Boundary – immutability | TypeError on assignment | Read-only |
"""

import pytest

pytestmark = pytest.mark.unit

from browser_httpclient.crawler.devices import DEFAULT_DEVICES, Device, Viewport, resolve_device


class TestResolveDevice:
    """Tests for resolve_device()."""

    def test_preset_by_name(self) -> None:
        """Known preset name resolves (TC-DV-N-01)."""
        device = resolve_device("iPhone 7")

        assert device is not None
        assert device.viewport.is_mobile
        assert device.viewport.width == 375
        assert "iPhone" in device.user_agent

    def test_device_instance_passthrough(self) -> None:
        """Device instances are used as given (TC-DV-N-02)."""
        device = Device("kiosk", "Kiosk/1.0", Viewport(800, 600))

        assert resolve_device(device) is device

    def test_mapping(self) -> None:
        """camelCase mapping builds a Device (TC-DV-N-03)."""
        device = resolve_device(
            {
                "name": "tablet",
                "userAgent": "Tablet/2.0",
                "viewport": {"width": 768, "height": 1024, "deviceScaleFactor": 2, "hasTouch": True},
            }
        )

        assert device == Device(
            "tablet",
            "Tablet/2.0",
            Viewport(768, 1024, device_scale_factor=2.0, has_touch=True),
        )

    def test_custom_presets(self) -> None:
        """Lookup uses the table passed in (TC-DV-N-04)."""
        kiosk = Device("Kiosk", "Kiosk/1.0", Viewport(800, 600))

        assert resolve_device("Kiosk", {"Kiosk": kiosk}) is kiosk
        with pytest.raises(KeyError):
            resolve_device("iPhone 7", {"Kiosk": kiosk})

    def test_none(self) -> None:
        """None means no emulation (TC-DV-B-01)."""
        assert resolve_device(None) is None

    def test_unknown_name(self) -> None:
        """Unknown preset raises KeyError (TC-DV-A-01)."""
        with pytest.raises(KeyError):
            resolve_device("Nokia 3310")

    def test_incomplete_mapping(self) -> None:
        """Mapping without viewport raises ValueError (TC-DV-A-02)."""
        with pytest.raises(ValueError, match="user_agent"):
            resolve_device({"userAgent": "X/1.0"})

    def test_presets_are_read_only(self) -> None:
        """DEFAULT_DEVICES cannot be mutated (TC-DV-B-02)."""
        with pytest.raises(TypeError):
            DEFAULT_DEVICES["Mine"] = Device("Mine", "Mine/1.0")  # type: ignore[index]


class TestViewport:
    def test_to_dict_uses_camel_case(self) -> None:
        data = Viewport(1300, 900, is_landscape=True).to_dict()

        assert data == {
            "width": 1300,
            "height": 900,
            "deviceScaleFactor": 1.0,
            "isMobile": False,
            "hasTouch": False,
            "isLandscape": True,
        }

    def test_device_to_dict(self) -> None:
        data = DEFAULT_DEVICES["Desktop Linux"].to_dict()

        assert data["name"] == "Desktop Linux"
        assert data["viewport"]["width"] == 1300
        assert Device.from_dict(data) == DEFAULT_DEVICES["Desktop Linux"]

"""
Configuration management for browser-httpclient.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "BROWSER_HTTPCLIENT_"


class GeneralConfig(BaseModel):
    """General configuration."""

    project_name: str = "browser-httpclient"
    version: str = "0.3.0"
    log_level: str = "INFO"
    logs_dir: str | None = None  # None = log to stderr only
    json_logs: bool = True
    log_value_limit: int = 2000  # max characters per logged string value, 0 = unlimited


class LaunchConfig(BaseModel):
    """Browser launch configuration.

    Window size and position are translated into Chrome arguments. When either
    dimension is missing the window is started maximized.
    """

    model_config = ConfigDict(extra="forbid")

    browser: str = "chromium"  # chromium, firefox, webkit
    headless: bool = True
    executable_path: str | None = None
    channel: str | None = None  # e.g. "chrome" to drive an installed Google Chrome
    args: list[str] = Field(default_factory=list)
    ignore_default_args: list[str] = Field(default_factory=lambda: ["--enable-automation"])
    slow_mo: float = 13.0  # milliseconds between browser operations
    window_width: int | None = None
    window_height: int | None = None
    window_x: int = 0
    window_y: int = 0

    def chrome_args(self) -> list[str]:
        """Build the final Chrome argument list (deduplicated, order kept)."""
        if self.window_width and self.window_height:
            window_args = [
                f"--window-size={self.window_width},{self.window_height}",
                f"--window-position={self.window_x},{self.window_y}",
            ]
        else:
            window_args = ["--start-maximized"]
        return list(dict.fromkeys([*self.args, *window_args]))


class NavigationDefaultsConfig(BaseModel):
    """Defaults for per-navigation options (all durations in seconds)."""

    model_config = ConfigDict(extra="forbid")

    goto_timeout: float = 30.0
    wait_until: str = "load"
    selector_timeout: float = 5.0
    popup_timeout: float = 3.0
    scroll_settle: float = 3.0
    close_browser: bool = True
    event_queue_size: int = 4096  # bound of the request/response event queue


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    launch: LaunchConfig = Field(default_factory=LaunchConfig)
    navigation: NavigationDefaultsConfig = Field(default_factory=NavigationDefaultsConfig)


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides (settings section).

    Example local.yaml:
        settings:
          launch:
            headless: false

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config = _load_yaml_file(config_dir / "settings.yaml")
    local_overrides = _load_yaml_file(config_dir / "local.yaml")
    if "settings" in local_overrides:
        config = deep_merge(config, local_overrides["settings"])
    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with BROWSER_HTTPCLIENT_ and use
    double underscores for nested keys.

    Example:
        BROWSER_HTTPCLIENT_LAUNCH__HEADLESS=false

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}CONFIG_DIR":
            continue

        key_path = key[len(ENV_PREFIX) :].lower().split("__")

        current = config
        for part in key_path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config_dir = Path(os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "config"))
    config = _load_yaml_config(config_dir)
    config = _apply_env_overrides(config)
    return Settings(**config)


def get_project_root() -> Path:
    """Get the project root directory."""
    # This file lives at browser_httpclient/utils/config.py
    return Path(__file__).parent.parent.parent

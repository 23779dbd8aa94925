"""
Configuration management for pageviewer.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field


class GeneralConfig(BaseModel):
    """General configuration."""

    project_name: str = "pageviewer"
    version: str = "0.1.0"
    log_level: str = "INFO"
    log_file: str | None = None
    json_logs: bool = False


class BrowserConfig(BaseModel):
    """Browser launch configuration.

    Passed by value into ``Browser.launch``. ``debug`` implies a headful
    browser with devtools open. ``cdp_url`` connects to an already running
    Chrome instead of launching one.
    """

    model_config = ConfigDict(extra="forbid")

    headless: bool = True
    debug: bool = False
    devtools: bool = False
    proxy: str | None = None
    ignore_cert_errors: bool = False
    chrome_path: str | None = None  # Custom Chrome/Edge binary
    user_mode: bool = False  # Real user browser: no stealth page, no device emulation
    remote_debugging_port: int | None = None
    user_data_dir: str | None = None
    cdp_url: str | None = None
    viewport_width: int = 1920
    viewport_height: int = 1080


class FetchConfig(BaseModel):
    """Readiness wait configuration (all durations in seconds)."""

    model_config = ConfigDict(extra="forbid")

    default_time_budget: float = 20.0
    load_ceiling: float = 15.0
    engine_idle_ceiling: float = 5.0
    request_idle_ceiling: float = 0.5
    request_idle_quiet_window: float = 0.1
    dom_stable_ceiling: float = 2.0
    dom_stable_interval: float = 0.25
    # Fraction of the page's elements allowed to change per interval.
    dom_stable_threshold: float = 0.2
    request_idle_excludes: list[str] = Field(
        default_factory=lambda: [
            "*googlesyndication.com*",
            "*doubleclick.net*",
            "*googleadservices.com*",
            "*adnxs.com*",
            "*criteo.com*",
            "*google-analytics.com*",
            "*googletagmanager.com*",
            "*facebook.com/tr*",
            "*hotjar.com*",
            "*mixpanel.com*",
        ]
    )


class ExtractionConfig(BaseModel):
    """Article extraction configuration."""

    model_config = ConfigDict(extra="forbid")

    min_content_length: int = 50
    traverse_shadow_dom: bool = True
    exclude_tags: list[str] = Field(
        default_factory=lambda: [
            "aisidebar-container",
            "template",
            "slot",
            "script",
            "style",
            "link",
            "meta",
            "svg",
            "canvas",
            "iframe",
            "object",
            "embed",
        ]
    )
    exclude_classes: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)


def _deep_merge(base: dict, override: dict) -> dict:
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
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides.

    local.yaml keeps machine-specific overrides under a ``settings`` key:

        settings:
          browser:
            headless: false

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config = _read_yaml(config_dir / "settings.yaml")
    local_overrides = _read_yaml(config_dir / "local.yaml")
    if "settings" in local_overrides:
        config = _deep_merge(config, local_overrides["settings"])
    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with PAGEVIEWER_ and use
    double underscores for nested keys.

    Example:
        PAGEVIEWER_FETCH__DEFAULT_TIME_BUDGET=30

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    prefix = "PAGEVIEWER_"
    reserved = {"PAGEVIEWER_CONFIG_DIR", "PAGEVIEWER_E2E"}

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key in reserved:
            continue

        key_path = key[len(prefix) :].lower().split("__")
        if len(key_path) < 2:
            continue

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
    config_dir = Path(os.environ.get("PAGEVIEWER_CONFIG_DIR", "config"))
    config = _load_yaml_config(config_dir)
    config = _apply_env_overrides(config)
    return Settings(**config)


def get_project_root() -> Path:
    """Get the project root directory."""
    # This file lives at pageviewer/utils/config.py
    return Path(__file__).parent.parent.parent

"""
pageviewer utilities module.
"""

from pageviewer.utils.config import (
    BrowserConfig,
    ExtractionConfig,
    FetchConfig,
    GeneralConfig,
    Settings,
    get_project_root,
    get_settings,
)
from pageviewer.utils.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)

__all__ = [
    "BrowserConfig",
    "ExtractionConfig",
    "FetchConfig",
    "GeneralConfig",
    "Settings",
    "get_project_root",
    "get_settings",
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]

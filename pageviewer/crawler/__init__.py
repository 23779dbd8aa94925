"""
pageviewer crawler module.

Provides the browser wrapper, the readiness orchestrator and the fetch
boundary that ties them together.
"""

from pageviewer.crawler.browser import (
    Browser,
    PageHandle,
    close_default_browser,
    get_default_browser,
)
from pageviewer.crawler.budget import DeadlineBudget
from pageviewer.crawler.listeners import (
    InflightRequestTracker,
    MimeGatekeeper,
    RawResponseCapturer,
    ResponseClassification,
    WriteOnceCell,
    is_textual,
)
from pageviewer.crawler.readiness import (
    ReadinessOrchestrator,
    ReadinessStage,
    StageOutcome,
    StageStatus,
)
from pageviewer.crawler.viewer import (
    FetchRequest,
    LoadedPage,
    PageViewer,
    fetch_article,
    fetch_links,
    fetch_raw_html,
    fetch_rendered_html,
    visit,
)

__all__ = [
    # Browser
    "Browser",
    "PageHandle",
    "close_default_browser",
    "get_default_browser",
    # Readiness
    "DeadlineBudget",
    "ReadinessOrchestrator",
    "ReadinessStage",
    "StageOutcome",
    "StageStatus",
    # Listeners
    "InflightRequestTracker",
    "MimeGatekeeper",
    "RawResponseCapturer",
    "ResponseClassification",
    "WriteOnceCell",
    "is_textual",
    # Fetching
    "FetchRequest",
    "LoadedPage",
    "PageViewer",
    "fetch_article",
    "fetch_links",
    "fetch_raw_html",
    "fetch_rendered_html",
    "visit",
]

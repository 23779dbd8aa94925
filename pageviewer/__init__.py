"""
pageviewer: fetch a page through Chromium, wait until it is ready, read it.
"""

from pageviewer.crawler import (
    Browser,
    FetchRequest,
    LoadedPage,
    PageViewer,
    close_default_browser,
    fetch_article,
    fetch_links,
    fetch_raw_html,
    fetch_rendered_html,
    get_default_browser,
    visit,
)
from pageviewer.errors import (
    ConversionError,
    ExtractionFailure,
    FetchErrorCode,
    NavigationError,
    NoContentFound,
    PageViewerError,
    RejectedContentError,
    SanitizationError,
    StageFailure,
    UnexpectedFault,
)
from pageviewer.extractor import Article, LinkRecord

__version__ = "0.1.0"

__all__ = [
    "Article",
    "Browser",
    "FetchRequest",
    "LinkRecord",
    "LoadedPage",
    "PageViewer",
    "close_default_browser",
    "fetch_article",
    "fetch_links",
    "fetch_raw_html",
    "fetch_rendered_html",
    "get_default_browser",
    "visit",
    # Errors
    "ConversionError",
    "ExtractionFailure",
    "FetchErrorCode",
    "NavigationError",
    "NoContentFound",
    "PageViewerError",
    "RejectedContentError",
    "SanitizationError",
    "StageFailure",
    "UnexpectedFault",
]

"""
Fetch boundary: one page per fetch, readiness, then a post-readiness step.

PageViewer.run opens a page, runs the before-navigate hook, arms the
network listeners, drives the readiness orchestrator, optionally sanitizes
the DOM and finally hands the ready page to a callback. The page is
released on every exit path. Errors leave as exactly one PageViewerError;
anything untyped is converted to UnexpectedFault here.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from pageviewer.crawler.browser import Browser, get_default_browser
from pageviewer.crawler.budget import DeadlineBudget
from pageviewer.crawler.listeners import (
    InflightRequestTracker,
    MimeGatekeeper,
    RawResponseCapturer,
)
from pageviewer.crawler.readiness import ReadinessOrchestrator, StageOutcome
from pageviewer.errors import ExtractionFailure, NavigationError, PageViewerError, UnexpectedFault
from pageviewer.extractor.article import Article, extract_article
from pageviewer.extractor.links import format_links, harvest_links
from pageviewer.extractor.sanitizer import sanitize_page
from pageviewer.utils.config import Settings, get_settings
from pageviewer.utils.logging import LogContext, get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

T = TypeVar("T")

BeforeNavigate = Callable[["Page"], Awaitable[None]]


@dataclass(frozen=True)
class FetchRequest:
    """
    One fetch. ``time_budget`` of None means the configured default.

    ``before_navigate`` receives the fresh page before any listener is armed.
    """

    url: str
    time_budget: float | None = None
    before_navigate: BeforeNavigate | None = None
    sanitize: bool = False
    capture_raw: bool = False


@dataclass
class LoadedPage:
    """A page that reached readiness, as handed to ``on_page_load``."""

    page: "Page"
    url: str
    outcomes: list[StageOutcome] = field(default_factory=list)
    capturer: RawResponseCapturer | None = None
    removed_elements: int = 0

    @property
    def raw_html(self) -> str:
        if self.capturer is None:
            return ""
        return self.capturer.body or ""


async def _rendered_html(page: "Page") -> str:
    try:
        return await page.content()
    except Exception as e:
        raise ExtractionFailure(
            f"could not read rendered document: {e}",
            url=page.url,
            details={"cause": type(e).__name__},
        ) from e


class PageViewer:
    """Runs fetches against one browser (the shared default unless injected)."""

    def __init__(self, browser: Browser | None = None, settings: Settings | None = None):
        self._browser = browser
        self._settings = settings or get_settings()

    async def _resolve_browser(self) -> Browser:
        if self._browser is None:
            self._browser = await get_default_browser()
        return self._browser

    async def run(
        self,
        request: FetchRequest,
        on_page_load: Callable[[LoadedPage], Awaitable[T]],
    ) -> T:
        """Fetch ``request.url`` and return what ``on_page_load`` returns.

        Raises:
            PageViewerError: Exactly one terminal error per failed fetch.
        """
        fetch_cfg = self._settings.fetch
        total = request.time_budget if request.time_budget is not None else fetch_cfg.default_time_budget
        # A negative budget is already spent; navigation reports it as NavigationError.
        budget = DeadlineBudget(max(0.0, total))
        handle = None
        listeners: list[MimeGatekeeper | InflightRequestTracker | RawResponseCapturer] = []

        with LogContext(fetch_id=uuid.uuid4().hex[:12], url=request.url):
            if total < 0:
                logger.warning("Negative time budget treated as exhausted", time_budget=total)
            logger.debug("Fetch started", time_budget=total, sanitize=request.sanitize)
            try:
                browser = await self._resolve_browser()
                handle = await browser.open_page()
                page = handle.page

                if request.before_navigate is not None:
                    try:
                        await request.before_navigate(page)
                    except PageViewerError:
                        raise
                    except Exception as e:
                        raise NavigationError(
                            f"before-navigate hook failed: {e}",
                            url=request.url,
                            details={"stage": "before_navigate", "cause": type(e).__name__},
                        ) from e

                gatekeeper = MimeGatekeeper(page, request.url)
                tracker = InflightRequestTracker(page, fetch_cfg.request_idle_excludes)
                capturer = RawResponseCapturer(page) if request.capture_raw else None
                listeners = [gatekeeper, tracker]
                if capturer is not None:
                    listeners.append(capturer)
                for listener in listeners:
                    listener.arm()

                orchestrator = ReadinessOrchestrator(
                    page,
                    budget,
                    fetch_cfg,
                    gatekeeper,
                    tracker,
                    close_page=handle.release,
                )
                outcomes = await orchestrator.run(request.url)

                removed = 0
                if request.sanitize:
                    removed = await sanitize_page(page)

                loaded = LoadedPage(
                    page=page,
                    url=request.url,
                    outcomes=outcomes,
                    capturer=capturer,
                    removed_elements=removed,
                )
                result = await on_page_load(loaded)
                logger.debug("Fetch completed", elapsed=round(budget.elapsed(), 3))
                return result

            except PageViewerError as e:
                logger.warning("Fetch failed", error_code=e.code.value, error=e.message)
                raise
            except Exception as e:
                logger.exception("Unexpected fault during fetch")
                raise UnexpectedFault.from_exception(e, url=request.url) from e
            finally:
                for listener in listeners:
                    listener.disarm()
                budget.release()
                if handle is not None:
                    await handle.release()

    async def fetch_raw_html(self, url: str, time_budget: float | None = None) -> str:
        """Markup of the first textual response, before any script ran.

        Falls back to the rendered markup when no body was captured.
        """

        async def read(loaded: LoadedPage) -> str:
            return loaded.raw_html or await _rendered_html(loaded.page)

        return await self.run(FetchRequest(url, time_budget, capture_raw=True), read)

    async def fetch_rendered_html(
        self,
        url: str,
        time_budget: float | None = None,
        sanitize: bool = False,
    ) -> str:
        """Markup of the rendered document once ready."""

        async def read(loaded: LoadedPage) -> str:
            return await _rendered_html(loaded.page)

        return await self.run(FetchRequest(url, time_budget, sanitize=sanitize), read)

    async def fetch_article(self, url: str, time_budget: float | None = None) -> Article:
        """Readability article of the rendered page, with raw markup and Markdown."""
        extraction_cfg = self._settings.extraction

        async def read(loaded: LoadedPage) -> Article:
            return await extract_article(loaded.page, extraction_cfg, raw_html=loaded.raw_html)

        return await self.run(FetchRequest(url, time_budget, capture_raw=True), read)

    async def fetch_links(self, url: str, time_budget: float | None = None) -> str:
        """Visible navigable anchors as ``<a href="HREF">TEXT</a>`` lines."""

        async def read(loaded: LoadedPage) -> str:
            return format_links(await harvest_links(loaded.page))

        return await self.run(FetchRequest(url, time_budget), read)


async def visit(
    url: str,
    on_page_load: Callable[[LoadedPage], Awaitable[T]],
    *,
    time_budget: float | None = None,
    browser: Browser | None = None,
    before_navigate: BeforeNavigate | None = None,
    sanitize: bool = False,
) -> T:
    """Run one fetch and hand the ready page to ``on_page_load``.

    Uses the shared default browser unless ``browser`` is given.
    """
    request = FetchRequest(
        url,
        time_budget,
        before_navigate=before_navigate,
        sanitize=sanitize,
    )
    return await PageViewer(browser).run(request, on_page_load)


async def fetch_raw_html(url: str, time_budget: float | None = None) -> str:
    return await PageViewer().fetch_raw_html(url, time_budget)


async def fetch_rendered_html(url: str, time_budget: float | None = None, sanitize: bool = False) -> str:
    return await PageViewer().fetch_rendered_html(url, time_budget, sanitize)


async def fetch_article(url: str, time_budget: float | None = None) -> Article:
    return await PageViewer().fetch_article(url, time_budget)


async def fetch_links(url: str, time_budget: float | None = None) -> str:
    return await PageViewer().fetch_links(url, time_budget)

"""
Network listeners that run alongside the readiness stages of one fetch.

- MimeGatekeeper: classifies the primary response and signals rejection.
- RawResponseCapturer: snapshots the main document response body.
- InflightRequestTracker: counts outstanding requests for the request-idle wait.

Listeners report through write-once cells and an asyncio.Event. They never
raise into Playwright's event dispatch.
"""

import asyncio
import fnmatch
import threading
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from playwright.async_api import Error as PlaywrightError

from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page, Request, Response

logger = get_logger(__name__)

T = TypeVar("T")

TEXTUAL_MARKERS = ("text/", "application/json")


def is_textual(content_type: str | None) -> bool:
    """Whether a content type counts as renderable text/markup."""
    if not content_type:
        return False
    lowered = content_type.lower()
    return any(marker in lowered for marker in TEXTUAL_MARKERS)


class WriteOnceCell(Generic[T]):
    """A slot that accepts exactly one write; later writes are ignored."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._is_set = False

    def set(self, value: T) -> bool:
        """Store ``value`` if the cell is empty.

        Returns:
            True if this call performed the write.
        """
        with self._lock:
            if self._is_set:
                return False
            self._value = value
            self._is_set = True
            return True

    def get(self, default: T | None = None) -> T | None:
        with self._lock:
            return self._value if self._is_set else default

    @property
    def is_set(self) -> bool:
        with self._lock:
            return self._is_set


class ResponseClassification(Enum):
    """Classification of a fetch's primary response."""

    UNKNOWN = "unknown"
    RENDERABLE = "renderable"
    REJECTED = "rejected"


class MimeGatekeeper:
    """
    Latches the classification of the page's primary response.

    The first response with a textual content type latches RENDERABLE and
    disarms the gatekeeper. Any other content type seen while still UNKNOWN
    latches REJECTED and sets ``rejected``. Redirects and responses without
    a content type are skipped.
    """

    def __init__(self, page: "Page", url: str):
        self._page = page
        self._url = url
        self._verdict: WriteOnceCell[tuple[ResponseClassification, str, str]] = WriteOnceCell()
        self._armed = False
        self.rejected = asyncio.Event()

    def arm(self) -> None:
        if self._armed:
            return
        self._page.on("response", self._on_response)
        self._armed = True

    def disarm(self) -> None:
        if not self._armed:
            return
        self._armed = False
        try:
            self._page.remove_listener("response", self._on_response)
        except (KeyError, ValueError):
            pass

    def _on_response(self, response: "Response") -> None:
        if self._verdict.is_set:
            return
        if 300 <= response.status < 400:
            return
        content_type = response.headers.get("content-type", "")
        if not content_type:
            return

        if is_textual(content_type):
            if self._verdict.set((ResponseClassification.RENDERABLE, content_type, response.url)):
                logger.debug("Primary response is renderable", content_type=content_type)
                self.disarm()
            return

        if self._verdict.set((ResponseClassification.REJECTED, content_type, response.url)):
            logger.warning(
                "Rejecting non-renderable response",
                url=self._url,
                response_url=response.url,
                content_type=content_type,
            )
            self.rejected.set()
            self.disarm()

    async def wait_rejected(self) -> None:
        await self.rejected.wait()

    @property
    def classification(self) -> ResponseClassification:
        verdict = self._verdict.get()
        return verdict[0] if verdict else ResponseClassification.UNKNOWN

    @property
    def content_type(self) -> str | None:
        verdict = self._verdict.get()
        return verdict[1] if verdict else None

    @property
    def response_url(self) -> str | None:
        verdict = self._verdict.get()
        return verdict[2] if verdict else None


class RawResponseCapturer:
    """
    Stores the body of the page's main document response, verbatim.

    Only finished main-frame navigation requests qualify; redirect hops and
    subresources are ignored. The first qualifying request is claimed when
    its event arrives, before any body is read.
    """

    def __init__(self, page: "Page"):
        self._page = page
        self._claimed: WriteOnceCell["Request"] = WriteOnceCell()
        self._body: WriteOnceCell[str] = WriteOnceCell()
        self._armed = False

    def arm(self) -> None:
        if self._armed:
            return
        self._page.on("requestfinished", self._on_request_finished)
        self._armed = True

    def disarm(self) -> None:
        if not self._armed:
            return
        self._armed = False
        try:
            self._page.remove_listener("requestfinished", self._on_request_finished)
        except (KeyError, ValueError):
            pass

    def _is_main_document(self, request: "Request") -> bool:
        if not request.is_navigation_request():
            return False
        if request.frame is not self._page.main_frame:
            return False
        return request.redirected_to is None

    def _claim(self, request: "Request") -> bool:
        if self._claimed.is_set or self._page.is_closed():
            return False
        if not self._is_main_document(request):
            return False
        return self._claimed.set(request)

    async def _on_request_finished(self, request: "Request") -> None:
        # Claim before the first await: handlers start in event order.
        if not self._claim(request):
            return
        try:
            response = await request.response()
            if response is None:
                return
            if not is_textual(response.headers.get("content-type")):
                return
            body = await response.text()
        except PlaywrightError as e:
            # Page closed mid-fetch or body evicted; nothing to capture.
            logger.debug("Raw body unavailable", request_url=request.url, error=str(e))
            return

        if self._body.set(body):
            logger.debug("Captured raw response", request_url=request.url, length=len(body))

    @property
    def body(self) -> str | None:
        return self._body.get()


class InflightRequestTracker:
    """
    Counts outstanding requests, ignoring URLs matching an exclude list.

    Exclude patterns are fnmatch globs (e.g. ``*doubleclick.net*``).
    """

    def __init__(self, page: "Page", excludes: list[str] | None = None):
        self._page = page
        self._excludes = list(excludes or [])
        self._inflight: set["Request"] = set()
        self._changed = asyncio.Event()
        self._armed = False

    def arm(self) -> None:
        if self._armed:
            return
        self._page.on("request", self._on_request)
        self._page.on("requestfinished", self._on_done)
        self._page.on("requestfailed", self._on_done)
        self._armed = True

    def disarm(self) -> None:
        if not self._armed:
            return
        self._armed = False
        for event, handler in (
            ("request", self._on_request),
            ("requestfinished", self._on_done),
            ("requestfailed", self._on_done),
        ):
            try:
                self._page.remove_listener(event, handler)
            except (KeyError, ValueError):
                pass

    def is_excluded(self, url: str) -> bool:
        return any(fnmatch.fnmatch(url, pattern) for pattern in self._excludes)

    def _on_request(self, request: "Request") -> None:
        if self.is_excluded(request.url):
            return
        self._inflight.add(request)
        self._changed.set()

    def _on_done(self, request: "Request") -> None:
        if request in self._inflight:
            self._inflight.discard(request)
            self._changed.set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def wait_idle(self, quiet_window: float) -> None:
        """Return once no tracked request has been outstanding for ``quiet_window``.

        Unbounded on its own; callers wrap it in a timeout.
        """
        while True:
            while self._inflight:
                self._changed.clear()
                await self._changed.wait()

            self._changed.clear()
            try:
                await asyncio.wait_for(self._changed.wait(), timeout=quiet_window)
            except asyncio.TimeoutError:
                if not self._inflight:
                    return

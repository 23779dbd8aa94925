"""
Page readiness orchestration.

Navigates, then runs the readiness probes in order against one shrinking
deadline budget:

    navigate -> load -> engine idle -> request idle -> DOM stable

Navigation failure is fatal. Probe timeouts are tolerated and recorded.
A probe whose document is replaced by a client-side redirect is retried
within its ceiling. Any other probe failure is fatal (StageFailure).
The whole sequence is raced against the MIME gatekeeper; a rejection
preempts the remaining stages, closes the page and surfaces as
RejectedContentError.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pageviewer.crawler.budget import DeadlineBudget
from pageviewer.crawler.listeners import (
    InflightRequestTracker,
    MimeGatekeeper,
    ResponseClassification,
)
from pageviewer.errors import NavigationError, PageViewerError, RejectedContentError, StageFailure
from pageviewer.utils.config import FetchConfig
from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


# Resolves once the renderer reports an idle period.
ENGINE_IDLE_JS = """
() => new Promise((resolve) => {
    if (typeof window.requestIdleCallback === 'function') {
        window.requestIdleCallback(() => resolve(true));
    } else {
        setTimeout(() => resolve(false), 0);
    }
})
"""

# Records every element touched by a mutation since the last sample.
DOM_OBSERVER_INSTALL_JS = """
() => {
    if (window.__pageviewerDom) {
        window.__pageviewerDom.changed.clear();
        return true;
    }
    const changed = new Set();
    const observer = new MutationObserver((records) => {
        for (const record of records) {
            const target = record.target.nodeType === Node.ELEMENT_NODE
                ? record.target
                : record.target.parentElement;
            if (target) changed.add(target);
        }
    });
    observer.observe(document.documentElement || document, {
        subtree: true,
        childList: true,
        attributes: true,
        characterData: true,
    });
    window.__pageviewerDom = { observer, changed };
    return true;
}
"""

DOM_OBSERVER_SAMPLE_JS = """
() => {
    const state = window.__pageviewerDom;
    const changed = state ? state.changed.size : 0;
    if (state) state.changed.clear();
    return { changed, total: document.getElementsByTagName('*').length };
}
"""

DOM_OBSERVER_TEARDOWN_JS = """
() => {
    const state = window.__pageviewerDom;
    if (state) {
        state.observer.disconnect();
        delete window.__pageviewerDom;
    }
}
"""


class ReadinessStage(str, Enum):
    NAVIGATE = "navigate"
    LOAD = "load"
    ENGINE_IDLE = "engine_idle"
    REQUEST_IDLE = "request_idle"
    DOM_STABLE = "dom_stable"


class StageStatus(str, Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StageOutcome:
    """Result of one readiness stage and the ceiling it was offered."""

    stage: ReadinessStage
    status: StageStatus
    ceiling: float
    elapsed: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "ceiling": round(self.ceiling, 3),
            "elapsed": round(self.elapsed, 3),
        }


def _to_ms(seconds: float) -> int:
    # Playwright treats 0 as "no timeout".
    return max(1, int(seconds * 1000))


# Raised by evaluate when a client-side redirect replaces the document.
CONTEXT_REPLACED_MARKERS = (
    "Execution context was destroyed",
    "Cannot find context with specified id",
)


def _is_context_replaced(error: PlaywrightError) -> bool:
    message = str(error)
    return any(marker in message for marker in CONTEXT_REPLACED_MARKERS)


def _dom_change_ratio(sample: dict) -> float:
    changed = int(sample.get("changed", 0))
    total = int(sample.get("total", 0))
    if total <= 0:
        return 0.0 if changed == 0 else 1.0
    return changed / total


class ReadinessOrchestrator:
    """
    Drives one page from navigation to readiness.

    One instance per fetch. ``run`` returns the per-stage outcomes or raises
    NavigationError, StageFailure or RejectedContentError.
    """

    def __init__(
        self,
        page: "Page",
        budget: DeadlineBudget,
        config: FetchConfig,
        gatekeeper: MimeGatekeeper,
        tracker: InflightRequestTracker | None = None,
        close_page: Callable[[], Awaitable[None]] | None = None,
    ):
        self._page = page
        self._budget = budget
        self._config = config
        self._gatekeeper = gatekeeper
        self._tracker = tracker
        self._close_page = close_page or page.close
        self._url = ""

    async def run(self, url: str) -> list[StageOutcome]:
        self._url = url
        stages = asyncio.ensure_future(self._run_stages(url))
        rejection = asyncio.ensure_future(self._gatekeeper.wait_rejected())
        try:
            await asyncio.wait({stages, rejection}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (stages, rejection):
                if not task.done():
                    task.cancel()
            await asyncio.gather(stages, rejection, return_exceptions=True)

        if self._gatekeeper.classification is ResponseClassification.REJECTED:
            await self._teardown_rejected_page()
            raise RejectedContentError(
                url,
                self._gatekeeper.content_type or "",
                response_url=self._gatekeeper.response_url,
            )

        outcomes = stages.result()
        logger.debug(
            "Page ready",
            outcomes=[o.to_dict() for o in outcomes],
            elapsed=round(self._budget.elapsed(), 3),
        )
        return outcomes

    async def _teardown_rejected_page(self) -> None:
        try:
            await self._close_page()
        except PlaywrightError as e:
            logger.debug("Page already gone after rejection", error=str(e))

    async def _run_stages(self, url: str) -> list[StageOutcome]:
        outcomes = [await self._navigate(url)]

        cfg = self._config
        probes: list[tuple[ReadinessStage, float, Callable[[float], Awaitable[None]]]] = [
            (ReadinessStage.LOAD, cfg.load_ceiling, self._wait_load),
            (ReadinessStage.ENGINE_IDLE, cfg.engine_idle_ceiling, self._wait_engine_idle),
            (ReadinessStage.REQUEST_IDLE, cfg.request_idle_ceiling, self._wait_request_idle),
            (ReadinessStage.DOM_STABLE, cfg.dom_stable_ceiling, self._wait_dom_stable),
        ]
        for stage, cap, probe in probes:
            outcomes.append(await self._run_stage(stage, cap, probe))

        await self._teardown_dom_observer()
        return outcomes

    async def _navigate(self, url: str) -> StageOutcome:
        ceiling = self._budget.ceiling()
        if ceiling <= 0:
            raise NavigationError(
                f"time budget exhausted before navigating to {url}",
                url=url,
                details={"stage": ReadinessStage.NAVIGATE.value},
            )

        started = time.monotonic()
        try:
            await self._page.goto(url, wait_until="commit", timeout=_to_ms(ceiling))
        except Exception as e:
            raise NavigationError(
                f"navigation to {url} failed: {e}",
                url=url,
                details={"stage": ReadinessStage.NAVIGATE.value, "cause": type(e).__name__},
            ) from e

        elapsed = time.monotonic() - started
        logger.debug("Navigation committed", ceiling=round(ceiling, 3), elapsed=round(elapsed, 3))
        return StageOutcome(ReadinessStage.NAVIGATE, StageStatus.COMPLETED, ceiling, elapsed)

    async def _run_stage(
        self,
        stage: ReadinessStage,
        cap: float,
        probe: Callable[[float], Awaitable[None]],
    ) -> StageOutcome:
        ceiling = self._budget.ceiling(cap)
        if ceiling <= 0:
            logger.info("Readiness stage skipped, budget exhausted", stage=stage.value)
            return StageOutcome(stage, StageStatus.SKIPPED, 0.0)

        started = time.monotonic()
        deadline = started + ceiling
        left = ceiling
        while True:
            try:
                await asyncio.wait_for(probe(left), timeout=left)
                break
            except (asyncio.TimeoutError, PlaywrightTimeoutError):
                return self._timed_out(stage, ceiling, started)
            except PageViewerError:
                raise
            except PlaywrightError as e:
                if not _is_context_replaced(e):
                    logger.warning("Readiness stage failed", stage=stage.value, error=str(e))
                    raise StageFailure(stage.value, e, url=self._url) from e
                left = deadline - time.monotonic()
                if left <= 0:
                    return self._timed_out(stage, ceiling, started)
                # The new document gets the rest of this stage's ceiling.
                logger.info("Document replaced during stage, retrying", stage=stage.value, left=round(left, 3))
            except Exception as e:
                logger.warning("Readiness stage failed", stage=stage.value, error=str(e))
                raise StageFailure(stage.value, e, url=self._url) from e

        elapsed = time.monotonic() - started
        logger.debug(
            "Readiness stage completed",
            stage=stage.value,
            ceiling=round(ceiling, 3),
            elapsed=round(elapsed, 3),
        )
        return StageOutcome(stage, StageStatus.COMPLETED, ceiling, elapsed)

    def _timed_out(self, stage: ReadinessStage, ceiling: float, started: float) -> StageOutcome:
        elapsed = time.monotonic() - started
        logger.info(
            "Readiness stage timed out",
            stage=stage.value,
            ceiling=round(ceiling, 3),
            elapsed=round(elapsed, 3),
        )
        return StageOutcome(stage, StageStatus.TIMEOUT, ceiling, elapsed)

    async def _wait_load(self, ceiling: float) -> None:
        await self._page.wait_for_load_state("load", timeout=_to_ms(ceiling))

    async def _wait_engine_idle(self, ceiling: float) -> None:
        await self._page.evaluate(ENGINE_IDLE_JS)

    async def _wait_request_idle(self, ceiling: float) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.wait_idle(self._config.request_idle_quiet_window)
        except Exception as e:
            # Best effort: a broken tracker only ends the wait early.
            logger.debug("Request idle wait ended early", error=str(e))

    async def _wait_dom_stable(self, ceiling: float) -> None:
        interval = self._config.dom_stable_interval
        threshold = self._config.dom_stable_threshold
        await self._page.evaluate(DOM_OBSERVER_INSTALL_JS)
        while True:
            await asyncio.sleep(interval)
            sample = await self._page.evaluate(DOM_OBSERVER_SAMPLE_JS)
            ratio = _dom_change_ratio(sample or {})
            if ratio <= threshold:
                logger.debug("DOM stable", ratio=round(ratio, 4), sample=sample)
                return

    async def _teardown_dom_observer(self) -> None:
        if self._page.is_closed():
            return
        try:
            await self._page.evaluate(DOM_OBSERVER_TEARDOWN_JS)
        except PlaywrightError as e:
            logger.debug("DOM observer teardown failed", error=str(e))

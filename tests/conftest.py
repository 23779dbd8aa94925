"""
Pytest fixtures and configuration for pageviewer tests.

=============================================================================
Test Classification
=============================================================================

Primary Markers:
- @pytest.mark.unit: Single class/function, no browser, no network
  - DEFAULT: Tests without marker are auto-classified as unit
- @pytest.mark.integration: Several components wired together around a fake page
- @pytest.mark.e2e: Real Chromium against a local aiohttp server
  - DEFAULT SKIPPED: run with PAGEVIEWER_E2E=1 pytest -m e2e
  - Requires: playwright install chromium
- @pytest.mark.slow: Tests taking more than a few seconds

=============================================================================
Mock Strategy
=============================================================================

- Playwright pages: FakePage below (event emitter plus AsyncMock methods)
- Playwright responses/requests: make_response / make_request factories
- Configuration: tests/../config, with the settings cache cleared per test
"""

import asyncio
import os
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment before importing anything else
os.environ["PAGEVIEWER_CONFIG_DIR"] = str(Path(__file__).parent.parent / "config")
os.environ["PAGEVIEWER_GENERAL__LOG_LEVEL"] = "DEBUG"


def e2e_enabled() -> bool:
    return os.environ.get("PAGEVIEWER_E2E") == "1"


# =============================================================================
# Pytest Hooks for Test Classification
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line("markers", "unit: Unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Integration tests around a fake page")
    config.addinivalue_line("markers", "e2e: End-to-end tests against a real Chromium")
    config.addinivalue_line("markers", "slow: Tests that take more than a few seconds")


def pytest_collection_modifyitems(config, items):
    """Default unclassified tests to unit; skip e2e unless PAGEVIEWER_E2E=1."""
    skip_e2e = pytest.mark.skip(reason="E2E tests need a local Chromium. Run with PAGEVIEWER_E2E=1")

    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration", "e2e") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)

        if not e2e_enabled() and any(marker.name == "e2e" for marker in item.iter_markers()):
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Settings are lru_cached; each test sees a fresh load."""
    from pageviewer.utils.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Playwright fakes
# =============================================================================


# Frame shared by FakePage.main_frame and requests made for the main document.
MAIN_FRAME = MagicMock(name="main_frame")


class FakePage:
    """Stand-in for playwright.async_api.Page.

    Event handlers registered with ``on`` are invoked by ``emit``; coroutine
    handlers are awaited. Async page methods are AsyncMocks so tests can set
    return values or side effects.
    """

    def __init__(self, url: str = "https://example.com/article"):
        self.url = url
        self._handlers: dict[str, list[Callable]] = defaultdict(list)
        self.main_frame = MAIN_FRAME
        self._closed = False
        self.goto = AsyncMock(return_value=None)
        self.wait_for_load_state = AsyncMock(return_value=None)
        self.evaluate = AsyncMock(return_value=None)
        self.content = AsyncMock(return_value="<html><head></head><body></body></html>")
        self.eval_on_selector_all = AsyncMock(return_value=[])
        self.add_init_script = AsyncMock(return_value=None)
        self.close = AsyncMock(side_effect=self._mark_closed)

    async def _mark_closed(self, *args: Any, **kwargs: Any) -> None:
        self._closed = True

    def on(self, event: str, handler: Callable) -> None:
        self._handlers[event].append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self._handlers[event].remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers[event])

    def is_closed(self) -> bool:
        return self._closed

    async def emit(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers[event]):
            result = handler(payload)
            if asyncio.iscoroutine(result):
                await result


def _make_response(
    content_type: str | None = "text/html; charset=utf-8",
    *,
    status: int = 200,
    url: str = "https://example.com/article",
    body: str = "<html><body>raw</body></html>",
) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.url = url
    response.headers = {"content-type": content_type} if content_type is not None else {}
    response.text = AsyncMock(return_value=body)
    return response


def _make_request(
    url: str = "https://example.com/article",
    response: Any = None,
    *,
    navigation: bool = True,
    frame: Any = MAIN_FRAME,
    redirected_to: Any = None,
) -> MagicMock:
    """Finished request; by default the main document of the main frame."""
    request = MagicMock()
    request.url = url
    request.is_navigation_request.return_value = navigation
    request.frame = frame
    request.redirected_to = redirected_to
    request.response = AsyncMock(return_value=response)
    return request


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    return _make_response


@pytest.fixture
def make_request() -> Callable[..., MagicMock]:
    return _make_request


@pytest.fixture
def fetch_config():
    """Fast readiness settings for unit tests."""
    from pageviewer.utils.config import FetchConfig

    return FetchConfig(
        default_time_budget=5.0,
        load_ceiling=1.0,
        engine_idle_ceiling=0.5,
        request_idle_ceiling=0.2,
        request_idle_quiet_window=0.01,
        dom_stable_ceiling=0.5,
        dom_stable_interval=0.01,
        dom_stable_threshold=0.2,
    )


@pytest.fixture
def test_settings(fetch_config):
    from pageviewer.utils.config import GeneralConfig, Settings

    return Settings(general=GeneralConfig(log_level="DEBUG"), fetch=fetch_config)


@pytest.fixture
def fake_browser(fake_page):
    """Browser whose open_page hands out ``fake_page`` wrapped in a PageHandle."""
    from pageviewer.crawler.browser import PageHandle

    browser = MagicMock()
    browser.open_page = AsyncMock(side_effect=lambda: PageHandle(fake_page))
    return browser


# =============================================================================
# Sample documents
# =============================================================================


@pytest.fixture
def article_html() -> str:
    """A long-form article with a code block, suitable for readability."""
    paragraphs = "\n".join(
        f"<p>Paragraph {i} explains, in some detail, how the event loop schedules callbacks, "
        f"why blocking calls stall every coroutine, and how to keep handlers short.</p>"
        for i in range(1, 7)
    )
    return f"""<!DOCTYPE html>
<html lang="en" dir="ltr">
<head>
  <title>Understanding the Event Loop - Example Blog</title>
</head>
<body>
  <div class="nav"><a href="/">Home</a> | <a href="/about">About</a></div>
  <div class="article">
    <h1>Understanding the Event Loop</h1>
    {paragraphs}
    <pre><code>async def main():
    await asyncio.sleep(1)
    print("done")</code></pre>
    <p>Closing thoughts on structuring code, keeping callbacks small, and measuring latency.</p>
  </div>
  <div class="footer">Copyright Example Blog</div>
</body>
</html>"""

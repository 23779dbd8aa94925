"""
Thin Chromium wrapper: launch or connect, open pages, close.

A Browser is built explicitly from a BrowserConfig value. Fetches each get
their own page through ``open_page()``; the returned PageHandle closes the
page exactly once.
"""

import asyncio
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from pageviewer.crawler.stealth import apply_stealth, stealth_launch_args
from pageviewer.utils.config import BrowserConfig, get_settings
from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser as PlaywrightBrowser
    from playwright.async_api import BrowserContext, Page, Playwright

logger = get_logger(__name__)


class PageHandle:
    """Exclusively owned page. ``release()`` closes it once; later calls are no-ops."""

    def __init__(self, page: "Page"):
        self._page = page
        self._released = False

    @property
    def page(self) -> "Page":
        return self._page

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._page.is_closed():
            return
        try:
            await self._page.close()
        except PlaywrightError as e:
            # Browser went away underneath us; the page is gone either way.
            logger.debug("Page close failed", error=str(e))

    async def __aenter__(self) -> "PageHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.release()


def _launch_kwargs(options: BrowserConfig) -> dict[str, Any]:
    """Translate BrowserConfig into Playwright launch arguments."""
    devtools = options.devtools or options.debug
    args = ["--no-sandbox", *stealth_launch_args(options.viewport_width, options.viewport_height)]
    if devtools:
        args.append("--auto-open-devtools-for-tabs")
    if options.remote_debugging_port:
        args.append(f"--remote-debugging-port={options.remote_debugging_port}")

    kwargs: dict[str, Any] = {
        "headless": options.headless and not options.debug,
        "args": args,
        "ignore_default_args": ["--enable-automation"],
    }
    if options.proxy:
        kwargs["proxy"] = {"server": options.proxy}
    if options.chrome_path:
        kwargs["executable_path"] = options.chrome_path
    return kwargs


def _context_kwargs(options: BrowserConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"ignore_https_errors": options.ignore_cert_errors}
    if options.user_mode:
        kwargs["no_viewport"] = True
    else:
        kwargs["viewport"] = {
            "width": options.viewport_width,
            "height": options.viewport_height,
        }
    return kwargs


class Browser:
    """Shared browser connection. Safe for concurrent ``open_page`` calls."""

    def __init__(
        self,
        options: BrowserConfig,
        playwright: "Playwright",
        browser: "PlaywrightBrowser | None",
        context: "BrowserContext",
        *,
        is_cdp: bool = False,
    ):
        self._options = options
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._is_cdp = is_cdp
        self._closed = False

    @classmethod
    async def launch(cls, options: BrowserConfig | None = None) -> "Browser":
        """Launch Chromium (or attach to one) according to ``options``.

        - ``cdp_url`` attaches to a running Chrome over CDP.
        - ``user_data_dir`` launches a persistent context on that profile.
        - Otherwise a fresh Chromium is launched.
        """
        options = options or get_settings().browser
        playwright = await async_playwright().start()
        try:
            if options.cdp_url:
                browser = await playwright.chromium.connect_over_cdp(options.cdp_url)
                if browser.contexts:
                    context = browser.contexts[0]
                else:
                    context = await browser.new_context(**_context_kwargs(options))
                logger.info("Connected to Chrome via CDP", url=options.cdp_url)
                return cls(options, playwright, browser, context, is_cdp=True)

            launch_kwargs = _launch_kwargs(options)
            if options.user_data_dir:
                context = await playwright.chromium.launch_persistent_context(
                    options.user_data_dir,
                    **launch_kwargs,
                    **_context_kwargs(options),
                )
                logger.info(
                    "Launched persistent browser",
                    user_data_dir=options.user_data_dir,
                    headless=launch_kwargs["headless"],
                )
                return cls(options, playwright, context.browser, context)

            browser = await playwright.chromium.launch(**launch_kwargs)
            context = await browser.new_context(**_context_kwargs(options))
            logger.info(
                "Launched browser",
                headless=launch_kwargs["headless"],
                proxy=bool(options.proxy),
            )
            return cls(options, playwright, browser, context)
        except BaseException:
            await playwright.stop()
            raise

    @property
    def options(self) -> BrowserConfig:
        return self._options

    @property
    def is_connected(self) -> bool:
        if self._closed:
            return False
        if self._browser is None:
            return True
        return self._browser.is_connected()

    async def open_page(self) -> PageHandle:
        """Open a new page; stealth scripts are installed unless in user mode."""
        if self._closed:
            raise RuntimeError("browser is closed")
        page = await self._context.new_page()
        handle = PageHandle(page)
        if not self._options.user_mode:
            try:
                await apply_stealth(page, is_cdp=self._is_cdp)
            except BaseException:
                await handle.release()
                raise
        return handle

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if not self._is_cdp:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        except PlaywrightError as e:
            logger.warning("Browser close failed", error=str(e))
        finally:
            await self._playwright.stop()
        logger.info("Browser closed")

    async def __aenter__(self) -> "Browser":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


_default_browser: Browser | None = None
_default_lock = asyncio.Lock()


async def get_default_browser() -> Browser:
    """Return the shared default browser, launching it on first use."""
    global _default_browser
    async with _default_lock:
        if _default_browser is None:
            _default_browser = await Browser.launch(get_settings().browser)
        return _default_browser


async def close_default_browser() -> None:
    """Close the shared default browser if it was ever launched."""
    global _default_browser
    async with _default_lock:
        if _default_browser is not None:
            browser, _default_browser = _default_browser, None
            await browser.close()

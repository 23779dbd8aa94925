"""
Anti-fingerprinting for pages opened by pageviewer.

Pages opened in automation mode get an init script that hides the usual
automation markers before any page script runs. Pages opened in user mode
(a real user browser) are left untouched.
"""

from typing import TYPE_CHECKING

from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


STEALTH_JS = """
(() => {
    const hide = (target, prop, value) => {
        try {
            Object.defineProperty(target, prop, { get: () => value, configurable: true });
        } catch (e) {}
    };

    hide(navigator, 'webdriver', undefined);
    hide(navigator, 'languages', ['en-US', 'en']);
    hide(navigator, 'hardwareConcurrency', 8);

    if (!window.chrome) {
        window.chrome = {};
    }
    if (!window.chrome.runtime) {
        window.chrome.runtime = {};
    }

    const query = navigator.permissions && navigator.permissions.query
        ? navigator.permissions.query.bind(navigator.permissions)
        : null;
    if (query) {
        navigator.permissions.query = (parameters) =>
            parameters && parameters.name === 'notifications'
                ? Promise.resolve({ state: Notification.permission })
                : query(parameters);
    }

    for (const marker of ['__playwright', '__pwInitScripts', '__puppeteer', 'callPhantom', '_phantom']) {
        try {
            delete window[marker];
        } catch (e) {}
    }
})();
"""

# Chrome keeps these markers when attached over CDP after start-up.
CDP_STEALTH_JS = """
(() => {
    for (const key of Object.keys(window)) {
        if (key.startsWith('cdc_')) {
            try {
                delete window[key];
            } catch (e) {}
        }
    }
})();
"""


def stealth_launch_args(viewport_width: int, viewport_height: int) -> list[str]:
    """Chromium flags that reduce automation detection."""
    return [
        "--disable-blink-features=AutomationControlled",
        "--disable-infobars",
        "--disable-dev-shm-usage",
        f"--window-size={viewport_width},{viewport_height}",
    ]


async def apply_stealth(page: "Page", is_cdp: bool = False) -> None:
    """Install the stealth init scripts on ``page``.

    Must run before navigation so the overrides apply to the first document.
    """
    await page.add_init_script(STEALTH_JS)
    if is_cdp:
        await page.add_init_script(CDP_STEALTH_JS)
    logger.debug("Stealth scripts applied to page", is_cdp=is_cdp)

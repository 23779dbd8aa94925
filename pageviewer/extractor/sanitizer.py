"""
In-page DOM sanitization, run after readiness when a fetch asks for it.

Removes comments, scripting and head noise, elements rendered invisible
and presentation/identity attributes, leaving visible text-bearing markup.
"""

from typing import TYPE_CHECKING

from pageviewer.errors import SanitizationError
from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


# Attribute names stripped from every surviving element (prefix match).
STRIPPED_ATTRIBUTE_PATTERN = (
    r"^(style|class|width|height|align|valign|bgcolor|border|color|font|margin|padding"
    r"|data\-|aria\-|id|name|run|role|on|target|cell|page|title|rel|src|link)"
)

SANITIZE_JS = (
    """
() => {
    const comments = [];
    const walker = document.createTreeWalker(document, NodeFilter.SHOW_COMMENT);
    let node;
    while ((node = walker.nextNode())) {
        comments.push(node);
    }
    comments.forEach((comment) => comment.remove());

    const doomed = new Set();
    for (const selector of ['script', 'style', 'meta', 'link', 'input[type="hidden"]']) {
        document.querySelectorAll(selector).forEach((el) => doomed.add(el));
    }

    if (document.body) {
        for (const el of document.body.getElementsByTagName('*')) {
            if (doomed.has(el)) continue;
            const style = window.getComputedStyle(el);
            const rect = el.getBoundingClientRect();
            if (style.display === 'none'
                || style.visibility === 'hidden'
                || style.opacity === '0'
                || rect.width === 0
                || rect.height === 0) {
                doomed.add(el);
            }
        }
    }

    doomed.forEach((el) => el.remove());

    const stripped = /"""
    + STRIPPED_ATTRIBUTE_PATTERN
    + """/i;
    for (const el of document.getElementsByTagName('*')) {
        for (const attr of Array.from(el.attributes)) {
            if (stripped.test(attr.name)) {
                el.removeAttribute(attr.name);
            }
        }
    }

    return doomed.size;
}
"""
)


async def sanitize_page(page: "Page") -> int:
    """Sanitize the live document of ``page``.

    Returns:
        Number of elements removed.

    Raises:
        SanitizationError: If the in-page pass cannot be evaluated.
    """
    try:
        removed = await page.evaluate(SANITIZE_JS)
    except Exception as e:
        raise SanitizationError(
            f"sanitization failed: {e}",
            url=page.url,
            details={"cause": type(e).__name__},
        ) from e

    removed = int(removed or 0)
    logger.debug("Sanitized page", removed=removed)
    return removed

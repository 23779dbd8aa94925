"""Visible, navigable anchors of a ready page."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pageviewer.errors import ExtractionFailure
from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


# SVG anchors expose href as an SVGAnimatedString.
ANCHORS_JS = """
(anchors) => anchors.map((a) => ({
    text: a.innerText || '',
    href: typeof a.href === 'string' ? a.href : ((a.href && a.href.baseVal) || ''),
}))
"""


@dataclass(frozen=True)
class LinkRecord:
    text: str
    href: str

    def to_html(self) -> str:
        return f'<a href="{self.href}">{self.text}</a>'


def _is_navigable(href: str) -> bool:
    return bool(href) and not href.strip().lower().startswith("javascript:")


async def harvest_links(page: "Page") -> list[LinkRecord]:
    """Collect anchors with text and a navigable href, in document order.

    Raises:
        ExtractionFailure: If the anchors cannot be evaluated.
    """
    try:
        raw_anchors = await page.eval_on_selector_all("a", ANCHORS_JS)
    except Exception as e:
        raise ExtractionFailure(
            f"could not read anchors: {e}",
            url=page.url,
            details={"cause": type(e).__name__},
        ) from e

    links = []
    for anchor in raw_anchors or []:
        text = (anchor.get("text") or "").strip()
        href = anchor.get("href") or ""
        if not text or not _is_navigable(href):
            continue
        links.append(LinkRecord(text=text, href=href))

    logger.debug("Harvested links", total=len(raw_anchors or []), kept=len(links))
    return links


def format_links(links: list[LinkRecord]) -> str:
    """Serialize links as ``<a href="HREF">TEXT</a>``, one per line."""
    return "\n".join(link.to_html() for link in links)

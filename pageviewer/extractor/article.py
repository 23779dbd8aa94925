"""
Readability article extraction from a ready page.

The page's document is cloned in page context (optionally flattening shadow
roots), non-content tags are dropped from the clone, and readability-lxml
runs over the clone's markup. Byline, site name, date and description come
from trafilatura metadata over the rendered document, since the clone has
no meta tags. Markdown is derived from the article content with markdownify.
"""

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

import lxml.html
import trafilatura
from lxml.etree import ParserError
from markdownify import ATX, markdownify
from readability import Document
from readability.readability import Unparseable

from pageviewer.errors import ConversionError, ExtractionFailure, NoContentFound
from pageviewer.utils.config import ExtractionConfig
from pageviewer.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


# Clones the document into a detached one. Custom elements become <div>
# wrappers and are dropped when they end up holding no text.
CLONE_JS = """
(options) => {
    const excludeTags = new Set((options.excludeTags || []).map((t) => t.toLowerCase()));
    const excludeClasses = options.excludeClasses || [];
    const traverseShadow = options.traverseShadow !== false;

    const shouldExclude = (node) => {
        if (!(node instanceof Element)) return false;
        if (excludeTags.has(node.tagName.toLowerCase())) return true;
        return excludeClasses.some((cls) => node.classList.contains(cls));
    };

    const cloneNode = (node) => {
        const isElement = node instanceof HTMLElement;
        const shadow = traverseShadow && isElement ? node.shadowRoot : null;
        const isComponent = traverseShadow && isElement
            && (shadow !== null || node.tagName.includes('-'));
        const clone = isComponent ? document.createElement('div') : node.cloneNode(false);

        const append = (children) => {
            for (const child of children) {
                if (shouldExclude(child)) continue;
                const cloned = cloneNode(child);
                if (cloned) clone.appendChild(cloned);
            }
        };
        if (shadow) append(shadow.childNodes);
        append(node.childNodes);

        if (isComponent && !(clone.textContent || '').trim()) {
            return null;
        }
        return clone;
    };

    const doc = document.implementation.createHTMLDocument(document.title);
    for (const [source, target] of [[document.head, doc.head], [document.body, doc.body]]) {
        if (!source) continue;
        for (const child of source.childNodes) {
            if (shouldExclude(child)) continue;
            const cloned = cloneNode(child);
            if (cloned) target.appendChild(cloned);
        }
    }

    const root = document.documentElement;
    return {
        html: doc.documentElement.outerHTML,
        lang: (root && root.getAttribute('lang')) || '',
        dir: (root && root.getAttribute('dir')) || '',
    };
}
"""


@dataclass
class Article:
    """Structured main content of a page."""

    title: str = ""
    byline: str = ""
    direction: str = ""
    language: str = ""
    content_html: str = ""
    text_content: str = ""
    length: int = 0
    excerpt: str = ""
    site_name: str = ""
    published_time: str = ""
    raw_html: str = ""
    html: str = ""
    markdown: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the public JSON keys."""
        data = asdict(self)
        return {
            "title": data["title"],
            "byline": data["byline"],
            "dir": data["direction"],
            "lang": data["language"],
            "content": data["content_html"],
            "textContent": data["text_content"],
            "length": data["length"],
            "excerpt": data["excerpt"],
            "siteName": data["site_name"],
            "publishedTime": data["published_time"],
            "raw_html": data["raw_html"],
            "html": data["html"],
            "markdown": data["markdown"],
        }


def html_to_markdown(content_html: str) -> str:
    """Convert an article fragment to Markdown (ATX headings, fenced code).

    Raises:
        ConversionError: If the converter fails.
    """
    try:
        markdown = markdownify(content_html, heading_style=ATX, bullets="-")
    except Exception as e:
        raise ConversionError(
            f"markdown conversion failed: {e}",
            details={"cause": type(e).__name__},
        ) from e
    return markdown.strip()


def _text_of(fragment_html: str) -> str:
    if not fragment_html.strip():
        return ""
    try:
        return lxml.html.fromstring(fragment_html).text_content().strip()
    except ParserError:
        return ""


def _first_paragraph(fragment_html: str) -> str:
    if not fragment_html.strip():
        return ""
    try:
        tree = lxml.html.fromstring(fragment_html)
    except ParserError:
        return ""
    for paragraph in tree.iter("p"):
        text = " ".join(paragraph.text_content().split())
        if text:
            return text
    return ""


def _metadata(rendered_html: str, url: str) -> dict[str, str]:
    metadata = trafilatura.extract_metadata(rendered_html, default_url=url) if rendered_html else None
    if metadata is None:
        return {}
    fields = ("title", "author", "date", "sitename", "description", "language")
    return {field: getattr(metadata, field, None) or "" for field in fields}


def build_article(
    clone_html: str,
    *,
    url: str,
    rendered_html: str = "",
    lang: str = "",
    direction: str = "",
    raw_html: str = "",
    min_content_length: int = 50,
) -> Article:
    """Run readability over cloned markup and assemble an Article.

    Raises:
        NoContentFound: If no content of at least ``min_content_length`` characters qualifies.
        ConversionError: If Markdown conversion fails.
    """
    try:
        doc = Document(clone_html, url=url)
        content_html = doc.summary(html_partial=True)
        short_title = doc.short_title()
    except Unparseable as e:
        raise NoContentFound(
            f"no readable content at {url}",
            url=url,
            details={"cause": str(e)},
        ) from e

    text_content = _text_of(content_html)
    if len(text_content) < min_content_length:
        raise NoContentFound(
            f"no readable content at {url}",
            url=url,
            details={"text_length": len(text_content), "min_content_length": min_content_length},
        )

    meta = _metadata(rendered_html, url)
    markdown = html_to_markdown(content_html)

    return Article(
        title=short_title or meta.get("title", ""),
        byline=meta.get("author", ""),
        direction=direction,
        language=lang or meta.get("language", ""),
        content_html=content_html,
        text_content=text_content,
        length=len(text_content),
        excerpt=meta.get("description") or _first_paragraph(content_html),
        site_name=meta.get("sitename", ""),
        published_time=meta.get("date", ""),
        raw_html=raw_html,
        html=rendered_html,
        markdown=markdown,
    )


async def extract_article(
    page: "Page",
    config: ExtractionConfig,
    *,
    raw_html: str = "",
) -> Article:
    """Extract the article of a ready page.

    Raises:
        ExtractionFailure: If the document cannot be read or cloned.
        NoContentFound: If readability finds nothing qualifying.
        ConversionError: If Markdown conversion fails.
    """
    url = page.url
    try:
        rendered_html = await page.content()
        cloned = await page.evaluate(
            CLONE_JS,
            {
                "excludeTags": config.exclude_tags,
                "excludeClasses": config.exclude_classes,
                "traverseShadow": config.traverse_shadow_dom,
            },
        )
    except Exception as e:
        raise ExtractionFailure(
            f"could not clone document: {e}",
            url=url,
            details={"cause": type(e).__name__},
        ) from e

    article = build_article(
        cloned.get("html", ""),
        url=url,
        rendered_html=rendered_html,
        lang=cloned.get("lang", ""),
        direction=cloned.get("dir", ""),
        raw_html=raw_html,
        min_content_length=config.min_content_length,
    )
    logger.debug("Extracted article", title=article.title, length=article.length)
    return article

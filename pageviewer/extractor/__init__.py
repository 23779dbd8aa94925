"""
Content extraction module for pageviewer.

Provides DOM sanitization, readability article extraction and link
harvesting over a ready page.
"""

from pageviewer.extractor.article import Article, build_article, extract_article, html_to_markdown
from pageviewer.extractor.links import LinkRecord, format_links, harvest_links
from pageviewer.extractor.sanitizer import sanitize_page

__all__ = [
    "Article",
    "build_article",
    "extract_article",
    "html_to_markdown",
    "LinkRecord",
    "format_links",
    "harvest_links",
    "sanitize_page",
]

"""
Command-line entry point for pageviewer.

    pageviewer article https://example.com/ --format markdown
"""

import argparse
import asyncio
import json
import sys

from pageviewer.crawler.browser import close_default_browser
from pageviewer.crawler.viewer import PageViewer
from pageviewer.errors import PageViewerError
from pageviewer.utils.config import get_settings
from pageviewer.utils.logging import configure_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pageviewer",
        description="Fetch a page through Chromium once it is ready and print its content",
    )
    parser.add_argument(
        "command",
        choices=["raw", "html", "article", "links"],
        help="What to read from the page",
    )
    parser.add_argument("url", help="Page URL")
    parser.add_argument(
        "--budget",
        "-b",
        type=float,
        default=None,
        help="Time budget in seconds (default from settings)",
    )
    parser.add_argument(
        "--sanitize",
        action="store_true",
        help="Strip invisible elements and presentation attributes ('html' only)",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["json", "markdown"],
        default="json",
        help="Output format for 'article'",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default from settings)",
    )
    return parser


async def run_command(args: argparse.Namespace) -> str:
    """Run one CLI command and return its printable output."""
    viewer = PageViewer()
    try:
        if args.command == "raw":
            return await viewer.fetch_raw_html(args.url, args.budget)
        if args.command == "html":
            return await viewer.fetch_rendered_html(args.url, args.budget, args.sanitize)
        if args.command == "links":
            return await viewer.fetch_links(args.url, args.budget)

        article = await viewer.fetch_article(args.url, args.budget)
        if args.format == "markdown":
            return article.markdown
        return json.dumps(article.to_dict(), ensure_ascii=False, indent=2)
    finally:
        await close_default_browser()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(log_level=args.log_level or settings.general.log_level)
    logger = get_logger(__name__)

    try:
        output = asyncio.run(run_command(args))
    except PageViewerError as e:
        logger.debug("Command failed", command=args.command, error_code=e.code.value)
        print(json.dumps(e.to_dict(), ensure_ascii=False), file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

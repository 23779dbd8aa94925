"""
Tests for link harvesting (pageviewer/extractor/links.py).

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|----------------------|--------------------------------------|-----------------|-------|
| TC-L-N-01 | 3 plain, 1 javascript:, 1 image-only | Equivalence – filtering | Exactly the 3 plain anchors, in order | - |
| TC-L-B-01 | JAVASCRIPT: in upper case, padded | Boundary – case | Excluded | - |
| TC-L-B-02 | Empty href, whitespace text | Boundary – empty | Excluded | - |
| TC-L-N-02 | Duplicate anchors | Equivalence – duplicates | Both kept | - |
| TC-L-N-03 | format_links | Equivalence – serialization | One <a> per line | - |
| TC-L-B-03 | No anchors | Boundary – empty | Empty string | - |
| TC-L-A-01 | eval_on_selector_all raises | Abnormal – eval failure | ExtractionFailure | - |
"""

import pytest
from playwright.async_api import Error as PlaywrightError

from pageviewer.errors import ExtractionFailure
from pageviewer.extractor.links import ANCHORS_JS, LinkRecord, format_links, harvest_links

pytestmark = pytest.mark.unit


class TestHarvestLinks:
    @pytest.mark.asyncio
    async def test_keeps_only_plain_anchors(self, fake_page) -> None:
        """
        TC-L-N-01
        Given: Three plain anchors, one javascript: anchor and one image-only anchor
        When: Links are harvested
        Then: Exactly the three plain anchors come back in document order
        """
        # Given
        fake_page.eval_on_selector_all.return_value = [
            {"text": "First", "href": "https://example.com/1"},
            {"text": "Run", "href": "javascript:void(0)"},
            {"text": "Second", "href": "https://example.com/2"},
            {"text": "", "href": "https://example.com/logo"},
            {"text": "  Third  ", "href": "https://example.com/3"},
        ]

        # When
        links = await harvest_links(fake_page)

        # Then
        assert links == [
            LinkRecord("First", "https://example.com/1"),
            LinkRecord("Second", "https://example.com/2"),
            LinkRecord("Third", "https://example.com/3"),
        ]
        fake_page.eval_on_selector_all.assert_awaited_once_with("a", ANCHORS_JS)

    @pytest.mark.asyncio
    async def test_javascript_scheme_any_case(self, fake_page) -> None:
        """TC-L-B-01: The javascript: check ignores case and padding."""
        fake_page.eval_on_selector_all.return_value = [
            {"text": "Click", "href": " JavaScript:alert(1)"},
        ]

        assert await harvest_links(fake_page) == []

    @pytest.mark.asyncio
    async def test_empty_values_skipped(self, fake_page) -> None:
        """TC-L-B-02: Empty href or whitespace-only text is skipped."""
        fake_page.eval_on_selector_all.return_value = [
            {"text": "No target", "href": ""},
            {"text": "   \n", "href": "https://example.com/"},
            {"text": None, "href": None},
        ]

        assert await harvest_links(fake_page) == []

    @pytest.mark.asyncio
    async def test_duplicates_kept(self, fake_page) -> None:
        """TC-L-N-02: Repeated anchors are all reported."""
        fake_page.eval_on_selector_all.return_value = [
            {"text": "Home", "href": "https://example.com/"},
            {"text": "Home", "href": "https://example.com/"},
        ]

        links = await harvest_links(fake_page)

        assert len(links) == 2

    @pytest.mark.asyncio
    async def test_evaluation_failure(self, fake_page) -> None:
        """
        TC-L-A-01
        Given: A page whose context was destroyed
        When: Links are harvested
        Then: ExtractionFailure is raised
        """
        fake_page.eval_on_selector_all.side_effect = PlaywrightError("Target closed")

        with pytest.raises(ExtractionFailure, match="Target closed"):
            await harvest_links(fake_page)


class TestFormatLinks:
    def test_one_anchor_per_line(self) -> None:
        """TC-L-N-03: Links serialize as <a> lines in order."""
        links = [
            LinkRecord("First", "https://example.com/1"),
            LinkRecord("Second", "https://example.com/2?a=1&b=2"),
        ]

        assert format_links(links) == (
            '<a href="https://example.com/1">First</a>\n'
            '<a href="https://example.com/2?a=1&b=2">Second</a>'
        )

    def test_empty(self) -> None:
        """TC-L-B-03: No links serialize to an empty string."""
        assert format_links([]) == ""

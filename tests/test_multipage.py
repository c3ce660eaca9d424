"""Tests for pagegrab.multipage - paginated article assembly."""

from __future__ import annotations

from pagegrab.client import FetchError, HttpResponse
from pagegrab.items import ExtractionResult
from pagegrab.multipage import CONTINUATION_NOTICE, assemble_pages

START = "https://x.com/a/story"
NOTICE_TEXT = "This article appears to continue on subsequent pages which we could not extract"


class Site:
    """Fake fetch/extract pair: URL -> (body html, next link)."""

    def __init__(self, pages: dict[str, tuple[str, str | None]]) -> None:
        self.pages = pages
        self.fetched: list[str] = []
        self.failing_fetch: set[str] = set()
        self.failing_extract: set[str] = set()
        self.empty: set[str] = set()

    def fetch_page(self, url: str) -> HttpResponse:
        self.fetched.append(url)
        if url in self.failing_fetch or url not in self.pages:
            raise FetchError("HTTP 500", url=url, status=500)
        if url in self.empty:
            return HttpResponse(url=url, html=None, content_type="text/html")
        return HttpResponse(url=url, html=f"<html>{url}</html>", content_type="text/html")

    def extract_page(self, html: str, url: str) -> ExtractionResult:
        if url in self.failing_extract:
            return ExtractionResult(success=False)
        body, next_url = self.pages[url]
        return ExtractionResult(html=body, next_page_url=next_url, success=True)

    def first(self) -> ExtractionResult:
        body, next_url = self.pages[START]
        return ExtractionResult(title="T", html=body, next_page_url=next_url, success=True)

    def assemble(self, limit: int = 10) -> ExtractionResult:
        return assemble_pages(self.first(), START, self.fetch_page, self.extract_page, limit)


def _three_pages() -> Site:
    return Site(
        {
            START: ("<p>one</p>", "/a/story?p=2"),
            "https://x.com/a/story?p=2": ("<p>two</p>", "story?p=3"),
            "https://x.com/a/story?p=3": ("<p>three</p>", None),
        },
    )


class TestAssemblePages:
    def test_three_page_chain_in_order(self):
        site = _three_pages()
        result = site.assemble()
        assert result.html == "<div><p>one</p></div><div><p>two</p></div><div><p>three</p></div>"
        assert site.fetched == ["https://x.com/a/story?p=2", "https://x.com/a/story?p=3"]

    def test_first_result_fields_kept(self):
        result = _three_pages().assemble()
        assert result.title == "T"
        assert result.success

    def test_relative_links_resolved_against_current_page(self):
        site = Site(
            {
                START: ("<p>one</p>", "https://x.com/b/part2"),
                "https://x.com/b/part2": ("<p>two</p>", "part3"),
                "https://x.com/b/part3": ("<p>three</p>", None),
            },
        )
        site.assemble()
        assert site.fetched[-1] == "https://x.com/b/part3"

    def test_cycle_back_to_first_page_stops(self):
        site = Site(
            {
                START: ("<p>one</p>", "/a/story?p=2"),
                "https://x.com/a/story?p=2": ("<p>two</p>", "https://x.com/a/story#top"),
            },
        )
        result = site.assemble()
        assert result.html == "<div><p>one</p></div><div><p>two</p></div>"
        assert site.fetched == ["https://x.com/a/story?p=2"]
        assert NOTICE_TEXT not in result.html

    def test_page_limit(self):
        site = _three_pages()
        result = site.assemble(limit=2)
        assert "three" not in result.html
        assert site.fetched == ["https://x.com/a/story?p=2"]

    def test_limit_of_one_returns_first(self):
        site = _three_pages()
        first = site.first()
        assert assemble_pages(first, START, site.fetch_page, site.extract_page, 1) is first

    def test_fetch_error_appends_notice(self):
        site = _three_pages()
        site.failing_fetch.add("https://x.com/a/story?p=3")
        result = site.assemble()
        assert result.html.endswith(CONTINUATION_NOTICE)
        assert "<p>two</p>" in result.html

    def test_failed_extraction_appends_notice(self):
        site = _three_pages()
        site.failing_extract.add("https://x.com/a/story?p=2")
        result = site.assemble()
        assert result.html == "<div><p>one</p></div>" + CONTINUATION_NOTICE

    def test_empty_response_appends_notice(self):
        site = _three_pages()
        site.empty.add("https://x.com/a/story?p=2")
        assert NOTICE_TEXT in site.assemble().html

    def test_no_next_page_returns_first_unchanged(self):
        site = Site({START: ("<p>only</p>", None)})
        first = site.first()
        assert assemble_pages(first, START, site.fetch_page, site.extract_page) is first

    def test_unresolvable_link_stops_silently(self):
        site = Site({START: ("<p>one</p>", "mailto:editor@x.com")})
        first = site.first()
        assert assemble_pages(first, START, site.fetch_page, site.extract_page) is first
        assert site.fetched == []

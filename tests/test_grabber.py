"""Tests for pagegrab.grabber - fetch, single-page view and pagination."""

from __future__ import annotations

import logging

import pytest

from pagegrab.client import FetchError, HttpResponse
from pagegrab.extractors.content import ContentExtractor
from pagegrab.grabber import Grabber
from pagegrab.rules import ExtractionRuleSet, RuleRepository

URL = "https://example.com/story"
PAGE2 = "https://example.com/story?page=2"


def _grabber(repository, transport, no_fallback, **kwargs) -> Grabber:
    return Grabber(
        rule_provider=repository,
        client=transport,
        extractor=ContentExtractor(fallback=no_fallback),
        **kwargs,
    )


class TestExtract:
    def test_multipage_article(self, repository, transport, no_fallback, article_html, article_page2_html):
        transport.add_html(URL, article_html)
        transport.add_html(PAGE2, article_page2_html)
        result = _grabber(repository, transport, no_fallback).extract(URL)
        assert result.success
        assert result.title == "Rule Headline"
        assert "First paragraph" in result.html
        assert "Continuation paragraph" in result.html
        assert result.html.index("First paragraph") < result.html.index("Continuation paragraph")
        assert result.original_url == URL
        assert result.final_url == URL
        assert result.status == 200

    def test_rule_headers_sent(self, repository, transport, no_fallback, article_html, article_page2_html):
        transport.add_html(URL, article_html)
        transport.add_html(PAGE2, article_page2_html)
        _grabber(repository, transport, no_fallback).extract(URL)
        assert transport.calls[0][1] == {"user-agent": "PageGrabTest/1.0"}
        assert transport.calls[1][1] == {"user-agent": "PageGrabTest/1.0"}

    def test_multipage_disabled(self, repository, transport, no_fallback, article_html):
        transport.add_html(URL, article_html)
        result = _grabber(repository, transport, no_fallback, multipage=False).extract(URL)
        assert result.success
        assert result.next_page_url == "/story?page=2"
        assert len(transport.calls) == 1

    def test_missing_second_page_adds_notice(self, repository, transport, no_fallback, article_html):
        transport.add_html(URL, article_html)
        result = _grabber(repository, transport, no_fallback).extract(URL)
        assert "could not extract" in result.html
        assert "First paragraph" in result.html

    def test_non_html_response(self, repository, transport, no_fallback):
        transport.pages[URL] = HttpResponse(
            url="https://example.com/file.pdf",
            html=None,
            content_type="application/pdf",
            status=200,
            special_content=True,
        )
        result = _grabber(repository, transport, no_fallback).extract(URL)
        assert not result.success
        assert result.html == ""
        assert result.original_url == URL
        assert result.final_url == "https://example.com/file.pdf"
        assert result.status == 200

    def test_html_type_without_body_raises(self, repository, transport, no_fallback):
        transport.pages[URL] = HttpResponse(url=URL, html=None, content_type="text/html", status=200)
        with pytest.raises(FetchError, match="No HTML content found"):
            _grabber(repository, transport, no_fallback).extract(URL)

    def test_fetch_error_propagates(self, repository, transport, no_fallback):
        with pytest.raises(FetchError) as exc_info:
            _grabber(repository, transport, no_fallback).extract(URL)
        assert exc_info.value.status == 404

    def test_cross_host_redirect_reresolves_rules(self, transport, no_fallback):
        repo = RuleRepository(
            {
                "old.test": ExtractionRuleSet(title=("//h1",), body=("//div[@id='old']",)),
                "new.test": ExtractionRuleSet(title=("//h2",), body=("//div[@id='new']",)),
            },
        )
        html = "<html><body><h1>Old</h1><h2>New</h2><div id='old'>o</div><div id='new'>n</div></body></html>"
        transport.add_html("https://old.test/a", html, final_url="https://new.test/a")
        result = _grabber(repo, transport, no_fallback).extract("https://old.test/a")
        assert result.title == "New"
        assert result.final_url == "https://new.test/a"


class TestRuleLookup:
    def test_injected_extractor_uses_grabber_rules(
        self, repository, transport, no_fallback, article_html, article_page2_html,
    ):
        transport.add_html(URL, article_html)
        transport.add_html(PAGE2, article_page2_html)
        grabber = Grabber(
            rule_provider=repository,
            client=transport,
            extractor=ContentExtractor(fallback=no_fallback),
        )
        result = grabber.extract(URL)
        assert result.success
        assert result.title == "Rule Headline"
        assert "Continuation paragraph" in result.html

    def test_failing_provider_is_logged(self, transport, no_fallback, caplog):
        class BrokenRules:
            def rules_for_host(self, hostname):
                raise RuntimeError("rules backend down")

        transport.add_html(URL, "<html><body><p>x</p></body></html>")
        grabber = Grabber(
            rule_provider=BrokenRules(),
            client=transport,
            extractor=ContentExtractor(fallback=no_fallback),
        )
        with caplog.at_level(logging.ERROR, logger="pagegrab.grabber"):
            result = grabber.extract(URL)
        assert not result.success
        assert "rules backend down" in caplog.text


class TestSinglePageView:
    HTML = (
        "<html><body><article><p>Part one</p></article>"
        "<a class='print-view' href='/print/story'>Print</a></body></html>"
    )
    PRINT = "<html><body><article><p>Whole story</p></article></body></html>"

    def test_single_page_replaces_content(self, repository, transport, no_fallback):
        transport.add_html("https://news.example.org/story", self.HTML)
        transport.add_html("https://news.example.org/print/story", self.PRINT)
        result = _grabber(repository, transport, no_fallback).extract("https://news.example.org/story")
        assert "Whole story" in result.html
        assert "Part one" not in result.html
        assert result.final_url == "https://news.example.org/print/story"
        assert transport.calls[1] == ("https://news.example.org/print/story", {}, True)

    def test_single_page_failure_keeps_original(self, repository, transport, no_fallback):
        transport.add_html("https://news.example.org/story", self.HTML)
        result = _grabber(repository, transport, no_fallback).extract("https://news.example.org/story")
        assert "Part one" in result.html
        assert result.final_url == "https://news.example.org/story"

    def test_no_single_page_rule_means_no_extra_fetch(self, repository, transport, no_fallback, article_html):
        transport.add_html(URL, article_html)
        _grabber(repository, transport, no_fallback, multipage=False).extract(URL)
        assert [call[0] for call in transport.calls] == [URL]


class TestPrefetched:
    def test_extract_from_html(self, repository, transport, no_fallback, article_html, article_page2_html):
        transport.add_html(PAGE2, article_page2_html)
        result = _grabber(repository, transport, no_fallback).extract_from_html(article_html, URL)
        assert result.original_url == URL
        assert result.final_url == URL
        assert "Continuation paragraph" in result.html

    def test_extract_from_bytes_uses_header_charset(self, transport, no_fallback):
        repo = RuleRepository({"example.ru": ExtractionRuleSet(body=("//article",))})
        raw = "<html><body><article><p>Привет, мир</p></article></body></html>".encode("windows-1251")
        result = _grabber(repo, transport, no_fallback).extract_from_bytes(
            raw,
            "https://example.ru/news",
            {"Content-Type": "text/html; charset=windows-1251"},
        )
        assert result.success
        assert "Привет, мир" in result.html

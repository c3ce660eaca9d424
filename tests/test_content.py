"""Tests for pagegrab.extractors.content - the single-page pipeline."""

from __future__ import annotations

from pagegrab.extractors.content import ContentExtractor
from pagegrab.extractors.fallback import FallbackResult, ReadabilityFallback
from pagegrab.items import ExtractionResult
from pagegrab.rules import ExtractionRuleSet

URL = "https://example.com/story"


class StaticFallback:
    def __init__(self, result: FallbackResult | None) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    def extract(self, html, url=""):
        self.calls.append((html, url))
        return self.result


class ExplodingFallback:
    def extract(self, html, url=""):
        raise RuntimeError("readability crashed")


class ExplodingRules:
    def rules_for_host(self, hostname):
        raise RuntimeError("rules backend down")


FALLBACK = FallbackResult(
    title="Fallback Title",
    body_html="<div><p>Fallback body</p></div>",
    byline="Fallback Author",
    published_time="2024-01-01",
)


# ---------------------------------------------------------------------------
# With host rules
# ---------------------------------------------------------------------------

class TestProcessWithRules:
    def test_rule_fields(self, article_html, repository, no_fallback):
        extractor = ContentExtractor(fallback=no_fallback, rule_provider=repository)
        result = extractor.process(article_html, URL)
        assert isinstance(result, ExtractionResult)
        assert result.success
        assert result.title == "Rule Headline"
        assert result.authors == ["Alice Writer"]
        assert result.date == "2024-03-03T10:00:00Z"
        assert result.next_page_url == "/story?page=2"

    def test_metadata_fields_survive(self, article_html, repository, no_fallback):
        result = ContentExtractor(fallback=no_fallback, rule_provider=repository).process(article_html, URL)
        assert result.language == "en_GB"
        assert result.image == "https://example.com/images/lead.jpg"

    def test_body_cleaned(self, article_html, repository, no_fallback):
        html = ContentExtractor(fallback=no_fallback, rule_provider=repository).process(article_html, URL).html
        assert "First paragraph" in html
        assert "Share this story" not in html
        assert "Buy things now" not in html
        assert "ads.example.net" not in html
        assert "tracking" not in html
        assert "<blockquote>" in html
        assert 'href="https://example.com/related/one"' in html
        assert 'href="#notes"' in html
        assert 'src="https://example.com/img/real.jpg"' in html
        assert "data-src" not in html
        assert "<span" not in html
        assert "highlighted" in html

    def test_body_without_sanitizing(self, article_html, repository, no_fallback):
        extractor = ContentExtractor(enable_xss=False, fallback=no_fallback, rule_provider=repository)
        html = extractor.process(article_html, URL).html
        assert '<span class="hl">highlighted</span>' in html

    def test_explicit_rules_skip_lookup(self, article_html, repository, no_fallback):
        rules = ExtractionRuleSet(title=("//footer",), body=("//footer",))
        result = ContentExtractor(fallback=no_fallback, rule_provider=repository).process(
            article_html, URL, rules,
        )
        assert result.title == "Copyright Example News"

    def test_find_replace_runs_before_parsing(self, no_fallback):
        rules = ExtractionRuleSet(
            body=("//div[@id='b']",),
            find_string=("<!-- body -->",),
            replace_string=("<div id='b'><p>Injected</p></div>",),
        )
        html = "<html><body><!-- body --></body></html>"
        result = ContentExtractor(fallback=no_fallback).process(html, URL, rules)
        assert result.success
        assert "Injected" in result.html

    def test_native_ad(self, no_fallback):
        rules = ExtractionRuleSet(body=("//article",), native_ad_clue=("//div[@class='sponsored']",))
        html = "<html><body><div class='sponsored'></div><article><p>Ad copy</p></article></body></html>"
        assert ContentExtractor(fallback=no_fallback).process(html, URL, rules).is_native_ad

    def test_non_iso_rule_date_kept_verbatim(self, no_fallback):
        rules = ExtractionRuleSet(body=("//article",), date=("//span[@class='day']",))
        html = "<html><body><span class='day'>12</span><article><p>x</p></article></body></html>"
        assert ContentExtractor(fallback=no_fallback).process(html, URL, rules).date == "12"


# ---------------------------------------------------------------------------
# Metadata priority without rules
# ---------------------------------------------------------------------------

class TestProcessWithoutRules:
    def test_jsonld_wins_without_rule_title(self, article_html):
        fallback = StaticFallback(FALLBACK)
        result = ContentExtractor(fallback=fallback).process(article_html, URL)
        assert result.title == "JSON-LD Headline"
        assert result.authors == ["Jane Smith", "John Doe"]
        assert result.date == "2024-03-02T09:30:00+01:00"

    def test_open_graph_wins_without_jsonld(self):
        html = """<html><head><title>Basic</title>
        <meta property="og:title" content="OG Title">
        <meta property="og:image" content="https://cdn.example.com/og.jpg">
        <meta property="article:published_time" content="2022-02-02T02:02:02+00:00">
        </head><body><p>text</p></body></html>"""
        result = ContentExtractor(fallback=StaticFallback(FALLBACK)).process(html, URL)
        assert result.title == "OG Title"
        assert result.image == "https://cdn.example.com/og.jpg"
        assert result.date == "2022-02-02T02:02:02Z"

    def test_fallback_fills_only_missing_fields(self, article_html):
        result = ContentExtractor(fallback=StaticFallback(FALLBACK)).process(article_html, URL)
        assert result.success
        assert "Fallback body" in result.html
        assert result.title == "JSON-LD Headline"
        assert result.authors == ["Jane Smith", "John Doe"]

    def test_fallback_supplies_title_byline_date(self):
        html = "<html><body><p>nothing else</p></body></html>"
        result = ContentExtractor(fallback=StaticFallback(FALLBACK)).process(html, URL)
        assert result.title == "Fallback Title"
        assert result.authors == ["Fallback Author"]
        assert result.date == "2024-01-01T00:00:00Z"

    def test_fallback_runs_on_stripped_document(self):
        fallback = StaticFallback(None)
        rules = ExtractionRuleSet(body=("//article",), strip=("//div[@class='junk']",))
        html = "<html><body><div class='junk'>JUNK</div><p>text</p></body></html>"
        ContentExtractor(fallback=fallback).process(html, URL, rules)
        assert "JUNK" not in fallback.calls[0][0]

    def test_no_body_is_unsuccessful_with_metadata(self, no_fallback):
        html = "<html><head><title>Only a title</title></head><body></body></html>"
        result = ContentExtractor(fallback=no_fallback).process(html, URL)
        assert not result.success
        assert result.html == ""
        assert result.title == "Only a title"

    def test_fallback_exception_is_contained(self):
        result = ContentExtractor(fallback=ExplodingFallback()).process("<html><body></body></html>", URL)
        assert not result.success

    def test_rule_provider_exception_is_contained(self):
        extractor = ContentExtractor(fallback=StaticFallback(FALLBACK), rule_provider=ExplodingRules())
        assert extractor.process("<p>x</p>", URL).success

    def test_empty_input(self, no_fallback):
        result = ContentExtractor(fallback=no_fallback).process("", URL)
        assert not result.success
        assert result.title == ""

    def test_each_call_starts_fresh(self, repository, no_fallback, article_html):
        extractor = ContentExtractor(fallback=no_fallback, rule_provider=repository)
        extractor.process(article_html, URL)
        second = extractor.process("<html><body></body></html>", "https://unknown.test/")
        assert second.title == ""
        assert second.authors == []
        assert second.next_page_url is None


class TestReadabilityFallback:
    def test_extracts_article_paragraphs(self, plain_article_html):
        article = ReadabilityFallback().extract(plain_article_html, "https://example.com/rivers")
        assert article is not None
        assert "oxbow lakes" in article.body_html

    def test_pipeline_uses_real_fallback(self, plain_article_html):
        result = ContentExtractor().process(plain_article_html, "https://example.com/rivers")
        assert result.success
        assert "floodplains" in result.html
        assert result.title == "How Rivers Shape Valleys"

"""Single-page extraction pipeline.

    raw text ─► find/replace ─► parse ─► embedded metadata ─► host rules
             ─► readability fallback (no body yet) ─► post-process ─► result
"""

from __future__ import annotations

import logging

from pagegrab import settings
from pagegrab.extractors import dom
from pagegrab.extractors.fallback import ReadabilityFallback
from pagegrab.extractors.metadata import extract_metadata
from pagegrab.extractors.postprocess import normalize_date, postprocess_body
from pagegrab.extractors.site_rules import apply_rules, apply_string_replacements
from pagegrab.extractors.urlnorm import extract_host, resolve_url
from pagegrab.items import ExtractionResult, ExtractionState
from pagegrab.protocols import ReadabilityFallback as ReadabilityFallbackProtocol
from pagegrab.protocols import RuleProvider, Sanitizer
from pagegrab.rules import ExtractionRuleSet

logger = logging.getLogger(__name__)


class ContentExtractor:
    """Turn one page of HTML into an :class:`ExtractionResult`.

    Args:
        enable_xss:    Sanitize the extracted body markup.
        fallback:      Generic extractor used when no rule produced a body.
        sanitizer:     Markup sanitizer; defaults to nh3.
        rule_provider: Looked up by host when ``process`` gets no rules.

    The extractor holds no per-page state; one instance may serve many
    pages, including from several threads.
    """

    def __init__(
        self,
        *,
        enable_xss: bool = settings.ENABLE_XSS,
        fallback: ReadabilityFallbackProtocol | None = None,
        sanitizer: Sanitizer | None = None,
        rule_provider: RuleProvider | None = None,
    ) -> None:
        self.enable_xss = enable_xss
        self.fallback = fallback if fallback is not None else ReadabilityFallback()
        self.sanitizer = sanitizer
        self.rule_provider = rule_provider

    def rules_for(self, url: str) -> ExtractionRuleSet | None:
        if self.rule_provider is None:
            return None
        host = extract_host(url)
        if not host:
            return None
        try:
            return self.rule_provider.rules_for_host(host)
        except Exception as exc:
            logger.error("Rule lookup failed for %s: %s", host, exc)
            return None

    def process(
        self,
        html: str,
        url: str,
        rules: ExtractionRuleSet | None = None,
    ) -> ExtractionResult:
        """Extract content and metadata from *html* served at *url*."""
        state = ExtractionState()
        if rules is None:
            rules = self.rules_for(url)

        try:
            self._run(state, html or "", url, rules)
        except Exception as exc:
            logger.exception("Extraction failed for %s: %s", url, exc)
            state.success = False

        return state.to_result()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run(
        self,
        state: ExtractionState,
        html: str,
        url: str,
        rules: ExtractionRuleSet | None,
    ) -> None:
        html = apply_string_replacements(html, rules)

        self._apply_metadata(state, html, url)

        document = dom.parse_html(html)
        if rules is not None:
            apply_rules(document, rules, state)

        if state.body is None:
            self._apply_fallback(state, dom.serialize(document), url)

        state.success = state.body is not None
        if state.body is not None:
            state.body_html = postprocess_body(
                state.body,
                url,
                enable_xss=self.enable_xss,
                sanitizer=self.sanitizer,
            )
        state.date = normalize_date(state.date)

    def _apply_metadata(self, state: ExtractionState, html: str, url: str) -> None:
        meta = extract_metadata(html)
        state.title = meta["title"]
        state.language = meta["language"]
        state.image = resolve_url(meta["image"], url) if meta["image"] else None
        state.date = meta["date"]
        for name in meta["authors"]:
            state.add_author(name)

    def _apply_fallback(self, state: ExtractionState, html: str, url: str) -> None:
        try:
            article = self.fallback.extract(html, url)
        except Exception as exc:
            logger.error("Readability fallback failed for %s: %s", url, exc)
            return
        if article is None or not article.body_html.strip():
            logger.info("No content found for %s", url)
            return

        logger.debug("Using readability fallback for %s", url)
        state.body = dom.fragment(article.body_html)
        if not state.title and article.title:
            state.title = article.title
        if not state.date and article.published_time:
            state.date = article.published_time
        if not state.authors and article.byline:
            state.add_author(article.byline)

"""pagegrab.grabber - fetch-and-extract orchestration.

Basic usage::

    from pagegrab import Grabber, RuleRepository

    grabber = Grabber(rule_provider=RuleRepository.from_directory("site-rules"))
    result = grabber.extract("https://example.com/news/story")
    print(result.title)
    print(result.html)

Pre-fetched content::

    result = grabber.extract_from_html(html, "https://example.com/news/story")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pagegrab import settings
from pagegrab.client import FetchError, HttpClient, HttpResponse
from pagegrab.encoding import EncodingResolver
from pagegrab.extractors import dom
from pagegrab.extractors.content import ContentExtractor
from pagegrab.extractors.site_rules import apply_string_replacements, find_link
from pagegrab.extractors.urlnorm import extract_host, resolve_link
from pagegrab.items import ExtractionResult
from pagegrab.multipage import assemble_pages
from pagegrab.protocols import RuleProvider, Transport
from pagegrab.rules import ExtractionRuleSet, RuleRepository

logger = logging.getLogger(__name__)


class Grabber:
    """Fetch a URL and extract its article, following pagination.

    Args:
        rule_provider:   Host → rule-set lookup; defaults to an empty
                         :class:`RuleRepository`.
        client:          HTTP transport; defaults to :class:`HttpClient`.
        extractor:       Page pipeline; defaults to a :class:`ContentExtractor`
                         sharing *rule_provider*.
        multipage:       Follow ``next_page_link`` rules.
        multipage_limit: Maximum pages per article, the first one included.
        enable_xss:      Sanitize extracted markup (ignored when *extractor*
                         is given).
        resolver:        Encoding resolver for :meth:`extract_from_bytes`.
    """

    def __init__(
        self,
        *,
        rule_provider: RuleProvider | None = None,
        client: Transport | None = None,
        extractor: ContentExtractor | None = None,
        multipage: bool = settings.MULTIPAGE_ENABLED,
        multipage_limit: int = settings.MULTIPAGE_LIMIT,
        enable_xss: bool = settings.ENABLE_XSS,
        resolver: EncodingResolver | None = None,
    ) -> None:
        self.rule_provider = rule_provider if rule_provider is not None else RuleRepository()
        self.client = client if client is not None else HttpClient()
        self.extractor = extractor or ContentExtractor(
            enable_xss=enable_xss,
            rule_provider=self.rule_provider,
        )
        self.multipage = multipage
        self.multipage_limit = multipage_limit
        self.resolver = resolver or getattr(self.client, "resolver", None) or EncodingResolver()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, url: str) -> ExtractionResult:
        """Fetch *url* and extract it.

        Raises:
            FetchError: When the page cannot be fetched, or declares an HTML
                        content type but carries no body.
        """
        rules = self._rules_for(url)
        response = self.client.fetch(url, headers=self._headers(rules))

        if not response.is_html:
            if "html" in response.content_type.lower():
                raise FetchError("No HTML content found", url=url, status=response.status)
            logger.info("Non-HTML content (%s) at %s", response.content_type or "unknown", url)
            return ExtractionResult(
                success=False,
                original_url=url,
                final_url=response.url,
                status=response.status,
            )

        if extract_host(response.url) != extract_host(url):
            logger.debug("Redirected to another host, re-resolving rules for %s", response.url)
            rules = self._rules_for(response.url)

        html, page_url, rules = self._single_page_view(response.html, response.url, rules)
        result = self._extract_document(html, page_url, rules)
        return result.model_copy(
            update={"original_url": url, "final_url": page_url, "status": response.status},
        )

    def extract_from_html(self, html: str, url: str) -> ExtractionResult:
        """Run extraction (and pagination) on already-fetched *html*."""
        result = self._extract_document(html, url, self._rules_for(url))
        return result.model_copy(update={"original_url": url, "final_url": url})

    def extract_from_bytes(
        self,
        raw: bytes,
        url: str,
        headers: Mapping[str, str] | None = None,
    ) -> ExtractionResult:
        """Decode *raw* with the encoding cascade, then extract it."""
        decision = self.resolver.resolve(raw, headers)
        logger.debug("Decoded %s as %s", url, decision.encoding)
        return self.extract_from_html(decision.text, url)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rules_for(self, url: str) -> ExtractionRuleSet | None:
        host = extract_host(url)
        if not host:
            return None
        try:
            return self.rule_provider.rules_for_host(host)
        except Exception as exc:
            logger.error("Rule lookup failed for %s: %s", host, exc)
            return None

    @staticmethod
    def _headers(rules: ExtractionRuleSet | None) -> dict[str, str]:
        return dict(rules.http_header) if rules is not None else {}

    def _single_page_view(
        self,
        html: str,
        url: str,
        rules: ExtractionRuleSet | None,
    ) -> tuple[str, str, ExtractionRuleSet | None]:
        """Swap in the host's single-page view of the article, when it has one."""
        if rules is None or not rules.single_page_link:
            return html, url, rules

        document = dom.parse_html(apply_string_replacements(html, rules))
        single_url = resolve_link(find_link(document, rules, "single_page_link"), url)
        if not single_url:
            return html, url, rules

        try:
            response = self.client.fetch(
                single_url,
                headers=self._headers(rules),
                skip_type_check=True,
            )
        except FetchError as exc:
            logger.error("Error fetching single page URL %s: %s", single_url, exc)
            return html, url, rules

        if not response.html:
            return html, url, rules

        logger.info('Retrieved single-page view from "%s"', single_url)
        if extract_host(response.url) != extract_host(url):
            rules = self._rules_for(response.url)
        return response.html, response.url, rules

    def _extract_document(
        self,
        html: str,
        url: str,
        rules: ExtractionRuleSet | None,
    ) -> ExtractionResult:
        result = self.extractor.process(html, url, rules)
        if self.multipage and result.next_page_url:
            result = assemble_pages(
                result,
                url,
                fetch_page=self._fetch_continuation,
                extract_page=self._extract_continuation,
                limit=self.multipage_limit,
            )
        return result

    def _fetch_continuation(self, url: str) -> HttpResponse:
        return self.client.fetch(url, headers=self._headers(self._rules_for(url)))

    def _extract_continuation(self, html: str, url: str) -> ExtractionResult:
        return self.extractor.process(html, url, self._rules_for(url))

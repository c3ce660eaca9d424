"""pagegrab.query - one-call fetch and extraction helpers.

Basic usage::

    from pagegrab.query import fetch

    result = fetch("https://example.com/news/story")
    print(result.title)
    print(result.authors)
    print(result.date)
    print(result.html)

    # As a plain dict
    data = fetch("https://example.com/news/story").model_dump()

Low-level access::

    from pagegrab.query import fetch_html, extract

    html = fetch_html("https://example.com/news/story")
    result = extract(html, url="https://example.com/news/story")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pagegrab import settings
from pagegrab.client import FetchError, HttpClient
from pagegrab.extractors.content import ContentExtractor
from pagegrab.grabber import Grabber
from pagegrab.items import ExtractionResult
from pagegrab.rules import ExtractionRuleSet, RuleRepository

logger = logging.getLogger(__name__)

__all__ = ["FetchError", "extract", "fetch", "fetch_html", "load_rules"]


def load_rules(paths: list[str | Path] | None) -> RuleRepository:
    """Build a :class:`RuleRepository` from rule directories and YAML files."""
    if not paths:
        return RuleRepository()
    return RuleRepository.from_paths(list(paths))


def fetch_html(
    url: str,
    *,
    timeout: float = settings.DOWNLOAD_TIMEOUT,
    user_agent: str = settings.USER_AGENT,
    max_retries: int = settings.RETRY_TIMES,
) -> str:
    """Fetch *url* and return its decoded HTML.

    Raises:
        FetchError: On transport errors or when the response is not HTML.
    """
    client = HttpClient(timeout=timeout, user_agent=user_agent, max_retries=max_retries)
    response = client.fetch(url)
    if response.html is None:
        raise FetchError(
            f"Non-HTML content type {response.content_type!r} at {url}",
            url=url,
            status=response.status,
        )
    return response.html


def extract(
    html: str,
    url: str = "",
    rules: ExtractionRuleSet | None = None,
    *,
    enable_xss: bool = settings.ENABLE_XSS,
) -> ExtractionResult:
    """Run single-page extraction on *html* (no network access)."""
    return ContentExtractor(enable_xss=enable_xss).process(html, url, rules)


def fetch(
    url: str,
    *,
    rules: list[str | Path] | None = None,
    timeout: float = settings.DOWNLOAD_TIMEOUT,
    multipage: bool = settings.MULTIPAGE_ENABLED,
    multipage_limit: int = settings.MULTIPAGE_LIMIT,
    enable_xss: bool = settings.ENABLE_XSS,
    **client_options: Any,
) -> ExtractionResult:
    """Fetch *url* and extract its article, following pagination.

    Args:
        url:             Fully-qualified HTTP/HTTPS URL.
        rules:           Rule directories / YAML files to load.
        timeout:         Request timeout in seconds.
        multipage:       Follow ``next_page_link`` rules.
        multipage_limit: Maximum pages, the first one included.
        enable_xss:      Sanitize the extracted markup.
        client_options:  Extra :class:`HttpClient` keyword arguments
                         (``user_agent``, ``force_encoding``, ...).

    Raises:
        :class:`FetchError`: If the URL cannot be fetched.
    """
    grabber = Grabber(
        rule_provider=load_rules(rules),
        client=HttpClient(timeout=timeout, **client_options),
        multipage=multipage,
        multipage_limit=multipage_limit,
        enable_xss=enable_xss,
    )
    return grabber.extract(url)

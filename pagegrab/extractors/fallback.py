"""Generic article extraction used when no host rule produced a body.

Tier 1: readability-lxml  (Mozilla Readability algorithm)
Tier 2: trafilatura       (second-opinion extractor)

Byline and publication time come from trafilatura's metadata extractor,
which readability-lxml does not provide.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Minimum words for a tier's output to be considered successful
_READABILITY_MIN_WORDS = 1
_TRAFILATURA_MIN_WORDS = 1


class FallbackResult(NamedTuple):
    title: str | None
    body_html: str
    byline: str | None
    published_time: str | None
    method: str = "readability"


def _count_words(html: str) -> int:
    try:
        soup = BeautifulSoup(html, "lxml")
        return len(soup.get_text(separator=" ").split())
    except Exception:
        return 0


# ---------------------------------------------------------------------------
# Tier 1: readability-lxml
# ---------------------------------------------------------------------------

def _try_readability(html: str, url: str = "") -> tuple[str | None, str | None]:
    """Return (title, body html) or (None, None)."""
    try:
        from readability import Document  # type: ignore[import-untyped]

        doc = Document(html, url=url or None)
        content = doc.summary(html_partial=True)
        if _count_words(content) >= _READABILITY_MIN_WORDS:
            return doc.short_title() or None, content
    except Exception as exc:
        logger.debug("readability failed: %s", exc)
    return None, None


# ---------------------------------------------------------------------------
# Tier 2: trafilatura
# ---------------------------------------------------------------------------

def _try_trafilatura(html: str, url: str = "") -> str | None:
    try:
        import trafilatura  # type: ignore[import-untyped]

        content = trafilatura.extract(
            html,
            include_links=True,
            include_images=True,
            include_tables=True,
            output_format="html",
            url=url or None,
            favor_recall=True,
        )
        if content and _count_words(content) >= _TRAFILATURA_MIN_WORDS:
            return content
    except Exception as exc:
        logger.debug("trafilatura failed: %s", exc)
    return None


def _trafilatura_metadata(html: str, url: str = "") -> tuple[str | None, str | None, str | None]:
    """Return (title, byline, published time) from trafilatura's metadata pass."""
    try:
        import trafilatura  # type: ignore[import-untyped]

        meta = trafilatura.extract_metadata(html, default_url=url or None)
    except Exception as exc:
        logger.debug("trafilatura metadata failed: %s", exc)
        return None, None, None
    if meta is None:
        return None, None, None
    return (
        getattr(meta, "title", None) or None,
        getattr(meta, "author", None) or None,
        getattr(meta, "date", None) or None,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class ReadabilityFallback:
    """Default :class:`pagegrab.protocols.ReadabilityFallback` binding."""

    def extract(self, html: str, url: str = "") -> FallbackResult | None:
        title, body = _try_readability(html, url)
        method = "readability"
        if body is None:
            body = _try_trafilatura(html, url)
            method = "trafilatura"
        if body is None:
            logger.debug("No fallback content for %s", url)
            return None

        meta_title, byline, published = _trafilatura_metadata(html, url)
        logger.debug("%s produced %d words for %s", method, _count_words(body), url)
        return FallbackResult(
            title=title or meta_title,
            body_html=body,
            byline=byline,
            published_time=published,
            method=method,
        )

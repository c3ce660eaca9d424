"""Embedded metadata extraction from HTML.

Layers, lowest → highest precedence (a later layer overwrites a field
whenever it carries one):
    <title> / <html lang>  →  Open Graph  →  JSON-LD article blocks

Host rule-set expressions sit above all three and are applied by
:mod:`pagegrab.extractors.site_rules`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

_FIELDS: tuple[str, ...] = ("title", "language", "image", "date")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_str(val: Any, default: str = "") -> str:
    """Safely convert a BeautifulSoup attribute value (str | list | None) to str."""
    if val is None:
        return default
    if isinstance(val, list):
        return " ".join(str(v) for v in val)
    return str(val)


# ---------------------------------------------------------------------------
# Basic: <title>, <html lang>
# ---------------------------------------------------------------------------

def _extract_basic(soup: BeautifulSoup) -> dict:
    result: dict = {}

    html_tag = soup.find("html")
    if html_tag and isinstance(html_tag, Tag):
        lang = _safe_str(html_tag.get("lang"), "").strip()
        if lang:
            result["language"] = lang

    title_tag = soup.find("title")
    if title_tag and isinstance(title_tag, Tag):
        title = title_tag.get_text().strip()
        if title:
            result["title"] = title

    return result


# ---------------------------------------------------------------------------
# Open Graph
# ---------------------------------------------------------------------------

_OG_FIELDS: dict[str, str] = {
    "og:title": "title",
    "og:image": "image",
    "og:locale": "language",
    "article:published_time": "date",
}


def _extract_open_graph(soup: BeautifulSoup) -> dict:
    og: dict = {}
    for tag in soup.find_all("meta"):
        if not isinstance(tag, Tag):
            continue
        prop = _safe_str(tag.get("property") or tag.get("name"), "").lower()
        content = _safe_str(tag.get("content"), "").strip()
        if not content or not prop.startswith(("og:", "article:")):
            continue
        og.setdefault(prop, content)

    return {field: og[prop] for prop, field in _OG_FIELDS.items() if prop in og}


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------

_ARTICLE_TYPES: frozenset[str] = frozenset(
    {
        "article",
        "newsarticle",
        "blogposting",
        "techarticle",
        "scholarlyarticle",
        "liveblogposting",
        "reportage",
        "reportagenewsarticle",
        "analysisnewsarticle",
        "opinionnewsarticle",
    },
)


def _is_article(node: dict) -> bool:
    dtype = node.get("@type", "")
    types = dtype if isinstance(dtype, list) else [dtype]
    return any(str(t).lower() in _ARTICLE_TYPES for t in types)


def _jsonld_nodes(raw: Any) -> list[dict]:
    if isinstance(raw, list):
        candidates = raw
    elif isinstance(raw, dict):
        graph = raw.get("@graph")
        candidates = graph if isinstance(graph, list) else [raw]
    else:
        return []
    return [node for node in candidates if isinstance(node, dict)]


def _authors_from_jsonld(node: dict) -> list[str]:
    author = node.get("author")
    items = author if isinstance(author, list) else [author]
    names: list[str] = []
    for item in items:
        if isinstance(item, str) and item.strip():
            names.append(item.strip())
        elif isinstance(item, dict):
            name = item.get("name")
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
    return names


def _extract_jsonld(soup: BeautifulSoup) -> tuple[dict, list[str]]:
    """Return (fields, authors) from every JSON-LD article block in order."""
    result: dict = {}
    authors: list[str] = []

    for script in soup.find_all("script", type="application/ld+json"):
        try:
            raw = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
            continue

        for node in _jsonld_nodes(raw):
            if not _is_article(node):
                continue
            headline = node.get("headline")
            if isinstance(headline, str) and headline.strip():
                result["title"] = headline.strip()
            published = node.get("datePublished")
            if isinstance(published, str) and published.strip():
                result["date"] = published.strip()
            for name in _authors_from_jsonld(node):
                if name not in authors:
                    authors.append(name)

    return result, authors


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_metadata(html: str, soup: BeautifulSoup | None = None) -> dict:
    """Extract title, language, image, date and authors from *html*.

    Args:
        html: Raw HTML string.
        soup: Pre-parsed BeautifulSoup object.  When provided the HTML is
              not re-parsed.

    Returns a dict with keys:
        title, language, image, date, authors
    """
    if soup is None:
        try:
            soup = BeautifulSoup(html, "lxml")
        except Exception as exc:
            logger.debug("Metadata parse failed: %s", exc)
            return _empty_metadata()

    basic = _extract_basic(soup)
    og_fields = _extract_open_graph(soup)
    jsonld_fields, authors = _extract_jsonld(soup)

    merged: dict = dict.fromkeys(_FIELDS)
    for layer in (basic, og_fields, jsonld_fields):
        for key, value in layer.items():
            if value:
                merged[key] = value

    merged["authors"] = authors
    return merged


def _empty_metadata() -> dict:
    return {
        "title": None,
        "language": None,
        "image": None,
        "date": None,
        "authors": [],
    }

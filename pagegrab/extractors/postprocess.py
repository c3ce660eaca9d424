"""Clean-up applied to an extracted body before it is returned.

Steps run in a fixed order: lazy-image repair, URL absolutization,
sanitization (optional) and, separately, date normalization.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone

from lxml.html import HtmlElement

from pagegrab.extractors import dom
from pagegrab.extractors.urlnorm import resolve_url
from pagegrab.protocols import Sanitizer

logger = logging.getLogger(__name__)

ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        "a", "b", "blockquote", "br", "caption", "code", "div", "em",
        "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img",
        "li", "ol", "p", "pre", "section", "strong", "table", "tbody",
        "td", "th", "thead", "tr", "ul", "iframe",
    },
)

ALLOWED_ATTRIBUTES: frozenset[str] = frozenset(
    {"href", "src", "srcset", "alt", "title", "class", "id", "width", "height", "target"},
)

# Deferred-loading attributes, in promotion order
LAZY_ATTRIBUTES: tuple[str, ...] = (
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-srcset",
    "data-lazy-srcset",
    "loading-src",
)

_PLACEHOLDER_RE = re.compile(
    r"(?:^|/)(?:blank|spacer|pixel|transparent|placeholder|1x1)[^/]*\.(?:gif|png|jpe?g|svg|webp)(?:[?#].*)?$",
    re.IGNORECASE,
)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


# ---------------------------------------------------------------------------
# Lazy images
# ---------------------------------------------------------------------------

def _is_placeholder(src: str | None) -> bool:
    if not src or not src.strip():
        return False
    src = src.strip()
    return src.lower().startswith("data:") or bool(_PLACEHOLDER_RE.search(src))


def fix_lazy_images(root: HtmlElement) -> int:
    """Promote deferred image attributes to ``src``/``srcset``.

    Returns the number of images touched.
    """
    fixed = 0
    for img in root.iter("img"):
        had_deferred = False
        promoted: set[str] = set()
        for attr in LAZY_ATTRIBUTES:
            value = img.get(attr)
            if value is None:
                continue
            had_deferred = True
            del img.attrib[attr]
            target = "srcset" if attr.endswith("srcset") else "src"
            if value.strip() and target not in promoted:
                img.set(target, value.strip())
                promoted.add(target)

        if not had_deferred:
            continue
        fixed += 1
        if "src" not in promoted and _is_placeholder(img.get("src")):
            del img.attrib["src"]
    return fixed


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

def _absolutize_srcset(srcset: str, base_url: str) -> str:
    candidates: list[str] = []
    for candidate in srcset.split(","):
        parts = candidate.strip().split(None, 1)
        if not parts:
            continue
        url = resolve_url(parts[0], base_url) or parts[0]
        candidates.append(" ".join([url, *parts[1:]]))
    return ", ".join(candidates)


def make_urls_absolute(root: HtmlElement, base_url: str) -> None:
    """Resolve ``a/@href``, ``img/@src`` and ``img/@srcset`` against *base_url*."""
    if not base_url:
        return
    for a in root.iter("a"):
        href = a.get("href")
        if href is not None:
            resolved = resolve_url(href, base_url)
            if resolved:
                a.set("href", resolved)
    for img in root.iter("img"):
        src = img.get("src")
        if src is not None:
            resolved = resolve_url(src, base_url)
            if resolved:
                img.set("src", resolved)
        srcset = img.get("srcset")
        if srcset:
            img.set("srcset", _absolutize_srcset(srcset, base_url))


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------

class Nh3Sanitizer:
    """Default :class:`pagegrab.protocols.Sanitizer` binding backed by nh3."""

    def sanitize(
        self,
        html: str,
        allowed_tags: Iterable[str],
        allowed_attributes: Iterable[str],
    ) -> str:
        import nh3

        return nh3.clean(
            html,
            tags=set(allowed_tags),
            attributes={"*": set(allowed_attributes)},
            link_rel=None,
        )


def sanitize_html(html: str, sanitizer: Sanitizer | None = None) -> str:
    """Sanitize *html*; on sanitizer failure the input is returned unchanged."""
    sanitizer = sanitizer or Nh3Sanitizer()
    try:
        return sanitizer.sanitize(html, ALLOWED_TAGS, ALLOWED_ATTRIBUTES)
    except Exception as exc:
        logger.error("Sanitizer %s failed, keeping markup: %s", type(sanitizer).__name__, exc)
        return html


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _parse_date(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; anything else yields None."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def format_date(value: datetime) -> str:
    """Render *value* as ``yyyy-MM-ddTHH:mm:ss`` plus ``Z`` or ``±HH:MM``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    offset = value.utcoffset()
    base = value.strftime(DATE_FORMAT)
    if not offset:
        return base + "Z"
    total = int(offset.total_seconds()) // 60
    sign = "+" if total >= 0 else "-"
    hours, minutes = divmod(abs(total), 60)
    return f"{base}{sign}{hours:02d}:{minutes:02d}"


def normalize_date(value: str | None) -> str | None:
    """Reformat an ISO-8601 *value*; any other string is kept verbatim."""
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return value
    parsed = _parse_date(stripped)
    if parsed is None:
        logger.debug("Keeping unparseable date %r", value)
        return value
    return format_date(parsed)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def postprocess_body(
    body: HtmlElement,
    url: str,
    *,
    enable_xss: bool = True,
    sanitizer: Sanitizer | None = None,
) -> str:
    """Run lazy-image repair, URL fixing and sanitization; return inner HTML."""
    fix_lazy_images(body)
    make_urls_absolute(body, url)
    markup = dom.inner_html(body)
    if enable_xss:
        markup = sanitize_html(markup, sanitizer)
    return markup

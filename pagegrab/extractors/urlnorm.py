"""URL resolution and normalization utilities."""

from __future__ import annotations

import re
from urllib.parse import ParseResult, urljoin, urlparse, urlunparse

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443, "ftp": 21}

_ABSOLUTE_RE = re.compile(r"^[a-z][a-z0-9+.\-]*:", re.IGNORECASE)


def is_absolute(url: str) -> bool:
    """Return True if *url* carries a scheme (``https:``, ``mailto:``, ``data:`` ...)."""
    return bool(_ABSOLUTE_RE.match(url.strip()))


def resolve_url(url: str | None, base_url: str) -> str | None:
    """Resolve *url* against *base_url* for use in extracted markup.

    Absolute URLs, protocol-relative URLs, ``#fragment`` anchors and
    ``javascript:`` links are returned unchanged.  Returns None for empty
    input.
    """
    if url is None:
        return None
    value = url.strip()
    if not value:
        return None
    if value.startswith(("#", "//")) or is_absolute(value):
        return value
    if not base_url:
        return value
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


def resolve_link(url: str | None, base_url: str) -> str | None:
    """Resolve a pagination link to a fetchable http(s) URL, or None."""
    if url is None or not url.strip():
        return None
    try:
        joined = urljoin(base_url, url.strip())
    except ValueError:
        return None
    parsed = urlparse(joined)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return joined


def normalize_url(url: str) -> str:
    """Return a canonical form of *url* suitable for "already visited" checks.

    Transformations applied:
    - Lowercase scheme and host
    - Remove default ports
    - Strip URL fragment
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url

    scheme = parsed.scheme.lower() or "https"
    netloc = parsed.netloc.lower()

    # Strip default port from netloc
    if ":" in netloc:
        host, _, port_str = netloc.rpartition(":")
        try:
            port = int(port_str)
            if _DEFAULT_PORTS.get(scheme) == port:
                netloc = host
        except ValueError:
            pass

    normalized = ParseResult(
        scheme=scheme,
        netloc=netloc,
        path=parsed.path or "/",
        params=parsed.params,
        query=parsed.query,
        fragment="",
    )
    return urlunparse(normalized)


def extract_host(url: str) -> str:
    """Return the lowercased hostname of *url* (no port, no credentials)."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""

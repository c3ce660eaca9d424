"""pagegrab.client - urllib-based HTTP transport.

Fetches a page, follows redirects, decompresses gzip/deflate bodies and
decodes the bytes through :class:`pagegrab.encoding.EncodingResolver`.
Uses only the stdlib (``urllib``) for HTTP.

Basic usage::

    from pagegrab.client import HttpClient

    response = HttpClient().fetch("https://example.com/article")
    print(response.status, response.encoding)
    print(response.html[:200])
"""

from __future__ import annotations

import gzip
import logging
import random
import time
import urllib.error
import urllib.request
import zlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlparse

from pagegrab import settings
from pagegrab.encoding import EncodingResolver

logger = logging.getLogger(__name__)

_HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml+xml")


# ---------------------------------------------------------------------------
# Public exception
# ---------------------------------------------------------------------------

class FetchError(RuntimeError):
    """Raised when a URL cannot be fetched or yields no HTML.

    Attributes:
        url    -- the URL that failed
        status -- HTTP status code (0 if no response was received)
        body   -- decoded error body, when the server sent one
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        status: int = 0,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body


@dataclass
class HttpResponse:
    """A fetched page.

    ``html`` is None for non-HTML responses (``special_content`` is then
    True and the undecoded body is in ``raw_bytes``).
    """

    url: str
    html: str | None
    content_type: str = ""
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    raw_bytes: bytes | None = None
    encoding: str | None = None
    special_content: bool = False

    @property
    def is_html(self) -> bool:
        return self.html is not None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _header(headers: Mapping[str, str], name: str) -> str:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return str(value)
    return ""


def _decompress(raw: bytes, headers: Mapping[str, str], url: str) -> bytes:
    encoding = _header(headers, "Content-Encoding").lower().strip()
    try:
        if encoding == "gzip":
            return gzip.decompress(raw)
        if encoding in ("deflate", "zlib"):
            try:
                return zlib.decompress(raw)
            except zlib.error:
                # raw deflate stream without zlib header
                return zlib.decompress(raw, -zlib.MAX_WBITS)
    except OSError as exc:
        raise FetchError(f"gzip decompression failed for {url}: {exc}", url=url) from exc
    except zlib.error as exc:
        raise FetchError(f"deflate decompression failed for {url}: {exc}", url=url) from exc
    if encoding == "br":
        raise FetchError(f"Brotli-encoded response from {url} is not supported", url=url)
    return raw


def _is_html_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return any(kind in content_type for kind in _HTML_CONTENT_TYPES)


def _retry_after(headers: Mapping[str, str] | None) -> int:
    if not headers:
        return 0
    value = _header(headers, "Retry-After").strip()
    return int(value) if value.isdigit() else 0


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class HttpClient:
    """Default :class:`pagegrab.protocols.Transport` binding.

    Retries up to *max_retries* times with jittered exponential backoff on
    transient errors (429, 500, 502, 503, 504, and network-level failures).

    Args:
        user_agent:     Default ``User-Agent`` (a rule set may override it).
        referer:        Default ``Referer`` (a rule set may override it).
        timeout:        Request timeout in seconds.
        max_retries:    Maximum number of retry attempts.
        auto_detect_encoding / force_encoding:
                        Passed to :class:`EncodingResolver`.
        resolver:       Pre-built resolver; overrides the two options above.
    """

    def __init__(
        self,
        *,
        user_agent: str = settings.USER_AGENT,
        referer: str = settings.REFERER,
        timeout: float = settings.DOWNLOAD_TIMEOUT,
        max_retries: int = settings.RETRY_TIMES,
        auto_detect_encoding: bool = settings.AUTO_DETECT_ENCODING,
        force_encoding: str | None = settings.FORCE_ENCODING,
        resolver: EncodingResolver | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.referer = referer
        self.timeout = timeout
        self.max_retries = max_retries
        self.resolver = resolver or EncodingResolver(
            auto_detect=auto_detect_encoding,
            force_encoding=force_encoding,
        )

    def build_headers(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return request headers; only user-agent, referer, cookie and accept may be overridden."""
        overrides = {k.lower(): v for k, v in (overrides or {}).items()}
        headers = {
            "User-Agent": self.user_agent,
            "Referer": self.referer,
            "Accept": settings.ACCEPT,
            "Accept-Language": settings.ACCEPT_LANGUAGE,
            "Accept-Encoding": "gzip, deflate",
        }
        if overrides.get("user-agent"):
            logger.info("Using User-Agent from site config: %s", overrides["user-agent"])
            headers["User-Agent"] = overrides["user-agent"]
        if overrides.get("referer"):
            logger.info("Using Referer from site config: %s", overrides["referer"])
            headers["Referer"] = overrides["referer"]
        if overrides.get("cookie"):
            headers["Cookie"] = overrides["cookie"]
        if overrides.get("accept"):
            headers["Accept"] = overrides["accept"]
        return headers

    def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        skip_type_check: bool = False,
    ) -> HttpResponse:
        """Fetch *url* and return an :class:`HttpResponse`.

        Non-HTML content types are returned with ``html=None`` unless
        *skip_type_check* is set.

        Raises:
            FetchError: On HTTP errors, connection failures, or invalid URLs.
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise FetchError(f"Unsupported URL scheme: {parsed.scheme!r}", url=url)

        req = urllib.request.Request(url, headers=self.build_headers(headers))
        final_url, status, resp_headers, raw = self._open(req, url)

        # Response URL loses a trailing slash the request did not have
        if final_url.endswith("/") and not url.endswith("/"):
            final_url = final_url[:-1]

        if final_url != url:
            logger.info("Redirected to: %s", final_url)

        content_type = _header(resp_headers, "Content-Type")
        if not skip_type_check and not _is_html_content_type(content_type):
            logger.debug("Non-HTML content type %r for %s", content_type, url)
            return HttpResponse(
                url=final_url.rstrip("/"),
                html=None,
                content_type=content_type,
                status=status,
                headers=resp_headers,
                raw_bytes=raw,
                special_content=True,
            )

        decision = self.resolver.resolve(raw, resp_headers)
        return HttpResponse(
            url=final_url,
            html=decision.text,
            content_type=content_type,
            status=status,
            headers=resp_headers,
            raw_bytes=raw,
            encoding=decision.encoding,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _open(self, req: urllib.request.Request, url: str) -> tuple[str, int, dict[str, str], bytes]:
        last_exc: FetchError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    resp_headers = dict(resp.headers.items()) if resp.headers else {}
                    raw = _decompress(resp.read(), resp_headers, url)
                    status = getattr(resp, "status", None) or resp.getcode() or 200
                    return resp.geturl() or url, int(status), resp_headers, raw

            except urllib.error.HTTPError as exc:
                body_text = ""
                try:
                    body = exc.read()
                    if body:
                        body_text = body.decode("utf-8", errors="replace")
                except (OSError, AttributeError, ValueError):
                    body_text = ""
                error = FetchError(
                    f"HTTP {exc.code} fetching {url}: {exc.reason}",
                    url=url,
                    status=exc.code,
                    body=body_text,
                )
                if exc.code in settings.RETRY_HTTP_CODES and attempt < self.max_retries:
                    retry_after = _retry_after(exc.headers)
                    delay = max(retry_after, 2 ** attempt) + random.uniform(0, 1)
                    logger.debug(
                        "HTTP %d for %s, retrying in %.1fs (attempt %d/%d)",
                        exc.code, url, delay, attempt + 1, self.max_retries,
                    )
                    time.sleep(delay)
                    last_exc = error
                    continue
                raise error from exc

            except urllib.error.URLError as exc:
                error = FetchError(f"URL error fetching {url}: {exc.reason}", url=url)
                if attempt < self.max_retries:
                    delay = (2 ** attempt) + random.uniform(0, 1)
                    logger.debug(
                        "URL error for %s, retrying in %.1fs (attempt %d/%d): %s",
                        url, delay, attempt + 1, self.max_retries, exc.reason,
                    )
                    time.sleep(delay)
                    last_exc = error
                    continue
                raise error from exc

            except OSError as exc:
                error = FetchError(f"Network error fetching {url}: {exc}", url=url)
                if attempt < self.max_retries:
                    delay = (2 ** attempt) + random.uniform(0, 1)
                    logger.debug(
                        "Network error for %s, retrying in %.1fs (attempt %d/%d): %s",
                        url, delay, attempt + 1, self.max_retries, exc,
                    )
                    time.sleep(delay)
                    last_exc = error
                    continue
                raise error from exc

        raise last_exc or FetchError(f"All retries exhausted for {url}", url=url)

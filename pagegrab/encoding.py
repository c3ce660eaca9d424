"""Character-encoding detection and conversion.

Resolution order (first decisive answer wins):
    forced encoding → auto-detection disabled (UTF-8) → HTTP ``Content-Type``
    charset → statistical detector (chardet) → in-document declarations
    (XML prolog, ``<meta http-equiv>``, ``<meta charset>``, any ``<meta>``)
    → UTF-8.

A non-ASCII statistical result wins over a charset declared inside the
document; declarations are only consulted when the detector is inconclusive
or reports plain ASCII.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import Mapping
from typing import NamedTuple

from pagegrab import settings
from pagegrab.protocols import CharsetDetector

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_ENCODING_FIXES: dict[str, str] = {
    "iso-8850-1": "iso-8859-1",
    "windows": "windows-1252",
    "win": "windows-1252",
    "cp1251": "windows-1251",
    "cp1252": "windows-1252",
    "latin1": "iso-8859-1",
    "latin-1": "iso-8859-1",
    "unicode": "utf-8",
    "utf": "utf-8",
    "none": "utf-8",
}

# Word-processor characters that land in the C1 control range when
# windows-1252 text is served as ISO-8859-1.
_LATIN1_SPECIAL_CHARS: dict[str, str] = {
    "\u0082": "&sbquo;",
    "\u0083": "&fnof;",
    "\u0084": "&bdquo;",
    "\u0085": "&hellip;",
    "\u0086": "&dagger;",
    "\u0087": "&Dagger;",
    "\u0088": "&circ;",
    "\u0089": "&permil;",
    "\u008a": "&Scaron;",
    "\u008b": "&lsaquo;",
    "\u008c": "&OElig;",
    "\u0091": "&lsquo;",
    "\u0092": "&rsquo;",
    "\u0093": "&ldquo;",
    "\u0094": "&rdquo;",
    "\u0095": "&bull;",
    "\u0096": "&ndash;",
    "\u0097": "&mdash;",
    "\u0098": "&tilde;",
    "\u0099": "&trade;",
    "\u009a": "&scaron;",
    "\u009b": "&rsaquo;",
    "\u009c": "&oelig;",
    "\u009f": "&Yuml;",
}
_LATIN1_SPECIAL_RE = re.compile("[" + "".join(_LATIN1_SPECIAL_CHARS) + "]")

_HEADER_CHARSET_RE = re.compile(r"charset=[\"']?([^\"';]+)", re.IGNORECASE)
_XML_PROLOG_RE = re.compile(
    r"^\s*<\?xml\s+version=(?:\"[^\"]*\"|'[^']*')\s+encoding=(\"[^\"]*\"|'[^']*')",
    re.IGNORECASE,
)
_META_HTTP_EQUIV_RE = re.compile(
    r"<meta\s+http-equiv\s*=\s*[\"']?Content-Type[\"']?\s+content\s*=\s*"
    r"[\"'][^;]+;\s*charset=[\"']?([^;\"'>]+)",
    re.IGNORECASE,
)
_META_CHARSET_RE = re.compile(r"<meta\s+charset\s*=\s*[\"']?([^\"'>\s]+)", re.IGNORECASE)
_META_TAG_RE = re.compile(r"<meta\s+([^>]+)>", re.IGNORECASE)
_META_ANY_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^\"'>\s;]+)", re.IGNORECASE)


class EncodingDecision(NamedTuple):
    encoding: str
    text: str


# ---------------------------------------------------------------------------
# Default detector binding
# ---------------------------------------------------------------------------

class ChardetDetector:
    """Statistical byte-level detection backed by chardet."""

    name = "chardet"

    def detect(self, sample: bytes) -> str | None:
        import chardet

        result = chardet.detect(sample)
        encoding = result.get("encoding") if result else None
        return encoding.lower() if encoding else None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def fix_common_encoding_mistakes(encoding: str) -> str:
    """Normalise *encoding* and map known misspellings to canonical names."""
    encoding = encoding.lower().strip()
    return _ENCODING_FIXES.get(encoding, encoding)


def _is_utf8(encoding: str) -> bool:
    return encoding in ("utf-8", "utf8")


def _is_latin1(encoding: str) -> bool:
    try:
        return codecs.lookup(encoding).name == "iso8859-1"
    except LookupError:
        return False


def _scan_declarations(head: str) -> str | None:
    """Return the first charset declared in the document head, if any."""
    match = _XML_PROLOG_RE.search(head)
    if match:
        return match.group(1).strip("\"'")

    match = _META_HTTP_EQUIV_RE.search(head)
    if match:
        return match.group(1)

    match = _META_CHARSET_RE.search(head)
    if match:
        return match.group(1)

    for tag in _META_TAG_RE.finditer(head):
        match = _META_ANY_CHARSET_RE.search(tag.group(1))
        if match:
            return match.group(1)
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_encoding_from_headers(headers: Mapping[str, str] | None) -> str | None:
    """Return the corrected charset of a ``Content-Type`` header, or None."""
    if not headers:
        return None
    content_type = ""
    for key, value in headers.items():
        if key.lower() == "content-type":
            content_type = str(value)
            break
    match = _HEADER_CHARSET_RE.search(content_type)
    if not match or not match.group(1).strip():
        return None
    return fix_common_encoding_mistakes(match.group(1))


def detect_encoding_from_html(
    raw: bytes,
    detector: CharsetDetector | None = None,
    max_bytes: int = settings.MAX_CHARSET_DETECTION_SIZE,
) -> str:
    """Guess the encoding of *raw* HTML bytes.

    Only the first *max_bytes* bytes are analysed, both by the statistical
    detector and by the declaration scan.
    """
    sample = raw[:max_bytes]
    detector = detector or ChardetDetector()

    encoding: str | None = None
    try:
        encoding = detector.detect(sample)
    except Exception as exc:
        logger.error("Charset detector %s failed: %s", type(detector).__name__, exc)
        encoding = None

    if encoding:
        encoding = encoding.lower()

    if not encoding or encoding == "ascii":
        declared = _scan_declarations(sample.decode("ascii", errors="replace"))
        if declared:
            logger.debug("Charset %r declared in document", declared)
            encoding = declared

    if not encoding or encoding == "ascii":
        return "utf-8"
    return fix_common_encoding_mistakes(encoding)


def handle_special_chars(text: str, source_encoding: str) -> str:
    """Rewrite stray C1 characters to entities for Latin-1 sources only."""
    if not _is_latin1(source_encoding):
        return text
    return _LATIN1_SPECIAL_RE.sub(lambda m: _LATIN1_SPECIAL_CHARS[m.group(0)], text)


def convert_to_utf8(raw: bytes, encoding: str) -> str:
    """Decode *raw* from *encoding*; never raises."""
    encoding = fix_common_encoding_mistakes(encoding)

    if _is_utf8(encoding):
        return raw.decode("utf-8-sig", errors="replace")

    try:
        codecs.lookup(encoding)
    except LookupError:
        logger.warning("Encoding %r is not supported, falling back to utf-8", encoding)
        return raw.decode("utf-8", errors="replace")

    try:
        text = raw.decode(encoding, errors="replace")
    except Exception as exc:
        logger.error("Error converting from %s to utf-8: %s", encoding, exc)
        return raw.decode("utf-8", errors="replace")
    return handle_special_chars(text, encoding)


class EncodingResolver:
    """Decide the source encoding of a response and transcode it.

    Args:
        auto_detect:    When False, anything not forced is read as UTF-8.
        force_encoding: Use this charset regardless of headers or content.
        detector:       Statistical detector; defaults to chardet.
    """

    def __init__(
        self,
        *,
        auto_detect: bool = settings.AUTO_DETECT_ENCODING,
        force_encoding: str | None = settings.FORCE_ENCODING,
        detector: CharsetDetector | None = None,
    ) -> None:
        self.auto_detect = auto_detect
        self.force_encoding = force_encoding
        self.detector = detector or ChardetDetector()

    def detect(self, raw: bytes, headers: Mapping[str, str] | None = None) -> str:
        if self.force_encoding:
            return fix_common_encoding_mistakes(self.force_encoding)
        if not self.auto_detect:
            return "utf-8"
        from_headers = detect_encoding_from_headers(headers)
        if from_headers:
            return from_headers
        return detect_encoding_from_html(raw, self.detector)

    def resolve(self, raw: bytes, headers: Mapping[str, str] | None = None) -> EncodingDecision:
        encoding = self.detect(raw, headers)
        logger.debug("Resolved encoding %s for %d bytes", encoding, len(raw))
        return EncodingDecision(encoding=encoding, text=convert_to_utf8(raw, encoding))

"""Extraction sub-package: DOM access, host rules, metadata, fallback and clean-up."""

from .content import ContentExtractor
from .metadata import extract_metadata
from .postprocess import fix_lazy_images, make_urls_absolute, normalize_date
from .site_rules import apply_rules, apply_string_replacements, find_link
from .urlnorm import normalize_url, resolve_url

__all__ = [
    "ContentExtractor",
    "apply_rules",
    "apply_string_replacements",
    "extract_metadata",
    "find_link",
    "fix_lazy_images",
    "make_urls_absolute",
    "normalize_date",
    "normalize_url",
    "resolve_url",
]

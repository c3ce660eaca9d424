"""pagegrab - article content and metadata extraction with per-site rules.

Quick single-URL usage::

    from pagegrab import fetch

    result = fetch("https://example.com/news/story", rules=["site-rules/"])
    print(result.title)
    print(result.html)

Reusable grabber with injected collaborators::

    from pagegrab import Grabber, RuleRepository

    grabber = Grabber(
        rule_provider=RuleRepository.from_yaml("rules.yaml"),
        multipage_limit=5,
    )
    result = grabber.extract("https://example.com/news/story")
"""

from pagegrab.client import FetchError, HttpClient, HttpResponse
from pagegrab.encoding import EncodingResolver, fix_common_encoding_mistakes
from pagegrab.extractors.content import ContentExtractor
from pagegrab.grabber import Grabber
from pagegrab.items import ExtractionResult
from pagegrab.multipage import assemble_pages
from pagegrab.query import extract, fetch, fetch_html
from pagegrab.rules import ExtractionRuleSet, RuleRepository, parse_site_config

__version__ = "0.1.0"
__all__ = [
    "ContentExtractor",
    "EncodingResolver",
    "ExtractionResult",
    "ExtractionRuleSet",
    "FetchError",
    "Grabber",
    "HttpClient",
    "HttpResponse",
    "RuleRepository",
    "assemble_pages",
    "extract",
    "fetch",
    "fetch_html",
    "fix_common_encoding_mistakes",
    "parse_site_config",
]

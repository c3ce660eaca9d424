"""pagegrab.protocols - contracts for the collaborators the engine consumes.

Every collaborator follows a ``runtime_checkable`` ``Protocol`` so callers
can inject their own implementation without inheriting from a base class::

    from pagegrab import Grabber

    class StaticRules:
        def rules_for_host(self, hostname):
            return my_rules if hostname == "example.com" else None

    grabber = Grabber(rule_provider=StaticRules())

Default bindings: :class:`pagegrab.client.HttpClient`,
:class:`pagegrab.rules.RuleRepository`,
:class:`pagegrab.extractors.fallback.ReadabilityFallback`,
:class:`pagegrab.extractors.postprocess.Nh3Sanitizer` and
:class:`pagegrab.encoding.ChardetDetector`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pagegrab.client import HttpResponse
    from pagegrab.extractors.fallback import FallbackResult
    from pagegrab.rules import ExtractionRuleSet


@runtime_checkable
class Transport(Protocol):
    """Fetches a URL and returns the decoded response."""

    def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        skip_type_check: bool = False,
    ) -> HttpResponse:
        """Fetch *url*; raise :class:`pagegrab.client.FetchError` on failure."""
        ...


@runtime_checkable
class RuleProvider(Protocol):
    """Maps a hostname to its extraction rule set."""

    def rules_for_host(self, hostname: str) -> ExtractionRuleSet | None:
        """Return the rule set for *hostname*, or None when there is none."""
        ...


@runtime_checkable
class ReadabilityFallback(Protocol):
    """Generic article extractor used when no rule-set body matched."""

    def extract(self, html: str, url: str = "") -> FallbackResult | None:
        """Return the extracted article, or None when nothing was found."""
        ...


@runtime_checkable
class Sanitizer(Protocol):
    """Reduces markup to an allow-list of tags and attributes."""

    def sanitize(
        self,
        html: str,
        allowed_tags: Iterable[str],
        allowed_attributes: Iterable[str],
    ) -> str:
        """Return *html* without disallowed tags (their text is kept)."""
        ...


@runtime_checkable
class CharsetDetector(Protocol):
    """Statistical byte-level charset guesser."""

    def detect(self, sample: bytes) -> str | None:
        """Return the guessed encoding name for *sample*, or None."""
        ...

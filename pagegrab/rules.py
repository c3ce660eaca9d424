"""Host extraction rule sets and where they come from.

Two on-disk formats are understood:

* the FiveFilters ``ftr-site-config`` line format, one ``<host>.txt`` file per
  host (a leading dot, ``.example.com.txt``, matches every subdomain)::

      title: //h1[@class='headline']
      body: //div[@id='story']
      strip: //div[@class='share']
      wrap_in(blockquote): //div[@class='pullquote']
      next_page_link: //a[@rel='next']
      if_page_contains: //div[@class='pager']
      http_header(user-agent): Mozilla/5.0

* a YAML document with optional ``default`` rules merged under each entry of
  ``domains``::

      default:
        strip: ["//div[@class='ad']"]
      domains:
        example.com:
          body: ["//article"]
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Literal, get_args

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

LinkKind = Literal["next_page_link", "single_page_link"]

LINK_KINDS: tuple[str, ...] = get_args(LinkKind)

_LIST_DIRECTIVES: frozenset[str] = frozenset(
    {
        "title",
        "body",
        "date",
        "author",
        "strip",
        "strip_id_or_class",
        "strip_image_src",
        "native_ad_clue",
        "next_page_link",
        "single_page_link",
        "find_string",
        "replace_string",
    },
)

_LINE_RE = re.compile(r"^(?P<key>[\w-]+)(?:\((?P<arg>.*?)\))?\s*:\s?(?P<value>.*)$")


class ExtractionRuleSet(BaseModel):
    """Immutable per-host extraction rules.

    List-valued directives are ordered: the first expression that matches
    wins, except for ``strip`` where every expression is applied.
    """

    model_config = ConfigDict(frozen=True)

    title: tuple[str, ...] = ()
    body: tuple[str, ...] = ()
    date: tuple[str, ...] = ()
    author: tuple[str, ...] = ()
    strip: tuple[str, ...] = ()
    strip_id_or_class: tuple[str, ...] = ()
    strip_image_src: tuple[str, ...] = ()
    native_ad_clue: tuple[str, ...] = ()
    next_page_link: tuple[str, ...] = ()
    single_page_link: tuple[str, ...] = ()
    wrap_in: dict[str, str] = Field(default_factory=dict)
    find_string: tuple[str, ...] = ()
    replace_string: tuple[str, ...] = ()
    # kind -> pattern -> gate expression that must match before the pattern is tried
    if_page_contains: dict[str, dict[str, str]] = Field(default_factory=dict)
    http_header: dict[str, str] = Field(default_factory=dict)

    def condition_for(self, kind: LinkKind, pattern: str) -> str | None:
        """Return the gate expression registered for *pattern* of *kind*."""
        return self.if_page_contains.get(kind, {}).get(pattern)

    def links(self, kind: LinkKind) -> tuple[str, ...]:
        if kind not in LINK_KINDS:
            raise ValueError(f"Unknown link kind: {kind!r}")
        return getattr(self, kind)


# ---------------------------------------------------------------------------
# ftr-site-config parsing
# ---------------------------------------------------------------------------

def parse_site_config(text: str) -> ExtractionRuleSet:
    """Parse an ftr-site-config document into an :class:`ExtractionRuleSet`."""
    lists: dict[str, list[str]] = {key: [] for key in _LIST_DIRECTIVES}
    wrap_in: dict[str, str] = {}
    http_header: dict[str, str] = {}
    conditions: dict[str, dict[str, str]] = {}
    last_link: tuple[str, str] | None = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE_RE.match(line)
        if not match:
            logger.debug("Skipping malformed site config line %d: %r", lineno, line)
            continue

        key = match.group("key").lower()
        arg = match.group("arg")
        value = match.group("value").strip()

        if key == "replace_string" and arg is not None:
            lists["find_string"].append(arg)
            lists["replace_string"].append(value)
        elif key == "wrap_in" and arg:
            wrap_in[arg.strip().lower()] = value
        elif key == "http_header" and arg:
            http_header[arg.strip().lower()] = value
        elif key == "if_page_contains":
            if last_link is None:
                logger.debug("if_page_contains on line %d has no preceding link rule", lineno)
                continue
            kind, pattern = last_link
            conditions.setdefault(kind, {})[pattern] = value
        elif key in _LIST_DIRECTIVES:
            if not value and key != "replace_string":
                continue
            lists[key].append(value)
            if key in LINK_KINDS:
                last_link = (key, value)
        else:
            logger.debug("Ignoring site config directive %r", key)

    return ExtractionRuleSet(
        **lists,
        wrap_in=wrap_in,
        http_header=http_header,
        if_page_contains=conditions,
    )


def rule_set_from_mapping(data: dict[str, Any]) -> ExtractionRuleSet:
    """Build a rule set from a plain mapping (e.g. parsed YAML).

    Scalar values for list directives are accepted as one-element lists.
    """
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if key in _LIST_DIRECTIVES:
            cleaned[key] = [value] if isinstance(value, str) else list(value or [])
        elif key in ("wrap_in", "http_header"):
            cleaned[key] = {str(k).lower(): str(v) for k, v in (value or {}).items()}
        elif key == "if_page_contains":
            cleaned[key] = {
                str(kind): {str(p): str(g) for p, g in (gates or {}).items()}
                for kind, gates in (value or {}).items()
            }
        else:
            logger.debug("Ignoring rule key %r", key)
    return ExtractionRuleSet(**cleaned)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

def _host_key(hostname: str) -> str:
    host = hostname.lower().strip().rstrip(".")
    return host[4:] if host.startswith("www.") else host


def _host_candidates(hostname: str) -> list[str]:
    """Return lookup keys for *hostname*, most specific first."""
    host = _host_key(hostname)
    if not host:
        return []
    candidates = [host]
    parts = host.split(".")
    for i in range(len(parts) - 1):
        candidates.append("." + ".".join(parts[i:]))
    return candidates


class RuleRepository:
    """In-memory host → rule-set map with wildcard-domain lookup."""

    def __init__(self, rules: dict[str, ExtractionRuleSet] | None = None) -> None:
        self._rules: dict[str, ExtractionRuleSet] = {}
        for host, rule_set in (rules or {}).items():
            self.add(host, rule_set)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, host: object) -> bool:
        return isinstance(host, str) and _host_key(host) in self._rules

    def add(self, host: str, rule_set: ExtractionRuleSet) -> None:
        self._rules[_host_key(host)] = rule_set

    def update(self, other: RuleRepository) -> None:
        self._rules.update(other._rules)

    def rules_for_host(self, hostname: str) -> ExtractionRuleSet | None:
        for key in _host_candidates(hostname):
            rule_set = self._rules.get(key)
            if rule_set is not None:
                logger.debug("Using rules %r for host %s", key, hostname)
                return rule_set
        return None

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, path: str | Path) -> RuleRepository:
        """Load every ``<host>.txt`` ftr-site-config file in *path*."""
        repo = cls()
        for file in sorted(Path(path).glob("*.txt")):
            try:
                repo.add(file.stem, parse_site_config(file.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                logger.warning("Could not load site config %s: %s", file, exc)
        logger.info("Loaded %d site configs from %s", len(repo), path)
        return repo

    @classmethod
    def from_yaml(cls, path: str | Path) -> RuleRepository:
        """Load a YAML rules document (``default`` + ``domains``)."""
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        default = data.get("default", {}) if isinstance(data, dict) else {}
        domains = data.get("domains", {}) if isinstance(data, dict) else {}

        repo = cls()
        if not isinstance(domains, dict):
            return repo
        for host, cfg in domains.items():
            if not isinstance(host, str) or not isinstance(cfg, dict):
                continue
            merged: dict[str, Any] = {}
            if isinstance(default, dict):
                merged.update(default)
            merged.update(cfg)
            repo.add(host, rule_set_from_mapping(merged))
        return repo

    @classmethod
    def from_paths(cls, paths: list[str | Path]) -> RuleRepository:
        """Load and combine directories and YAML files; later paths win."""
        repo = cls()
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                repo.update(cls.from_directory(path))
            elif path.suffix.lower() in (".yaml", ".yml"):
                repo.update(cls.from_yaml(path))
            elif path.suffix.lower() == ".txt":
                repo.add(path.stem, parse_site_config(path.read_text(encoding="utf-8")))
            else:
                logger.warning("Unrecognised rules source: %s", path)
        return repo

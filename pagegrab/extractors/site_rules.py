"""Apply a host's extraction rule set to a parsed document.

Order matters and is fixed:

1. ``title``, ``date``, ``author``: read from the untouched document
2. ``native_ad_clue``
3. ``next_page_link`` / ``single_page_link`` (with ``if_page_contains`` gates)
4. ``wrap_in``: only block-quote, paragraph and div wrappers are allowed
5. ``strip``, ``strip_id_or_class``, ``strip_image_src``: detach matches
6. ``body``: deep-clone the first expression's matches into a new container

Wrapping runs before stripping because wrap targets may overlap strip
targets, and stripping runs before body extraction so stripped subtrees never
reach the output.  A failing expression is logged and counts as "no match";
the remaining expressions still run.

``find_string``/``replace_string`` substitutions are applied to the raw HTML
text before parsing (:func:`apply_string_replacements`).
"""

from __future__ import annotations

import logging
from typing import Any

from lxml import etree
from lxml.html import HtmlElement

from pagegrab.extractors import dom
from pagegrab.items import ExtractionState
from pagegrab.rules import LINK_KINDS, ExtractionRuleSet, LinkKind

logger = logging.getLogger(__name__)

ALLOWED_WRAP_TAGS: frozenset[str] = frozenset({"blockquote", "p", "div"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_evaluate(expression: str, context: HtmlElement, directive: str) -> list[Any]:
    """Evaluate *expression*; any failure is logged and yields no matches."""
    if not expression or not expression.strip():
        return []
    try:
        return dom.evaluate(expression, context)
    except (etree.XPathError, ValueError, TypeError) as exc:
        logger.warning("Error evaluating %s XPath %r: %s", directive, expression, exc)
        return []


def _first_match(expressions: tuple[str, ...], document: HtmlElement, directive: str) -> list[Any]:
    """Return the matches of the first expression that matches anything."""
    for expression in expressions:
        matches = _safe_evaluate(expression, document, directive)
        if matches:
            logger.debug("%s matched by %r (%d nodes)", directive, expression, len(matches))
            return matches
    return []


def _id_or_class_xpath(token: str) -> str:
    token = token.replace("'", "").replace('"', "").strip()
    return (
        f"//*[contains(concat(' ',normalize-space(@class),' '),' {token} ')"
        f" or contains(concat(' ',normalize-space(@id),' '),' {token} ')]"
    )


def _image_src_xpath(fragment: str) -> str:
    fragment = fragment.replace("'", "").replace('"', "").strip()
    return f"//img[contains(@src,'{fragment}')]"


# ---------------------------------------------------------------------------
# Pre-parse substitution
# ---------------------------------------------------------------------------

def apply_string_replacements(html: str, rules: ExtractionRuleSet | None) -> str:
    """Replace every literal ``find_string[i]`` with ``replace_string[i]``."""
    if rules is None or not rules.find_string:
        return html
    for i, find in enumerate(rules.find_string):
        if not find:
            continue
        replace = rules.replace_string[i] if i < len(rules.replace_string) else ""
        html = html.replace(find, replace)
    return html


# ---------------------------------------------------------------------------
# Individual directives
# ---------------------------------------------------------------------------

def extract_title(document: HtmlElement, rules: ExtractionRuleSet) -> str | None:
    matches = _first_match(rules.title, document, "title")
    return dom.text_of(matches[0]) if matches else None


def extract_date(document: HtmlElement, rules: ExtractionRuleSet) -> str | None:
    matches = _first_match(rules.date, document, "date")
    if not matches:
        return None
    return dom.text_of(matches[0]) or None


def extract_authors(document: HtmlElement, rules: ExtractionRuleSet) -> list[str]:
    matches = _first_match(rules.author, document, "author")
    authors: list[str] = []
    for match in matches:
        name = dom.text_of(match)
        if name and name not in authors:
            authors.append(name)
    return authors


def detect_native_ad(document: HtmlElement, rules: ExtractionRuleSet) -> bool:
    return bool(_first_match(rules.native_ad_clue, document, "native_ad_clue"))


def find_link(document: HtmlElement, rules: ExtractionRuleSet, kind: LinkKind) -> str | None:
    """Return the first link yielded by the *kind* patterns of *rules*.

    A pattern with an ``if_page_contains`` gate is only tried when the gate
    expression matches.
    """
    if kind not in LINK_KINDS:
        raise ValueError(f"Unknown link kind: {kind!r}")
    for pattern in rules.links(kind):
        gate = rules.condition_for(kind, pattern)
        if gate and not _safe_evaluate(gate, document, f"{kind} condition"):
            logger.debug("Skipping %s %r: condition %r not met", kind, pattern, gate)
            continue
        for match in _safe_evaluate(pattern, document, kind):
            value = dom.link_value(match)
            if value:
                logger.debug("%s found via %r: %s", kind, pattern, value)
                return value
    return None


def wrap_in(document: HtmlElement, tag: str, expression: str) -> int:
    """Wrap every node matched by *expression* in a new *tag* element.

    Returns the number of wrapped nodes.  Tags outside the allow-list are
    rejected with a warning and leave the document untouched.
    """
    tag = tag.lower().strip()
    if tag not in ALLOWED_WRAP_TAGS:
        logger.warning("wrap_in(%s) rejected: only %s are allowed", tag, sorted(ALLOWED_WRAP_TAGS))
        return 0
    wrapped = 0
    for node in _safe_evaluate(expression, document, f"wrap_in({tag})"):
        if dom.is_element(node) and dom.replace_with_wrapper(node, tag) is not None:
            wrapped += 1
    return wrapped


def strip_nodes(document: HtmlElement, rules: ExtractionRuleSet) -> int:
    """Detach everything matched by the strip directives; return the count."""
    expressions: list[tuple[str, str]] = [(e, "strip") for e in rules.strip]
    expressions += [(_id_or_class_xpath(t), "strip_id_or_class") for t in rules.strip_id_or_class if t]
    expressions += [(_image_src_xpath(s), "strip_image_src") for s in rules.strip_image_src if s]

    removed = 0
    for expression, directive in expressions:
        for node in _safe_evaluate(expression, document, directive):
            if dom.is_element(node) and dom.detach(node):
                removed += 1
    return removed


def extract_body(document: HtmlElement, rules: ExtractionRuleSet) -> HtmlElement | None:
    """Clone the first body expression's matches into a new ``div``."""
    matches = _first_match(rules.body, document, "body")
    if not matches:
        return None
    container = dom.new_element("div")
    for match in matches:
        if dom.is_element(match):
            container.append(dom.clone(match))
        elif isinstance(match, str):
            dom.append_text(container, match)
    return container


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_rules(document: HtmlElement, rules: ExtractionRuleSet, state: ExtractionState) -> None:
    """Apply *rules* to *document*, updating *state* in place."""
    title = extract_title(document, rules)
    if title is not None:
        state.title = title

    date = extract_date(document, rules)
    if date:
        state.date = date

    authors = extract_authors(document, rules)
    if authors:
        state.authors = authors

    if detect_native_ad(document, rules):
        state.is_native_ad = True

    state.next_page_url = find_link(document, rules, "next_page_link")
    state.single_page_url = find_link(document, rules, "single_page_link")

    for tag, expression in rules.wrap_in.items():
        wrap_in(document, tag, expression)

    removed = strip_nodes(document, rules)
    if removed:
        logger.debug("Stripped %d nodes", removed)

    body = extract_body(document, rules)
    if body is not None:
        state.body = body

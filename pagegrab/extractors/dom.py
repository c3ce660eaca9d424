"""Thin DOM/XPath facade over lxml.

The rest of the package touches documents only through these helpers, so
lxml's ``HtmlElement`` is the single node interface: attribute get/set/remove,
parent links, deep clone, serialization and text content.

XPath results come back as lists.  A node-set is returned as-is (elements,
or attribute/text strings); a scalar result (``string(...)``, ``count(...)``,
``boolean(...)``) is wrapped in a one-element list unless it is empty or
false, so "did it match?" is always ``bool(result)``.
"""

from __future__ import annotations

import copy
import html as html_lib
import re
from typing import Any

from lxml import etree
from lxml import html as lxml_html
from lxml.html import HtmlElement

# lxml refuses str input that carries an encoding declaration
_XML_PROLOG_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)

_EMPTY_DOCUMENT = "<html><head></head><body></body></html>"


def parse_html(text: str) -> HtmlElement:
    """Parse *text* into a full document and return its ``<html>`` element."""
    text = _XML_PROLOG_RE.sub("", text or "", count=1)
    if not text.strip():
        text = _EMPTY_DOCUMENT
    try:
        return lxml_html.document_fromstring(text)
    except (etree.ParserError, ValueError):
        return lxml_html.document_fromstring(_EMPTY_DOCUMENT)


def fragment(markup: str, tag: str = "div") -> HtmlElement:
    """Parse an HTML fragment into a new *tag* element wrapping it."""
    return lxml_html.fragment_fromstring(markup or "", create_parent=tag)


def new_element(tag: str) -> HtmlElement:
    return lxml_html.Element(tag)


def evaluate(expression: str, context: HtmlElement) -> list[Any]:
    """Evaluate an XPath *expression* against *context*.

    Raises ``lxml.etree.XPathError`` for invalid expressions; callers decide
    how to recover.
    """
    result = context.xpath(expression)
    if isinstance(result, list):
        return result
    if result is None or result == "" or result == 0:
        return []
    return [result]


def is_element(match: Any) -> bool:
    return isinstance(match, etree._Element) and isinstance(match.tag, str)


def text_of(match: Any) -> str:
    """Return the trimmed text of an element or the string value of a scalar."""
    if is_element(match):
        return match.text_content().strip()
    return str(match).strip()


def link_value(match: Any) -> str | None:
    """Return a URL-ish value from *match*.

    Priority: ``href`` attribute, then scalar/attribute value, then trimmed
    text content.
    """
    if is_element(match):
        href = match.get("href")
        if href and href.strip():
            return href.strip()
        text = match.text_content().strip()
        return text or None
    if isinstance(match, bool):
        return None
    value = str(match).strip()
    return value or None


def clone(node: HtmlElement) -> HtmlElement:
    """Deep copy of *node* without its trailing text."""
    copied = copy.deepcopy(node)
    copied.tail = None
    return copied


def detach(node: HtmlElement) -> bool:
    """Remove *node* from its parent, keeping the text that follows it."""
    if node.getparent() is None:
        return False
    node.drop_tree()
    return True


def replace_with_wrapper(node: HtmlElement, tag: str) -> HtmlElement | None:
    """Replace *node* in place by a new *tag* element that contains it."""
    parent = node.getparent()
    if parent is None:
        return None
    wrapper = new_element(tag)
    wrapper.tail, node.tail = node.tail, None
    parent.replace(node, wrapper)
    wrapper.append(node)
    return wrapper


def append_text(container: HtmlElement, text: str) -> None:
    """Append *text* after the last child of *container*."""
    if len(container):
        last = container[-1]
        last.tail = (last.tail or "") + text
    else:
        container.text = (container.text or "") + text


def serialize(node: HtmlElement) -> str:
    return etree.tostring(node, encoding="unicode", method="html", with_tail=False)


def inner_html(node: HtmlElement) -> str:
    """Serialize the children of *node* (its ``innerHTML``)."""
    parts: list[str] = []
    if node.text:
        parts.append(html_lib.escape(node.text, quote=False))
    for child in node:
        parts.append(etree.tostring(child, encoding="unicode", method="html", with_tail=True))
    return "".join(parts)

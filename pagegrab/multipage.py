"""Multi-page article assembly.

Follows ``next_page_url`` links page by page, extracting each one with the
same pipeline as the first page, and stitches the bodies together as
sibling ``<div>`` blocks.  The loop is sequential and bounded by a page
limit and a visited-URL set.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from lxml.html import HtmlElement

from pagegrab import settings
from pagegrab.client import FetchError, HttpResponse
from pagegrab.extractors import dom
from pagegrab.extractors.urlnorm import normalize_url, resolve_link
from pagegrab.items import ExtractionResult

logger = logging.getLogger(__name__)

CONTINUATION_NOTICE = (
    "<p><em>This article appears to continue on subsequent pages"
    " which we could not extract</em></p>"
)

FetchPage = Callable[[str], HttpResponse]
ExtractPage = Callable[[str, str], ExtractionResult]


def _page_block(html: str) -> HtmlElement:
    return dom.fragment(html, tag="div")


def _notice_block() -> HtmlElement:
    return dom.fragment(CONTINUATION_NOTICE)[0]


def assemble_pages(
    first: ExtractionResult,
    base_url: str,
    fetch_page: FetchPage,
    extract_page: ExtractPage,
    limit: int = settings.MULTIPAGE_LIMIT,
) -> ExtractionResult:
    """Append the bodies of the pages following *first*.

    Args:
        first:        Result of the first page.
        base_url:     URL the first page was served from.
        fetch_page:   Fetches a continuation URL (may raise ``FetchError``).
        extract_page: Runs single-page extraction on ``(html, url)``.
        limit:        Maximum number of pages, the first one included.

    Returns *first* unchanged when no further page was appended; otherwise a
    copy whose ``html`` holds every page block in order.
    """
    visited: set[str] = {normalize_url(base_url)}
    blocks = [_page_block(first.html)]
    next_url = first.next_page_url
    current_url = base_url
    page_count = 1

    while next_url and page_count < limit:
        absolute = resolve_link(next_url, current_url)
        if absolute is None:
            logger.debug("Cannot resolve next page link %r against %s", next_url, current_url)
            break
        key = normalize_url(absolute)
        if key in visited:
            logger.debug("Next page %s already processed, stopping", absolute)
            break
        visited.add(key)

        logger.info("Fetching page %d: %s", page_count + 1, absolute)
        try:
            response = fetch_page(absolute)
        except FetchError as exc:
            logger.warning("Could not fetch page %s: %s", absolute, exc)
            blocks.append(_notice_block())
            break

        if not response.html:
            logger.warning("No HTML content on page %s", absolute)
            blocks.append(_notice_block())
            break

        page_url = response.url or absolute
        result = extract_page(response.html, page_url)
        if not result.success:
            logger.warning("Could not extract page %s", absolute)
            blocks.append(_notice_block())
            break

        blocks.append(_page_block(result.html))
        page_count += 1
        visited.add(normalize_url(page_url))
        current_url = page_url
        next_url = result.next_page_url

    if len(blocks) <= 1:
        return first

    container = dom.new_element("div")
    for block in blocks:
        container.append(block)
    logger.debug("Assembled %d blocks from %d pages", len(blocks), page_count)
    return first.model_copy(update={"html": dom.inner_html(container)})

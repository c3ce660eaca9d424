"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from pagegrab.client import FetchError, HttpResponse
from pagegrab.rules import RuleRepository

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class FakeTransport:
    """In-memory transport: URL -> HttpResponse (or an exception to raise)."""

    def __init__(self, pages: dict[str, HttpResponse | Exception] | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: list[tuple[str, dict, bool]] = []

    def add_html(self, url: str, html: str, final_url: str | None = None) -> None:
        self.pages[url] = HttpResponse(
            url=final_url or url,
            html=html,
            content_type="text/html; charset=utf-8",
            status=200,
        )

    def fetch(self, url, *, headers=None, skip_type_check=False):
        self.calls.append((url, dict(headers or {}), skip_type_check))
        page = self.pages.get(url)
        if page is None:
            raise FetchError(f"HTTP 404 fetching {url}: Not Found", url=url, status=404)
        if isinstance(page, Exception):
            raise page
        return page


class NoFallback:
    """Readability stand-in that never finds anything."""

    def extract(self, html, url=""):
        return None


@pytest.fixture
def article_html() -> str:
    return _read_fixture("article.html")


@pytest.fixture
def article_page2_html() -> str:
    return _read_fixture("article_page2.html")


@pytest.fixture
def plain_article_html() -> str:
    return _read_fixture("plain_article.html")


@pytest.fixture
def rules_dir() -> Path:
    return FIXTURES_DIR / "rules"


@pytest.fixture
def rules_yaml() -> Path:
    return FIXTURES_DIR / "rules.yaml"


@pytest.fixture
def repository(rules_dir: Path) -> RuleRepository:
    return RuleRepository.from_directory(rules_dir)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def no_fallback() -> NoFallback:
    return NoFallback()

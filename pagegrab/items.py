"""Per-page extraction state and the immutable result handed to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from lxml.html import HtmlElement


class ExtractionResult(BaseModel):
    """Canonical output of one extraction."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    html: str = ""
    authors: list[str] = Field(default_factory=list)
    date: str | None = None
    language: str | None = None
    image: str | None = None
    next_page_url: str | None = None
    single_page_url: str | None = None
    is_native_ad: bool = False
    success: bool = False

    # Filled in by the orchestrator, not by page processing
    original_url: str | None = None
    final_url: str | None = None
    status: int | None = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v or ""


@dataclass
class ExtractionState:
    """Mutable working state for a single ``process`` call.

    A new instance is created for every page; it is never reused.
    """

    title: str | None = None
    body: HtmlElement | None = None
    body_html: str = ""
    authors: list[str] = field(default_factory=list)
    date: str | None = None
    language: str | None = None
    image: str | None = None
    is_native_ad: bool = False
    next_page_url: str | None = None
    single_page_url: str | None = None
    success: bool = False

    def add_author(self, name: str) -> None:
        name = name.strip()
        if name and name not in self.authors:
            self.authors.append(name)

    def to_result(self) -> ExtractionResult:
        return ExtractionResult(
            title=self.title or "",
            html=self.body_html if self.body is not None else "",
            authors=list(self.authors),
            date=self.date,
            language=self.language,
            image=self.image,
            next_page_url=self.next_page_url,
            single_page_url=self.single_page_url,
            is_native_ad=self.is_native_ad,
            success=self.success,
        )

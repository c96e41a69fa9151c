"""Shared newsletter data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


EMAIL_LINKS = "email_links"
EMAIL_INLINE = "email_inline"
EXTRACTION_METHODS = (EMAIL_LINKS, EMAIL_INLINE)

MAX_TITLE_LENGTH = 300


@dataclass(frozen=True)
class ArticleCandidate:
    """Article extracted from one newsletter email (pre-dedup, pre-persistence).

    Link-based candidates always carry a url. Inline candidates (the newsletter
    ships the whole article body) have no url and carry ``content`` instead, which
    lets downstream steps skip scraping.
    """

    title: str
    url: Optional[str]
    summary: str
    source_name: str
    extraction_method: str = EMAIL_LINKS
    content: Optional[str] = None
    title_inferred: Optional[bool] = None
    reading_time: Optional[str] = None
    section: Optional[str] = None
    newsletter_date: Optional[str] = None

    def __post_init__(self) -> None:
        title = (self.title or "").strip()
        if not title:
            raise ValueError("ArticleCandidate.title must be non-empty")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValueError(f"ArticleCandidate.title exceeds {MAX_TITLE_LENGTH} characters")
        if self.extraction_method not in EXTRACTION_METHODS:
            raise ValueError(f"Unknown extraction_method: {self.extraction_method!r}")
        if self.extraction_method == EMAIL_LINKS and not self.url:
            raise ValueError("email_links candidates require a url")
        if self.extraction_method == EMAIL_INLINE and self.url is not None:
            raise ValueError("email_inline candidates must not carry a url")


@dataclass(frozen=True)
class ParsedNewsletter:
    """Result of running one strategy over one email."""

    newsletter_source: str
    email_subject: str
    published_at: str  # YYYY-MM-DD
    candidates: List[ArticleCandidate] = field(default_factory=list)


@dataclass
class Article:
    """Persisted article row (the unit of semantic dedup)."""

    title: str
    summary: str
    source_url: str
    newsletter_date: str
    id: Optional[int] = None
    canonical_url: Optional[str] = None
    reading_time: Optional[str] = None
    section: Optional[str] = None
    source_name: Optional[str] = None
    content: Optional[str] = None
    created_at: Optional[str] = None

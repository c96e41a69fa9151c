"""In-process article store (dry runs and tests)."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from inboxdigest.ingestion.article_types import Article


class ArticleStore(Protocol):
    def article_exists(self, url: str) -> bool: ...

    def insert_article(self, article: Article) -> Article: ...

    def get_articles_by_date_range(self, start_date: str, end_date: str) -> List[Article]: ...


class InMemoryArticleStore:
    def __init__(self) -> None:
        self._by_id: Dict[int, Article] = {}
        self._next_id = 1

    def article_exists(self, url: str) -> bool:
        if not url:
            return False
        return any(a.source_url == url or a.canonical_url == url for a in self._by_id.values())

    def insert_article(self, article: Article) -> Article:
        for existing in self._by_id.values():
            if existing.source_url == article.source_url:
                return existing
        stored = replace(
            article,
            id=self._next_id,
            created_at=article.created_at or datetime.now(timezone.utc).isoformat(),
        )
        self._by_id[stored.id] = stored
        self._next_id += 1
        return stored

    def get_article_by_id(self, article_id: int) -> Optional[Article]:
        return self._by_id.get(article_id)

    def get_articles_by_date_range(self, start_date: str, end_date: str) -> List[Article]:
        rows = [a for a in self._by_id.values() if start_date <= a.newsletter_date <= end_date]
        # newest first, insertion order within a day
        rows.sort(key=lambda a: a.id or 0)
        rows.sort(key=lambda a: a.newsletter_date, reverse=True)
        return rows

    def __len__(self) -> int:
        return len(self._by_id)

"""Postgres-backed article store.

Articles are unique by ``source_url``. The pipeline checks both the raw URL and
its canonical form before inserting, so ``article_exists`` matches either column.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import psycopg

from inboxdigest.ingestion.article_types import Article


_SELECT_COLUMNS = """
id, title, summary, source_url, canonical_url, newsletter_date, reading_time, section,
source_name, content, created_at
"""


@dataclass
class PostgresArticleStore:
    pg_dsn: str

    def _connect(self):
        return psycopg.connect(self.pg_dsn)

    def article_exists(self, url: str) -> bool:
        if not url:
            return False
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM articles WHERE source_url = %s OR canonical_url = %s LIMIT 1",
                    (url, url),
                )
                return cur.fetchone() is not None

    def insert_article(self, article: Article) -> Article:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO articles (
                      title, summary, source_url, canonical_url, newsletter_date,
                      reading_time, section, source_name, content
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (source_url) DO NOTHING
                    RETURNING {_SELECT_COLUMNS}
                    """,
                    (
                        article.title,
                        article.summary,
                        article.source_url,
                        article.canonical_url,
                        article.newsletter_date,
                        article.reading_time,
                        article.section,
                        article.source_name,
                        article.content,
                    ),
                )
                row = cur.fetchone()
        return self._row_to_article(row) if row else article

    def get_article_by_id(self, article_id: int) -> Optional[Article]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_SELECT_COLUMNS} FROM articles WHERE id = %s", (int(article_id),))
                row = cur.fetchone()
        return self._row_to_article(row) if row else None

    def get_articles_by_date_range(self, start_date: str, end_date: str) -> List[Article]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {_SELECT_COLUMNS}
                    FROM articles
                    WHERE newsletter_date >= %s AND newsletter_date <= %s
                    ORDER BY newsletter_date DESC, id ASC
                    """,
                    (start_date, end_date),
                )
                rows = cur.fetchall()
        return [self._row_to_article(row) for row in rows]

    def _row_to_article(self, row) -> Article:
        # Row ordering matches _SELECT_COLUMNS.
        (
            aid,
            title,
            summary,
            source_url,
            canonical_url,
            newsletter_date,
            reading_time,
            section,
            source_name,
            content,
            created_at,
        ) = row
        return Article(
            id=int(aid),
            title=title,
            summary=summary,
            source_url=source_url,
            canonical_url=canonical_url,
            newsletter_date=newsletter_date.isoformat() if hasattr(newsletter_date, "isoformat") else str(newsletter_date),
            reading_time=reading_time,
            section=section,
            source_name=source_name,
            content=content,
            created_at=created_at.isoformat() if created_at else None,
        )

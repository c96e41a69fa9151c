"""Postgres schema management for inboxdigest.

Schema creation is idempotent (CREATE IF NOT EXISTS) so every worker run can call
``ensure_postgres_schema`` unconditionally.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS articles (
      id BIGSERIAL PRIMARY KEY,
      title TEXT NOT NULL,
      summary TEXT NOT NULL,
      source_url TEXT NOT NULL UNIQUE,
      canonical_url TEXT,
      newsletter_date DATE NOT NULL,
      reading_time TEXT,
      section TEXT,
      source_name TEXT,
      content TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_canonical_url ON articles (canonical_url);",
    "CREATE INDEX IF NOT EXISTS idx_articles_newsletter_date ON articles (newsletter_date);",
    "CREATE INDEX IF NOT EXISTS idx_articles_created_at ON articles (created_at);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)

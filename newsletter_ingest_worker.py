#!/usr/bin/env python3
"""Newsletter ingestion worker.

Runs one ingestion cycle (or scheduled cycles) that:
- reads newsletter emails from MAILBOX_PATH (mbox file or directory of .eml files)
- routes each email to its parser and extracts article candidates
- dedupes candidates by canonical URL and stores new ones in Postgres
- optionally reports the semantic-deduplicated article set for the last N days
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import date, timedelta

import schedule
from dotenv import load_dotenv

from inboxdigest.config import Settings
from inboxdigest.embeddings.client import build_embedder
from inboxdigest.ingestion.email_message import load_mailbox
from inboxdigest.parsers.registry import build_default_registry
from inboxdigest.pipeline.aggregation import AggregationProgress, run_aggregation_pipeline
from inboxdigest.storage.memory import InMemoryArticleStore
from inboxdigest.storage.postgres_articles import PostgresArticleStore
from inboxdigest.storage.postgres_schema import ensure_postgres_schema


logger = logging.getLogger("newsletter_ingest_worker")


def _print_progress(p: AggregationProgress) -> None:
    logger.info("[ingest] %3d%% %s%s", p.progress, p.step, f" - {p.details}" if p.details else "")


def run_once(settings: Settings, *, days: int = 7, dry_run: bool = False) -> None:
    if dry_run:
        store = InMemoryArticleStore()
    else:
        ensure_postgres_schema(settings.pg_dsn)
        store = PostgresArticleStore(settings.pg_dsn)

    registry = build_default_registry(summary_max_chars=settings.summary_max_chars)
    messages = load_mailbox(settings.mailbox_path)
    embedder = build_embedder(settings) if settings.semantic_dedup_enabled else None

    end = date.today()
    start = end - timedelta(days=days)
    result = run_aggregation_pipeline(
        start,
        end,
        messages=messages,
        registry=registry,
        store=store,
        embed_texts=embedder.embed_texts if embedder else None,
        threshold=settings.semantic_dedup_threshold,
        on_progress=_print_progress,
    )
    p = result.processing
    logger.info(
        "[ingest] emails=%d extracted=%d deduped=%d saved=%d skipped=%d unique_in_range=%d",
        result.stats.emails_fetched,
        p.candidates_extracted,
        p.candidates_after_dedup,
        p.saved,
        p.skipped,
        result.stats.articles_after_dedup,
    )


def run_scheduled(settings: Settings, *, days: int = 7) -> None:
    schedule.every(settings.ingest_interval_minutes).minutes.do(run_once, settings, days=days)
    run_once(settings, days=days)
    while True:
        schedule.run_pending()
        time.sleep(5)


def main() -> int:
    parser = argparse.ArgumentParser(description="Extract and dedupe articles from newsletter emails")
    parser.add_argument("--days", type=int, default=7, help="Aggregation window in days")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store instead of Postgres")
    args = parser.parse_args()

    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if settings.ingest_mode in ("scheduled", "daemon") and not args.dry_run:
        run_scheduled(settings, days=args.days)
    else:
        run_once(settings, days=args.days, dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

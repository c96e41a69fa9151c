"""Newsletter ingestion and aggregation pipeline.

Two phases:
- ``process_newsletters``: route each email to its parser, extract candidates,
  collapse canonical-URL duplicates across the batch, and persist the new ones.
- ``run_aggregation_pipeline``: ingest, then load the articles for a date range
  and run the quick URL pass followed by semantic dedup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, List, Optional, Sequence

from inboxdigest.dedup.candidates import candidate_key, dedupe_candidates_by_url, quick_dedupe_by_url
from inboxdigest.dedup.semantic import DEFAULT_SIMILARITY_THRESHOLD, EmbedTexts, deduplicate_articles
from inboxdigest.ingestion.article_types import Article, ArticleCandidate
from inboxdigest.ingestion.email_message import EmailMessage
from inboxdigest.ingestion.url_utils import normalize_url
from inboxdigest.parsers.registry import ParserLogContext, ParserRegistry
from inboxdigest.storage.memory import ArticleStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationProgress:
    step: str
    progress: int
    details: Optional[str] = None


ProgressCallback = Callable[[AggregationProgress], None]


@dataclass
class ProcessingStats:
    emails_processed: int = 0
    unmatched: int = 0
    candidates_extracted: int = 0
    candidates_after_dedup: int = 0
    saved: int = 0
    skipped: int = 0
    log_contexts: List[ParserLogContext] = field(default_factory=list)


@dataclass
class AggregationStats:
    emails_fetched: int = 0
    articles_processed: int = 0
    articles_after_url_dedup: int = 0
    articles_after_dedup: int = 0


@dataclass
class AggregationResult:
    articles: List[Article]
    duplicate_groups: List[List[Article]]
    stats: AggregationStats
    processing: ProcessingStats


def extract_candidates(
    messages: Sequence[EmailMessage],
    registry: ParserRegistry,
    stats: ProcessingStats,
) -> List[ArticleCandidate]:
    """Run the matching parser over every message, recording a log context each."""
    out: List[ArticleCandidate] = []
    for message in messages:
        stats.emails_processed += 1
        match = registry.find_parser(message.sender)
        if not match.matched or match.parser is None:
            stats.unmatched += 1
            ctx = registry.create_log_context(message.id, message.sender, message.subject, match)
            stats.log_contexts.append(ctx)
            logger.warning("[pipeline] no parser for sender: %s", message.sender)
            continue

        errors: List[str] = []
        candidates: List[ArticleCandidate] = []
        try:
            parsed = match.parser.parse(message)
            candidates = [
                c if c.newsletter_date else replace(c, newsletter_date=parsed.published_at)
                for c in parsed.candidates
            ]
        except Exception as e:
            logger.exception("[pipeline] %s parser failed on message %s", match.source, message.id)
            errors.append(f"{type(e).__name__}: {e}")

        ctx = registry.create_log_context(
            message.id, message.sender, message.subject, match, len(candidates), errors
        )
        stats.log_contexts.append(ctx)
        logger.info("[pipeline] parsed %s", ctx.as_dict())
        out.extend(candidates)
    return out


def _to_article(candidate: ArticleCandidate, source_url: str, canonical_url: str) -> Article:
    return Article(
        title=candidate.title,
        summary=candidate.summary,
        source_url=source_url,
        canonical_url=canonical_url,
        newsletter_date=candidate.newsletter_date or date.today().isoformat(),
        reading_time=candidate.reading_time,
        section=candidate.section,
        source_name=candidate.source_name,
        content=candidate.content,
    )


def process_newsletters(
    messages: Sequence[EmailMessage],
    registry: ParserRegistry,
    store: ArticleStore,
) -> ProcessingStats:
    stats = ProcessingStats()
    candidates = extract_candidates(messages, registry, stats)
    stats.candidates_extracted = len(candidates)

    unique = dedupe_candidates_by_url(candidates)
    stats.candidates_after_dedup = len(unique)

    for candidate in unique:
        if candidate.url:
            source_url = candidate.url
            canonical = normalize_url(candidate.url)
        else:
            source_url = canonical = candidate_key(candidate)

        if store.article_exists(source_url) or (canonical != source_url and store.article_exists(canonical)):
            stats.skipped += 1
            continue
        store.insert_article(_to_article(candidate, source_url, canonical))
        stats.saved += 1

    logger.info(
        "[pipeline] emails=%d unmatched=%d extracted=%d deduped=%d saved=%d skipped=%d",
        stats.emails_processed,
        stats.unmatched,
        stats.candidates_extracted,
        stats.candidates_after_dedup,
        stats.saved,
        stats.skipped,
    )
    return stats


def run_aggregation_pipeline(
    start_date: date,
    end_date: date,
    *,
    messages: Sequence[EmailMessage],
    registry: ParserRegistry,
    store: ArticleStore,
    embed_texts: Optional[EmbedTexts] = None,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    on_progress: Optional[ProgressCallback] = None,
) -> AggregationResult:
    """Ingest ``messages`` and return the deduplicated articles in [start, end].

    Semantic dedup runs only when ``embed_texts`` is supplied. Embedding failures
    propagate to the caller.
    """

    def report(step: str, progress: int, details: Optional[str] = None) -> None:
        if on_progress is not None:
            on_progress(AggregationProgress(step, progress, details))

    stats = AggregationStats()

    report("Fetching emails", 10, "Reading newsletter emails...")
    stats.emails_fetched = len(messages)
    report("Fetching emails", 20, f"Found {len(messages)} newsletter emails")

    report("Processing newsletters", 30, "Extracting articles...")
    processing = process_newsletters(messages, registry, store)
    report("Processing newsletters", 40, f"Extracted {processing.saved} new articles")

    articles = store.get_articles_by_date_range(start_date.isoformat(), end_date.isoformat())
    stats.articles_processed = len(articles)

    report("De-duplicating", 50, "Removing exact duplicates...")
    articles = quick_dedupe_by_url(articles)
    stats.articles_after_url_dedup = len(articles)

    duplicate_groups: List[List[Article]] = []
    if len(articles) > 1 and embed_texts is not None:
        report("De-duplicating", 55, "Analyzing semantic similarity...")
        result = deduplicate_articles(articles, embed_texts, threshold=threshold)
        articles = result.unique_articles
        duplicate_groups = result.duplicate_groups
        report("De-duplicating", 60, f"Removed {result.removed_count} similar articles")

    stats.articles_after_dedup = len(articles)
    report("Complete", 100, "Aggregation complete!")

    return AggregationResult(
        articles=articles,
        duplicate_groups=duplicate_groups,
        stats=stats,
        processing=processing,
    )

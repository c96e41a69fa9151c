"""Runtime configuration read from the environment.

Entry points call ``load_dotenv()`` first so a local ``.env`` file can supply any
of these variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from inboxdigest.dedup.semantic import DEFAULT_SIMILARITY_THRESHOLD
from inboxdigest.parsers.tldr import DEFAULT_SUMMARY_MAX_CHARS


logger = logging.getLogger(__name__)

DEFAULT_PG_DSN = "dbname=inboxdigest user=inboxdigest password=inboxdigest host=localhost port=5432"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    pg_dsn: str = DEFAULT_PG_DSN
    mailbox_path: str = "mail"

    # Embeddings
    embedding_provider: str = "openai"
    openai_api_key: str = ""
    voyage_api_key: str = ""
    embedding_model: str = ""
    embedding_batch_size: int = 64

    # Dedup / extraction
    semantic_dedup_enabled: bool = True
    semantic_dedup_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    summary_max_chars: int = DEFAULT_SUMMARY_MAX_CHARS

    # Worker
    ingest_mode: str = "once"
    ingest_interval_minutes: int = 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load and validate settings from environment variables"""
        settings = cls(
            pg_dsn=os.getenv("PG_DSN", DEFAULT_PG_DSN),
            mailbox_path=os.getenv("MAILBOX_PATH", "mail"),
            embedding_provider=os.getenv("EMBEDDING_PROVIDER", "openai").strip().lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            voyage_api_key=os.getenv("VOYAGE_API_KEY", ""),
            embedding_model=os.getenv("EMBEDDING_MODEL", ""),
            embedding_batch_size=int(os.getenv("EMBEDDING_BATCH_SIZE", "64")),
            semantic_dedup_enabled=_env_bool("SEMANTIC_DEDUP_ENABLED", "true"),
            semantic_dedup_threshold=float(os.getenv("SEMANTIC_DEDUP_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD))),
            summary_max_chars=int(os.getenv("SUMMARY_MAX_CHARS", str(DEFAULT_SUMMARY_MAX_CHARS))),
            ingest_mode=os.getenv("INGEST_MODE", "once").strip().lower(),
            ingest_interval_minutes=int(os.getenv("INGEST_INTERVAL_MINUTES", "60")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )
        settings._validate()
        return settings

    def _validate(self) -> None:
        errors = []

        if self.embedding_provider not in ("openai", "voyage"):
            errors.append("EMBEDDING_PROVIDER must be 'openai' or 'voyage'")
        elif self.semantic_dedup_enabled:
            if self.embedding_provider == "openai" and not self.openai_api_key:
                errors.append("OPENAI_API_KEY is required for semantic dedup with the openai provider")
            if self.embedding_provider == "voyage" and not self.voyage_api_key:
                errors.append("VOYAGE_API_KEY is required for semantic dedup with the voyage provider")

        if not 0.0 < self.semantic_dedup_threshold <= 1.0:
            errors.append("SEMANTIC_DEDUP_THRESHOLD should be in (0, 1]")

        if self.summary_max_chars < 50:
            errors.append("SUMMARY_MAX_CHARS should be at least 50")

        if self.embedding_batch_size < 1 or self.embedding_batch_size > 2048:
            errors.append("EMBEDDING_BATCH_SIZE should be between 1 and 2048")

        if self.ingest_mode not in ("once", "scheduled", "daemon"):
            errors.append("INGEST_MODE should be 'once' or 'scheduled'")

        if self.ingest_interval_minutes < 1:
            errors.append("INGEST_INTERVAL_MINUTES should be at least 1")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            raise ValueError(error_msg)

        logger.info(
            "Configuration validated (embeddings=%s, semantic_dedup=%s)",
            self.embedding_provider,
            self.semantic_dedup_enabled,
        )

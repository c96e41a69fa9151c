"""Batch embedding providers used by semantic dedup.

Both providers expose ``embed_texts(texts) -> list of vectors`` (same length and
order as the input). Transient provider errors are retried with exponential
backoff; once retries are exhausted an ``EmbeddingError`` is raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from tenacity import RetryError, retry, stop_after_attempt, wait_exponential

from inboxdigest.errors import EmbeddingError


logger = logging.getLogger(__name__)

MAX_EMBED_CHARS = 8000


def _chunk(seq: Sequence[str], n: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(seq), n):
        yield seq[i : i + n]


class BaseEmbedder:
    name: str = "base"
    batch_size: int = 64

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=8), reraise=False)
    def _embed_batch_with_retry(self, texts: List[str]) -> List[List[float]]:
        return self._embed_batch(texts)

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        out: List[List[float]] = []
        for batch in _chunk(list(texts), max(1, self.batch_size)):
            prepared = [(t or " ")[:MAX_EMBED_CHARS] for t in batch]
            try:
                vectors = self._embed_batch_with_retry(prepared)
            except RetryError as e:
                raise EmbeddingError(f"{self.name} embedding failed: {e.last_attempt.exception()}") from e
            if len(vectors) != len(prepared):
                raise EmbeddingError(f"{self.name} returned {len(vectors)} vectors for {len(prepared)} texts")
            out.extend(vectors)
        logger.debug("[%s] embedded %d texts", self.name, len(out))
        return out


@dataclass
class OpenAIEmbedder(BaseEmbedder):
    api_key: str
    model: str = "text-embedding-3-small"
    batch_size: int = 64
    client: Optional[Any] = None

    name: str = "openai"

    def __post_init__(self) -> None:
        if self.client is None:
            from openai import OpenAI

            self.client = OpenAI(api_key=self.api_key)

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        resp = self.client.embeddings.create(model=self.model, input=texts)
        data = sorted(resp.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]


@dataclass
class VoyageEmbedder(BaseEmbedder):
    api_key: str
    model: str = "voyage-3-large"
    batch_size: int = 64
    client: Optional[Any] = None

    name: str = "voyage"

    def __post_init__(self) -> None:
        if self.client is None:
            import voyageai

            self.client = voyageai.Client(api_key=self.api_key)

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        result = self.client.embed(texts=texts, model=self.model)
        return [list(v) for v in result.embeddings]


def build_embedder(settings) -> BaseEmbedder:
    """Pick the provider configured in ``settings`` (an ``inboxdigest.config.Settings``)."""
    provider = (settings.embedding_provider or "openai").lower()
    if provider == "voyage":
        return VoyageEmbedder(
            api_key=settings.voyage_api_key,
            model=settings.embedding_model or "voyage-3-large",
            batch_size=settings.embedding_batch_size,
        )
    return OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.embedding_model or "text-embedding-3-small",
        batch_size=settings.embedding_batch_size,
    )

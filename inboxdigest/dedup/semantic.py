"""Semantic (embedding) dedup of persisted articles.

Articles whose "title. summary" embeddings have cosine similarity >= threshold are
the same story. Grouping is transitive: A~B and B~C put A, B and C in one group
even when A and C alone fall below the threshold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Sequence

import numpy as np

from inboxdigest.errors import EmbeddingError, VectorLengthMismatchError
from inboxdigest.ingestion.article_types import Article


logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85

EmbedTexts = Callable[[Sequence[str]], List[List[float]]]


@dataclass
class DedupResult:
    unique_articles: List[Article]
    duplicate_groups: List[List[Article]] = field(default_factory=list)
    total_articles: int = 0
    removed_count: int = 0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise VectorLengthMismatchError(len(a), len(b))
    a_vec = np.asarray(a, dtype=np.float64)
    b_vec = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(a_vec) * np.linalg.norm(b_vec)
    if denom == 0:
        return 0.0
    return float(np.dot(a_vec, b_vec) / denom)


def similarity_matrix(embeddings: Sequence[Sequence[float]]) -> np.ndarray:
    """Symmetric pairwise cosine matrix with a unit diagonal."""
    n = len(embeddings)
    if n == 0:
        return np.zeros((0, 0))
    dims = sorted({len(v) for v in embeddings})
    if len(dims) > 1:
        raise VectorLengthMismatchError(dims[0], dims[-1])

    m = np.asarray(embeddings, dtype=np.float64).reshape(n, dims[0])
    norms = np.linalg.norm(m, axis=1)
    zero = norms == 0
    unit = m / np.where(zero, 1.0, norms)[:, None]
    sim = unit @ unit.T
    sim[zero, :] = 0.0
    sim[:, zero] = 0.0

    upper = np.triu(sim, 1)
    sim = upper + upper.T
    np.fill_diagonal(sim, 1.0)
    return sim


class DisjointSet:
    """Union-find over 0..n-1 with path compression."""

    def __init__(self, n: int):
        self.parent = list(range(n))

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, i: int, j: int) -> None:
        pi = self.find(i)
        pj = self.find(j)
        if pi != pj:
            self.parent[pi] = pj

    def groups(self) -> List[List[int]]:
        """Members per set, sets ordered by their lowest index."""
        by_root: Dict[int, List[int]] = {}
        for i in range(len(self.parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return list(by_root.values())


def cluster_by_similarity(sim: np.ndarray, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> List[List[int]]:
    n = sim.shape[0]
    ds = DisjointSet(n)
    for i in range(n):
        for j in range(i + 1, n):
            if sim[i][j] >= threshold:
                ds.union(i, j)
    return ds.groups()


def _date_ordinal(value: str) -> int:
    try:
        return date.fromisoformat((value or "")[:10]).toordinal()
    except ValueError:
        return 0


def pick_representative_order(group: Sequence[Article]) -> List[Article]:
    """Newest newsletter_date first, then longest summary; stable otherwise."""
    return sorted(
        group,
        key=lambda a: (_date_ordinal(a.newsletter_date), len(a.summary or "")),
        reverse=True,
    )


def article_text(article: Article) -> str:
    return f"{article.title}. {article.summary}"


def dedupe_articles_semantic(
    articles: Sequence[Article],
    embeddings: Sequence[Sequence[float]],
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> DedupResult:
    total = len(articles)
    if total < 2:
        return DedupResult(unique_articles=list(articles), total_articles=total)
    if len(embeddings) != total:
        raise EmbeddingError(f"Expected {total} embeddings, got {len(embeddings)}")

    groups = cluster_by_similarity(similarity_matrix(embeddings), threshold)
    unique: List[Article] = []
    duplicate_groups: List[List[Article]] = []
    for idxs in groups:
        members = [articles[i] for i in idxs]
        if len(members) == 1:
            unique.append(members[0])
            continue
        ordered = pick_representative_order(members)
        unique.append(ordered[0])
        duplicate_groups.append(ordered)

    result = DedupResult(
        unique_articles=unique,
        duplicate_groups=duplicate_groups,
        total_articles=total,
        removed_count=total - len(unique),
    )
    logger.info(
        "Semantic dedup: %d articles -> %d unique (%d groups)",
        total,
        len(unique),
        len(duplicate_groups),
    )
    return result


def deduplicate_articles(
    articles: Sequence[Article],
    embed_texts: EmbedTexts,
    *,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> DedupResult:
    """Embed ``articles`` then run ``dedupe_articles_semantic``.

    Skips the embedding call entirely for fewer than two articles.
    """
    if len(articles) < 2:
        return DedupResult(unique_articles=list(articles), total_articles=len(articles))
    embeddings = embed_texts([article_text(a) for a in articles])
    return dedupe_articles_semantic(articles, embeddings, threshold=threshold)

"""URL-based dedup passes over candidates and persisted articles."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Sequence, TypeVar

from inboxdigest.ingestion.article_types import ArticleCandidate
from inboxdigest.ingestion.url_utils import normalize_url


T = TypeVar("T")

_SCHEME_RE = re.compile(r"^https?://")
_TRAILING_SLASH_RE = re.compile(r"/+$")
_QUERY_RE = re.compile(r"\?.*$", re.DOTALL)


def quick_url_key(url: str) -> str:
    """Coarse URL key: lowercase, no scheme, no trailing slashes, no query."""
    key = (url or "").lower()
    key = _SCHEME_RE.sub("", key)
    key = _TRAILING_SLASH_RE.sub("", key)
    return _QUERY_RE.sub("", key)


def quick_dedupe_by_url(items: Sequence[T], url_of: Callable[[T], str] = lambda a: a.source_url) -> List[T]:
    """Keep the first item per ``quick_url_key`` (no API calls)."""
    seen = set()
    out: List[T] = []
    for it in items:
        key = quick_url_key(url_of(it))
        if key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


def candidate_key(candidate: ArticleCandidate) -> str:
    if not candidate.url:
        return "inline:" + candidate.title.lower().strip()
    return normalize_url(candidate.url)


def is_better_candidate(a: ArticleCandidate, b: ArticleCandidate) -> bool:
    """True when ``a`` should replace ``b`` as a group's representative."""
    if bool(a.title_inferred) != bool(b.title_inferred):
        return not a.title_inferred
    if bool(a.content) != bool(b.content):
        return bool(a.content)
    if len(a.title) != len(b.title):
        return len(a.title) > len(b.title)
    return len(a.summary) > len(b.summary)


def dedupe_candidates_by_url(candidates: Sequence[ArticleCandidate]) -> List[ArticleCandidate]:
    """Collapse candidates sharing a normalized URL (or inline title).

    The group keeps the position of its first member; its representative is the
    best member per ``is_better_candidate`` (earliest wins on a full tie).
    """
    best: Dict[str, ArticleCandidate] = {}
    for c in candidates:
        key = candidate_key(c)
        current = best.get(key)
        if current is None or is_better_candidate(c, current):
            best[key] = c
    return list(best.values())

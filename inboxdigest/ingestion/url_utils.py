"""URL canonicalization helpers for newsletter dedup.

Newsletter links arrive wrapped in click-tracking redirects and decorated with
campaign parameters. Two links point at the same article iff their normalized
forms (see ``normalize_url``) are byte-equal.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, parse_qsl, unquote, urlencode, urlsplit, urlunsplit

from inboxdigest.ingestion.article_types import ArticleCandidate


logger = logging.getLogger(__name__)


DEFAULT_STRIP_QUERY_PARAMS = {
    # utm
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_cid",
    # mailchimp
    "mc_cid",
    "mc_eid",
    # generic referrers
    "ref",
    "ref_src",
    "ref_url",
    "referrer",
    # ad click ids
    "fbclid",
    "gclid",
    "gclsrc",
    "dclid",
    "msclkid",
    "twclid",
    # newsletter platforms
    "email",
    "subscriber_id",
    "mkt_tok",
    "s",
    "source",
    "campaign",
    # analytics
    "_ga",
    "_gl",
    "_hsenc",
    "_hsmi",
    "hsa_acc",
    "hsa_cam",
    "hsa_grp",
    "hsa_ad",
    "hsa_src",
    "hsa_tgt",
    "hsa_kw",
    "hsa_mt",
    "hsa_net",
    "hsa_ver",
}

TRACKING_PARAM_PREFIXES = ("utm_", "mc_", "hsa_")

TLDR_TRACKING_HOST = "tracking.tldrnewsletter.com"
REDIRECT_QUERY_PARAMS = ("url", "redirect", "target", "destination", "goto", "link")

# Percent-encoded destination embedded in a tracking path, e.g.
#   /CL0/https:%2F%2Fexample.com%2Fpost/1/0100018f...
# A raw "&" ends the destination, so unencoded trailing params are dropped:
#   https:%2F%2Fex.com%2Fa%3Fx=1&y=2 -> https://ex.com/a?x=1
_ENCODED_URL_RE = re.compile(r"https?(?:%3A|:)%2F%2F[^/&\s\"']+", re.IGNORECASE)


def _is_tracking_param(key: str, strip: set) -> bool:
    k = key.lower()
    return k in strip or k.startswith(TRACKING_PARAM_PREFIXES)


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a URL for dedup.

    - Upgrade http to https
    - Lowercase the host
    - Strip tracking query parameters (allow-list + utm_/mc_/hsa_ prefixes)
    - Sort remaining query params by key
    - Remove fragments and trailing slashes (root path kept)

    Anything that does not parse as an absolute http(s) URL is returned unchanged.
    """
    if not url:
        return url
    strip = {p.lower() for p in strip_params} if strip_params is not None else DEFAULT_STRIP_QUERY_PARAMS
    try:
        p = urlsplit(url.strip())
        scheme = p.scheme.lower()
        if scheme not in ("http", "https") or not p.netloc:
            return url

        userinfo, sep, hostport = p.netloc.rpartition("@")
        netloc = f"{userinfo}{sep}{hostport.lower()}"

        path = p.path.rstrip("/") or "/"

        kept = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if not _is_tracking_param(k, strip)]
        kept.sort(key=lambda kv: kv[0])
        query = urlencode(kept)

        return urlunsplit(("https", netloc, path, query, ""))
    except ValueError:
        logger.debug("Failed to parse URL: %s", url)
        return url


def _decode(value: str) -> Optional[str]:
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return None


def resolve_tracking_url(url: str) -> str:
    """Unwrap known click-tracking redirects to their destination.

    Returns the input unchanged when no known shape matches or decoding fails.
    """
    if not url:
        return url
    try:
        p = urlsplit(url.strip())
        host = (p.hostname or "").lower()
        params = parse_qs(p.query, keep_blank_values=False)
    except ValueError:
        return url

    if host == TLDR_TRACKING_HOST:
        m = _ENCODED_URL_RE.search(url)
        if m:
            decoded = _decode(m.group(0))
            if decoded:
                return decoded

    if "substack.com" in host and "/redirect" in p.path:
        target = (params.get("url") or params.get("r") or [None])[0]
        if target:
            return target

    for name in REDIRECT_QUERY_PARAMS:
        value = (params.get(name) or [None])[0]
        if value and value.startswith("http"):
            return value

    return url


def normalize_url(url: str) -> str:
    """Resolve tracking redirects, then canonicalize."""
    if not url:
        return url
    return canonicalize_url(resolve_tracking_url(url))


def add_canonical_urls(candidates: Sequence[ArticleCandidate]) -> List[Tuple[ArticleCandidate, Optional[str]]]:
    """Pair each candidate with its normalized URL (None for inline content)."""
    return [(c, normalize_url(c.url) if c.url else None) for c in candidates]

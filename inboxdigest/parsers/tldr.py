"""TL;DR newsletter parser.

Every story in a TL;DR email is an anchor pointing at tracking.tldrnewsletter.com
whose text is the headline (usually suffixed with "(N minute read)"), followed by
a styled span holding the blurb. Sponsor blocks and footer links use the same
tracking host, so link text is filtered against a denylist.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import unquote

from inboxdigest.ingestion.article_types import EMAIL_LINKS, ArticleCandidate, ParsedNewsletter
from inboxdigest.ingestion.email_message import EmailMessage
from inboxdigest.parsers.base import (
    BaseNewsletterParser,
    LinkMatch,
    clean_html,
    find_links,
    parse_email_date,
    strip_html,
    truncate_text,
)


logger = logging.getLogger(__name__)


TLDR_SENDER_EMAILS = (
    "dan@tldrnewsletter.com",
    "tldr@tldrnewsletter.com",
    "hello@tldr.tech",
    "dan@tldr.tech",
)
TLDR_SENDER_DOMAINS = ("tldrnewsletter.com", "tldr.tech")

TLDR_SECTIONS = (
    "Headlines & Launches",
    "Deep Dives & Analysis",
    "Engineering & Resources",
    "Quick Links",
    "Big Tech & Startups",
    "Science & Futuristic Technology",
    "Programming, Design & Data Science",
    "Miscellaneous",
    "Opinions & Tutorials",
    "Launches & Tools",
    "Articles & Tutorials",
    "News & Trends",
)

MIN_LINK_TEXT = 10
MAX_LINK_TEXT = 300
MIN_TITLE_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 20
MIN_SPAN_DESCRIPTION_LENGTH = 20
DEFAULT_SUMMARY_MAX_CHARS = 500

# Applied with fullmatch: a title is rejected only when it is entirely boilerplate.
INVALID_TITLE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"sign up",
        r"advertise",
        r"view online",
        r"read more",
        r"click here",
        r"subscribe",
        r"unsubscribe",
        r"view in browser",
        r"sponsor",
        r"advertisement",
        r"ad",
        r"\d+",
        r"tldr",
        r"share",
        r"forward",
        r"manage preferences",
        r"privacy policy",
        r"terms(?: of (?:service|use))?",
        r".*\((?:sponsor|sponsored)\)",
    )
]

_LINK_RE = re.compile(
    r"<a[^>]*href=[\"'](https?://tracking\.tldrnewsletter\.com[^\"']+)[\"'][^>]*>([\s\S]*?)</a>",
    re.IGNORECASE,
)
_READING_TIME_RE = re.compile(r"^(.+?)\s*\((\d+)\s*min(?:ute)?\s*read\)\s*$", re.IGNORECASE)
_DESCRIPTION_SPAN_RE = re.compile(
    r"<span[^>]*style=\"[^\"]*font-family[^\"]*\"[^>]*>([\s\S]*?)</span>",
    re.IGNORECASE,
)
_SPONSOR_RE = re.compile(r"\[sponsor\]|sponsor", re.IGNORECASE)
_LEADING_PUNCT_RE = re.compile(r"^\s*[,.\-–—]+\s*")
_ENCODED_DEST_RE = re.compile(r"https?(?:%3A|:)%2F%2F[^/]+", re.IGNORECASE)


def is_valid_article_title(text: str) -> bool:
    text = (text or "").strip()
    if len(text) < MIN_LINK_TEXT or len(text) > MAX_LINK_TEXT:
        return False
    return not any(p.fullmatch(text) for p in INVALID_TITLE_PATTERNS)


def split_reading_time(text: str) -> Tuple[str, Optional[str]]:
    """'Foo (3 minute read)' -> ('Foo', '3 min read'); no suffix -> (text, None)."""
    m = _READING_TIME_RE.match(text)
    if not m:
        return text.strip(), None
    return m.group(1).strip(), f"{m.group(2)} min read"


def find_section(html: str, position: int) -> Optional[str]:
    """Closest known section heading that starts before ``position``.

    Headings are matched both literally and entity-escaped ("&" as "&amp;").
    """
    before = html[:position].lower()
    best: Optional[str] = None
    best_index = -1
    for section in TLDR_SECTIONS:
        name = section.lower()
        idx = max(before.rfind(name), before.rfind(html_lib.escape(name, quote=False)))
        if idx > best_index:
            best, best_index = section, idx
    return best


def extract_description(html: str, max_length: int = DEFAULT_SUMMARY_MAX_CHARS) -> str:
    span = _DESCRIPTION_SPAN_RE.search(html)
    if span:
        text = strip_html(span.group(1))
        if len(text) > MIN_SPAN_DESCRIPTION_LENGTH:
            return truncate_text(text, max_length)

    text = strip_html(html)
    text = _SPONSOR_RE.sub("", text)
    text = _LEADING_PUNCT_RE.sub("", text).strip()
    return truncate_text(text, max_length)


def normalize_tracking_url(url: str) -> str:
    m = _ENCODED_DEST_RE.search(url)
    if m:
        return unquote(m.group(0)).lower()
    return url.lower()


class TLDRParser(BaseNewsletterParser):
    source = "tldr"
    display_name = "TL;DR Newsletter"

    def __init__(self, *, summary_max_chars: int = DEFAULT_SUMMARY_MAX_CHARS):
        self.summary_max_chars = summary_max_chars

    def parse(self, message: EmailMessage) -> ParsedNewsletter:
        published_at = parse_email_date(message.date)
        content = message.html_body or message.text_body
        if not content:
            return self.empty_result(message, published_at)
        return ParsedNewsletter(
            newsletter_source=self.source,
            email_subject=message.subject,
            published_at=published_at,
            candidates=self.extract_articles(content, published_at),
        )

    def extract_articles(self, html: str, newsletter_date: Optional[str] = None) -> List[ArticleCandidate]:
        cleaned = clean_html(html)
        links: List[LinkMatch] = [m for m in find_links(cleaned, _LINK_RE) if is_valid_article_title(m.text)]
        logger.debug("[tldr] found %d potential article links", len(links))

        articles: List[ArticleCandidate] = []
        for i, link in enumerate(links):
            next_start = links[i + 1].start_offset if i + 1 < len(links) else len(cleaned)
            title, reading_time = split_reading_time(link.text)
            description = extract_description(cleaned[link.end_offset:next_start], self.summary_max_chars)
            if len(title) <= MIN_TITLE_LENGTH or len(description) <= MIN_DESCRIPTION_LENGTH:
                continue
            articles.append(
                ArticleCandidate(
                    title=title,
                    url=link.url,
                    summary=description,
                    source_name=self.display_name,
                    extraction_method=EMAIL_LINKS,
                    reading_time=reading_time,
                    section=find_section(cleaned, link.start_offset),
                    newsletter_date=newsletter_date,
                )
            )

        logger.info("[tldr] parsed %d articles", len(articles))
        return self._dedupe_by_tracking_url(articles)

    @staticmethod
    def _dedupe_by_tracking_url(articles: List[ArticleCandidate]) -> List[ArticleCandidate]:
        seen = set()
        out = []
        for a in articles:
            key = normalize_tracking_url(a.url or "")
            if key in seen:
                continue
            seen.add(key)
            out.append(a)
        return out

"""Routing of inbound newsletter emails to parsers by sender.

Matching is two-tiered across the whole registry: every registration's exact
addresses are checked before any registration's domains. A sender matching one
parser's address therefore wins even when an earlier registration claims its
domain.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from inboxdigest.parsers.base import BaseNewsletterParser
from inboxdigest.parsers.tldr import TLDR_SENDER_DOMAINS, TLDR_SENDER_EMAILS, TLDRParser


logger = logging.getLogger(__name__)

EXACT_EMAIL = "exact_email"
DOMAIN = "domain"

_ANGLE_ADDR_RE = re.compile(r"<([^>]+)>")


@dataclass(frozen=True)
class ParserRegistration:
    parser: BaseNewsletterParser
    email_patterns: FrozenSet[str]
    domain_patterns: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class ParserMatchResult:
    matched: bool
    parser: Optional[BaseNewsletterParser] = None
    source: Optional[str] = None
    match_type: Optional[str] = None


@dataclass(frozen=True)
class ParserLogContext:
    """Structured record logged once per processed email."""

    message_id: str
    sender: str
    subject: str
    newsletter_source: Optional[str]
    parser_name: Optional[str]
    candidates_extracted_count: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "from": self.sender,
            "subject": self.subject,
            "newsletter_source": self.newsletter_source,
            "parser_name": self.parser_name,
            "candidates_extracted_count": self.candidates_extracted_count,
            "errors": list(self.errors),
        }


def extract_email_address(from_header: str) -> str:
    """'Name <a@b.com>' -> 'a@b.com'; anything else is returned trimmed."""
    header = from_header or ""
    m = _ANGLE_ADDR_RE.search(header)
    if m:
        return m.group(1).strip()
    return header.strip()


def extract_domain(address: str) -> str:
    _, sep, domain = address.partition("@")
    return domain if sep else ""


class ParserRegistry:
    def __init__(self) -> None:
        self._registrations: List[ParserRegistration] = []

    def register(
        self,
        parser: BaseNewsletterParser,
        email_patterns: Iterable[str],
        domain_patterns: Optional[Iterable[str]] = None,
    ) -> ParserRegistration:
        emails = [e.strip().lower() for e in email_patterns if e and e.strip()]
        domains = [d.strip().lower() for d in (domain_patterns or []) if d and d.strip()]
        registration = ParserRegistration(
            parser=parser,
            email_patterns=frozenset(emails),
            domain_patterns=frozenset(domains),
        )
        self._registrations.append(registration)
        logger.info("Registered parser: %s (%s)", parser.source, ", ".join(sorted(emails)))
        return registration

    def find_parser(self, from_header: str) -> ParserMatchResult:
        address = extract_email_address(from_header).lower()
        domain = extract_domain(address)

        for reg in self._registrations:
            if address in reg.email_patterns:
                return ParserMatchResult(True, reg.parser, reg.parser.source, EXACT_EMAIL)

        if domain:
            for reg in self._registrations:
                if domain in reg.domain_patterns:
                    return ParserMatchResult(True, reg.parser, reg.parser.source, DOMAIN)

        return ParserMatchResult(False)

    def all_parsers(self) -> List[BaseNewsletterParser]:
        return [r.parser for r in self._registrations]

    def all_email_patterns(self) -> List[str]:
        out: List[str] = []
        for r in self._registrations:
            out.extend(sorted(r.email_patterns))
        return out

    def has_registrations(self) -> bool:
        return bool(self._registrations)

    def build_gmail_query(self, after: datetime, before: datetime) -> str:
        """Gmail search query selecting mail from every registered address."""
        senders = " OR ".join(f"from:{e}" for e in self.all_email_patterns())
        return f"({senders}) after:{int(after.timestamp())} before:{int(before.timestamp())}"

    def create_log_context(
        self,
        message_id: str,
        sender: str,
        subject: str,
        match: ParserMatchResult,
        candidates_count: int = 0,
        errors: Optional[List[str]] = None,
    ) -> ParserLogContext:
        return ParserLogContext(
            message_id=message_id,
            sender=sender,
            subject=subject,
            newsletter_source=match.source,
            parser_name=match.parser.display_name if match.parser else None,
            candidates_extracted_count=candidates_count,
            errors=list(errors or []),
        )

    def __len__(self) -> int:
        return len(self._registrations)


def build_default_registry(*, summary_max_chars: Optional[int] = None) -> ParserRegistry:
    """Registry with every built-in newsletter parser."""
    registry = ParserRegistry()
    tldr = TLDRParser(summary_max_chars=summary_max_chars) if summary_max_chars else TLDRParser()
    registry.register(tldr, TLDR_SENDER_EMAILS, TLDR_SENDER_DOMAINS)
    return registry

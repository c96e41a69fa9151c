import unittest
from datetime import datetime, timezone

from inboxdigest.ingestion.article_types import ParsedNewsletter
from inboxdigest.parsers.base import BaseNewsletterParser
from inboxdigest.parsers.registry import (
    DOMAIN,
    EXACT_EMAIL,
    ParserRegistry,
    build_default_registry,
    extract_domain,
    extract_email_address,
)
from inboxdigest.parsers.tldr import TLDRParser


class _StubParser(BaseNewsletterParser):
    def __init__(self, source):
        self.source = source
        self.display_name = source.upper()

    def parse(self, message):
        return ParsedNewsletter(self.source, message.subject, "2024-01-01", [])


class TestParserRegistry(unittest.TestCase):
    def test_exact_email_beats_earlier_domain_registration(self):
        registry = ParserRegistry()
        a = _StubParser("a")
        b = _StubParser("b")
        registry.register(a, [], ["x.com"])
        registry.register(b, ["a@x.com"])

        match = registry.find_parser("a@x.com")
        self.assertTrue(match.matched)
        self.assertIs(match.parser, b)
        self.assertEqual(match.match_type, EXACT_EMAIL)

        match = registry.find_parser("Someone Else <other@X.com>")
        self.assertIs(match.parser, a)
        self.assertEqual(match.source, "a")
        self.assertEqual(match.match_type, DOMAIN)

    def test_default_registry_routes_tldr(self):
        registry = build_default_registry()
        self.assertEqual(len(registry), 1)
        self.assertTrue(registry.has_registrations())

        match = registry.find_parser("Dan <dan@tldrnewsletter.com>")
        self.assertTrue(match.matched)
        self.assertIsInstance(match.parser, TLDRParser)
        self.assertEqual(match.source, "tldr")
        self.assertEqual(match.match_type, EXACT_EMAIL)

        match = registry.find_parser("TLDR AI <news@tldr.tech>")
        self.assertEqual(match.match_type, DOMAIN)

        match = registry.find_parser("someone@tldrnewsletter.com")
        self.assertTrue(match.matched)
        self.assertEqual(match.match_type, DOMAIN)

    def test_summary_length_is_passed_to_parsers(self):
        registry = build_default_registry(summary_max_chars=120)
        self.assertEqual(registry.all_parsers()[0].summary_max_chars, 120)

    def test_unmatched_senders(self):
        registry = build_default_registry()
        for sender in ("someone@example.com", "", "not an address", "Dan <dan@tldrnewsletter.com.evil.io>"):
            match = registry.find_parser(sender)
            self.assertFalse(match.matched, sender)
            self.assertIsNone(match.parser)
            self.assertIsNone(match.match_type)

    def test_empty_registry_matches_nothing(self):
        registry = ParserRegistry()
        self.assertFalse(registry.has_registrations())
        self.assertFalse(registry.find_parser("dan@tldrnewsletter.com").matched)

    def test_address_helpers(self):
        self.assertEqual(extract_email_address("Dan <dan@tldrnewsletter.com>"), "dan@tldrnewsletter.com")
        self.assertEqual(extract_email_address("  plain@example.com "), "plain@example.com")
        self.assertEqual(extract_domain("plain@example.com"), "example.com")
        self.assertEqual(extract_domain("no-at-sign"), "")

    def test_gmail_query(self):
        registry = build_default_registry()
        after = datetime(2024, 1, 1, tzinfo=timezone.utc)
        before = datetime(2024, 1, 2, tzinfo=timezone.utc)
        query = registry.build_gmail_query(after, before)
        self.assertTrue(query.startswith("(from:dan@tldr.tech OR from:dan@tldrnewsletter.com"))
        self.assertTrue(query.endswith("after:1704067200 before:1704153600"))

    def test_log_context(self):
        registry = build_default_registry()
        match = registry.find_parser("dan@tldrnewsletter.com")
        ctx = registry.create_log_context("m1", "dan@tldrnewsletter.com", "TLDR", match, 4, ["boom"])
        data = ctx.as_dict()
        self.assertEqual(data["from"], "dan@tldrnewsletter.com")
        self.assertEqual(data["newsletter_source"], "tldr")
        self.assertEqual(data["parser_name"], "TL;DR Newsletter")
        self.assertEqual(data["candidates_extracted_count"], 4)
        self.assertEqual(data["errors"], ["boom"])

        unmatched = registry.create_log_context("m2", "x@y.z", "Hi", registry.find_parser("x@y.z"))
        self.assertIsNone(unmatched.parser_name)
        self.assertEqual(unmatched.candidates_extracted_count, 0)


if __name__ == "__main__":
    unittest.main()

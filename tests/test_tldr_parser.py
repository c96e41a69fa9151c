import unittest
from datetime import datetime, timezone

from inboxdigest.ingestion.email_message import EmailMessage
from inboxdigest.ingestion.url_utils import normalize_url
from inboxdigest.parsers.base import parse_email_date, truncate_text
from inboxdigest.parsers.tldr import (
    TLDRParser,
    extract_description,
    find_section,
    is_valid_article_title,
    split_reading_time,
)


FOO_URL = "https://tracking.tldrnewsletter.com/CL0/https:%2F%2Fexample.com%2Ffoo%3Futm_source=tldr/1/abc"
FOO_URL_AGAIN = "https://tracking.tldrnewsletter.com/CL0/https:%2F%2Fexample.com%2Ffoo%3Futm_source=tldr/2/zzz"
FUSION_URL = "https://tracking.tldrnewsletter.com/CL0/https:%2F%2Fscience.example.org%2Ffusion/1/def"
SUBSCRIBE_URL = "https://tracking.tldrnewsletter.com/CL0/https:%2F%2Ftldr.tech%2Fsubscribe/1/ghi"

SAMPLE_HTML = f"""
<html><head><style>.x {{ color: red; }}</style></head><body>
<!-- preheader -->
<h1>TLDR 2024-06-01</h1>
<div><strong>Big Tech &amp; Startups</strong></div>
<a href="{FOO_URL}"><strong>Foo Corp raises $50M to build robots (3 minute read)</strong></a>
<br><span style="font-family: Arial, sans-serif;">Foo Corp closed a Series B round led by large investors to scale production.</span>
<div><strong>Science &amp; Futuristic Technology</strong></div>
<a href="{FUSION_URL}">Fusion reactor hits new record (5 minute read)</a>
<br><span style="font-family: Arial;">Researchers sustained a plasma for a record duration this week.</span>
<p><a href="{SUBSCRIBE_URL}">Subscribe</a></p>
</body></html>
"""

DUPLICATE_HTML = SAMPLE_HTML.replace(
    "<p><a",
    f'<a href="{FOO_URL_AGAIN}">Foo Corp raises $50M, repeated in the footer</a>'
    '<span style="font-family: Arial;">Same story linked a second time further down.</span><p><a',
)


def _message(html_body="", text_body="", date="Sat, 01 Jun 2024 12:00:00 +0000"):
    return EmailMessage(
        id="msg-1",
        subject="TLDR 2024-06-01",
        sender="TLDR <dan@tldrnewsletter.com>",
        date=date,
        html_body=html_body,
        text_body=text_body,
    )


class TestTLDRParser(unittest.TestCase):
    def test_extracts_articles_with_metadata(self):
        parsed = TLDRParser().parse(_message(SAMPLE_HTML))
        self.assertEqual(parsed.newsletter_source, "tldr")
        self.assertEqual(parsed.email_subject, "TLDR 2024-06-01")
        self.assertEqual(parsed.published_at, "2024-06-01")
        self.assertEqual(len(parsed.candidates), 2)

        foo, fusion = parsed.candidates
        self.assertEqual(foo.title, "Foo Corp raises $50M to build robots")
        self.assertEqual(foo.reading_time, "3 min read")
        self.assertEqual(foo.section, "Big Tech & Startups")
        self.assertEqual(foo.source_name, "TL;DR Newsletter")
        self.assertEqual(foo.extraction_method, "email_links")
        self.assertEqual(foo.newsletter_date, "2024-06-01")
        self.assertTrue(foo.summary.startswith("Foo Corp closed a Series B round"))
        self.assertEqual(normalize_url(foo.url), "https://example.com/foo")

        self.assertEqual(fusion.title, "Fusion reactor hits new record")
        self.assertEqual(fusion.reading_time, "5 min read")
        self.assertEqual(fusion.section, "Science & Futuristic Technology")

    def test_repeated_destination_is_dropped(self):
        parsed = TLDRParser().parse(_message(DUPLICATE_HTML))
        titles = [c.title for c in parsed.candidates]
        self.assertEqual(len(titles), 2)
        self.assertIn("Foo Corp raises $50M to build robots", titles)

    def test_empty_body_yields_no_candidates(self):
        parsed = TLDRParser().parse(_message())
        self.assertEqual(parsed.candidates, [])
        self.assertEqual(parsed.published_at, "2024-06-01")

    def test_text_body_used_when_html_missing(self):
        parsed = TLDRParser().parse(_message(text_body=SAMPLE_HTML))
        self.assertEqual(len(parsed.candidates), 2)

    def test_date_is_normalized_to_utc(self):
        parsed = TLDRParser().parse(_message(SAMPLE_HTML, date="Sun, 02 Jun 2024 01:30:00 +0900"))
        self.assertEqual(parsed.published_at, "2024-06-01")
        self.assertTrue(all(c.newsletter_date == "2024-06-01" for c in parsed.candidates))

    def test_summary_respects_max_chars(self):
        parsed = TLDRParser(summary_max_chars=50).parse(_message(SAMPLE_HTML))
        for c in parsed.candidates:
            self.assertLessEqual(len(c.summary), 53)

    def test_short_descriptions_are_skipped(self):
        html = f'<a href="{FOO_URL}">Foo Corp raises $50M to build robots</a><span style="font-family: Arial;">Too short.</span>'
        self.assertEqual(TLDRParser().extract_articles(html, "2024-06-01"), [])

    def test_malformed_html_does_not_raise(self):
        html = f'<a href="{FOO_URL}">Foo Corp raises $50M <b>unclosed'
        self.assertEqual(TLDRParser().extract_articles(html), [])


class TestTLDRHelpers(unittest.TestCase):
    def test_title_denylist(self):
        self.assertFalse(is_valid_article_title("Subscribe"))
        self.assertFalse(is_valid_article_title("View in browser"))
        self.assertFalse(is_valid_article_title("Build faster with Acme (Sponsor)"))
        self.assertFalse(is_valid_article_title("Terms of Service"))
        self.assertFalse(is_valid_article_title("2024060112"))
        self.assertFalse(is_valid_article_title("x" * 301))
        self.assertTrue(is_valid_article_title("Foo Corp raises $50M (3 minute read)"))

    def test_denylist_matches_whole_title_only(self):
        self.assertTrue(is_valid_article_title("Startups get GPUs free for a year (4 minute read)"))
        self.assertTrue(is_valid_article_title("Read more about the fusion record"))
        self.assertTrue(is_valid_article_title("Terms of the new trade deal revealed"))
        self.assertTrue(is_valid_article_title("Share buybacks hit a record high"))

    def test_split_reading_time(self):
        self.assertEqual(split_reading_time("Foo Corp raises $50M (3 minute read)"), ("Foo Corp raises $50M", "3 min read"))
        self.assertEqual(split_reading_time("Foo launches bar (3 minute read)"), ("Foo launches bar", "3 min read"))
        self.assertEqual(split_reading_time("Foo launches bar (12 min read)"), ("Foo launches bar", "12 min read"))
        self.assertEqual(split_reading_time("Foo launches bar"), ("Foo launches bar", None))

    def test_find_section_picks_latest_heading(self):
        html = "<b>Quick Links</b> ... <b>Big Tech &amp; Startups</b> ... <a>story</a>"
        self.assertEqual(find_section(html, html.index("<a>")), "Big Tech & Startups")
        self.assertIsNone(find_section("<a>story</a>", 0))

    def test_description_fallback_strips_sponsor_marker(self):
        text = extract_description("<p>, Sponsor Acme tools let you ship faster than ever before.</p>")
        self.assertEqual(text, "Acme tools let you ship faster than ever before.")

    def test_truncate_prefers_sentence_boundary(self):
        text = "x" * 30 + ". " + "y" * 30
        self.assertEqual(truncate_text(text, 40), "x" * 30 + ".")
        self.assertEqual(truncate_text("z" * 60, 40), "z" * 40 + "...")
        self.assertEqual(truncate_text("short", 40), "short")

    def test_parse_email_date(self):
        self.assertEqual(parse_email_date("Sat, 01 Jun 2024 12:00:00 +0000"), "2024-06-01")
        self.assertEqual(parse_email_date("2024-06-01T23:30:00-02:00"), "2024-06-02")

    def test_unparseable_email_date_falls_back_to_today(self):
        before = datetime.now(timezone.utc).date().isoformat()
        value = parse_email_date("not a date")
        after = datetime.now(timezone.utc).date().isoformat()
        self.assertIn(value, (before, after))
        self.assertIn(parse_email_date(""), (before, after))


if __name__ == "__main__":
    unittest.main()

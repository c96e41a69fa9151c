import unittest

from inboxdigest.dedup.candidates import (
    candidate_key,
    dedupe_candidates_by_url,
    is_better_candidate,
    quick_dedupe_by_url,
    quick_url_key,
)
from inboxdigest.ingestion.article_types import Article, ArticleCandidate


def _link(title, url, summary="summary", **kw):
    return ArticleCandidate(title=title, url=url, summary=summary, source_name="Test", **kw)


def _inline(title, content="body", **kw):
    return ArticleCandidate(
        title=title,
        url=None,
        summary="summary",
        source_name="Test",
        extraction_method="email_inline",
        content=content,
        **kw,
    )


class TestCandidateDedup(unittest.TestCase):
    def test_tracking_variants_collapse(self):
        items = [
            _link("Story one headline", "https://example.com/a?utm_source=x"),
            _link("Another story", "https://example.com/b"),
            _link("Story one headline", "http://Example.com/a/?utm_medium=email"),
        ]
        out = dedupe_candidates_by_url(items)
        self.assertEqual(len(out), 2)
        self.assertEqual(out[0].url, "https://example.com/a?utm_source=x")
        self.assertEqual(out[1].title, "Another story")

    def test_better_member_replaces_in_first_position(self):
        items = [
            _link("Short", "https://example.com/a"),
            _link("Other article", "https://example.com/b"),
            _link("A much longer title", "https://example.com/a?ref=x"),
        ]
        out = dedupe_candidates_by_url(items)
        self.assertEqual([c.title for c in out], ["A much longer title", "Other article"])

    def test_preference_order(self):
        inferred = _link("Longer inferred title here", "https://e.com/a", title_inferred=True)
        explicit = _link("Short title", "https://e.com/a", title_inferred=False)
        self.assertTrue(is_better_candidate(explicit, inferred))
        self.assertFalse(is_better_candidate(inferred, explicit))

        with_body = _link("Short title", "https://e.com/a", content="full text")
        self.assertTrue(is_better_candidate(with_body, explicit))

        longer_summary = _link("Short title", "https://e.com/a", summary="a much longer summary")
        self.assertTrue(is_better_candidate(longer_summary, explicit))
        self.assertFalse(is_better_candidate(explicit, explicit))

    def test_non_inferred_title_wins_group(self):
        inferred = _link("Short", "https://e.com/a?utm_source=x", title_inferred=True)
        explicit = _link("A much longer explicit title", "http://e.com/a", title_inferred=False)
        out = dedupe_candidates_by_url([inferred, explicit])
        self.assertEqual(out, [explicit])

    def test_full_tie_keeps_earliest(self):
        first = _link("Same title", "https://e.com/a", summary="same")
        second = _link("Same title", "https://e.com/a?utm_source=y", summary="same")
        self.assertIs(dedupe_candidates_by_url([first, second])[0], first)

    def test_inline_candidates_key_on_title(self):
        a = _inline("  Weekly Essay ")
        b = _inline("weekly essay")
        self.assertEqual(candidate_key(a), "inline:weekly essay")
        self.assertEqual(len(dedupe_candidates_by_url([a, b])), 1)

    def test_empty_input(self):
        self.assertEqual(dedupe_candidates_by_url([]), [])


class TestQuickUrlDedup(unittest.TestCase):
    def test_quick_key(self):
        self.assertEqual(quick_url_key("HTTPS://Example.com/a//"), "example.com/a")
        self.assertEqual(quick_url_key("http://example.com/a?x=1&y=2"), "example.com/a")
        self.assertEqual(quick_url_key(""), "")

    def test_keeps_first_article_per_key(self):
        articles = [
            Article(title="one", summary="s", source_url="https://a.com/x/", newsletter_date="2024-01-01"),
            Article(title="two", summary="s", source_url="http://A.com/x?q=1", newsletter_date="2024-01-02"),
            Article(title="three", summary="s", source_url="https://a.com/y", newsletter_date="2024-01-02"),
        ]
        out = quick_dedupe_by_url(articles)
        self.assertEqual([a.title for a in out], ["one", "three"])


if __name__ == "__main__":
    unittest.main()

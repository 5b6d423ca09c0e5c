import unittest
from datetime import datetime

from shot_stack.data_detector import PatternDataDetector
from shot_stack.entities import (
    BasicEntityExtractor,
    extract_entities,
    has_known_tld,
    heading_entities,
    normalize_text,
    normalize_url,
)
from shot_stack.models import EntityKind


class _BrokenDetector:
    def matches(self, text):
        raise RuntimeError("detector offline")


def _extractor() -> BasicEntityExtractor:
    return BasicEntityExtractor(PatternDataDetector(reference=datetime(2025, 1, 10, 9, 0)))


class UrlExtractionTests(unittest.TestCase):
    def test_same_url_in_different_spellings_is_kept_once(self):
        text = "Visit http://Example.com/path#top and https://example.com/path and example.com/path."
        urls = _extractor().extract(text).urls
        self.assertEqual(urls, ["http://Example.com/path#top"])

    def test_root_path_matches_bare_host(self):
        urls = _extractor().extract("https://example.com/ or example.com").urls
        self.assertEqual(len(urls), 1)

    def test_email_halves_are_not_urls(self):
        basic = _extractor().extract("Contact jane@co.com")
        self.assertEqual(basic.urls, [])
        self.assertEqual(basic.emails, ["jane@co.com"])

    def test_trailing_punctuation_and_scheme(self):
        urls = _extractor().extract("See www.example.org/docs).").urls
        self.assertEqual(urls, ["https://www.example.org/docs"])

    def test_run_on_sentences_are_not_links(self):
        basic = _extractor().extract("Thanks for coming.See you soon\nJ.Smith wrote the notes")
        self.assertEqual(basic.urls, [])

    def test_bare_hosts_need_a_known_single_case_tld(self):
        urls = _extractor().extract("Try EXAMPLE.COM, shop.Com, notes.txt or www.acme.ly").urls
        self.assertCountEqual(urls, ["https://EXAMPLE.COM", "https://www.acme.ly"])
        self.assertTrue(has_known_tld("https://news.bbc.co.uk/x"))
        self.assertFalse(has_known_tld("https://localhost"))

    def test_schemed_urls_skip_the_tld_check(self):
        self.assertEqual(_extractor().extract("http://intranet.corp/wiki").urls, ["http://intranet.corp/wiki"])

    def test_normalize_url_rejects_hostless(self):
        self.assertIsNone(normalize_url("..."))
        self.assertEqual(normalize_url("example.com,"), "https://example.com")

    def test_source_range_points_into_text(self):
        text = "go to https://a.io now"
        entity = [e for e in _extractor().scan(text) if e.kind == EntityKind.URL][0]
        start, end = entity.source_range
        self.assertEqual(text[start:end], "https://a.io")


class DetectorBackedExtractionTests(unittest.TestCase):
    def test_phones_dates_addresses(self):
        text = "Call 555-1234\nJan 15, 2025 3:00 PM\n1 Infinite Loop, Cupertino, CA 95014"
        basic = _extractor().extract(text)
        self.assertEqual(basic.phones, ["555-1234"])
        self.assertEqual(basic.dates, [datetime(2025, 1, 15, 15, 0)])
        self.assertEqual(basic.addresses, ["1 Infinite Loop, Cupertino, CA, 95014"])

    def test_same_instant_counts_once(self):
        entities = _extractor().scan("Jan 15, 2025 and again 01/15/2025")
        dates = [e for e in entities if e.kind == EntityKind.DATE]
        self.assertEqual(len(dates), 1)
        self.assertEqual(dates[0].metadata["raw_text"], "Jan 15, 2025")

    def test_address_metadata_carries_components(self):
        entities = _extractor().scan("Hauptstraße 5, 10115 Berlin")
        address = [e for e in entities if e.kind == EntityKind.ADDRESS][0]
        self.assertEqual(address.metadata["city"], "Berlin")
        self.assertEqual(address.metadata["zip"], "10115")

    def test_failing_detector_keeps_regex_categories(self):
        basic = BasicEntityExtractor(_BrokenDetector()).extract("https://a.io and bob@b.io, call 555-1234")
        self.assertEqual(basic.urls, ["https://a.io"])
        self.assertEqual(basic.emails, ["bob@b.io"])
        self.assertEqual(basic.phones, [])

    def test_empty_text(self):
        self.assertEqual(_extractor().scan(""), [])
        self.assertFalse(_extractor().extract("").has_any_entity)


class HeadingAndNormalizationTests(unittest.TestCase):
    def test_heading_entities(self):
        out = heading_entities("# Summit 2025\nbody\n## Acme\n# acme")
        self.assertEqual([(e.kind, e.value) for e in out], [(EntityKind.EVENT, "Summit 2025"), (EntityKind.ORGANIZATION, "Acme")])
        self.assertEqual(out[0].metadata, {"source": "markdown_heading"})

    def test_normalize_text_collapses_blank_runs(self):
        self.assertEqual(normalize_text("  a\n\n\n\nb  "), "a\n\nb")
        self.assertEqual(normalize_text(""), "")

    def test_extract_entities_language_and_headings(self):
        result = extract_entities("Hello  https://a.io\n\n\n\nbye", "# Team", _extractor(), lambda text: "en")
        self.assertEqual(result.detected_language, "en")
        self.assertEqual(result.normalized_text, "Hello  https://a.io\n\nbye")
        kinds = [e.kind for e in result.entities]
        self.assertIn(EntityKind.URL, kinds)
        self.assertIn(EntityKind.ORGANIZATION, kinds)

    def test_language_detector_failure_is_tolerated(self):
        def boom(text):
            raise RuntimeError("no model")

        result = extract_entities("some text here", None, _extractor(), boom)
        self.assertIsNone(result.detected_language)


if __name__ == "__main__":
    unittest.main()

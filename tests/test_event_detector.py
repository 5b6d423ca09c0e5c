import dataclasses
import itertools
import unittest
from datetime import datetime

from shot_stack.event_detector import EventDetector, event_description, event_location, event_name, looks_like_social_content
from shot_stack.models import BasicEntities, EventRecord, SceneHint

START = datetime(2025, 1, 15, 15, 0)
END = datetime(2025, 1, 15, 17, 0)


class EventDetectorTests(unittest.TestCase):
    def setUp(self):
        self.detector = EventDetector()

    def test_conference_room_scenario(self):
        text = "Conference Room B\nJan 15, 2025 3:00 PM\nAnnual Planning Summit"
        event = self.detector.detect(text, BasicEntities(dates=[START, END]))
        self.assertIsNotNone(event)
        self.assertEqual(event.name, "Conference Room B")
        self.assertEqual(event.start, START)
        self.assertEqual(event.end, END)
        self.assertEqual(event.location, "Conference Room B")
        self.assertIsNotNone(event.description)

    def test_address_entity_wins_location(self):
        text = "Team meeting\nJan 15, 2025"
        event = self.detector.detect(text, BasicEntities(dates=[START], addresses=["1 Main St, Springfield, IL"]))
        self.assertEqual(event.location, "1 Main St, Springfield, IL")
        self.assertIsNone(event.end)

    def test_no_dates_means_no_event(self):
        self.assertIsNone(self.detector.detect("Concert at the Arena", BasicEntities()))

    def test_single_date_without_keyword(self):
        self.assertIsNone(self.detector.detect("Grocery list for Jan 15", BasicEntities(dates=[START])))

    def test_two_dates_without_keyword(self):
        event = self.detector.detect("Trip to Lisbon\nJan 15 - Jan 17", BasicEntities(dates=[START, END]))
        self.assertIsNotNone(event)
        self.assertEqual(event.name, "Trip to Lisbon")

    def test_social_post_needs_keyword_and_two_dates(self):
        text = "2h ago\nConcert tonight!\n120 likes and 8 comments"
        self.assertIsNone(self.detector.detect(text, BasicEntities(dates=[START])))
        event = self.detector.detect(text, BasicEntities(dates=[START, END]))
        self.assertIsNotNone(event)

    def test_social_scene_hint(self):
        hints = [SceneHint("social_media_post", 0.8)]
        self.assertTrue(looks_like_social_content("Concert tonight", ["Concert tonight"], hints))
        event = self.detector.detect("Concert tonight", BasicEntities(dates=[START]), scene_hints=hints)
        self.assertIsNone(event)

    def test_low_confidence_hint_is_ignored(self):
        hints = [SceneHint("social_media_post", 0.05)]
        self.assertFalse(looks_like_social_content("Concert tonight", ["Concert tonight"], hints))

    def test_no_name_and_no_location_is_rejected(self):
        text = "14:30 meeting\n15:30 meeting"
        self.assertIsNone(self.detector.detect(text, BasicEntities(dates=[START])))

    def test_validity_grid(self):
        for name, location, end, description in itertools.product(
            (None, "Launch"), (None, "Hall A"), (None, END), (None, "A long enough description")
        ):
            event = EventRecord(name=name, start=START, end=end, location=location, description=description)
            self.assertEqual(event.is_valid, name is not None or location is not None)
            self.assertLessEqual(event.confidence, 1.0)
            self.assertFalse(EventRecord(name=name, location=location, end=end).is_valid)

    def test_records_are_immutable(self):
        event = EventRecord(name="Launch", start=START)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            event.location = "Hall A"


class EventHelperTests(unittest.TestCase):
    def test_name_skips_times_and_symbols(self):
        lines = ["10:00", "#$%^&*()!!", "Spring Gala"]
        self.assertEqual(event_name(lines), "Spring Gala")

    def test_location_uses_remainder_after_indicator(self):
        self.assertEqual(event_location(["Dinner at Luigi's Trattoria"], []), "Luigi's Trattoria")
        self.assertEqual(event_location(["Meet at 5"], []), "Meet at 5")
        self.assertIsNone(event_location(["Nothing here"], []))

    def test_description_takes_up_to_three_lines(self):
        lines = ["short", "a" * 25, "b" * 30, "c" * 40, "d" * 50, "e" * 300]
        self.assertEqual(event_description(lines), " ".join(["a" * 25, "b" * 30, "c" * 40]))
        self.assertIsNone(event_description(["tiny"]))


if __name__ == "__main__":
    unittest.main()

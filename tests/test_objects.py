import tempfile
import unittest
from pathlib import Path

from PIL import Image

from shot_stack.models import DetectedObject
from shot_stack.objects import (
    deduplicate_objects,
    describe_objects,
    dominant_color,
    iou,
    labels_similar,
    nearest_color_name,
    pixel_box,
)


def _obj(label, confidence, x=0.1, y=0.1, w=0.4, h=0.8, color=None) -> DetectedObject:
    return DetectedObject(label, confidence, x, y, w, h, color)


class ObjectHelperTests(unittest.TestCase):
    def test_nearest_color_name(self):
        self.assertEqual(nearest_color_name((250, 5, 5)), "red")
        self.assertEqual(nearest_color_name((10, 10, 120)), "navy")
        self.assertEqual(nearest_color_name((250, 250, 250)), "white")

    def test_labels_similar(self):
        self.assertTrue(labels_similar("Dog", "puppy"))
        self.assertTrue(labels_similar("cat", "Cat, Kitten"))
        self.assertFalse(labels_similar("cat", "person"))

    def test_iou(self):
        self.assertEqual(iou(_obj("a", 1.0), _obj("b", 1.0)), 1.0)
        self.assertEqual(iou(_obj("a", 1.0, x=0.0, w=0.2), _obj("b", 1.0, x=0.5, w=0.2)), 0.0)

    def test_duplicates_keep_the_more_confident_detection(self):
        kept = deduplicate_objects([_obj("human", 0.6), _obj("dog", 0.7), _obj("person", 0.9)])
        self.assertEqual([o.label for o in kept], ["person", "dog"])

    def test_separate_people_are_both_kept(self):
        kept = deduplicate_objects([_obj("person", 0.9, x=0.0, w=0.3), _obj("person", 0.8, x=0.6, w=0.3)])
        self.assertEqual(len(kept), 2)

    def test_pixel_box_flips_the_vertical_axis(self):
        upper_left = _obj("cat", 1.0, x=0.0, y=0.5, w=0.5, h=0.5)
        self.assertEqual(pixel_box(upper_left, (100, 200)), (0, 0, 50, 100))


class ColorSamplingTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        # Top half green, bottom half blue.
        img = Image.new("RGB", (100, 100), (0, 0, 255))
        img.paste((0, 255, 0), (0, 0, 100, 50))
        self.image = self.root / "split.png"
        img.save(self.image)

    def tearDown(self):
        self.tmp.cleanup()

    def test_color_follows_the_box(self):
        self.assertEqual(dominant_color(self.image, _obj("cat", 1.0, x=0.0, y=0.5, w=1.0, h=0.5)), "green")
        self.assertEqual(dominant_color(self.image, _obj("cat", 1.0, x=0.0, y=0.0, w=1.0, h=0.5)), "blue")

    def test_transparent_region_has_no_color(self):
        clear = self.root / "clear.png"
        Image.new("RGBA", (40, 40), (255, 0, 0, 0)).save(clear)
        self.assertIsNone(dominant_color(clear, _obj("cat", 1.0)))

    def test_empty_box_has_no_color(self):
        self.assertIsNone(dominant_color(self.image, _obj("cat", 1.0, w=0.0)))

    def test_describe_fills_colors_and_degrades(self):
        described = describe_objects([_obj("dog", 0.8, x=0.0, y=0.0, w=1.0, h=0.5)], self.image)
        self.assertEqual(described[0].color, "blue")

        preset = describe_objects([_obj("dog", 0.8, color="gold")], self.image)
        self.assertEqual(preset[0].color, "gold")

        unreadable = describe_objects([_obj("dog", 0.8)], self.root / "missing.png")
        self.assertIsNone(unreadable[0].color)

        self.assertIsNone(describe_objects([_obj("dog", 0.8)], None)[0].color)


if __name__ == "__main__":
    unittest.main()

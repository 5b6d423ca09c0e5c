import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from PIL import Image

from shot_stack.data_detector import PatternDataDetector
from shot_stack.entities import BasicEntityExtractor
from shot_stack.models import DetectedObject, EntityKind, RecognitionResult, ScreenshotType, TextBlock
from shot_stack.pipeline import NO_IMAGE_ENGINE, ScreenshotPipeline, empty_result, richness_confidence

CARD_BLOCKS = (
    TextBlock("Jane Doe", 0.1, 0.8, 0.4, 0.03),
    TextBlock("Senior Engineer", 0.1, 0.7, 0.4, 0.03),
    TextBlock("ACME WIDGETS INC", 0.1, 0.6, 0.4, 0.03),
    TextBlock("555-1234", 0.1, 0.5, 0.3, 0.03),
    TextBlock("jane@co.com", 0.1, 0.4, 0.3, 0.03),
)


class FakeRecognizer:
    def __init__(self, result=None):
        self.result = result or RecognitionResult()
        self.calls = 0

    def recognize(self, image_path):
        self.calls += 1
        return self.result


class BrokenRecognizer:
    def recognize(self, image_path):
        raise RuntimeError("vision unavailable")


class BrokenReconstructor:
    engine = "broken"

    def reconstruct(self, blocks, image_path=None):
        raise RuntimeError("layout exploded")


def _pipeline(recognizer, **kwargs) -> ScreenshotPipeline:
    extractor = BasicEntityExtractor(PatternDataDetector(reference=datetime(2025, 1, 10, 9, 0)))
    return ScreenshotPipeline(recognizer, extractor=extractor, **kwargs)


class PipelineTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.image = Path(self.tmp.name) / "shot.png"
        self.image.write_bytes(b"not really a png")

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_image_returns_empty_result(self):
        recognizer = FakeRecognizer()
        pipeline = _pipeline(recognizer)
        for path in (None, Path(self.tmp.name) / "missing.png"):
            result = pipeline.process("img-1", path)
            self.assertEqual(result.engine, NO_IMAGE_ENGINE)
            self.assertEqual(result.classification.type_label, ScreenshotType.OTHER)
            self.assertEqual(result.confidence, 0.0)
            self.assertTrue(result.is_empty)
        self.assertEqual(recognizer.calls, 0)

    def test_recognizer_failure_degrades_to_empty_text(self):
        result = _pipeline(BrokenRecognizer()).process("img-2", self.image)
        self.assertEqual(result.raw_text, "")
        self.assertEqual(result.entities, ())
        self.assertEqual(result.classification.type_label, ScreenshotType.PHOTO)
        self.assertEqual([a.action_type for a in result.actions], ["share"])

    def test_business_card_flow(self):
        recognizer = FakeRecognizer(RecognitionResult(blocks=CARD_BLOCKS))
        result = _pipeline(recognizer).process("card", self.image)

        self.assertEqual(result.raw_text, "Jane Doe\nSenior Engineer\nACME WIDGETS INC\n555-1234\njane@co.com")
        self.assertEqual(result.entities_of(EntityKind.PHONE), ["555-1234"])
        self.assertEqual(result.entities_of(EntityKind.EMAIL), ["jane@co.com"])
        self.assertIsNone(result.event)
        self.assertEqual(result.contact.name, "Jane Doe")
        self.assertEqual(result.contact.company, "ACME WIDGETS INC")
        self.assertEqual(result.classification.type_label, ScreenshotType.BUSINESS_CARD)
        self.assertEqual(result.classification.title, "Jane Doe")
        self.assertEqual([a.priority for a in result.actions], [2, 5, 6, 7, 8, 10])
        self.assertEqual(result.engine, "heuristic")
        self.assertTrue(result.formatted_text.startswith("# Jane Doe"))
        self.assertEqual(result.confidence, 0.9)

    def test_reconstructor_failure_uses_raw_text(self):
        recognizer = FakeRecognizer(RecognitionResult(blocks=CARD_BLOCKS))
        result = _pipeline(recognizer, reconstructor=BrokenReconstructor()).process("card", self.image)
        self.assertEqual(result.engine, "plain")
        self.assertEqual(result.formatted_text, result.raw_text)
        self.assertEqual(result.classification.type_label, ScreenshotType.BUSINESS_CARD)

    def test_language_detector_is_used(self):
        recognizer = FakeRecognizer(RecognitionResult(blocks=CARD_BLOCKS))
        result = _pipeline(recognizer, language_detector=lambda text: "en").process("card", self.image)
        self.assertEqual(result.detected_language, "en")
        self.assertEqual(result.confidence, 1.0)

    def test_to_dict_is_serializable_shape(self):
        recognizer = FakeRecognizer(RecognitionResult(blocks=CARD_BLOCKS))
        payload = _pipeline(recognizer).process("card", self.image).to_dict()
        self.assertEqual(payload["classification"]["type"], "business_card")
        self.assertEqual(payload["block_count"], 5)
        self.assertEqual(payload["contact"]["name"], "Jane Doe")

    def test_run_on_text_is_not_a_link_screenshot(self):
        blocks = (
            TextBlock("Thanks for coming.See you soon", 0.1, 0.6, 0.6, 0.03),
            TextBlock("J.Smith wrote the notes", 0.1, 0.5, 0.6, 0.03),
        )
        result = _pipeline(FakeRecognizer(RecognitionResult(blocks=blocks))).process("notes", self.image)
        self.assertEqual(result.entities_of(EntityKind.URL), [])
        self.assertNotEqual(result.classification.type_label, ScreenshotType.LINK)
        self.assertNotIn("link", [a.action_type for a in result.actions])


class ObjectStageTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.image = Path(self.tmp.name) / "red.png"
        Image.new("RGB", (64, 64), (220, 10, 10)).save(self.image)

    def tearDown(self):
        self.tmp.cleanup()

    def test_objects_are_deduplicated_and_colored(self):
        recognition = RecognitionResult(
            blocks=CARD_BLOCKS,
            objects=(
                DetectedObject("human", 0.5, 0.2, 0.2, 0.5, 0.6),
                DetectedObject("person", 0.9, 0.2, 0.2, 0.5, 0.6),
            ),
        )
        result = _pipeline(FakeRecognizer(recognition)).process("card", self.image)
        self.assertEqual([(o.label, o.color) for o in result.objects], [("person", "red")])
        self.assertEqual(result.to_dict()["objects"][0]["color"], "red")
        self.assertEqual(result.classification.type_label, ScreenshotType.BUSINESS_CARD)

    def test_unreadable_image_keeps_uncolored_objects(self):
        self.image.write_bytes(b"not an image")
        recognition = RecognitionResult(objects=(DetectedObject("dog", 0.8, 0.0, 0.0, 1.0, 1.0),))
        result = _pipeline(FakeRecognizer(recognition)).process("pet", self.image)
        self.assertEqual([(o.label, o.color) for o in result.objects], [("dog", None)])

    def test_no_objects_by_default(self):
        result = _pipeline(FakeRecognizer(RecognitionResult(blocks=CARD_BLOCKS))).process("card", self.image)
        self.assertEqual(result.objects, ())
        self.assertEqual(result.to_dict()["objects"], [])


class ConfidenceTests(unittest.TestCase):
    def test_richness(self):
        self.assertEqual(richness_confidence("", "", 0, None, 0), 0.0)
        self.assertEqual(richness_confidence("a", "a", 0, None, 1), 0.4)
        self.assertEqual(richness_confidence("a", "# a", 2, "en", 1), 1.0)

    def test_empty_result(self):
        result = empty_result("x")
        self.assertEqual(result.image_id, "x")
        self.assertEqual(result.actions, ())


if __name__ == "__main__":
    unittest.main()

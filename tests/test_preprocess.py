import tempfile
import unittest
from pathlib import Path

from PIL import Image

from shot_stack.config import StackConfig
from shot_stack.preprocess import _fit, preprocess_image


class PreprocessTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.cfg = StackConfig(preprocessed_dir=self.root / "prep", max_image_dim=100)

    def tearDown(self):
        self.tmp.cleanup()

    def test_downscale_and_hash_named_file(self):
        source = self.root / "wide.png"
        Image.new("RGBA", (400, 200), (255, 0, 0, 128)).save(source)

        prepared = preprocess_image(source, self.cfg)
        self.assertEqual((prepared.width, prepared.height), (100, 50))
        self.assertTrue(prepared.normalized_path.is_file())
        self.assertEqual(prepared.normalized_path.name, f"{prepared.sha256_hash}.jpg")
        with Image.open(prepared.normalized_path) as img:
            self.assertEqual(img.mode, "RGB")
            self.assertEqual(img.size, (100, 50))

    def test_same_pixels_same_identity(self):
        a = self.root / "a.png"
        b = self.root / "b.png"
        Image.new("RGB", (60, 40), (10, 20, 30)).save(a)
        Image.new("RGB", (60, 40), (10, 20, 30)).save(b)
        self.assertEqual(preprocess_image(a, self.cfg).sha256_hash, preprocess_image(b, self.cfg).sha256_hash)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            preprocess_image(self.root / "missing.png", self.cfg)

    def test_fit(self):
        self.assertEqual(_fit((50, 20), 100), (50, 20))
        self.assertEqual(_fit((300, 3000), 1000), (100, 1000))


if __name__ == "__main__":
    unittest.main()

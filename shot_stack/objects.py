from __future__ import annotations

import logging
import math
from dataclasses import replace
from pathlib import Path

from .models import DetectedObject

logger = logging.getLogger(__name__)

DUPLICATE_IOU = 0.5
COLOR_SAMPLE_SIZE = (50, 50)
MIN_ALPHA = 50

COLOR_NAMES: tuple[tuple[str, tuple[int, int, int]], ...] = (
    ("red", (255, 0, 0)),
    ("orange", (255, 165, 0)),
    ("yellow", (255, 255, 0)),
    ("green", (0, 255, 0)),
    ("blue", (0, 0, 255)),
    ("purple", (128, 0, 128)),
    ("pink", (255, 192, 203)),
    ("brown", (165, 42, 42)),
    ("black", (0, 0, 0)),
    ("white", (255, 255, 255)),
    ("gray", (128, 128, 128)),
    ("beige", (245, 245, 220)),
    ("navy", (0, 0, 128)),
    ("teal", (0, 128, 128)),
    ("olive", (128, 128, 0)),
    ("maroon", (128, 0, 0)),
    ("silver", (192, 192, 192)),
    ("gold", (255, 215, 0)),
)

LABEL_SYNONYMS: tuple[frozenset[str], ...] = (
    frozenset({"person", "human", "man", "woman", "people"}),
    frozenset({"dog", "puppy", "canine"}),
    frozenset({"cat", "kitten", "feline"}),
    frozenset({"car", "vehicle", "automobile"}),
    frozenset({"phone", "mobile", "smartphone", "cellphone"}),
)


def _load_pillow():
    try:
        from PIL import Image, ImageStat

        return Image, ImageStat
    except Exception as exc:
        raise RuntimeError("Pillow is required for object colors. Install with: pip install pillow") from exc


def nearest_color_name(rgb: tuple[float, float, float]) -> str:
    return min(COLOR_NAMES, key=lambda item: math.dist(rgb, item[1]))[0]


def labels_similar(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    if a == b or a in b or b in a:
        return True
    return any(a in group and b in group for group in LABEL_SYNONYMS)


def iou(a: DetectedObject, b: DetectedObject) -> float:
    left, right = max(a.x, b.x), min(a.x + a.width, b.x + b.width)
    bottom, top = max(a.y, b.y), min(a.y + a.height, b.y + b.height)
    if right <= left or top <= bottom:
        return 0.0
    inter = (right - left) * (top - bottom)
    # Bounding union box, not the area union.
    union_w = max(a.x + a.width, b.x + b.width) - min(a.x, b.x)
    union_h = max(a.y + a.height, b.y + b.height) - min(a.y, b.y)
    union = union_w * union_h
    return inter / union if union > 0 else 0.0


def deduplicate_objects(objects: list[DetectedObject]) -> list[DetectedObject]:
    """Drop overlapping detections of the same thing, keeping the more confident one."""
    kept: list[DetectedObject] = []
    for obj in sorted(objects, key=lambda o: o.confidence, reverse=True):
        if any(iou(obj, k) > DUPLICATE_IOU and labels_similar(obj.label, k.label) for k in kept):
            continue
        kept.append(obj)
    return kept


def pixel_box(obj: DetectedObject, size: tuple[int, int]) -> tuple[int, int, int, int]:
    """Pillow crop box for a bottom-left-origin unit box."""
    w, h = size
    left = int(round(obj.x * w))
    upper = int(round((1.0 - obj.y - obj.height) * h))
    right = int(round((obj.x + obj.width) * w))
    lower = int(round((1.0 - obj.y) * h))
    return max(0, left), max(0, upper), min(w, right), min(h, lower)


def dominant_color(image_path: Path, obj: DetectedObject) -> str | None:
    """Nearest named color to the average opaque pixel inside the object's box."""
    Image, ImageStat = _load_pillow()

    with Image.open(image_path) as img:
        box = pixel_box(obj, img.size)
        if box[2] <= box[0] or box[3] <= box[1]:
            return None
        region = img.convert("RGBA").crop(box)
        region.thumbnail(COLOR_SAMPLE_SIZE)

        mask = region.getchannel("A").point(lambda a: 255 if a >= MIN_ALPHA else 0)
        if mask.getbbox() is None:
            return None
        mean = ImageStat.Stat(region.convert("RGB"), mask).mean
    return nearest_color_name((mean[0], mean[1], mean[2]))


def describe_objects(objects: list[DetectedObject], image_path: Path | None) -> list[DetectedObject]:
    """Deduplicated detections with a color name filled in where the image can be sampled."""
    kept = deduplicate_objects(objects)
    if image_path is None:
        return kept

    out: list[DetectedObject] = []
    for obj in kept:
        if obj.color:
            out.append(obj)
            continue
        try:
            color = dominant_color(Path(image_path), obj)
        except Exception as exc:
            logger.warning(f"Color sampling failed for {obj.label}: {exc}")
            color = None
        out.append(replace(obj, color=color) if color else obj)
    return out

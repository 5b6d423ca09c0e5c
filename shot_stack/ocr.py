from __future__ import annotations

import logging
from pathlib import Path

from .models import DetectedObject, RecognitionResult, SceneHint, TextBlock

logger = logging.getLogger(__name__)

RECT_MIN_CONFIDENCE = 0.6
RECT_MIN_ASPECT = 0.5
RECT_MAX_ASPECT = 1.6
MAX_SCENE_HINTS = 5


def _load_cg_image(image_path: Path):
    from Cocoa import NSURL
    from Quartz import CGImageSourceCreateImageAtIndex, CGImageSourceCreateWithURL

    url = NSURL.fileURLWithPath_(str(image_path))
    src = CGImageSourceCreateWithURL(url, None)
    if src is None:
        raise RuntimeError(f"Cannot read screenshot: {image_path}")
    cg_image = CGImageSourceCreateImageAtIndex(src, 0, None)
    if cg_image is None:
        raise RuntimeError(f"Cannot decode screenshot: {image_path}")
    return cg_image


def _perform(cg_image, request) -> None:
    import Vision

    handler = Vision.VNImageRequestHandler.alloc().initWithCGImage_options_(cg_image, None)
    result = handler.performRequests_error_([request], None)
    if isinstance(result, tuple):
        ok, err = result
    else:
        ok, err = bool(result), None
    if not ok:
        raise RuntimeError(f"Vision request failed: {err}")


def _text_blocks(cg_image, languages: tuple[str, ...]) -> tuple[TextBlock, ...]:
    import Vision

    request = Vision.VNRecognizeTextRequest.alloc().init()
    request.setRecognitionLevel_(Vision.VNRequestTextRecognitionLevelAccurate)
    request.setUsesLanguageCorrection_(True)
    try:
        request.setRecognitionLanguages_(list(languages))
    except Exception as exc:
        logger.warning(f"Recognition languages not accepted, using defaults: {exc}")
    _perform(cg_image, request)

    blocks: list[TextBlock] = []
    for obs in request.results() or []:
        candidates = obs.topCandidates_(1)
        if not candidates:
            continue
        cand = candidates[0]
        text = str(cand.string() or "").strip()
        if not text:
            continue
        try:
            conf = float(cand.confidence())
        except Exception:
            conf = 0.0

        # Vision boxes are already normalized with a bottom-left origin.
        bbox = obs.boundingBox()
        blocks.append(
            TextBlock(
                text=text,
                x=float(bbox.origin.x),
                y=float(bbox.origin.y),
                width=float(bbox.size.width),
                height=float(bbox.size.height),
                confidence=round(conf, 4),
            )
        )
    return tuple(blocks)


def _barcode(cg_image) -> str | None:
    import Vision

    request = Vision.VNDetectBarcodesRequest.alloc().init()
    _perform(cg_image, request)
    for obs in request.results() or []:
        payload = obs.payloadStringValue()
        if payload:
            return str(payload)
    return None


def _rectangle_count(cg_image) -> int:
    import Vision

    request = Vision.VNDetectRectanglesRequest.alloc().init()
    request.setMinimumConfidence_(RECT_MIN_CONFIDENCE)
    request.setMinimumAspectRatio_(RECT_MIN_ASPECT)
    request.setMaximumAspectRatio_(RECT_MAX_ASPECT)
    _perform(cg_image, request)
    return len(request.results() or [])


def _scene_hints(cg_image) -> tuple[SceneHint, ...]:
    import Vision

    request = Vision.VNClassifyImageRequest.alloc().init()
    _perform(cg_image, request)
    observations = sorted(request.results() or [], key=lambda o: float(o.confidence()), reverse=True)
    return tuple(
        SceneHint(identifier=str(obs.identifier()), confidence=round(float(obs.confidence()), 4))
        for obs in observations[:MAX_SCENE_HINTS]
    )


def _box(obs) -> tuple[float, float, float, float]:
    bbox = obs.boundingBox()
    return float(bbox.origin.x), float(bbox.origin.y), float(bbox.size.width), float(bbox.size.height)


def _animals(cg_image) -> tuple[DetectedObject, ...]:
    import Vision

    request = Vision.VNRecognizeAnimalsRequest.alloc().init()
    _perform(cg_image, request)
    out: list[DetectedObject] = []
    for obs in request.results() or []:
        labels = list(obs.labels() or [])
        if not labels:
            continue
        x, y, w, h = _box(obs)
        out.append(
            DetectedObject(
                label=", ".join(str(lb.identifier()) for lb in labels),
                confidence=round(float(labels[0].confidence()), 4),
                x=x,
                y=y,
                width=w,
                height=h,
            )
        )
    return tuple(out)


def _humans(cg_image) -> tuple[DetectedObject, ...]:
    import Vision

    request = Vision.VNDetectHumanRectanglesRequest.alloc().init()
    _perform(cg_image, request)
    out: list[DetectedObject] = []
    for obs in request.results() or []:
        x, y, w, h = _box(obs)
        out.append(DetectedObject("person", round(float(obs.confidence()), 4), x, y, w, h))
    return tuple(out)


class VisionRecognizer:
    """Apple Vision text, barcode, rectangle, scene, animal and person recognition for one screenshot."""

    def __init__(self, languages: tuple[str, ...] = ("en-US",)):
        self.languages = languages

    def recognize(self, image_path: Path) -> RecognitionResult:
        try:
            import Vision  # noqa: F401
        except Exception as exc:
            raise RuntimeError("pyobjc-framework-Vision is required for screenshot recognition") from exc

        cg_image = _load_cg_image(Path(image_path))

        def attempt(name: str, fn, empty):
            try:
                return fn()
            except Exception as exc:
                logger.warning(f"Vision {name} request failed for {image_path}: {exc}")
                return empty

        return RecognitionResult(
            blocks=attempt("text", lambda: _text_blocks(cg_image, self.languages), ()),
            barcode=attempt("barcode", lambda: _barcode(cg_image), None),
            rectangle_count=attempt("rectangle", lambda: _rectangle_count(cg_image), 0),
            scene_hints=attempt("classification", lambda: _scene_hints(cg_image), ()),
            objects=attempt("animal", lambda: _animals(cg_image), ()) + attempt("person", lambda: _humans(cg_image), ()),
        )

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol

from .actions import ActionGenerator
from .classifier import ClassificationSignals, FALLBACK_RESULT, ScreenshotClassifier
from .config import StackConfig
from .contact_detector import ContactDetector, NameRecognizer
from .data_detector import build_data_detector
from .entities import BasicEntityExtractor, EntityExtractionResult, extract_entities, normalize_text, to_basic_entities
from .event_detector import EventDetector
from .language import build_language_detector
from .layout import DocumentReconstructor, HeuristicReconstructor, plain_text, sort_blocks
from .models import (
    BasicEntities,
    ClassificationResult,
    ContactRecord,
    DetectedObject,
    EventRecord,
    ProcessedResult,
    RecognitionResult,
    ReconstructedDocument,
    SmartAction,
)
from .objects import describe_objects
from .utils import utc_now_iso

logger = logging.getLogger(__name__)

EMPTY_TITLE = "Screenshot"
NO_IMAGE_ENGINE = "none"


class Recognizer(Protocol):
    def recognize(self, image_path: Path) -> RecognitionResult: ...


def empty_result(image_id: str) -> ProcessedResult:
    """Result for an analysis that had no image to work on."""
    return ProcessedResult(
        image_id=image_id,
        raw_text="",
        formatted_text="",
        detected_language=None,
        entities=(),
        event=None,
        contact=None,
        classification=ClassificationResult(type_label=FALLBACK_RESULT.type_label, confidence=0.0, title=EMPTY_TITLE),
        actions=(),
        confidence=0.0,
        engine=NO_IMAGE_ENGINE,
        created_at=utc_now_iso(),
    )


def richness_confidence(
    raw_text: str,
    formatted_text: str,
    entity_count: int,
    language: str | None,
    block_count: int,
) -> float:
    score = 0.0
    if raw_text:
        score += 0.2
    if formatted_text and formatted_text != raw_text:
        score += 0.2
    if entity_count:
        score += 0.3
    if language is not None:
        score += 0.1
    if block_count:
        score += 0.2
    return round(score, 4)


class ScreenshotPipeline:
    """Recognize, reconstruct, extract, detect, classify. Always returns a result."""

    def __init__(
        self,
        recognizer: Recognizer,
        *,
        reconstructor: DocumentReconstructor | None = None,
        extractor: BasicEntityExtractor | None = None,
        event_detector: EventDetector | None = None,
        contact_detector: ContactDetector | None = None,
        classifier: ScreenshotClassifier | None = None,
        action_generator: ActionGenerator | None = None,
        language_detector: Callable[[str], str | None] | None = None,
    ):
        self.recognizer = recognizer
        self.reconstructor = reconstructor or HeuristicReconstructor()
        self.extractor = extractor or BasicEntityExtractor()
        self.event_detector = event_detector or EventDetector()
        self.contact_detector = contact_detector or ContactDetector()
        self.classifier = classifier or ScreenshotClassifier()
        self.action_generator = action_generator or ActionGenerator()
        self.language_detector = language_detector

    def _recognize(self, image_path: Path) -> RecognitionResult:
        try:
            return self.recognizer.recognize(image_path)
        except Exception as exc:
            logger.error(f"Recognizer failed for {image_path}: {exc}")
            return RecognitionResult()

    def _reconstruct(self, recognition: RecognitionResult, image_path: Path) -> ReconstructedDocument:
        blocks = list(recognition.blocks)
        try:
            return self.reconstructor.reconstruct(blocks, image_path)
        except Exception as exc:
            logger.error(f"Reconstruction failed, using raw text: {exc}")
            return ReconstructedDocument(markdown=plain_text(sort_blocks(blocks)), engine="plain")

    def _extract(self, raw_text: str, markdown: str) -> EntityExtractionResult:
        try:
            return extract_entities(raw_text, markdown, self.extractor, self.language_detector)
        except Exception as exc:
            logger.error(f"Entity extraction failed: {exc}")
            return EntityExtractionResult(normalized_text=normalize_text(raw_text))

    def _detect_event(self, text: str, basic: BasicEntities, recognition: RecognitionResult) -> EventRecord | None:
        try:
            return self.event_detector.detect(text, basic, recognition.scene_hints)
        except Exception as exc:
            logger.error(f"Event detection failed: {exc}")
            return None

    def _detect_contact(self, text: str, basic: BasicEntities) -> ContactRecord | None:
        try:
            return self.contact_detector.detect(text, basic)
        except Exception as exc:
            logger.error(f"Contact detection failed: {exc}")
            return None

    def _describe_objects(self, recognition: RecognitionResult, image_path: Path | None) -> list[DetectedObject]:
        if not recognition.objects:
            return []
        try:
            return describe_objects(list(recognition.objects), image_path)
        except Exception as exc:
            logger.error(f"Object description failed, keeping raw detections: {exc}")
            return list(recognition.objects)

    def _classify(self, recognition: RecognitionResult, text: str, basic: BasicEntities) -> ClassificationResult:
        try:
            return self.classifier.classify(ClassificationSignals.from_recognition(recognition, text, basic))
        except Exception as exc:
            logger.error(f"Classification failed: {exc}")
            return FALLBACK_RESULT

    def _actions(
        self, text: str, basic: BasicEntities, event: EventRecord | None, contact: ContactRecord | None
    ) -> list[SmartAction]:
        try:
            return self.action_generator.generate(text, basic, event, contact)
        except Exception as exc:
            logger.error(f"Action generation failed: {exc}")
            return []

    def process(self, image_id: str, image_path: str | Path | None) -> ProcessedResult:
        if image_path is None or not Path(image_path).is_file():
            logger.warning(f"No image data for {image_id}, returning empty result")
            return empty_result(image_id)
        image_path = Path(image_path)

        recognition = self._recognize(image_path)
        return self.process_recognition(image_id, recognition, image_path)

    def process_recognition(
        self, image_id: str, recognition: RecognitionResult, image_path: Path | None = None
    ) -> ProcessedResult:
        raw_text = plain_text(sort_blocks(list(recognition.blocks)))
        document = self._reconstruct(recognition, image_path)
        extraction = self._extract(raw_text, document.markdown)
        basic = to_basic_entities(extraction.entities)
        text = extraction.normalized_text

        event = self._detect_event(text, basic, recognition)
        contact = self._detect_contact(text, basic)
        classification = self._classify(recognition, text, basic)
        actions = self._actions(raw_text, basic, event, contact)
        objects = self._describe_objects(recognition, image_path)

        return ProcessedResult(
            image_id=image_id,
            raw_text=raw_text,
            formatted_text=document.markdown,
            detected_language=extraction.detected_language,
            entities=tuple(extraction.entities),
            event=event,
            contact=contact,
            classification=classification,
            actions=tuple(actions),
            text_blocks=tuple(recognition.blocks),
            objects=tuple(objects),
            confidence=richness_confidence(
                raw_text,
                document.markdown,
                len(extraction.entities),
                extraction.detected_language,
                len(recognition.blocks),
            ),
            engine=document.engine,
            created_at=utc_now_iso(),
        )


def build_reconstructor(cfg: StackConfig) -> DocumentReconstructor:
    if cfg.reconstruct_engine == "vlm":
        from .vlm_reconstructor import VLMReconstructor

        return VLMReconstructor(cfg.vlm_model_name)
    if cfg.reconstruct_engine != "heuristic":
        raise ValueError(f"Unknown reconstruct engine: {cfg.reconstruct_engine}")
    return HeuristicReconstructor()


def build_pipeline(
    cfg: StackConfig,
    recognizer: Recognizer | None = None,
    name_recognizer: NameRecognizer | None = None,
) -> ScreenshotPipeline:
    if recognizer is None:
        from .ocr import VisionRecognizer

        recognizer = VisionRecognizer(cfg.recognition_languages)
    if name_recognizer is None and cfg.detector_backend == "apple":
        from .apple_nl import AppleNameTagger

        name_recognizer = AppleNameTagger()

    return ScreenshotPipeline(
        recognizer,
        reconstructor=build_reconstructor(cfg),
        extractor=BasicEntityExtractor(build_data_detector(cfg.detector_backend)),
        contact_detector=ContactDetector(name_recognizer),
        language_detector=build_language_detector(cfg.detector_backend),
    )

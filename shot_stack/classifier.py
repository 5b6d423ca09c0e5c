from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence
from urllib.parse import urlsplit

from .config import (
    APP_SCENES,
    CARD_BRANDS,
    CHAT_SCENES,
    DOCUMENT_SCENES,
    MEDIA_SCENES,
    PRODUCT_SCENES,
)
from .models import BasicEntities, ClassificationResult, RecognitionResult, SceneHint, ScreenshotType
from .patterns import CARD_NUMBER_PATTERN, CHAT_TIME_PATTERN, CURRENCY_PATTERN, NAME_LIKE_EXCLUDE_PATTERN, alpha_count, split_lines

logger = logging.getLogger(__name__)

TITLE_MAX_LEN = 48
BARCODE_TITLE_LEN = 32
SCENE_MIN_CONFIDENCE = 0.3
PHOTO_HINT_CONFIDENCE = 0.5
PHOTO_DEFAULT_CONFIDENCE = 0.1

CHAT_MIN_LINES = 5
CHAT_MAX_AVG_LEN = 25
CHAT_MIN_TIME_HITS = 3
CHAT_MIN_TIME_RATIO = 0.4

FALLBACK_RESULT = ClassificationResult(type_label=ScreenshotType.OTHER, confidence=0.0, title="Screenshot")

_SCENE_WORD_SPLIT = re.compile(r"[\W_]+")


@dataclass
class ClassificationSignals:
    barcode: str | None = None
    text_density: float = 0.0
    rectangle_count: int = 0
    sample_text: str = ""
    urls: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)
    dates: list[datetime] = field(default_factory=list)
    scene_hints: Sequence[SceneHint] = ()

    @classmethod
    def from_recognition(
        cls, recognition: RecognitionResult, sample_text: str, entities: BasicEntities
    ) -> "ClassificationSignals":
        return cls(
            barcode=recognition.barcode,
            text_density=text_density(recognition),
            rectangle_count=recognition.rectangle_count,
            sample_text=sample_text,
            urls=list(entities.urls),
            emails=list(entities.emails),
            phones=list(entities.phones),
            dates=list(entities.dates),
            scene_hints=tuple(recognition.scene_hints),
        )


def text_density(recognition: RecognitionResult) -> float:
    """Share of the image height covered by recognized text, capped at 1."""
    return min(1.0, sum(max(0.0, b.height) for b in recognition.blocks))


# ── Title helpers ──


def host_of(url: str) -> str:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        host = None
    if not host:
        return url
    return re.sub(r"^www\.", "", host)


def barcode_title(payload: str) -> str:
    try:
        parts = urlsplit(payload)
        host = parts.hostname if parts.scheme else None
    except ValueError:
        host = None
    if host:
        return re.sub(r"^www\.", "", host)
    return payload[:BARCODE_TITLE_LEN]


def first_content_line(text: str) -> str:
    for line in (text or "").splitlines():
        line = line.strip()
        if len(line) < 3 or alpha_count(line) < 2:
            continue
        return line[:TITLE_MAX_LEN]
    return ""


def first_name_like_line(text: str) -> str | None:
    for line in (text or "").splitlines():
        caps = [part for part in line.split(" ") if part and part[0].isupper()]
        if len(caps) >= 2 and not NAME_LIKE_EXCLUDE_PATTERN.search(line):
            return line[:TITLE_MAX_LEN]
    return None


def short_money(text: str) -> str | None:
    m = CURRENCY_PATTERN.search(text or "")
    return m.group(0) if m else None


def detect_card_type(text: str) -> str:
    lowered = (text or "").lower()
    for keyword, brand in CARD_BRANDS:
        if keyword in lowered:
            return brand
    return "Credit Card"


def scene_word(identifier: str) -> str | None:
    for word in _SCENE_WORD_SPLIT.split(identifier or ""):
        if len(word) > 2:
            return word.capitalize()
    return None


# ── Predicates ──


def has_scene_type(hints: Sequence[SceneHint], keywords: tuple[str, ...], min_confidence: float = SCENE_MIN_CONFIDENCE) -> bool:
    for hint in hints:
        if hint.confidence < min_confidence:
            continue
        identifier = hint.identifier.lower()
        if any(keyword in identifier for keyword in keywords):
            return True
    return False


def looks_like_chat(text: str) -> bool:
    lines = split_lines(text)
    if len(lines) < CHAT_MIN_LINES:
        return False
    avg_len = sum(len(ln) for ln in lines) // max(1, len(lines))
    time_hits = sum(1 for ln in lines if CHAT_TIME_PATTERN.search(ln))
    ratio = time_hits / len(lines)
    return avg_len < CHAT_MAX_AVG_LEN and time_hits >= CHAT_MIN_TIME_HITS and ratio >= CHAT_MIN_TIME_RATIO


def has_card_number(text: str) -> bool:
    return CARD_NUMBER_PATTERN.search(text or "") is not None


def is_document(s: ClassificationSignals) -> bool:
    if s.text_density > 0.25 and s.rectangle_count > 0:
        return True
    return s.text_density > 0.3 and has_scene_type(s.scene_hints, DOCUMENT_SCENES)


def is_chat(s: ClassificationSignals) -> bool:
    return looks_like_chat(s.sample_text) and (s.text_density > 0.3 or has_scene_type(s.scene_hints, CHAT_SCENES))


def is_product(s: ClassificationSignals) -> bool:
    return has_scene_type(s.scene_hints, PRODUCT_SCENES) and s.text_density > 0.1


def is_app_screen(s: ClassificationSignals) -> bool:
    return has_scene_type(s.scene_hints, APP_SCENES) and s.text_density > 0.2


def is_media(s: ClassificationSignals) -> bool:
    return has_scene_type(s.scene_hints, MEDIA_SCENES)


# ── Cascade ──


class ScreenshotClassifier:
    """First matching rule wins; the order of checks is the contract."""

    def classify(self, s: ClassificationSignals) -> ClassificationResult:
        try:
            return self._classify(s)
        except Exception as exc:
            logger.error(f"Classification failed, using fallback label: {exc}")
            return FALLBACK_RESULT

    def _classify(self, s: ClassificationSignals) -> ClassificationResult:
        def result(kind: ScreenshotType, confidence: float, title: str) -> ClassificationResult:
            return ClassificationResult(type_label=kind, confidence=confidence, title=title)

        content = first_content_line(s.sample_text)

        if s.barcode:
            return result(ScreenshotType.QR, 1.0, barcode_title(s.barcode))

        money = short_money(s.sample_text)
        if money:
            return result(ScreenshotType.RECEIPT, 0.8, content or money)

        if s.phones and s.emails:
            return result(ScreenshotType.BUSINESS_CARD, 0.8, first_name_like_line(s.sample_text) or content)

        if has_card_number(s.sample_text) and s.rectangle_count > 0:
            return result(ScreenshotType.CREDIT_CARD, 0.75, detect_card_type(s.sample_text))

        if s.urls:
            return result(ScreenshotType.LINK, 0.7, content or host_of(s.urls[0]))

        if is_document(s):
            return result(ScreenshotType.DOCUMENT, 0.7, content or "Document")

        if is_chat(s):
            return result(ScreenshotType.CHAT, 0.65, first_name_like_line(s.sample_text) or content or "Conversation")

        if is_product(s):
            return result(ScreenshotType.PRODUCT, 0.6, content or "Product")

        if is_app_screen(s):
            if s.urls:
                return result(ScreenshotType.LINK, 0.7, content or "Website")
            return result(ScreenshotType.APP_SCREEN, 0.55, content or "App Screen")

        if is_media(s):
            return result(ScreenshotType.MEDIA, 0.5, content or "Media")

        if s.text_density > 0.15:
            return result(ScreenshotType.GENERIC_TEXT, 0.4, content or "Text")

        hints = list(s.scene_hints)
        if hints and hints[0].confidence > PHOTO_HINT_CONFIDENCE:
            word = scene_word(hints[0].identifier)
            if word:
                return result(ScreenshotType.PHOTO, round(hints[0].confidence, 4), word)
        return result(ScreenshotType.PHOTO, PHOTO_DEFAULT_CONFIDENCE, "Screenshot")

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class TextBlock:
    """One recognized fragment; (x, y) is the bottom-left corner in unit-square page coordinates."""

    text: str
    x: float
    y: float
    width: float
    height: float
    confidence: float = 1.0


@dataclass(frozen=True)
class DocumentLine:
    text: str
    y: float
    height: float


@dataclass(frozen=True)
class ClassifiedLine:
    kind: str  # heading | numbered | bullet | quote | paragraph
    text: str
    level: int = 0


@dataclass(frozen=True)
class ReconstructedDocument:
    markdown: str
    lines: tuple[DocumentLine, ...] = ()
    classified: tuple[ClassifiedLine, ...] = ()
    engine: str = "heuristic"  # heuristic | vlm | plain


@dataclass(frozen=True)
class SceneHint:
    identifier: str
    confidence: float


@dataclass(frozen=True)
class DetectedObject:
    """An animal or person in the image; the box uses the same coordinates as TextBlock."""

    label: str
    confidence: float
    x: float
    y: float
    width: float
    height: float
    color: str | None = None

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecognitionResult:
    blocks: tuple[TextBlock, ...] = ()
    barcode: str | None = None
    rectangle_count: int = 0
    scene_hints: tuple[SceneHint, ...] = ()
    objects: tuple[DetectedObject, ...] = ()


class EntityKind(str, Enum):
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    DATE = "date"
    EVENT = "event"
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ExtractedEntity:
    kind: EntityKind
    value: str
    source_range: tuple[int, int] | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "value": self.value,
            "source_range": list(self.source_range) if self.source_range else None,
            "metadata": dict(self.metadata),
        }


@dataclass
class BasicEntities:
    urls: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)
    addresses: list[str] = field(default_factory=list)
    dates: list[datetime] = field(default_factory=list)

    @property
    def has_any_entity(self) -> bool:
        return bool(self.urls or self.emails or self.phones or self.addresses or self.dates)


@dataclass(frozen=True)
class EventRecord:
    name: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    location: str | None = None
    description: str | None = None

    @property
    def is_valid(self) -> bool:
        if self.start is None:
            return False
        return self.name is not None or self.location is not None

    @property
    def confidence(self) -> float:
        score = 0.0
        if self.start is not None:
            score += 0.3
        if self.name is not None:
            score += 0.3
        if self.location is not None:
            score += 0.2
        if self.end is not None:
            score += 0.1
        if self.description is not None:
            score += 0.1
        return round(score, 4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "location": self.location,
            "description": self.description,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ContactRecord:
    name: str | None = None
    company: str | None = None
    job_title: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None

    @property
    def is_valid(self) -> bool:
        if self.name is None:
            return False
        return self.phone is not None or self.email is not None

    @property
    def confidence(self) -> float:
        score = 0.0
        if self.name is not None:
            score += 0.3
        if self.phone is not None:
            score += 0.2
        if self.email is not None:
            score += 0.2
        if self.company is not None:
            score += 0.15
        if self.job_title is not None:
            score += 0.1
        if self.address is not None:
            score += 0.05
        return round(score, 4)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["confidence"] = self.confidence
        return out


class ScreenshotType(str, Enum):
    QR = "qr"
    RECEIPT = "receipt"
    BUSINESS_CARD = "business_card"
    CREDIT_CARD = "credit_card"
    LINK = "link"
    DOCUMENT = "document"
    CHAT = "chat"
    PRODUCT = "product"
    APP_SCREEN = "app_screen"
    MEDIA = "media"
    GENERIC_TEXT = "generic_text"
    PHOTO = "photo"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES: dict[ScreenshotType, str] = {
    ScreenshotType.QR: "QR Code",
    ScreenshotType.RECEIPT: "Receipt",
    ScreenshotType.BUSINESS_CARD: "Business Card",
    ScreenshotType.CREDIT_CARD: "Credit Card",
    ScreenshotType.LINK: "Website",
    ScreenshotType.DOCUMENT: "Document",
    ScreenshotType.CHAT: "Chat",
    ScreenshotType.PRODUCT: "Product",
    ScreenshotType.APP_SCREEN: "App Screen",
    ScreenshotType.MEDIA: "Media",
    ScreenshotType.GENERIC_TEXT: "Text",
    ScreenshotType.PHOTO: "Photo",
    ScreenshotType.OTHER: "Screenshot",
}


@dataclass(frozen=True)
class ClassificationResult:
    type_label: ScreenshotType
    confidence: float
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_label.value,
            "display_name": self.type_label.display_name,
            "confidence": self.confidence,
            "title": self.title,
        }


@dataclass(frozen=True)
class SmartAction:
    action_type: str
    title: str
    icon: str
    data: str
    priority: int


@dataclass(frozen=True)
class ProcessedResult:
    image_id: str
    raw_text: str
    formatted_text: str
    detected_language: str | None
    entities: tuple[ExtractedEntity, ...]
    event: EventRecord | None
    contact: ContactRecord | None
    classification: ClassificationResult
    actions: tuple[SmartAction, ...]
    text_blocks: tuple[TextBlock, ...] = ()
    objects: tuple[DetectedObject, ...] = ()
    confidence: float = 0.0
    engine: str = "heuristic"
    created_at: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.text_blocks and not self.raw_text and not self.entities

    def entities_of(self, kind: EntityKind) -> list[str]:
        return [e.value for e in self.entities if e.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_id": self.image_id,
            "raw_text": self.raw_text,
            "formatted_text": self.formatted_text,
            "detected_language": self.detected_language,
            "entities": [e.to_dict() for e in self.entities],
            "event": self.event.to_dict() if self.event else None,
            "contact": self.contact.to_dict() if self.contact else None,
            "classification": self.classification.to_dict(),
            "actions": [asdict(a) for a in self.actions],
            "block_count": len(self.text_blocks),
            "objects": [o.to_dict() for o in self.objects],
            "confidence": self.confidence,
            "engine": self.engine,
            "created_at": self.created_at,
        }


@dataclass
class PreparedImage:
    source_path: Path
    normalized_path: Path
    sha256_hash: str
    width: int
    height: int

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from urllib.parse import urlsplit

from .config import KNOWN_TLDS
from .data_detector import KIND_ADDRESS, KIND_DATE, KIND_LINK, KIND_PHONE, DataDetector, DetectorMatch, PatternDataDetector
from .models import BasicEntities, EntityKind, ExtractedEntity
from .patterns import (
    EMAIL_PATTERN,
    EXCESS_NEWLINES_PATTERN,
    MARKDOWN_HEADING_PATTERN,
    URL_PATTERNS,
    URL_TRAILING_PUNCT,
)

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_SCHEMES = ("http://", "https://", "ftp://")


@dataclass
class EntityExtractionResult:
    entities: list[ExtractedEntity] = field(default_factory=list)
    normalized_text: str = ""
    detected_language: str | None = None


def normalize_text(text: str) -> str:
    return EXCESS_NEWLINES_PATTERN.sub("\n\n", (text or "").strip())


def _value_key(value: str) -> str:
    return _WS_RE.sub(" ", value).strip().casefold()


def strip_url_punctuation(candidate: str) -> str:
    return candidate.strip().rstrip(URL_TRAILING_PUNCT)


def normalize_url(candidate: str) -> str | None:
    """Cleaned URL with a scheme, or None when it has no usable host."""
    url = strip_url_punctuation(candidate)
    if not url:
        return None
    if not url.lower().startswith(_SCHEMES):
        url = f"https://{url}"
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None
    if not host:
        return None
    return url


def has_known_tld(url: str) -> bool:
    """Whether the host ends in a listed top-level domain written in a single case."""
    host = urlsplit(url).netloc.rsplit("@", 1)[-1].split(":", 1)[0]
    if "." not in host:
        return False
    tld = host.rsplit(".", 1)[-1]
    if not (tld.islower() or tld.isupper()):
        return False
    return tld.lower() in KNOWN_TLDS


def url_key(url: str) -> tuple[str, str, str]:
    """Identity of a URL ignoring scheme, fragment and case."""
    parts = urlsplit(url)
    path = parts.path.lower()
    if path == "/":
        path = ""
    return ((parts.hostname or "").lower(), path, parts.query.lower())


class BasicEntityExtractor:
    """URLs, emails, phones, dates and addresses with source ranges."""

    def __init__(self, detector: DataDetector | None = None):
        self.detector = detector or PatternDataDetector()

    def _detector_matches(self, text: str) -> list[DetectorMatch]:
        try:
            return list(self.detector.matches(text))
        except Exception as exc:
            logger.warning(f"Data detector failed, phones/dates/addresses skipped: {exc}")
            return []

    def _urls(self, text: str, matches: list[DetectorMatch]) -> list[ExtractedEntity]:
        out: list[ExtractedEntity] = []
        seen: set[tuple[str, str, str]] = set()

        def _accept(raw: str, start: int, *, check_tld: bool = False) -> None:
            url = normalize_url(raw)
            if url is None:
                return
            # Scheme-less matches like `coming.See` are usually OCR run-ons.
            if check_tld and not has_known_tld(url):
                return
            try:
                key = url_key(url)
            except ValueError:
                return
            if key in seen:
                return
            seen.add(key)
            cleaned = strip_url_punctuation(raw)
            out.append(ExtractedEntity(kind=EntityKind.URL, value=url, source_range=(start, start + len(cleaned))))

        for m in matches:
            if m.kind == KIND_LINK:
                _accept(m.value or m.text, m.start)
        for pattern in URL_PATTERNS:
            for m in pattern.finditer(text):
                raw = m.group(0)
                _accept(raw, m.start(), check_tld=not raw.lower().startswith(_SCHEMES))
        return out

    def _emails(self, text: str) -> list[ExtractedEntity]:
        out: list[ExtractedEntity] = []
        seen: set[str] = set()
        for m in EMAIL_PATTERN.finditer(text):
            email = m.group(0)
            if email in seen:
                continue
            seen.add(email)
            out.append(ExtractedEntity(kind=EntityKind.EMAIL, value=email, source_range=(m.start(), m.end())))
        return out

    @staticmethod
    def _from_matches(matches: list[DetectorMatch], kind: str) -> list[ExtractedEntity]:
        entity_kind = {KIND_PHONE: EntityKind.PHONE, KIND_DATE: EntityKind.DATE, KIND_ADDRESS: EntityKind.ADDRESS}[kind]
        out: list[ExtractedEntity] = []
        seen: set[str] = set()
        for m in matches:
            if m.kind != kind or not m.value:
                continue
            key = m.value if kind == KIND_DATE else _value_key(m.value)
            if key in seen:
                continue
            seen.add(key)
            metadata: dict[str, str] = {}
            if kind == KIND_DATE:
                metadata["raw_text"] = m.text
            elif kind == KIND_ADDRESS:
                metadata.update(m.components)
            out.append(ExtractedEntity(kind=entity_kind, value=m.value, source_range=(m.start, m.end), metadata=metadata))
        return out

    def scan(self, text: str) -> list[ExtractedEntity]:
        if not text:
            return []
        matches = self._detector_matches(text)

        entities: list[ExtractedEntity] = []
        steps: list[tuple[str, Callable[[], list[ExtractedEntity]]]] = [
            ("urls", lambda: self._urls(text, matches)),
            ("emails", lambda: self._emails(text)),
            ("phones", lambda: self._from_matches(matches, KIND_PHONE)),
            ("dates", lambda: self._from_matches(matches, KIND_DATE)),
            ("addresses", lambda: self._from_matches(matches, KIND_ADDRESS)),
        ]
        for name, step in steps:
            try:
                entities.extend(step())
            except Exception as exc:
                logger.error(f"Entity category '{name}' failed: {exc}")
        return entities

    def extract(self, text: str) -> BasicEntities:
        return to_basic_entities(self.scan(text))


def to_basic_entities(entities: list[ExtractedEntity]) -> BasicEntities:
    basic = BasicEntities()
    for e in entities:
        if e.kind == EntityKind.URL:
            basic.urls.append(e.value)
        elif e.kind == EntityKind.EMAIL:
            basic.emails.append(e.value)
        elif e.kind == EntityKind.PHONE:
            basic.phones.append(e.value)
        elif e.kind == EntityKind.ADDRESS:
            basic.addresses.append(e.value)
        elif e.kind == EntityKind.DATE:
            try:
                basic.dates.append(datetime.fromisoformat(e.value))
            except ValueError:
                continue
    return basic


def heading_entities(markdown: str) -> list[ExtractedEntity]:
    """Headings as event names (when they carry a digit) or organization names."""
    out: list[ExtractedEntity] = []
    seen: set[str] = set()
    for m in MARKDOWN_HEADING_PATTERN.finditer(markdown or ""):
        heading = m.group(1).strip()
        if not heading or _value_key(heading) in seen:
            continue
        seen.add(_value_key(heading))
        kind = EntityKind.EVENT if any(ch.isdigit() for ch in heading) else EntityKind.ORGANIZATION
        out.append(
            ExtractedEntity(
                kind=kind,
                value=heading,
                source_range=(m.start(1), m.end(1)),
                metadata={"source": "markdown_heading"},
            )
        )
    return out


def extract_entities(
    raw_text: str,
    markdown: str | None,
    extractor: BasicEntityExtractor,
    language_detector: Callable[[str], str | None] | None = None,
) -> EntityExtractionResult:
    normalized = normalize_text(raw_text)

    language = None
    if language_detector is not None and normalized:
        try:
            language = language_detector(normalized)
        except Exception as exc:
            logger.warning(f"Language detection failed: {exc}")

    entities = extractor.scan(normalized)
    if markdown:
        entities.extend(heading_entities(markdown))

    return EntityExtractionResult(entities=entities, normalized_text=normalized, detected_language=language)

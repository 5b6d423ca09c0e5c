from __future__ import annotations

import logging
import re
from typing import Sequence

from .config import EVENT_KEYWORDS, LOCATION_INDICATORS, SOCIAL_INDICATORS, SOCIAL_SCENE_KEYWORDS
from .models import BasicEntities, EventRecord, SceneHint
from .patterns import CLOCK_TIME_PATTERN, SOCIAL_TIMESTAMP_PATTERNS, alpha_count, contains_any, count_present, split_lines

logger = logging.getLogger(__name__)

SOCIAL_HINT_FLOOR = 0.1
SOCIAL_HINT_TOP = 3
SOCIAL_INDICATOR_MIN = 2
SOCIAL_FIRST_LINE_MAX = 20

NAME_SCAN_LINES = 5
NAME_MIN_LEN = 3
NAME_MAX_LEN = 80
LOCATION_MAX_LEN = 100
LOCATION_REMAINDER_MIN = 3
DESCRIPTION_MIN_LEN = 20
DESCRIPTION_MAX_LEN = 200
DESCRIPTION_MAX_LINES = 3

_LOCATION_RE = re.compile(
    r"\b(" + "|".join(re.escape(word) for word in LOCATION_INDICATORS) + r")\b",
    re.IGNORECASE,
)


def has_social_scene_hint(hints: Sequence[SceneHint]) -> bool:
    for hint in list(hints)[:SOCIAL_HINT_TOP]:
        if hint.confidence < SOCIAL_HINT_FLOOR:
            continue
        if contains_any(hint.identifier, SOCIAL_SCENE_KEYWORDS):
            return True
    return False


def has_social_vocabulary(text: str) -> bool:
    return count_present(text, SOCIAL_INDICATORS) >= SOCIAL_INDICATOR_MIN


def starts_with_timestamp(lines: list[str]) -> bool:
    if not lines:
        return False
    first = lines[0]
    if len(first) >= SOCIAL_FIRST_LINE_MAX:
        return False
    return any(p.search(first) for p in SOCIAL_TIMESTAMP_PATTERNS)


def looks_like_social_content(text: str, lines: list[str], hints: Sequence[SceneHint]) -> bool:
    return has_social_scene_hint(hints) or has_social_vocabulary(text) or starts_with_timestamp(lines)


def has_event_keyword(text: str) -> bool:
    return contains_any(text, EVENT_KEYWORDS)


def event_name(lines: list[str]) -> str | None:
    for line in lines[:NAME_SCAN_LINES]:
        if not NAME_MIN_LEN <= len(line) <= NAME_MAX_LEN:
            continue
        if CLOCK_TIME_PATTERN.search(line):
            continue
        if alpha_count(line) < len(line) // 2:
            continue
        return line
    return None


def event_location(lines: list[str], addresses: list[str]) -> str | None:
    if addresses:
        return addresses[0]
    for line in lines:
        m = _LOCATION_RE.search(line)
        if not m:
            continue
        remainder = line[m.end():].strip()
        if len(remainder) > LOCATION_REMAINDER_MIN:
            return remainder[:LOCATION_MAX_LEN]
        return line
    return None


def event_description(lines: list[str]) -> str | None:
    picked = [ln for ln in lines if DESCRIPTION_MIN_LEN <= len(ln) < DESCRIPTION_MAX_LEN][:DESCRIPTION_MAX_LINES]
    if not picked:
        return None
    return " ".join(picked)


class EventDetector:
    def detect(
        self,
        text: str,
        entities: BasicEntities,
        scene_hints: Sequence[SceneHint] = (),
    ) -> EventRecord | None:
        if not entities.dates:
            return None

        lines = split_lines(text)
        keyword = has_event_keyword(text)
        date_count = len(entities.dates)

        if looks_like_social_content(text, lines, scene_hints):
            if not (keyword and date_count >= 2):
                return None
        elif not (keyword or date_count >= 2):
            return None

        event = EventRecord(
            name=event_name(lines),
            start=entities.dates[0],
            end=entities.dates[1] if date_count >= 2 else None,
            location=event_location(lines, entities.addresses),
            description=event_description(lines),
        )
        return event if event.is_valid else None

from __future__ import annotations

import logging
from typing import Protocol

from .config import COMPANY_INDICATORS, JOB_TITLE_KEYWORDS
from .models import BasicEntities, ContactRecord
from .patterns import PERSON_NAME_PATTERN, contains_any, split_lines

logger = logging.getLogger(__name__)

COMPANY_SCAN_LINES = 5
COMPANY_MIN_LEN = 10
COMPANY_MAX_LEN = 50
COMPANY_UPPER_RATIO = 0.5
JOB_TITLE_MIN_LEN = 3
JOB_TITLE_MAX_LEN = 60
NAME_MIN_LEN = 2
NAME_MAX_LEN = 50


class NameRecognizer(Protocol):
    def find_names(self, text: str) -> list[str]: ...


def pattern_names(text: str) -> list[str]:
    return [m.group(0) for m in PERSON_NAME_PATTERN.finditer(text or "")]


def _plausible_name(name: str) -> bool:
    return NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN and any(ch.isalpha() for ch in name)


def is_mostly_uppercase(line: str) -> bool:
    letters = [ch for ch in line if ch.isalpha()]
    if not letters:
        return False
    upper = sum(1 for ch in letters if ch.isupper())
    return upper / len(letters) > COMPANY_UPPER_RATIO


def company_name(lines: list[str]) -> str | None:
    head = lines[:COMPANY_SCAN_LINES]
    for line in head:
        if contains_any(line, COMPANY_INDICATORS):
            return line
    for line in head:
        if COMPANY_MIN_LEN <= len(line) <= COMPANY_MAX_LEN and is_mostly_uppercase(line):
            return line
    return None


def job_title(lines: list[str]) -> str | None:
    for line in lines:
        if contains_any(line, JOB_TITLE_KEYWORDS) and JOB_TITLE_MIN_LEN <= len(line) <= JOB_TITLE_MAX_LEN:
            return line
    return None


class ContactDetector:
    def __init__(self, name_recognizer: NameRecognizer | None = None):
        self.name_recognizer = name_recognizer

    def person_names(self, text: str) -> list[str]:
        names: list[str] = []
        if self.name_recognizer is not None:
            try:
                names = [n for n in self.name_recognizer.find_names(text) if _plausible_name(n)]
            except Exception as exc:
                logger.warning(f"Name recognizer failed, using capitalization pattern: {exc}")
                names = []
        return names or pattern_names(text)

    def detect(self, text: str, entities: BasicEntities) -> ContactRecord | None:
        if not entities.phones and not entities.emails:
            return None

        lines = split_lines(text)
        names = self.person_names(text)
        contact = ContactRecord(
            name=names[0] if names else None,
            company=company_name(lines),
            job_title=job_title(lines),
            phone=entities.phones[0] if entities.phones else None,
            email=entities.emails[0] if entities.emails else None,
            address=entities.addresses[0] if entities.addresses else None,
        )
        return contact if contact.is_valid else None

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

logger = logging.getLogger(__name__)

KIND_PHONE = "phone"
KIND_DATE = "date"
KIND_ADDRESS = "address"
KIND_LINK = "link"

ADDRESS_COMPONENTS: tuple[str, ...] = ("street", "city", "state", "zip", "country")


@dataclass(frozen=True)
class DetectorMatch:
    kind: str
    text: str
    start: int
    end: int
    value: str = ""
    date: datetime | None = None
    components: dict[str, str] = field(default_factory=dict)


class DataDetector(Protocol):
    def matches(self, text: str) -> list[DetectorMatch]: ...


def join_address(components: dict[str, str]) -> str:
    return ", ".join(components[key] for key in ADDRESS_COMPONENTS if components.get(key))


def _select_non_overlapping(candidates: list[tuple[int, int, int, Any]]) -> list[Any]:
    """Keep the earliest, then longest, then highest-priority candidate among overlapping spans."""
    chosen: list[Any] = []
    taken_until = -1
    for start, end, _priority, payload in sorted(candidates, key=lambda c: (c[0], -(c[1] - c[0]), c[2])):
        if start < taken_until:
            continue
        chosen.append(payload)
        taken_until = end
    return chosen


# ── Phones ──

PHONE_PATTERN = re.compile(
    r"(?<![\w+])(?:"
    r"\+\d{1,3}[\s.-]?(?:\(\d{1,4}\)[\s.-]?)?\d{1,4}(?:[\s.-]?\d{2,4}){1,4}"
    r"|\(\d{3}\)\s?\d{3}[\s.-]?\d{4}"
    r"|\d{3}[.-]\d{3}[.-]\d{4}"
    r"|\d{3} \d{3} \d{4}"
    r"|\d{3}-\d{4}"
    r")(?!\w)"
)
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15


def find_phones(text: str) -> list[DetectorMatch]:
    out: list[DetectorMatch] = []
    for m in PHONE_PATTERN.finditer(text):
        raw = m.group(0)
        digits = sum(1 for ch in raw if ch.isdigit())
        if not MIN_PHONE_DIGITS <= digits <= MAX_PHONE_DIGITS:
            continue
        out.append(DetectorMatch(kind=KIND_PHONE, text=raw, start=m.start(), end=m.end(), value=raw))
    return out


# ── Dates ──

MONTHS: dict[str, int] = {
    # en
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3, "april": 4, "apr": 4,
    "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7, "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9, "october": 10, "oct": 10, "november": 11, "nov": 11,
    "december": 12, "dec": 12,
    # de
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "mai": 5, "juni": 6, "juli": 7,
    "oktober": 10, "okt": 10, "dezember": 12, "dez": 12,
    # fr
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4, "juin": 6, "juillet": 7,
    "août": 8, "aout": 8, "septembre": 9, "octobre": 10, "novembre": 11, "décembre": 12, "decembre": 12,
    # es
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6, "julio": 7,
    "agosto": 8, "septiembre": 9, "setiembre": 9, "octubre": 10, "noviembre": 11, "diciembre": 12,
}
_MONTH_ALT = "|".join(re.escape(name) for name in sorted(MONTHS, key=len, reverse=True))
_WEEKDAYS = (
    r"mon(?:day)?|tue(?:s|sday)?|wed(?:nesday)?|thu(?:r|rs|rsday)?|fri(?:day)?|sat(?:urday)?|sun(?:day)?"
)
_TIME = (
    r"(?:(?P<h12>\d{1,2})(?::(?P<m12>\d{2}))?\s*(?P<ampm>[ap])\.?\s?m\b\.?"
    r"|(?P<h24>\d{1,2})[:h](?P<m24>\d{2})(?!\d))"
)
_TIME_SUFFIX = rf"(?:,?\s+(?:at\s+|@\s*)?{_TIME})?"

MONTH_FIRST_DATE = re.compile(
    rf"\b(?:(?:{_WEEKDAYS})\.?,?\s+)?(?P<mon>{_MONTH_ALT})\b\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\b"
    rf"(?:,?\s+(?P<year>\d{{4}})\b)?{_TIME_SUFFIX}",
    re.IGNORECASE,
)
DAY_FIRST_DATE = re.compile(
    rf"\b(?P<day>\d{{1,2}})(?:st|nd|rd|th|\.)?\s+(?:of\s+|de\s+)?(?P<mon>{_MONTH_ALT})\b\.?"
    rf"(?:,?\s+(?:de\s+)?(?P<year>\d{{4}})\b)?{_TIME_SUFFIX}",
    re.IGNORECASE,
)
ISO_DATE = re.compile(
    r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})"
    r"(?:[T\s](?P<h24>\d{1,2}):(?P<m24>\d{2})(?::\d{2})?)?\b"
)
NUMERIC_DATE = re.compile(
    rf"\b(?P<a>\d{{1,2}})(?P<sep>[/.])(?P<b>\d{{1,2}})(?P=sep)(?P<c>\d{{4}}|\d{{2}})\b{_TIME_SUFFIX}",
    re.IGNORECASE,
)
RELATIVE_DATE = re.compile(rf"\b(?P<rel>today|tonight|tomorrow)\b{_TIME_SUFFIX}", re.IGNORECASE)
TIME_ONLY = re.compile(rf"(?<![\d:]){_TIME}", re.IGNORECASE)


def _clock(gd: dict[str, str | None]) -> tuple[int, int] | None:
    if gd.get("h12"):
        hour = int(gd["h12"])
        minute = int(gd.get("m12") or 0)
        if not 1 <= hour <= 12:
            raise ValueError(f"hour out of range: {hour}")
        meridiem = (gd.get("ampm") or "").lower()
        if meridiem == "p" and hour != 12:
            hour += 12
        elif meridiem == "a" and hour == 12:
            hour = 0
    elif gd.get("h24"):
        hour = int(gd["h24"])
        minute = int(gd.get("m24") or 0)
    else:
        return None
    if hour > 23 or minute > 59:
        raise ValueError(f"time out of range: {hour}:{minute}")
    return hour, minute


def _year(raw: str | None, reference: datetime) -> int:
    if not raw:
        return reference.year
    value = int(raw)
    return 2000 + value if value < 100 else value


def _build(year: int, month: int, day: int, clock: tuple[int, int] | None) -> datetime:
    hour, minute = clock or (0, 0)
    return datetime(year, month, day, hour, minute)


def _resolve_date(pattern: re.Pattern[str], m: re.Match[str], reference: datetime) -> datetime:
    gd = m.groupdict()
    clock = _clock(gd)
    if pattern is MONTH_FIRST_DATE or pattern is DAY_FIRST_DATE:
        month = MONTHS[gd["mon"].lower()]
        return _build(_year(gd.get("year"), reference), month, int(gd["day"]), clock)
    if pattern is ISO_DATE:
        return _build(int(gd["year"]), int(gd["month"]), int(gd["day"]), clock)
    if pattern is NUMERIC_DATE:
        a, b = int(gd["a"]), int(gd["b"])
        # Dotted dates and first fields above 12 are day-first; otherwise US month-first.
        if gd["sep"] == "." or a > 12:
            day, month = a, b
        else:
            month, day = a, b
        return _build(_year(gd["c"], reference), month, day, clock)
    if pattern is RELATIVE_DATE:
        base = reference + timedelta(days=1) if gd["rel"].lower() == "tomorrow" else reference
        if clock is None and gd["rel"].lower() == "tonight":
            clock = (20, 0)
        return _build(base.year, base.month, base.day, clock)
    if clock is None:
        raise ValueError("bare time match without a clock value")
    return _build(reference.year, reference.month, reference.day, clock)


DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    ISO_DATE,
    MONTH_FIRST_DATE,
    DAY_FIRST_DATE,
    NUMERIC_DATE,
    RELATIVE_DATE,
    TIME_ONLY,
)


def find_dates(text: str, reference: datetime | None = None) -> list[DetectorMatch]:
    reference = reference or datetime.now()
    candidates: list[tuple[int, int, int, DetectorMatch]] = []
    for priority, pattern in enumerate(DATE_PATTERNS):
        for m in pattern.finditer(text):
            try:
                when = _resolve_date(pattern, m, reference)
            except (ValueError, KeyError):
                continue
            raw = m.group(0).strip()
            match = DetectorMatch(
                kind=KIND_DATE,
                text=raw,
                start=m.start(),
                end=m.start() + len(m.group(0).rstrip()),
                value=when.isoformat(),
                date=when,
            )
            candidates.append((match.start, match.end, priority, match))
    return _select_non_overlapping(candidates)


# ── Addresses ──

_COUNTRIES = (
    r"USA|U\.S\.A\.|United States|Canada|United Kingdom|UK|Germany|Deutschland|France|Spain|España|"
    r"Poland|Polska|Ukraine|Україна|Russia|Россия|Italy|Italia|Austria|Österreich|Switzerland|Schweiz"
)
_US_SUFFIX = (
    r"(?i:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|court|ct|way|place|pl|square|sq|"
    r"parkway|pkwy|highway|hwy|terrace|ter|circle|cir|loop|plaza|row)"
)

US_ADDRESS = re.compile(
    r"(?<![\w-])(?P<street>\d{1,6}(?:[ \t]+[A-Z0-9][\w'.-]*){1,5}?[ \t]+" + _US_SUFFIX + r"\b\.?"
    r"(?:[ \t]+(?:N|S|E|W|NE|NW|SE|SW)\b\.?)?"
    r"(?:,?[ \t]+(?i:suite|ste|apt|unit|floor|fl|#)\.?[ \t]*[\w-]+)?)"
    r"(?:,?\s+(?P<city>[A-Z][A-Za-z.'-]*(?:[ \t]+[A-Z][A-Za-z.'-]*){0,3}?),[ \t]*(?P<state>[A-Z]{2})"
    r"(?:[ \t]+(?P<zip>\d{5}(?:-\d{4})?))?)?"
    r"(?:,?\s+(?P<country>" + _COUNTRIES + r"))?"
)
EU_ADDRESS = re.compile(
    r"(?<![\w-])(?P<street>(?:"
    r"(?:[A-ZÄÖÜ][\w'-]*[ \t]+)?[\w'-]*(?i:straße|strasse|str\.|weg|platz|allee|gasse|ring|damm|ufer)"
    r"|(?i:calle|avenida|plaza|paseo|via|viale|ulica|ul\.|aleja|al\.)[ \t]+[\w'.-]+(?:[ \t]+[\w'.-]+){0,2}?"
    r")[ \t]+\d{1,4}[a-zA-Z]?(?:/\d{1,4})?)"
    r",?\s+(?P<zip>\d{2}-\d{3}|\d{4,5})[ \t]+(?P<city>[^\W\d_][\w-]+(?:[ \t]+[^\W\d_][\w-]+)?)"
    r"(?:,?\s+(?P<country>" + _COUNTRIES + r"))?"
)
FR_ADDRESS = re.compile(
    r"(?<![\w-])(?P<street>\d{1,4}(?:[ \t]?(?i:bis|ter))?,?[ \t]+"
    r"(?i:rue|avenue|av\.|boulevard|bd|place|chemin|allée|quai|impasse|route|cours)[ \t]+[\w'’. -]+?)"
    r",?\s+(?P<zip>\d{5})[ \t]+(?P<city>[^\W\d_][\w-]+(?:[ \t]+[^\W\d_][\w-]+)?)"
    r"(?:,?\s+(?P<country>" + _COUNTRIES + r"))?"
)
CYRILLIC_ADDRESS = re.compile(
    r"(?P<street>(?:ул\.|улица|вул\.|вулиця|пр\.|просп\.|проспект|пер\.|переулок|бульвар)\s*"
    r"[^\d,\n]+?,?\s*(?:д\.|дом|буд\.)?\s*\d{1,4}[а-яА-Я]?)"
    r"(?:,\s*(?P<city>(?:г\.\s*|м\.\s*)?[А-ЯЁІЇЄҐ][\w-]+))?"
    r"(?:,\s*(?P<zip>\d{5,6}))?"
)

ADDRESS_PATTERNS: tuple[re.Pattern[str], ...] = (US_ADDRESS, EU_ADDRESS, FR_ADDRESS, CYRILLIC_ADDRESS)


def find_addresses(text: str) -> list[DetectorMatch]:
    candidates: list[tuple[int, int, int, DetectorMatch]] = []
    for priority, pattern in enumerate(ADDRESS_PATTERNS):
        for m in pattern.finditer(text):
            components = {
                key: value.strip()
                for key, value in m.groupdict().items()
                if key in ADDRESS_COMPONENTS and value and value.strip()
            }
            if not components.get("street") and not components.get("city"):
                continue
            match = DetectorMatch(
                kind=KIND_ADDRESS,
                text=m.group(0),
                start=m.start(),
                end=m.end(),
                value=join_address(components),
                components=components,
            )
            candidates.append((match.start, match.end, priority, match))
    return _select_non_overlapping(candidates)


class PatternDataDetector:
    """Regex and calendar based matcher for phones, dates and postal addresses."""

    def __init__(self, reference: datetime | None = None):
        self.reference = reference

    def matches(self, text: str) -> list[DetectorMatch]:
        if not text:
            return []
        reference = self.reference or datetime.now()
        found = find_phones(text) + find_dates(text, reference) + find_addresses(text)
        return sorted(found, key=lambda m: (m.start, m.kind))


def build_data_detector(backend: str = "pattern", reference: datetime | None = None) -> DataDetector:
    if backend == "apple":
        from .apple_nl import AppleDataDetector

        return AppleDataDetector()
    if backend != "pattern":
        raise ValueError(f"Unknown detector backend: {backend}")
    return PatternDataDetector(reference=reference)

from __future__ import annotations

import re

_URL_CHARS = r"[-a-zA-Z0-9._~:/?#\[\]@!$&'()*+,;=%]"
_HOST = r"[a-zA-Z0-9][-a-zA-Z0-9.]*[a-zA-Z0-9]"

URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"https?://{_HOST}(?::[0-9]+)?(?:/[^\s<>\"{{}}|\\^`\[\]]*)?", re.IGNORECASE),
    re.compile(rf"ftp://{_HOST}(?::[0-9]+)?(?:/{_URL_CHARS}*)?", re.IGNORECASE),
    re.compile(rf"(?<![\w/.@-])www\.{_HOST}(?:/{_URL_CHARS}*)?", re.IGNORECASE),
    # Bare domain.tld, skipping both halves of an email address.
    re.compile(
        rf"(?<![\w/.@-])(?![\w.%+-]*@)[a-zA-Z0-9][-a-zA-Z0-9]*\.[a-zA-Z]{{2,24}}(?:\.[a-zA-Z]{{2,24}})?\b(?:/{_URL_CHARS}*)?",
        re.IGNORECASE,
    ),
)
URL_TRAILING_PUNCT = ".,;:!?)]"

EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,64}", re.IGNORECASE)

CURRENCY_PATTERN = re.compile(r"([€$£¥₽₴₺₪₩])\s?(\d{1,3}([.,]\d{3})*([.,]\d{2})?)")

# 13-19 digits in groups of four with a short tail, or the 4-6-5 Amex grouping.
CARD_NUMBER_PATTERN = re.compile(
    r"(?<!\d)(?:\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{1,4}(?:[\s-]?\d{1,3})?|\d{4}[\s-]?\d{6}[\s-]?\d{5})(?!\d)"
)

CLOCK_TIME_PATTERN = re.compile(r"\d{1,2}:\d{2}")
CHAT_TIME_PATTERN = re.compile(r"\b\d{1,2}:\d{2}\b")

SOCIAL_TIMESTAMP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}", re.IGNORECASE),
    re.compile(r"\d{1,2}[hmd]\s*ago", re.IGNORECASE),
    re.compile(r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)\s+\d{1,2}", re.IGNORECASE),
)

PERSON_NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+[^\S\n]+[A-Z][a-z]+\b")
NAME_LIKE_EXCLUDE_PATTERN = re.compile(r"https?://|\d")

MARKDOWN_HEADING_PATTERN = re.compile(r"^#+\s+(.+)$", re.MULTILINE)

EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def split_lines(text: str) -> list[str]:
    """Non-empty, whitespace-trimmed lines."""
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def alpha_count(text: str) -> int:
    return sum(1 for ch in text if ch.isalpha())


def contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def count_present(text: str, keywords: tuple[str, ...]) -> int:
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)

from __future__ import annotations

import logging
from datetime import datetime

from .data_detector import KIND_ADDRESS, KIND_DATE, KIND_LINK, KIND_PHONE, DetectorMatch, join_address

logger = logging.getLogger(__name__)


def _utf16_offsets(text: str) -> list[int]:
    """Python index for every UTF-16 code unit offset (plus the end offset)."""
    offsets: list[int] = []
    for idx, ch in enumerate(text):
        offsets.append(idx)
        if ord(ch) > 0xFFFF:
            offsets.append(idx)
    offsets.append(len(text))
    return offsets


def _utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


class AppleDataDetector:
    """NSDataDetector-backed matcher (links, phones, dates, addresses)."""

    def __init__(self):
        self._detector = None

    def load(self) -> None:
        try:
            import Foundation
        except Exception as exc:
            raise RuntimeError("pyobjc-framework-Cocoa is required for the apple detector backend") from exc

        types = (
            Foundation.NSTextCheckingTypeLink
            | Foundation.NSTextCheckingTypePhoneNumber
            | Foundation.NSTextCheckingTypeDate
            | Foundation.NSTextCheckingTypeAddress
        )
        detector, err = Foundation.NSDataDetector.dataDetectorWithTypes_error_(types, None)
        if detector is None:
            raise RuntimeError(f"NSDataDetector unavailable: {err}")
        self._detector = detector

    def matches(self, text: str) -> list[DetectorMatch]:
        if not text:
            return []
        if self._detector is None:
            self.load()

        import Foundation

        offsets = _utf16_offsets(text)
        found = self._detector.matchesInString_options_range_(text, 0, (0, _utf16_len(text)))
        out: list[DetectorMatch] = []
        for result in found or []:
            loc, length = result.range()
            start, end = offsets[loc], offsets[loc + length]
            raw = text[start:end]
            kind = result.resultType()

            if kind == Foundation.NSTextCheckingTypeLink and result.URL() is not None:
                url = str(result.URL().absoluteString())
                if url.lower().startswith("mailto:"):
                    continue
                out.append(DetectorMatch(kind=KIND_LINK, text=raw, start=start, end=end, value=url))
            elif kind == Foundation.NSTextCheckingTypePhoneNumber and result.phoneNumber():
                phone = str(result.phoneNumber())
                out.append(DetectorMatch(kind=KIND_PHONE, text=raw, start=start, end=end, value=phone))
            elif kind == Foundation.NSTextCheckingTypeDate and result.date() is not None:
                when = datetime.fromtimestamp(float(result.date().timeIntervalSince1970()))
                out.append(
                    DetectorMatch(kind=KIND_DATE, text=raw, start=start, end=end, value=when.isoformat(), date=when)
                )
            elif kind == Foundation.NSTextCheckingTypeAddress:
                comps = result.addressComponents() or {}
                components = {
                    "street": str(comps.get(Foundation.NSTextCheckingStreetKey) or ""),
                    "city": str(comps.get(Foundation.NSTextCheckingCityKey) or ""),
                    "state": str(comps.get(Foundation.NSTextCheckingStateKey) or ""),
                    "zip": str(comps.get(Foundation.NSTextCheckingZIPKey) or ""),
                    "country": str(comps.get(Foundation.NSTextCheckingCountryKey) or ""),
                }
                components = {k: v.strip() for k, v in components.items() if v.strip()}
                if not components:
                    continue
                out.append(
                    DetectorMatch(
                        kind=KIND_ADDRESS,
                        text=raw,
                        start=start,
                        end=end,
                        value=join_address(components),
                        components=components,
                    )
                )
        return out


class AppleNameTagger:
    """Personal-name recognition with NLTagger."""

    def find_names(self, text: str) -> list[str]:
        if not text:
            return []
        try:
            import NaturalLanguage as NL
        except Exception as exc:
            raise RuntimeError("pyobjc-framework-NaturalLanguage is required for name tagging") from exc

        tagger = NL.NLTagger.alloc().initWithTagSchemes_([NL.NLTagSchemeNameType])
        tagger.setString_(text)
        options = NL.NLTaggerOmitWhitespace | NL.NLTaggerOmitPunctuation | NL.NLTaggerJoinNames
        tags, ranges = tagger.tagsInRange_unit_scheme_options_tokenRanges_(
            (0, _utf16_len(text)), NL.NLTokenUnitWord, NL.NLTagSchemeNameType, options, None
        )

        offsets = _utf16_offsets(text)
        names: list[str] = []
        for tag, rng in zip(tags or [], ranges or []):
            if tag != NL.NLTagPersonalName:
                continue
            loc, length = rng.rangeValue() if hasattr(rng, "rangeValue") else rng
            name = text[offsets[loc] : offsets[loc + length]].strip()
            if name and name not in names:
                names.append(name)
        return names


def apple_detect_language(text: str) -> str | None:
    if not (text or "").strip():
        return None
    try:
        import NaturalLanguage as NL
    except Exception as exc:
        raise RuntimeError("pyobjc-framework-NaturalLanguage is required for language recognition") from exc

    lang = NL.NLLanguageRecognizer.dominantLanguageForString_(text)
    if not lang or str(lang) == "und":
        return None
    return str(lang)

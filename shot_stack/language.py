from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from .patterns import alpha_count

logger = logging.getLogger(__name__)

# ISO 639-1 codes of the recognition locales.
SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "ru", "uk", "pl", "es", "de", "fr")
MIN_ALPHA_CHARS = 2

LanguageDetector = Callable[[str], "str | None"]


@lru_cache(maxsize=1)
def _identifier():
    try:
        from langid.langid import LanguageIdentifier, model
    except Exception as exc:
        raise RuntimeError("langid is required for language detection") from exc

    identifier = LanguageIdentifier.from_modelstring(model, norm_probs=True)
    identifier.set_languages(list(SUPPORTED_LANGUAGES))
    return identifier


def detect_language(text: str) -> str | None:
    """Dominant language code of `text`, or None when there is nothing to judge."""
    t = (text or "").strip()
    if alpha_count(t) < MIN_ALPHA_CHARS:
        return None
    lang, _prob = _identifier().classify(t)
    return str(lang) if lang else None


def build_language_detector(backend: str = "pattern") -> LanguageDetector:
    if backend == "apple":
        from .apple_nl import apple_detect_language

        return apple_detect_language
    return detect_language

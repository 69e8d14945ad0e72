"""English/Spanish detection by weighted pattern presence."""

from __future__ import annotations

import re

from city_assistant.core.types import Language

SPANISH_PATTERNS = (
    re.compile(
        r"\b(hola|buenos|buenas|gracias|por favor|ayuda|necesito|quiero|donde|cuando|como|que|cual|cuales)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(ciudad|permiso|parque|policia|alcalde|servicios|informacion|horario)\b",
        re.IGNORECASE,
    ),
    re.compile(r"[¿¡áéíóúñü]"),
)

ENGLISH_PATTERNS = (
    re.compile(r"\b(hello|hi|thank|please|help|need|want|where|when|how|what|which)\b", re.IGNORECASE),
    re.compile(r"\b(city|permit|park|police|mayor|services|information|hours)\b", re.IGNORECASE),
)


class LanguageDetector:
    """Classifies short text as English or Spanish.

    Each pattern contributes at most one point to its language. Spanish wins
    only with a strictly higher score; ties and empty input are English.
    """

    def __init__(
        self,
        spanish_patterns: tuple[re.Pattern[str], ...] = SPANISH_PATTERNS,
        english_patterns: tuple[re.Pattern[str], ...] = ENGLISH_PATTERNS,
    ):
        self._spanish = spanish_patterns
        self._english = english_patterns

    @staticmethod
    def _score(text: str, patterns: tuple[re.Pattern[str], ...]) -> int:
        return sum(1 for pattern in patterns if pattern.search(text))

    def detect(self, text: str) -> Language:
        if not text:
            return Language.ENGLISH
        spanish_score = self._score(text, self._spanish)
        english_score = self._score(text, self._english)
        if spanish_score > english_score:
            return Language.SPANISH
        return Language.ENGLISH


_default_detector = LanguageDetector()


def detect_language(text: str) -> Language:
    """Detect language using the default pattern sets."""
    return _default_detector.detect(text)

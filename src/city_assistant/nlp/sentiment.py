"""Keyword-based sentiment scoring used to decide escalation."""

from __future__ import annotations

import re
from dataclasses import dataclass

from city_assistant.core.types import SentimentCategory

URGENT_TERMS = frozenset({
    "emergency", "urgent", "urgently", "immediately", "asap", "danger", "dangerous",
    "on fire", "flooding", "injured", "injury", "accident", "bleeding",
    "gas leak", "downed power line", "life threatening",
    "emergencia", "urgente", "inmediatamente", "peligro", "peligroso", "incendio",
    "inundación", "inundacion", "herido", "herida", "accidente", "fuga de gas",
})

NEGATIVE_TERMS = frozenset({
    "angry", "annoyed", "frustrated", "frustrating", "terrible", "horrible", "awful",
    "useless", "worst", "ridiculous", "unacceptable", "disappointed", "complaint",
    "complain", "hate", "bad", "broken", "rude", "waiting forever", "nobody answers",
    "not working", "doesn't work", "never", "waste",
    "enojado", "molesto", "frustrado", "terrible", "horrible", "inútil", "inutil",
    "peor", "ridículo", "ridiculo", "inaceptable", "decepcionado", "queja",
    "odio", "malo", "mala", "grosero", "no funciona", "nunca",
})

POSITIVE_TERMS = frozenset({
    "thank", "thanks", "great", "excellent", "helpful", "awesome", "love",
    "wonderful", "perfect", "appreciate", "good", "nice", "amazing",
    "gracias", "excelente", "genial", "útil", "util", "perfecto", "maravilloso",
    "agradezco", "bueno", "buena", "increíble", "increible",
})

NEGATIVE_THRESHOLD = -0.3
POSITIVE_THRESHOLD = 0.3

_WORD_PATTERN = re.compile(r"[\wáéíóúñü']+", re.IGNORECASE)
_SHOUT_PATTERN = re.compile(r"\b[A-Z]{4,}\b")
_EXCLAIM_PATTERN = re.compile(r"!{2,}")


def _compile(terms: frozenset[str]) -> re.Pattern[str]:
    alternatives = sorted(terms, key=len, reverse=True)
    return re.compile(r"\b(" + "|".join(re.escape(t) for t in alternatives) + r")\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class SentimentInfo:
    category: SentimentCategory
    score: float

    @property
    def escalates(self) -> bool:
        return self.category.escalates


class SentimentClassifier:
    """Scores a message into positive, neutral, negative or urgent.

    Any urgent term wins outright. Otherwise positive and negative lexicon
    hits are balanced into a score in [-1, 1]; shouting (all-caps words,
    repeated exclamation marks) counts as extra negative weight.
    """

    def __init__(
        self,
        urgent_terms: frozenset[str] = URGENT_TERMS,
        negative_terms: frozenset[str] = NEGATIVE_TERMS,
        positive_terms: frozenset[str] = POSITIVE_TERMS,
    ):
        self._urgent = _compile(urgent_terms)
        self._negative = _compile(negative_terms)
        self._positive = _compile(positive_terms)

    def analyze(self, text: str) -> SentimentInfo:
        if not text or not _WORD_PATTERN.search(text):
            return SentimentInfo(SentimentCategory.NEUTRAL, 0.0)

        urgent_hits = len(self._urgent.findall(text))
        if urgent_hits:
            return SentimentInfo(SentimentCategory.URGENT, -1.0)

        negative_hits = len(self._negative.findall(text))
        positive_hits = len(self._positive.findall(text))
        if negative_hits:
            negative_hits += len(_SHOUT_PATTERN.findall(text)) + len(_EXCLAIM_PATTERN.findall(text))

        total = positive_hits + negative_hits
        score = (positive_hits - negative_hits) / max(1, total)
        score = max(-1.0, min(1.0, score))

        if score <= NEGATIVE_THRESHOLD or negative_hits >= 2 and score <= 0:
            category = SentimentCategory.NEGATIVE
        elif score >= POSITIVE_THRESHOLD:
            category = SentimentCategory.POSITIVE
        else:
            category = SentimentCategory.NEUTRAL
        return SentimentInfo(category, round(score, 3))


_default_classifier = SentimentClassifier()


def analyze_sentiment(text: str) -> SentimentInfo:
    """Analyze sentiment using the default lexicons."""
    return _default_classifier.analyze(text)

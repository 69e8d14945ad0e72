from __future__ import annotations

import pytest

from city_assistant.core.types import SentimentCategory
from city_assistant.nlp.sentiment import SentimentClassifier, analyze_sentiment


@pytest.mark.parametrize(
    "text",
    [
        "There is a gas leak on my street",
        "My neighbor's house is on fire",
        "Es una emergencia, hay una fuga de gas",
    ],
)
def test_urgent_terms_win(text):
    result = analyze_sentiment(text)
    assert result.category == SentimentCategory.URGENT
    assert result.score == -1.0
    assert result.escalates


def test_negative_message_escalates():
    result = analyze_sentiment("This is terrible, nobody answers the phone!!")
    assert result.category == SentimentCategory.NEGATIVE
    assert result.score < 0
    assert result.escalates


def test_positive_message():
    result = analyze_sentiment("Thanks, that was really helpful")
    assert result.category == SentimentCategory.POSITIVE
    assert result.score > 0
    assert not result.escalates


def test_plain_question_is_neutral():
    result = analyze_sentiment("What are the city hall hours?")
    assert result.category == SentimentCategory.NEUTRAL
    assert result.score == 0.0
    assert not result.escalates


def test_spanish_negative():
    result = analyze_sentiment("Estoy muy molesto, el portal no funciona")
    assert result.category == SentimentCategory.NEGATIVE


def test_shouting_alone_is_not_negative():
    assert analyze_sentiment("WHERE IS THE PARK!!").category == SentimentCategory.NEUTRAL


def test_empty_text_is_neutral():
    assert analyze_sentiment("").category == SentimentCategory.NEUTRAL
    assert analyze_sentiment("?!").category == SentimentCategory.NEUTRAL


def test_custom_lexicons():
    classifier = SentimentClassifier(
        urgent_terms=frozenset({"mayday"}),
        negative_terms=frozenset({"meh"}),
        positive_terms=frozenset({"yay"}),
    )
    assert classifier.analyze("mayday").category == SentimentCategory.URGENT
    assert classifier.analyze("meh").category == SentimentCategory.NEGATIVE
    assert classifier.analyze("yay").category == SentimentCategory.POSITIVE

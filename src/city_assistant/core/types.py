"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Channel(StrEnum):
    WEB = "web"
    IVR = "ivr"
    SMS = "sms"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"


class Language(StrEnum):
    ENGLISH = "en"
    SPANISH = "es"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class SentimentCategory(StrEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    URGENT = "urgent"

    @property
    def escalates(self) -> bool:
        return self in (SentimentCategory.NEGATIVE, SentimentCategory.URGENT)


SOCIAL_CHANNELS = frozenset({Channel.FACEBOOK, Channel.INSTAGRAM, Channel.WHATSAPP})

_HOUR = 60 * 60

# Seconds of inactivity after which a channel session is replaced
DEFAULT_SESSION_TIMEOUTS: dict[Channel, int] = {
    Channel.WEB: 30 * 60,
    Channel.IVR: 5 * 60,
    Channel.SMS: 24 * _HOUR,
    Channel.FACEBOOK: 24 * _HOUR,
    Channel.INSTAGRAM: 24 * _HOUR,
    Channel.WHATSAPP: 24 * _HOUR,
}

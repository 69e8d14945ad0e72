"""Channel-neutral request and response models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from city_assistant.core.types import Channel, Language, SentimentCategory

CONFIGURATION_ERROR = "configuration_error"


class MalformedRequestError(ValueError):
    """Inbound request is missing required fields or has invalid values."""


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    channel: Channel
    user_id: str
    text: str
    requested_language: Optional[Language] = None
    transcript: Optional[list[dict[str, str]]] = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Source:
    title: str
    url: str
    section: str = ""


@dataclass(frozen=True, slots=True)
class ChannelResponse:
    """Reply produced by the orchestrator for every channel."""

    message: str
    language: Language
    sentiment: SentimentCategory
    sources: list[Source]
    escalate: bool
    conversation_id: str
    session_id: str
    sentiment_score: float = 0.0
    error: Optional[str] = None

    @property
    def is_configuration_error(self) -> bool:
        return self.error == CONFIGURATION_ERROR

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "message": self.message,
            "language": self.language.value,
            "sentiment": self.sentiment.value,
            "sentimentScore": self.sentiment_score,
            "sources": [{"title": s.title, "url": s.url, "section": s.section} for s in self.sources],
            "escalate": self.escalate,
            "conversationId": self.conversation_id,
            "sessionId": self.session_id,
        }
        if self.error:
            data["error"] = self.error
        return data

"""Data models for storage layer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from city_assistant.core.types import Channel, Language, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id(channel: Channel) -> str:
    return f"{channel.value}_{uuid.uuid4().hex[:12]}"


def new_conversation_id() -> str:
    return f"conv_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True, slots=True)
class SessionMessage:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class ChannelSession:
    session_id: str
    channel: Channel
    user_id: str
    start_time: datetime
    last_activity: datetime
    language: Language = Language.ENGLISH
    messages: list[SessionMessage] = field(default_factory=list)

    def history(self) -> list[dict[str, str]]:
        """Messages as role/content pairs, without timestamps."""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]


@dataclass(frozen=True)
class ConversationLogEntry:
    """One completed exchange. Written once, never updated."""

    session_id: str
    channel: Channel
    user_id: str
    start_time: datetime
    end_time: datetime
    messages: list[dict[str, Any]]
    language: Language
    sentiment: str
    sentiment_score: float = 0.0
    escalated: bool = False
    feedback_given: bool = False
    user_agent: str = "unknown"
    referrer: str = "unknown"
    id: str = field(default_factory=new_conversation_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "channel": self.channel.value,
            "userId": self.user_id,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "messages": self.messages,
            "language": self.language.value,
            "sentiment": self.sentiment,
            "sentimentScore": self.sentiment_score,
            "escalated": self.escalated,
            "feedbackGiven": self.feedback_given,
            "userAgent": self.user_agent,
            "referrer": self.referrer,
        }

"""SMS adapter: keyword handling and segment splitting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from city_assistant.channels.base import ChannelAdapter, parse_language, require_text
from city_assistant.channels.models import ChannelResponse
from city_assistant.core.types import Channel, Language
from city_assistant.log import get_logger

logger = get_logger(__name__)

RESET_KEYWORDS = frozenset({"reset", "reiniciar"})

RESET_REPLIES = {
    Language.ENGLISH: "Your conversation has been reset. How can I help you?",
    Language.SPANISH: "Su conversación ha sido reiniciada. ¿Cómo puedo ayudarle?",
}


@dataclass(frozen=True, slots=True)
class SMSReply:
    to: str
    segments: list[str]
    response: Optional[ChannelResponse] = None


def split_segments(text: str, max_length: int = 160, max_segments: int = 4) -> list[str]:
    """Split text into SMS-sized segments on whitespace.

    Words longer than a segment are hard-split. When the text needs more than
    *max_segments*, the last kept segment is ellipsized.
    """
    if max_length < 4:
        raise ValueError("max_length must be at least 4")
    words = text.split()
    if not words:
        return []

    segments: list[str] = []
    current = ""
    for word in words:
        while len(word) > max_length:
            if current:
                segments.append(current)
                current = ""
            segments.append(word[:max_length])
            word = word[max_length:]
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_length:
            current = candidate
        else:
            segments.append(current)
            current = word
    if current:
        segments.append(current)

    if max_segments and len(segments) > max_segments:
        segments = segments[:max_segments]
        last = segments[-1]
        if len(last) > max_length - 3:
            last = last[: max_length - 3].rstrip()
        segments[-1] = last + "..."
    return segments


class SMSChannelAdapter(ChannelAdapter):
    """Handles inbound SMS webhooks (``From``, ``Body``)."""

    @property
    def channel_name(self) -> str:
        return Channel.SMS

    async def handle(self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None) -> SMSReply:
        try:
            sender = require_text(payload, "From", "from")
            body = require_text(payload, "Body", "body")
        except ValueError as e:
            raise self.reject(str(e)) from None
        language = parse_language(payload.get("language"))

        if body.lower() in RESET_KEYWORDS:
            await self.orchestrator.sessions.clear(Channel.SMS, sender)
            reply_language = language or (Language.SPANISH if body.lower() == "reiniciar" else Language.ENGLISH)
            logger.info("sms_session_reset", sender=sender)
            return SMSReply(to=sender, segments=[RESET_REPLIES[reply_language]])

        response = await self.orchestrator.process_message(
            Channel.SMS, sender, body, language, dict(metadata or {})
        )
        segments = split_segments(
            response.message, self.config.sms_segment_length, self.config.sms_max_segments
        )
        return SMSReply(to=sender, segments=segments, response=response)

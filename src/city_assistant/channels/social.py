"""Social messaging adapter (Facebook, Instagram, WhatsApp)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from city_assistant.channels.base import ChannelAdapter, parse_channel, parse_language, require_text
from city_assistant.channels.models import ChannelResponse
from city_assistant.core.types import SOCIAL_CHANNELS, Channel


@dataclass(frozen=True, slots=True)
class SocialReply:
    platform: Channel
    recipient_id: str
    text: str
    response: ChannelResponse


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)].rstrip() + "..."


class SocialChannelAdapter(ChannelAdapter):
    """One adapter for all social platforms; the payload names the platform."""

    @property
    def channel_name(self) -> str:
        return "social"

    async def handle(self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None) -> SocialReply:
        platform = parse_channel(payload.get("platform"))
        if platform not in SOCIAL_CHANNELS:
            raise self.reject(f"Unsupported social platform: {platform}")
        try:
            sender = require_text(payload, "senderId", "sender_id")
            text = require_text(payload, "text", "message")
        except ValueError as e:
            raise self.reject(str(e)) from None

        response = await self.orchestrator.process_message(
            platform, sender, text, parse_language(payload.get("language")), dict(metadata or {})
        )
        limit = self.config.social_max_length.get(platform, 2000)
        return SocialReply(
            platform=platform,
            recipient_id=sender,
            text=truncate(response.message, limit),
            response=response,
        )

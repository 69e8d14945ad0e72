"""Web chat widget adapter."""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

from city_assistant.channels.base import ChannelAdapter, parse_language, require_text
from city_assistant.channels.models import IncomingMessage
from city_assistant.core.types import Channel


class WebChannelAdapter(ChannelAdapter):
    """Handles widget requests.

    Two request shapes are accepted:
      - ``{"userId", "message"}``: the server session supplies history.
      - ``{"messages": [{"role", "content"}, ...]}``: the client transcript is
        the history for this call; ``userId``/``sessionId`` is optional and an
        anonymous id is minted when absent.
    """

    @property
    def channel_name(self) -> str:
        return Channel.WEB

    def parse(self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None) -> IncomingMessage:
        language = parse_language(payload.get("language"))
        meta = dict(metadata or {})
        transcript = payload.get("messages")

        if transcript is not None:
            if not isinstance(transcript, list) or not transcript:
                raise self.reject("Messages array is required")
            user_id = payload.get("userId") or payload.get("sessionId") or f"anon_{uuid.uuid4().hex[:12]}"
            return IncomingMessage(
                channel=Channel.WEB,
                user_id=str(user_id),
                text="",
                requested_language=language,
                transcript=transcript,
                metadata=meta,
            )

        try:
            user_id = require_text(payload, "userId", "sessionId")
            text = require_text(payload, "message")
        except ValueError as e:
            raise self.reject(str(e)) from None
        return IncomingMessage(
            channel=Channel.WEB,
            user_id=user_id,
            text=text,
            requested_language=language,
            metadata=meta,
        )

    async def handle(
        self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None
    ) -> dict[str, Any]:
        incoming = self.parse(payload, metadata)
        response = await self.orchestrator.handle(incoming)
        return response.to_dict()

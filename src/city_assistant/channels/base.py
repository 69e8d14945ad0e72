"""Abstract channel adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from city_assistant.ai.orchestrator import ConversationOrchestrator
from city_assistant.channels.models import MalformedRequestError
from city_assistant.config import ChannelsConfig
from city_assistant.core.types import Channel, Language
from city_assistant.log import get_logger

logger = get_logger(__name__)

__all__ = ["ChannelAdapter", "MalformedRequestError", "parse_language", "require_text"]


class ChannelAdapter(ABC):
    """Base class for all channel adapters.

    An adapter validates the transport's payload, calls the orchestrator,
    and renders the channel-neutral response for its transport.
    """

    def __init__(self, orchestrator: ConversationOrchestrator, config: ChannelsConfig | None = None):
        self.orchestrator = orchestrator
        self.config = config or ChannelsConfig()

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Return channel identifier string."""
        ...

    @abstractmethod
    async def handle(self, payload: Mapping[str, Any], metadata: Optional[Mapping[str, str]] = None) -> Any:
        """Process one inbound payload and return the rendered reply."""
        ...

    def reject(self, reason: str) -> MalformedRequestError:
        logger.warning("request_rejected", channel=self.channel_name, reason=reason)
        return MalformedRequestError(reason)


def require_text(payload: Mapping[str, Any], *keys: str) -> str:
    """Return the first non-blank string value among *keys*, or raise."""
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    raise MalformedRequestError(f"'{keys[0]}' is required")


def parse_language(value: Any) -> Optional[Language]:
    if value in (None, ""):
        return None
    try:
        return Language(str(value).lower())
    except ValueError:
        raise MalformedRequestError(f"Unsupported language: {value}") from None


def parse_channel(value: Any) -> Channel:
    try:
        return Channel(str(value).lower())
    except ValueError:
        raise MalformedRequestError(f"Unsupported channel: {value}") from None

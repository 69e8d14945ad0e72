"""Conversation orchestrator: session -> language/sentiment -> knowledge -> LLM -> reply."""

from __future__ import annotations

import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Optional

from city_assistant.ai.client import AIConfigurationError, LLMClient
from city_assistant.ai.prompts import (
    build_context,
    build_system_prompt,
    configuration_error_reply,
    fallback_reply,
)
from city_assistant.config import CityProfile, LLMConfig
from city_assistant.core.session import Clock, SessionStore
from city_assistant.core.types import Channel, Language, Role
from city_assistant.channels.models import (
    CONFIGURATION_ERROR,
    ChannelResponse,
    IncomingMessage,
    MalformedRequestError,
    Source,
)
from city_assistant.knowledge.index import KnowledgeIndex
from city_assistant.knowledge.models import ScoredDocument
from city_assistant.log import get_logger
from city_assistant.nlp.language import LanguageDetector
from city_assistant.nlp.sentiment import SentimentClassifier, SentimentInfo
from city_assistant.storage.conversation_log import ConversationLogRepository
from city_assistant.storage.models import ConversationLogEntry, new_session_id, utcnow

logger = get_logger(__name__)


class ConversationOrchestrator:
    """Handles the full flow for one inbound message on any channel.

    Steps run strictly in order: fetch history, record the user message,
    settle the language, score sentiment, retrieve knowledge, build the
    prompt, call the LLM, record the reply, decide escalation, and hand the
    audit entry to a background writer.
    """

    def __init__(
        self,
        sessions: SessionStore,
        index: KnowledgeIndex,
        llm_client: LLMClient | None,
        log_repo: ConversationLogRepository | None = None,
        llm_config: LLMConfig | None = None,
        city: CityProfile | None = None,
        language_detector: LanguageDetector | None = None,
        sentiment_classifier: SentimentClassifier | None = None,
        context_limit: int = 5,
        clock: Clock = utcnow,
    ):
        self._sessions = sessions
        self._index = index
        self._llm = llm_client
        self._log_repo = log_repo
        self._llm_config = llm_config or LLMConfig()
        self._city = city or CityProfile()
        self._detector = language_detector or LanguageDetector()
        self._classifier = sentiment_classifier or SentimentClassifier()
        self._context_limit = context_limit
        self._clock = clock
        self._pending_logs: set[asyncio.Task[None]] = set()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def index(self) -> KnowledgeIndex:
        return self._index

    async def handle(self, incoming: IncomingMessage) -> ChannelResponse:
        """Dispatch an adapter's message to the transcript or session flow."""
        if incoming.transcript is not None:
            return await self.process_transcript(
                incoming.channel,
                incoming.user_id,
                incoming.transcript,
                incoming.requested_language,
                incoming.metadata,
            )
        return await self.process_message(
            incoming.channel,
            incoming.user_id,
            incoming.text,
            incoming.requested_language,
            incoming.metadata,
        )

    async def process_message(
        self,
        channel: Channel,
        user_id: str,
        message: str,
        requested_language: Optional[Language] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> ChannelResponse:
        """Answer one message using the server-side session as history."""
        _validate(user_id, message)
        started = self._clock()

        session_id, history = await self._load_history(channel, user_id)
        await self._append(channel, user_id, Role.USER, message)

        return await self._respond(
            channel=channel,
            user_id=user_id,
            session_id=session_id,
            message=message,
            history=history,
            requested_language=requested_language,
            metadata=metadata or {},
            started=started,
        )

    async def process_transcript(
        self,
        channel: Channel,
        user_id: str,
        transcript: list[dict[str, str]],
        requested_language: Optional[Language] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> ChannelResponse:
        """Answer the last user turn of a client-supplied transcript.

        The transcript is the history for this call only. The server session
        still records the new user message and the reply, but is never
        overwritten with the transcript.
        """
        turns = _clean_transcript(transcript)
        last_user = max((i for i, t in enumerate(turns) if t["role"] == Role.USER), default=None)
        if last_user is None:
            raise MalformedRequestError("No user message found")
        message = turns[last_user]["content"]
        _validate(user_id, message)
        started = self._clock()

        session_id, _ = await self._load_history(channel, user_id)
        await self._append(channel, user_id, Role.USER, message)

        return await self._respond(
            channel=channel,
            user_id=user_id,
            session_id=session_id,
            message=message,
            history=turns[:last_user],
            requested_language=requested_language,
            metadata=metadata or {},
            started=started,
        )

    async def _respond(
        self,
        channel: Channel,
        user_id: str,
        session_id: str,
        message: str,
        history: list[dict[str, str]],
        requested_language: Optional[Language],
        metadata: dict[str, str],
        started: datetime,
    ) -> ChannelResponse:
        language = requested_language or self._detector.detect(message)
        try:
            await self._sessions.set_language(channel, user_id, language)
        except Exception as e:
            logger.error("session_store_failed", op="set_language", channel=channel.value, error=str(e))

        sentiment = self._classifier.analyze(message)
        results = self._retrieve(message)

        context = build_context(results)
        system_prompt = build_system_prompt(language, context, sentiment, self._city)
        messages = [*history, {"role": Role.USER.value, "content": message}]

        reply, error = await self._complete(channel, language, system_prompt, messages)

        await self._append(channel, user_id, Role.ASSISTANT, reply)

        escalate = sentiment.escalates
        sources = [
            Source(title=item.document.title, url=item.document.url, section=item.document.section)
            for item in results
        ]
        entry = self._build_log_entry(
            channel, user_id, session_id, messages, reply, sources, language, sentiment, escalate, metadata, started
        )
        self._schedule_log(entry)

        logger.info(
            "conversation_turn",
            channel=channel.value,
            session_id=session_id,
            language=language.value,
            sentiment=sentiment.category.value,
            sources=len(sources),
            escalate=escalate,
            error=error,
        )
        return ChannelResponse(
            message=reply,
            language=language,
            sentiment=sentiment.category,
            sources=sources,
            escalate=escalate,
            conversation_id=entry.id,
            session_id=session_id,
            sentiment_score=sentiment.score,
            error=error,
        )

    async def _load_history(self, channel: Channel, user_id: str) -> tuple[str, list[dict[str, str]]]:
        try:
            session = await self._sessions.get_or_create(channel, user_id)
        except Exception as e:
            logger.error("session_store_failed", op="get_or_create", channel=channel.value, error=str(e))
            return new_session_id(channel), []
        return session.session_id, session.history()

    async def _append(self, channel: Channel, user_id: str, role: Role, content: str) -> None:
        try:
            await self._sessions.append_message(channel, user_id, role, content)
        except Exception as e:
            logger.error(
                "session_store_failed", op="append_message", channel=channel.value, role=role.value, error=str(e)
            )

    def _retrieve(self, query: str) -> list[ScoredDocument]:
        try:
            return self._index.search(query, limit=self._context_limit)
        except Exception as e:
            logger.error("knowledge_query_failed", error=str(e))
            return []

    async def _complete(
        self,
        channel: Channel,
        language: Language,
        system_prompt: str,
        messages: list[dict[str, str]],
    ) -> tuple[str, Optional[str]]:
        """Return (reply text, error code). Never raises."""
        if self._llm is None:
            logger.error("llm_not_configured", channel=channel.value)
            return configuration_error_reply(language), CONFIGURATION_ERROR

        cfg = self._llm_config
        try:
            response = await asyncio.wait_for(
                self._llm.chat(
                    system=system_prompt,
                    messages=messages,
                    max_tokens=cfg.max_tokens_for(channel),
                    temperature=cfg.temperature,
                ),
                timeout=cfg.timeout,
            )
        except AIConfigurationError as e:
            logger.error("llm_configuration_error", channel=channel.value, error=str(e))
            return configuration_error_reply(language), CONFIGURATION_ERROR
        except asyncio.TimeoutError:
            logger.error("llm_timeout", channel=channel.value, timeout=cfg.timeout)
            return fallback_reply(language), None
        except Exception as e:
            logger.error("llm_failed", channel=channel.value, error=str(e))
            return fallback_reply(language), None

        text = (response.text or "").strip()
        if not text:
            logger.warning("llm_empty_completion", channel=channel.value, model=response.model)
            return fallback_reply(language), None
        return text, None

    def _build_log_entry(
        self,
        channel: Channel,
        user_id: str,
        session_id: str,
        messages: list[dict[str, str]],
        reply: str,
        sources: list[Source],
        language: Language,
        sentiment: SentimentInfo,
        escalate: bool,
        metadata: dict[str, str],
        started: datetime,
    ) -> ConversationLogEntry:
        finished = self._clock()
        records: list[dict[str, Any]] = [
            {"role": m["role"], "content": m["content"], "timestamp": started.isoformat()} for m in messages
        ]
        records.append(
            {
                "role": Role.ASSISTANT.value,
                "content": reply,
                "timestamp": finished.isoformat(),
                "sources": [{"title": s.title, "url": s.url} for s in sources],
            }
        )
        return ConversationLogEntry(
            session_id=session_id,
            channel=channel,
            user_id=user_id,
            start_time=started,
            end_time=finished,
            messages=records,
            language=language,
            sentiment=sentiment.category.value,
            sentiment_score=sentiment.score,
            escalated=escalate,
            user_agent=metadata.get("user_agent", "unknown"),
            referrer=metadata.get("referrer", "unknown"),
        )

    def _schedule_log(self, entry: ConversationLogEntry) -> None:
        if self._log_repo is None:
            return
        task = asyncio.create_task(self._log_repo.append(entry))
        self._pending_logs.add(task)
        task.add_done_callback(partial(self._on_log_done, entry.id))

    def _on_log_done(self, conversation_id: str, task: asyncio.Task[None]) -> None:
        self._pending_logs.discard(task)
        if task.cancelled():
            logger.warning("conversation_log_cancelled", conversation_id=conversation_id)
            return
        error = task.exception()
        if error is not None:
            logger.error("conversation_log_failed", conversation_id=conversation_id, error=str(error))

    async def drain(self) -> None:
        """Wait for background log writes still in flight."""
        if self._pending_logs:
            await asyncio.gather(*list(self._pending_logs), return_exceptions=True)


def _validate(user_id: str, message: str) -> None:
    if not user_id or not user_id.strip():
        raise MalformedRequestError("User id is required")
    if not message or not message.strip():
        raise MalformedRequestError("Message is required")


def _clean_transcript(transcript: list[dict[str, str]]) -> list[dict[str, str]]:
    if not isinstance(transcript, list) or not transcript:
        raise MalformedRequestError("Messages array is required")
    turns: list[dict[str, str]] = []
    for item in transcript:
        if not isinstance(item, dict):
            raise MalformedRequestError("Each message must be an object")
        role = item.get("role")
        content = item.get("content")
        if role not in (Role.USER.value, Role.ASSISTANT.value):
            # system turns from the client are not trusted
            continue
        if not isinstance(content, str):
            raise MalformedRequestError("Message content must be a string")
        turns.append({"role": role, "content": content})
    return turns

"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

import asyncio

from city_assistant.ai.client import FallbackClient, LLMClient, create_llm_client
from city_assistant.ai.orchestrator import ConversationOrchestrator
from city_assistant.channels.ivr import IVRChannelAdapter
from city_assistant.channels.sms import SMSChannelAdapter
from city_assistant.channels.social import SocialChannelAdapter
from city_assistant.channels.web import WebChannelAdapter
from city_assistant.config import AppConfig
from city_assistant.core.session import Clock, SessionStore
from city_assistant.core.types import Channel
from city_assistant.knowledge.index import KnowledgeIndex
from city_assistant.knowledge.loader import load_snapshot
from city_assistant.log import get_logger
from city_assistant.services.knowledge_refresh import KnowledgeRefreshService
from city_assistant.services.service_manager import ServiceManager
from city_assistant.storage.conversation_log import ConversationLogRepository
from city_assistant.storage.database import Database
from city_assistant.storage.models import utcnow
from city_assistant.storage.session_repo import SessionRepository

logger = get_logger(__name__)


class CityAssistantApp:
    """Top-level application orchestrator.

    Owns one knowledge index, one database and one conversation orchestrator;
    nothing is process-global, so several instances can coexist in tests.
    """

    def __init__(self, config: AppConfig, llm_client: LLMClient | None = None, clock: Clock = utcnow):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.session_repo = SessionRepository(self.db)
        self.log_repo = ConversationLogRepository(self.db)
        self.index = KnowledgeIndex()
        self.sessions = SessionStore(
            self.session_repo,
            timeouts={channel: config.sessions.timeout_for(channel) for channel in Channel},
            clock=clock,
        )
        self.llm_client = llm_client or self._create_llm_client()
        self.orchestrator = ConversationOrchestrator(
            sessions=self.sessions,
            index=self.index,
            llm_client=self.llm_client,
            log_repo=self.log_repo,
            llm_config=config.llm,
            city=config.city,
            context_limit=config.knowledge.context_limit,
            clock=clock,
        )

        self.web = WebChannelAdapter(self.orchestrator, config.channels)
        self.ivr = IVRChannelAdapter(self.orchestrator, config.channels, config.city)
        self.sms = SMSChannelAdapter(self.orchestrator, config.channels)
        self.social = SocialChannelAdapter(self.orchestrator, config.channels)

        self.knowledge_refresh = KnowledgeRefreshService(config.knowledge, self.index)
        self.service_manager = ServiceManager([self.knowledge_refresh])

    async def start(self) -> None:
        """Initialize and start all components."""
        # 1. Database
        await self.db.initialize()

        # 2. Knowledge snapshot
        knowledge = self.config.knowledge
        snapshot = await asyncio.to_thread(
            load_snapshot, knowledge.snapshot_path, knowledge.max_content_length, knowledge.summary_length
        )
        self.index.load_snapshot(snapshot)

        # 3. Background services
        await self.service_manager.start_all()

        logger.info(
            "city_assistant_started",
            documents=len(self.index),
            llm_backend=self.config.llm.backend,
            llm_fallback=self.config.llm.fallback_backend,
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        await self.orchestrator.drain()
        await self.service_manager.stop_all()
        await self.db.close()
        logger.info("city_assistant_stopped")

    async def reload_knowledge(self):
        knowledge = self.config.knowledge
        return await self.index.reload_from(
            knowledge.snapshot_path, knowledge.max_content_length, knowledge.summary_length
        )

    def _create_llm_client(self) -> LLMClient:
        """Create the LLM client; credentials are checked per request, not here."""
        llm = self.config.llm
        primary = create_llm_client(llm.backend, llm.model, self.config.anthropic, self.config.openai)
        if not llm.fallback_backend:
            return primary
        secondary = create_llm_client(
            llm.fallback_backend, llm.fallback_model, self.config.anthropic, self.config.openai
        )
        return FallbackClient(primary, secondary)

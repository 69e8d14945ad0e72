from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from city_assistant.ai.client import AIResponse, LLMClient
from city_assistant.ai.orchestrator import ConversationOrchestrator
from city_assistant.config import AppConfig, LLMConfig
from city_assistant.core.session import SessionStore
from city_assistant.knowledge.index import KnowledgeIndex
from city_assistant.knowledge.models import Document
from city_assistant.storage.conversation_log import ConversationLogRepository
from city_assistant.storage.database import Database
from city_assistant.storage.session_repo import SessionRepository


@pytest.fixture(autouse=True)
def _reset_structlog(monkeypatch):
    """Undo process-wide logging configuration (e.g. from CLI tests) so later
    tests don't write to a captured stream that pytest has already closed.
    Logger caching is disabled so module-level loggers never pin that stream."""
    configure = structlog.configure

    def configure_uncached(*args, **kwargs):
        kwargs["cache_logger_on_first_use"] = False
        configure(*args, **kwargs)

    monkeypatch.setattr(structlog, "configure", configure_uncached)
    yield
    structlog.reset_defaults()


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class ScriptedLLM(LLMClient):
    """Records every call and answers "Answer 1", "Answer 2", ... unless told otherwise."""

    def __init__(self, replies: list[str] | None = None, error: Exception | None = None, delay: float = 0):
        self.replies = list(replies or [])
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    @property
    def model_name(self) -> str:
        return "scripted"

    async def chat(self, system, messages, model="", max_tokens=1000, temperature=0.7) -> AIResponse:
        self.calls.append(
            {
                "system": system,
                "messages": [dict(m) for m in messages],
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.replies:
            return AIResponse(text=self.replies.pop(0), model="scripted")
        return AIResponse(text=f"Answer {len(self.calls)}", model="scripted")


SAMPLE_PAGES = [
    {
        "id": "city-hall-hours",
        "title": "City Hall Hours and Location",
        "section": "Government",
        "url": "/government/city-hall-hours.html",
        "content": (
            "City Hall is open Monday through Friday from 8:00 AM to 5:00 PM. City Hall is located at "
            "8401 NW 53rd Terrace, Doral, FL 33166. Call (305) 593-6725 for general questions."
        ),
        "summary": "City Hall is open Monday through Friday from 8:00 AM to 5:00 PM.",
    },
    {
        "id": "building-permits",
        "title": "Building Permits",
        "section": "Building",
        "url": "/building/permits.html",
        "content": (
            "Apply for a building permit online through the permitting portal. Residential and commercial "
            "permit applications require plans, a contractor license and payment of permit fees."
        ),
        "summary": "Apply for a building permit online through the permitting portal.",
    },
    {
        "id": "parks-directory",
        "title": "Parks",
        "section": "Parks & Recreation",
        "url": "/parks/index.html",
        "content": (
            "Doral Central Park, Morgan Levy Park and Doral Legacy Park offer playgrounds, sports fields "
            "and walking trails. Park hours are sunrise to sunset."
        ),
        "summary": "Doral Central Park, Morgan Levy Park and Doral Legacy Park offer playgrounds.",
    },
    {
        "id": "upcoming-events",
        "title": "Upcoming Events",
        "section": "Events",
        "url": "/events/index.html",
        "content": (
            "Join us for the Doral Family Day festival, the holiday tree lighting and monthly concerts "
            "in the park. Events are free and open to the public."
        ),
        "summary": "Join us for the Doral Family Day festival.",
    },
]


@pytest.fixture
def sample_documents() -> list[Document]:
    return [Document(**page) for page in SAMPLE_PAGES]


@pytest.fixture
def snapshot_file(tmp_path):
    path = tmp_path / "knowledge-base.json"
    path.write_text(
        json.dumps({"pages": SAMPLE_PAGES, "generatedAt": "2026-01-01T07:00:00.000Z"}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def index(sample_documents) -> KnowledgeIndex:
    return KnowledgeIndex(sample_documents, generated_at="2026-01-01T07:00:00.000Z")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def session_store(db, clock) -> SessionStore:
    return SessionStore(SessionRepository(db), clock=clock)


@pytest.fixture
def log_repo(db) -> ConversationLogRepository:
    return ConversationLogRepository(db)


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def orchestrator(session_store, index, llm, log_repo, clock) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        sessions=session_store,
        index=index,
        llm_client=llm,
        log_repo=log_repo,
        llm_config=LLMConfig(timeout=5),
        clock=clock,
    )


@pytest.fixture
def app_config(tmp_path, snapshot_file) -> AppConfig:
    config = AppConfig.default()
    config.storage.db_path = str(tmp_path / "app.db")
    config.knowledge.snapshot_path = str(snapshot_file)
    return config

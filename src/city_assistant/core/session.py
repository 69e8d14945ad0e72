"""Session store mapping (channel, user_id) to a live conversation session."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Mapping
from weakref import WeakValueDictionary

from city_assistant.core.types import DEFAULT_SESSION_TIMEOUTS, Channel, Language, Role
from city_assistant.log import get_logger
from city_assistant.storage.models import ChannelSession, SessionMessage, new_session_id, utcnow
from city_assistant.storage.session_repo import SessionRepository

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class SessionStore:
    """Keeps at most one live session per (channel, user_id).

    A session whose last activity is at least the channel timeout in the past
    is replaced by a fresh one on next access. Every operation on a key runs
    under that key's lock so concurrent read-modify-write cycles on the same
    conversation cannot lose messages; different keys never block each other.
    """

    def __init__(
        self,
        repo: SessionRepository,
        timeouts: Mapping[Channel, timedelta] | None = None,
        clock: Clock = utcnow,
    ):
        self._repo = repo
        self._timeouts = {
            channel: timedelta(seconds=seconds) for channel, seconds in DEFAULT_SESSION_TIMEOUTS.items()
        }
        if timeouts:
            self._timeouts.update(timeouts)
        self._clock = clock
        self._locks: WeakValueDictionary[tuple[Channel, str], asyncio.Lock] = WeakValueDictionary()

    @property
    def repo(self) -> SessionRepository:
        return self._repo

    def timeout_for(self, channel: Channel) -> timedelta:
        return self._timeouts[channel]

    def is_expired(self, session: ChannelSession, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return now - session.last_activity >= self._timeouts[session.channel]

    def _lock(self, channel: Channel, user_id: str) -> asyncio.Lock:
        key = (channel, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _get_or_create_locked(
        self, channel: Channel, user_id: str, default_language: Language
    ) -> ChannelSession:
        now = self._clock()
        existing = await self._repo.get(channel, user_id)

        if existing is not None and not self.is_expired(existing, now):
            existing.last_activity = now
            await self._repo.touch(existing.session_id, now)
            return existing

        if existing is not None:
            logger.info(
                "session_expired",
                channel=channel.value,
                user_id=user_id,
                session_id=existing.session_id,
                idle_seconds=int((now - existing.last_activity).total_seconds()),
            )

        session = ChannelSession(
            session_id=new_session_id(channel),
            channel=channel,
            user_id=user_id,
            start_time=now,
            last_activity=now,
            language=default_language,
        )
        await self._repo.replace(session)
        logger.info("session_created", channel=channel.value, user_id=user_id, session_id=session.session_id)
        return session

    async def get_or_create(
        self, channel: Channel, user_id: str, default_language: Language = Language.ENGLISH
    ) -> ChannelSession:
        """Return the live session for the key, creating a new one if absent or expired.

        Fetching a live session counts as activity.
        """
        async with self._lock(channel, user_id):
            return await self._get_or_create_locked(channel, user_id, default_language)

    async def append_message(self, channel: Channel, user_id: str, role: Role, content: str) -> None:
        async with self._lock(channel, user_id):
            session = await self._get_or_create_locked(channel, user_id, Language.ENGLISH)
            message = SessionMessage(role=role, content=content, timestamp=self._clock())
            await self._repo.add_message(session.session_id, message)

    async def set_language(self, channel: Channel, user_id: str, language: Language) -> None:
        async with self._lock(channel, user_id):
            existing = await self._repo.get(channel, user_id)
            if existing is None or self.is_expired(existing):
                await self._get_or_create_locked(channel, user_id, language)
                return
            if existing.language != language:
                await self._repo.set_language(existing.session_id, language)

    async def clear(self, channel: Channel, user_id: str) -> None:
        async with self._lock(channel, user_id):
            deleted = await self._repo.delete(channel, user_id)
        if deleted:
            logger.info("session_cleared", channel=channel.value, user_id=user_id)

    async def history(self, channel: Channel, user_id: str) -> list[dict[str, str]]:
        """Role/content pairs of the current session, oldest first."""
        session = await self.get_or_create(channel, user_id)
        return session.history()

"""Persistence for per-channel conversation sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from city_assistant.core.types import Channel, Language, Role
from city_assistant.storage.database import Database
from city_assistant.storage.models import ChannelSession, SessionMessage


class SessionRepository:
    """CRUD over the channel_sessions and session_messages tables.

    Callers are responsible for serializing operations on the same
    (channel, user_id) key; see SessionStore.
    """

    def __init__(self, db: Database):
        self._db = db

    async def get(self, channel: Channel, user_id: str) -> Optional[ChannelSession]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM channel_sessions WHERE channel = ? AND user_id = ?",
            (channel.value, user_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        cursor = await self._db.conn.execute(
            "SELECT role, content, created_at FROM session_messages WHERE session_id = ? ORDER BY id ASC",
            (row["session_id"],),
        )
        messages = [
            SessionMessage(
                role=Role(m["role"]),
                content=m["content"],
                timestamp=datetime.fromisoformat(m["created_at"]),
            )
            for m in await cursor.fetchall()
        ]
        return ChannelSession(
            session_id=row["session_id"],
            channel=Channel(row["channel"]),
            user_id=row["user_id"],
            start_time=datetime.fromisoformat(row["start_time"]),
            last_activity=datetime.fromisoformat(row["last_activity"]),
            language=Language(row["language"]),
            messages=messages,
        )

    async def replace(self, session: ChannelSession) -> None:
        """Store *session* as the only session for its key, dropping the old one's messages."""
        async with self._db.transaction() as conn:
            await conn.execute(
                """DELETE FROM session_messages WHERE session_id IN
                   (SELECT session_id FROM channel_sessions WHERE channel = ? AND user_id = ?)""",
                (session.channel.value, session.user_id),
            )
            await conn.execute(
                "DELETE FROM channel_sessions WHERE channel = ? AND user_id = ?",
                (session.channel.value, session.user_id),
            )
            await conn.execute(
                """INSERT INTO channel_sessions
                   (channel, user_id, session_id, language, start_time, last_activity)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    session.channel.value,
                    session.user_id,
                    session.session_id,
                    session.language.value,
                    session.start_time.isoformat(),
                    session.last_activity.isoformat(),
                ),
            )
            for message in session.messages:
                await conn.execute(
                    "INSERT INTO session_messages (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                    (session.session_id, message.role.value, message.content, message.timestamp.isoformat()),
                )

    async def touch(self, session_id: str, last_activity: datetime) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "UPDATE channel_sessions SET last_activity = ? WHERE session_id = ?",
                (last_activity.isoformat(), session_id),
            )

    async def add_message(self, session_id: str, message: SessionMessage) -> None:
        """Append one message and bump the session's last activity to its timestamp."""
        async with self._db.transaction() as conn:
            await conn.execute(
                "INSERT INTO session_messages (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (session_id, message.role.value, message.content, message.timestamp.isoformat()),
            )
            await conn.execute(
                "UPDATE channel_sessions SET last_activity = ? WHERE session_id = ?",
                (message.timestamp.isoformat(), session_id),
            )

    async def set_language(self, session_id: str, language: Language) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "UPDATE channel_sessions SET language = ? WHERE session_id = ?",
                (language.value, session_id),
            )

    async def delete(self, channel: Channel, user_id: str) -> bool:
        """Delete the session for a key. Returns True if one existed."""
        async with self._db.transaction() as conn:
            await conn.execute(
                """DELETE FROM session_messages WHERE session_id IN
                   (SELECT session_id FROM channel_sessions WHERE channel = ? AND user_id = ?)""",
                (channel.value, user_id),
            )
            cursor = await conn.execute(
                "DELETE FROM channel_sessions WHERE channel = ? AND user_id = ?",
                (channel.value, user_id),
            )
            return cursor.rowcount > 0

    async def count(self) -> int:
        cursor = await self._db.conn.execute("SELECT COUNT(*) FROM channel_sessions")
        row = await cursor.fetchone()
        return row[0]

"""Append-only audit log of completed conversation turns."""

from __future__ import annotations

import json
from datetime import datetime

from city_assistant.core.types import Channel, Language
from city_assistant.storage.database import Database
from city_assistant.storage.models import ConversationLogEntry


class ConversationLogRepository:
    """Insert-only store for ConversationLogEntry records."""

    def __init__(self, db: Database):
        self._db = db

    async def append(self, entry: ConversationLogEntry) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                """INSERT INTO conversation_log
                   (id, session_id, channel, user_id, start_time, end_time, messages_json,
                    language, sentiment, sentiment_score, escalated, feedback_given,
                    user_agent, referrer)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.id,
                    entry.session_id,
                    entry.channel.value,
                    entry.user_id,
                    entry.start_time.isoformat(),
                    entry.end_time.isoformat(),
                    json.dumps(entry.messages, ensure_ascii=False),
                    entry.language.value,
                    entry.sentiment,
                    entry.sentiment_score,
                    int(entry.escalated),
                    int(entry.feedback_given),
                    entry.user_agent,
                    entry.referrer,
                ),
            )

    async def recent(self, limit: int = 50) -> list[ConversationLogEntry]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversation_log ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_entry(row) for row in await cursor.fetchall()]

    async def for_session(self, session_id: str) -> list[ConversationLogEntry]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversation_log WHERE session_id = ? ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        )
        return [self._row_to_entry(row) for row in await cursor.fetchall()]

    async def get(self, entry_id: str) -> ConversationLogEntry | None:
        cursor = await self._db.conn.execute("SELECT * FROM conversation_log WHERE id = ?", (entry_id,))
        row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    @staticmethod
    def _row_to_entry(row) -> ConversationLogEntry:
        return ConversationLogEntry(
            id=row["id"],
            session_id=row["session_id"],
            channel=Channel(row["channel"]),
            user_id=row["user_id"],
            start_time=datetime.fromisoformat(row["start_time"]),
            end_time=datetime.fromisoformat(row["end_time"]),
            messages=json.loads(row["messages_json"]),
            language=Language(row["language"]),
            sentiment=row["sentiment"],
            sentiment_score=row["sentiment_score"],
            escalated=bool(row["escalated"]),
            feedback_given=bool(row["feedback_given"]),
            user_agent=row["user_agent"],
            referrer=row["referrer"],
        )

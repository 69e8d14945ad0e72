"""Reads the scraped knowledge-base snapshot from disk."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from city_assistant.knowledge.models import Document, KnowledgeSnapshot
from city_assistant.log import get_logger

logger = get_logger(__name__)


def _truncate(content: str, max_length: int) -> str:
    if len(content) > max_length:
        return content[:max_length] + "..."
    return content


def _summarize(content: str, length: int) -> str:
    summary = content[:length].strip()
    if len(content) > length:
        summary += "..."
    return summary


def parse_page(page: dict[str, Any], max_content_length: int = 5000, summary_length: int = 200) -> Document | None:
    """Build a Document from one snapshot page. Returns None for unusable pages."""
    doc_id = str(page.get("id") or "").strip()
    title = str(page.get("title") or "").strip()
    content = str(page.get("content") or "")
    if not doc_id or not title or not content.strip():
        return None

    content = _truncate(content, max_content_length)
    summary = page.get("summary") or _summarize(content, summary_length)
    return Document(
        id=doc_id,
        title=title,
        section=str(page.get("section") or "General"),
        url=str(page.get("url") or ""),
        content=content,
        summary=str(summary),
    )


def parse_snapshot(
    data: dict[str, Any], max_content_length: int = 5000, summary_length: int = 200
) -> KnowledgeSnapshot:
    documents: list[Document] = []
    seen: set[str] = set()
    for page in data.get("pages") or []:
        if not isinstance(page, dict):
            continue
        document = parse_page(page, max_content_length, summary_length)
        if document is None:
            continue
        if document.id in seen:
            logger.warning("knowledge_duplicate_id", id=document.id)
            continue
        seen.add(document.id)
        documents.append(document)
    return KnowledgeSnapshot(documents=tuple(documents), generated_at=data.get("generatedAt"))


def load_snapshot(
    path: str | Path,
    max_content_length: int = 5000,
    summary_length: int = 200,
    strict: bool = False,
) -> KnowledgeSnapshot:
    """Load a snapshot file.

    A missing or unreadable file yields an empty snapshot, or raises when
    *strict* is set so a refresh can keep the collection already loaded.
    """
    snapshot_file = Path(path)
    if not snapshot_file.exists():
        if strict:
            raise FileNotFoundError(f"Knowledge snapshot not found: {snapshot_file}")
        logger.warning("knowledge_snapshot_missing", path=str(snapshot_file))
        return KnowledgeSnapshot()
    try:
        data = json.loads(snapshot_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        if strict:
            raise ValueError(f"Knowledge snapshot unreadable: {snapshot_file}: {e}") from e
        logger.error("knowledge_snapshot_unreadable", path=str(snapshot_file), error=str(e))
        return KnowledgeSnapshot()
    if not isinstance(data, dict):
        if strict:
            raise ValueError(f"Knowledge snapshot is not an object: {snapshot_file}")
        logger.error("knowledge_snapshot_invalid", path=str(snapshot_file))
        return KnowledgeSnapshot()

    snapshot = parse_snapshot(data, max_content_length, summary_length)
    logger.info("knowledge_snapshot_read", path=str(snapshot_file), documents=len(snapshot.documents))
    return snapshot

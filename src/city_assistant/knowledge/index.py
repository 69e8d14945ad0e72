"""In-memory lexical search over scraped city documents."""

from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path
from typing import Iterable, Optional

from city_assistant.knowledge.loader import load_snapshot
from city_assistant.knowledge.models import (
    Document,
    IndexStats,
    KnowledgeQuery,
    KnowledgeSnapshot,
    ScoredDocument,
    SearchResult,
)
from city_assistant.log import get_logger

logger = get_logger(__name__)

TITLE_PHRASE_WEIGHT = 100
TITLE_WORD_WEIGHT = 20
CONTENT_WORD_WEIGHT = 2
CONTENT_WORD_CAP = 10
CONTENT_PHRASE_WEIGHT = 30
MIN_WORD_LENGTH = 3

DEFAULT_CONTEXT_LIMIT = 5
DEFAULT_BROWSE_LIMIT = 10


def tokenize(query: str) -> list[str]:
    """Split a lowercased query on whitespace, keeping words longer than two chars."""
    return [word for word in query.lower().split() if len(word) >= MIN_WORD_LENGTH]


def score_document(document: Document, query: str) -> int:
    """Score one document against a query.

    Title phrase +100, title word +20 each, content word +2 per occurrence
    (capped at 10 occurrences per word), content phrase +30.
    """
    lower_query = query.lower()
    words = tokenize(query)
    lower_title = document.title.lower()
    lower_content = document.content.lower()

    score = 0
    if lower_query in lower_title:
        score += TITLE_PHRASE_WEIGHT
    for word in words:
        if word in lower_title:
            score += TITLE_WORD_WEIGHT

    for word in words:
        matches = lower_content.count(word)
        score += min(matches, CONTENT_WORD_CAP) * CONTENT_WORD_WEIGHT

    if lower_query in lower_content:
        score += CONTENT_PHRASE_WEIGHT
    return score


class _Collection:
    """Immutable view of one loaded document set."""

    __slots__ = ("documents", "generated_at", "by_section", "sections")

    def __init__(self, documents: tuple[Document, ...], generated_at: Optional[str]):
        self.documents = documents
        self.generated_at = generated_at
        self.by_section = dict(sorted(Counter(doc.section for doc in documents).items()))
        self.sections = list(self.by_section)


class KnowledgeIndex:
    """Read-mostly document collection with scored lexical search.

    The collection is swapped by a single reference assignment, so a search
    running during ``reload`` sees either the old or the new set, never a mix.
    """

    def __init__(self, documents: Iterable[Document] = (), generated_at: Optional[str] = None):
        self._collection = _Collection(tuple(documents), generated_at)

    def load(self, documents: Iterable[Document], generated_at: Optional[str] = None) -> None:
        """Replace the whole collection."""
        collection = _Collection(tuple(documents), generated_at)
        self._collection = collection
        logger.info(
            "knowledge_index_loaded",
            documents=len(collection.documents),
            sections=len(collection.sections),
            generated_at=generated_at,
        )

    def reload(self, documents: Iterable[Document], generated_at: Optional[str] = None) -> None:
        self.load(documents, generated_at)

    def load_snapshot(self, snapshot: KnowledgeSnapshot) -> None:
        self.load(snapshot.documents, snapshot.generated_at)

    async def reload_from(
        self, path: str | Path, max_content_length: int = 5000, summary_length: int = 200
    ) -> IndexStats:
        """Read a snapshot file off the event loop and swap it in.

        Raises if the file is missing or unreadable; the current collection stays.
        """
        snapshot = await asyncio.to_thread(load_snapshot, path, max_content_length, summary_length, True)
        self.load_snapshot(snapshot)
        return self.stats()

    @property
    def documents(self) -> tuple[Document, ...]:
        return self._collection.documents

    def __len__(self) -> int:
        return len(self._collection.documents)

    def search(
        self, query: str, section: Optional[str] = None, limit: int = DEFAULT_CONTEXT_LIMIT
    ) -> list[ScoredDocument]:
        """Rank documents for a query, best first.

        Zero-score documents are dropped. Equal scores keep ingestion order.
        """
        if not query or not query.strip() or limit <= 0:
            return []
        candidates = self._collection.documents
        if section:
            wanted = section.lower()
            candidates = tuple(doc for doc in candidates if doc.section.lower() == wanted)

        scored = []
        for position, document in enumerate(candidates):
            score = score_document(document, query)
            if score > 0:
                scored.append((score, position, document))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [ScoredDocument(document=doc, score=score) for score, _, doc in scored[:limit]]

    def stats(self) -> IndexStats:
        collection = self._collection
        return IndexStats(
            total_pages=len(collection.documents),
            by_section=dict(collection.by_section),
            sections=list(collection.sections),
            generated_at=collection.generated_at,
        )

    def query(
        self, request: KnowledgeQuery, default_limit: int = DEFAULT_BROWSE_LIMIT, max_limit: int = 50
    ) -> SearchResult | IndexStats:
        """Search when the query has text, otherwise return index-wide stats."""
        if not request.query.strip():
            return self.stats()
        limit = request.limit if request.limit is not None else default_limit
        limit = max(1, min(limit, max_limit))
        results = self.search(request.query, section=request.section, limit=limit)
        return SearchResult(
            query=request.query,
            section=request.section or None,
            results=results,
            include_content=request.include_content,
        )

"""Data models for the knowledge index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional


@dataclass(frozen=True, slots=True)
class Document:
    """A scraped city page."""

    id: str
    title: str
    section: str
    url: str
    content: str
    summary: str


@dataclass(frozen=True, slots=True)
class ScoredDocument:
    document: Document
    score: int


@dataclass(frozen=True, slots=True)
class KnowledgeSnapshot:
    documents: tuple[Document, ...] = ()
    generated_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class KnowledgeQuery:
    query: str = ""
    section: Optional[str] = None
    limit: Optional[int] = None
    include_content: bool = False


@dataclass(frozen=True, slots=True)
class SearchResult:
    query: str
    section: Optional[str]
    results: list[ScoredDocument]
    include_content: bool = False
    kind: Literal["search"] = "search"

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        rows = []
        for item in self.results:
            doc = item.document
            row: dict[str, Any] = {
                "id": doc.id,
                "title": doc.title,
                "section": doc.section,
                "url": doc.url,
                "summary": doc.summary,
                "score": item.score,
            }
            if self.include_content:
                row["content"] = doc.content
            rows.append(row)
        return {"query": self.query, "section": self.section, "count": self.count, "results": rows}


@dataclass(frozen=True, slots=True)
class IndexStats:
    total_pages: int
    by_section: dict[str, int] = field(default_factory=dict)
    sections: list[str] = field(default_factory=list)
    generated_at: Optional[str] = None
    kind: Literal["stats"] = "stats"

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {"totalPages": self.total_pages, "bySection": dict(self.by_section)},
            "sections": list(self.sections),
            "generatedAt": self.generated_at,
        }

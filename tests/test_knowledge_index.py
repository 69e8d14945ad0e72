from __future__ import annotations

import asyncio
import json

import pytest

from city_assistant.knowledge.index import KnowledgeIndex, score_document, tokenize
from city_assistant.knowledge.models import Document, IndexStats, KnowledgeQuery, SearchResult


def make_doc(doc_id: str, title: str, content: str, section: str = "General") -> Document:
    return Document(id=doc_id, title=title, section=section, url=f"/{doc_id}.html", content=content, summary="")


def test_tokenize_drops_short_words():
    assert tokenize("Is the PARK open at 9?") == ["the", "park", "open"]


def test_content_word_contribution_is_capped():
    many = make_doc("many", "Services", "library " * 50)
    few = make_doc("few", "Services", "library " * 10)
    # 10 occurrences * 2, plus the whole-query content bonus
    assert score_document(many, "library") == 20 + 30
    assert score_document(few, "library") == score_document(many, "library")


def test_title_match_dominates_content_matches():
    index = KnowledgeIndex(
        [
            make_doc("services", "City Services", "parks parks parks parks"),
            make_doc("parks", "Parks", "Open daily."),
        ]
    )
    results = index.search("parks")
    assert [r.document.id for r in results] == ["parks", "services"]
    assert results[0].score == 100 + 20


def test_city_hall_query_ranks_city_hall_first(index):
    results = index.search("What are the city hall hours?", limit=3)
    assert results[0].document.id == "city-hall-hours"
    assert len(results) <= 3


def test_results_never_exceed_limit_and_scores_are_non_increasing(index):
    results = index.search("the park", limit=2)
    assert len(results) <= 2
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(score > 0 for score in scores)


def test_zero_score_documents_are_excluded(index):
    assert index.search("zzzzzz") == []


def test_blank_query_and_non_positive_limit_return_nothing(index):
    assert index.search("   ") == []
    assert index.search("parks", limit=0) == []


def test_section_filter_is_case_insensitive(index):
    results = index.search("park", section="parks & recreation")
    assert results
    assert {r.document.section for r in results} == {"Parks & Recreation"}


def test_unknown_section_returns_nothing(index):
    assert index.search("park", section="Nowhere") == []


def test_equal_scores_keep_ingestion_order():
    index = KnowledgeIndex(
        [
            make_doc("b", "Recycling", "pickup schedule"),
            make_doc("a", "Recycling", "pickup schedule"),
        ]
    )
    assert [r.document.id for r in index.search("recycling")] == ["b", "a"]


def test_reload_with_same_documents_is_idempotent(index, sample_documents):
    before = [(r.document.id, r.score) for r in index.search("permit")]
    index.reload(sample_documents, generated_at="2026-01-02T07:00:00.000Z")
    after = [(r.document.id, r.score) for r in index.search("permit")]
    assert before == after
    assert index.stats().generated_at == "2026-01-02T07:00:00.000Z"


def test_reload_replaces_the_whole_collection(index):
    index.reload([make_doc("only", "Only Page", "solo")])
    assert len(index) == 1
    assert index.search("permit") == []


async def test_reload_from_file(tmp_path, index):
    path = tmp_path / "fresh.json"
    path.write_text(
        json.dumps({"pages": [{"id": "x", "title": "Trash Pickup", "content": "Tuesdays"}], "generatedAt": "g"}),
        encoding="utf-8",
    )
    stats = await index.reload_from(path)
    assert stats.total_pages == 1
    assert index.search("trash")[0].document.id == "x"


async def test_failed_reload_keeps_previous_collection(tmp_path, index):
    with pytest.raises(FileNotFoundError):
        await index.reload_from(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        await index.reload_from(bad)
    assert len(index) == 4


async def test_search_during_reload_sees_a_consistent_collection(index, sample_documents):
    replacement = [make_doc(f"n{i}", "Permit Office", "permit") for i in range(3)]

    async def searcher():
        seen = []
        for _ in range(50):
            ids = {r.document.id for r in index.search("permit", limit=10)}
            seen.append(ids)
            await asyncio.sleep(0)
        return seen

    async def reloader():
        for i in range(25):
            index.reload(replacement if i % 2 == 0 else sample_documents)
            await asyncio.sleep(0)

    seen, _ = await asyncio.gather(searcher(), reloader())
    new_ids = {"n0", "n1", "n2"}
    for ids in seen:
        assert ids <= new_ids or not (ids & new_ids)


def test_stats(index):
    stats = index.stats()
    assert stats.total_pages == 4
    assert stats.by_section == {"Building": 1, "Events": 1, "Government": 1, "Parks & Recreation": 1}
    assert stats.sections == sorted(stats.sections)
    assert stats.to_dict() == {
        "stats": {"totalPages": 4, "bySection": stats.by_section},
        "sections": stats.sections,
        "generatedAt": "2026-01-01T07:00:00.000Z",
    }


def test_query_without_text_returns_stats(index):
    assert isinstance(index.query(KnowledgeQuery(query="  ")), IndexStats)


def test_query_with_text_returns_search_result(index):
    result = index.query(KnowledgeQuery(query="permit", limit=500), max_limit=2)
    assert isinstance(result, SearchResult)
    assert result.count <= 2
    data = result.to_dict()
    assert data["query"] == "permit"
    assert data["results"][0]["id"] == "building-permits"
    assert "content" not in data["results"][0]


def test_query_include_content(index):
    result = index.query(KnowledgeQuery(query="permit", include_content=True))
    assert "content" in result.to_dict()["results"][0]

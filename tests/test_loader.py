from __future__ import annotations

import json

import pytest

from city_assistant.knowledge.loader import load_snapshot, parse_page, parse_snapshot


def test_parse_page_defaults_section_and_builds_summary():
    doc = parse_page({"id": "p1", "title": "Pools", "content": "x" * 300})
    assert doc.section == "General"
    assert doc.url == ""
    assert doc.summary == "x" * 200 + "..."


def test_parse_page_truncates_long_content():
    doc = parse_page({"id": "p1", "title": "Pools", "content": "y" * 6000})
    assert doc.content == "y" * 5000 + "..."


def test_parse_page_keeps_given_summary():
    doc = parse_page({"id": "p1", "title": "Pools", "content": "Open daily", "summary": "Pools open"})
    assert doc.summary == "Pools open"


@pytest.mark.parametrize(
    "page",
    [
        {"title": "No id", "content": "text"},
        {"id": "p", "content": "text"},
        {"id": "p", "title": "Empty", "content": "   "},
    ],
)
def test_parse_page_rejects_incomplete_pages(page):
    assert parse_page(page) is None


def test_parse_snapshot_skips_duplicates_and_bad_rows():
    snapshot = parse_snapshot(
        {
            "generatedAt": "2026-01-01T07:00:00.000Z",
            "pages": [
                {"id": "a", "title": "First", "content": "one"},
                "not a page",
                {"id": "a", "title": "Duplicate", "content": "two"},
                {"id": "b", "title": "Second", "content": "three"},
            ],
        }
    )
    assert [d.id for d in snapshot.documents] == ["a", "b"]
    assert snapshot.documents[0].title == "First"
    assert snapshot.generated_at == "2026-01-01T07:00:00.000Z"


def test_load_snapshot_reads_file(snapshot_file):
    snapshot = load_snapshot(snapshot_file)
    assert len(snapshot.documents) == 4


def test_missing_file_gives_empty_snapshot(tmp_path):
    snapshot = load_snapshot(tmp_path / "missing.json")
    assert snapshot.documents == ()
    assert snapshot.generated_at is None


def test_unreadable_file_gives_empty_snapshot(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_snapshot(path).documents == ()


def test_strict_mode_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "missing.json", strict=True)
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(["not", "an", "object"]), encoding="utf-8")
    with pytest.raises(ValueError):
        load_snapshot(path, strict=True)

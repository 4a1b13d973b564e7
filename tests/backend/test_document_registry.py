"""Tests for the JSON-backed document registry."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from backend.app.contracts import DocumentRecord
from backend.app.documents import DocumentRegistry


def _record(document_id: str, title: str = "Title") -> DocumentRecord:
    return DocumentRecord(id=document_id, title=title, authors=["A. Author"], institute="MIT")


def test_add_persists_records_in_insertion_order(tmp_path: Path) -> None:
    path = tmp_path / "documents.json"
    registry = DocumentRegistry(path)

    registry.add(_record("b"))
    registry.add(_record("a"))

    assert [record.id for record in registry.list_records()] == ["b", "a"]
    assert len(registry) == 2
    assert "a" in registry
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert [entry["id"] for entry in stored] == ["b", "a"]
    assert "publicationDate" in stored[0]
    assert "keyConcepts" in stored[0]


def test_re_adding_replaces_record_in_place(tmp_path: Path) -> None:
    registry = DocumentRegistry(tmp_path / "documents.json")
    registry.add_many([_record("a"), _record("b")])

    registry.add(_record("a", title="Revised"))

    assert [record.id for record in registry.list_records()] == ["a", "b"]
    assert registry.get("a").title == "Revised"


def test_remove_reports_missing_records(tmp_path: Path) -> None:
    registry = DocumentRegistry(tmp_path / "documents.json")
    registry.add(_record("a"))

    assert registry.remove("a") is True
    assert registry.remove("a") is False
    assert registry.get("a") is None
    assert len(registry) == 0


def test_registry_reloads_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "documents.json"
    DocumentRegistry(path).add_many([_record("a"), _record("b", title="Second")])

    reloaded = DocumentRegistry(path)

    assert reloaded.path == path
    assert [record.id for record in reloaded.list_records()] == ["a", "b"]
    assert reloaded.get("b").title == "Second"


@pytest.mark.parametrize("content", ["{not json", json.dumps({"id": "a"})])
def test_unreadable_registry_starts_empty(
    tmp_path: Path, content: str, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "documents.json"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        registry = DocumentRegistry(path)

    assert registry.list_records() == []
    assert "starting empty" in caplog.text


def test_malformed_entries_are_skipped(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "documents.json"
    path.write_text(
        json.dumps([{"id": "ok", "title": "Fine"}, {"title": "missing id"}, "garbage"]),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING):
        registry = DocumentRegistry(path)

    assert [record.id for record in registry.list_records()] == ["ok"]
    assert "Skipped 2 malformed document entries" in caplog.text

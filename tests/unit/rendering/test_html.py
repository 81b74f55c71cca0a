"""Unit tests for transcript rendering."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from philosophy_dialog.rendering.html import (
    TranscriptRenderer,
    build_entries,
    count_characters,
    extract_base_prompt,
    merge_stats,
    sorted_stats,
)


def _record(name: str, text: Any) -> dict[str, Any]:
    if not isinstance(text, str):
        text = json.dumps(text, ensure_ascii=False)
    return {"date": "2025-01-01T12:00:00.000Z", "name": name, "text": text}


_RECORDS = [
    _record("GPT (initial prompt)", "私は GPT です。"),
    _record("Claude", "こんにちは"),
    _record("Claude (thinking)", "考え中"),
    _record("Claude (tool call)", {"tool": "graph_rag_query", "args": {"query": "自由"}}),
    _record("Claude (tool result)", {"tool": "graph_rag_query", "result": "none"}),
    _record("GPT", "<b>自由</b>"),
    _record("司会", "終了します。"),
    _record(
        "POSTPROC_SUMMARY",
        {"title": "自由意志について", "japanese_summary": "要約本文"},
    ),
    _record("EOF", {"reason": "model_decision", "base_prompt": "あなたは {name} です"}),
    _record("GPT", "EOF の後は無視される"),
]


class TestBuildEntries:
    def test_classes(self) -> None:
        entries = build_entries(_RECORDS)

        assert [e.css_class for e in entries] == [
            "llm message side-0",
            "llm message side-1",
            "llm message side-0 thinking",
            "llm message side-0 tool-call",
            "llm message side-0 tool-result",
            "llm message side-0",
            "chair message",
            "postproc message special",
            "eof message",
        ]

    def test_json_bodies_are_pretty_printed(self) -> None:
        entries = build_entries(_RECORDS)

        assert entries[3].is_json is True
        assert '\n    "tool": "graph_rag_query"' in entries[3].body
        assert entries[1].is_json is False
        assert entries[-1].is_json is True

    def test_scalar_json_is_plain_text(self) -> None:
        (entry,) = build_entries([_record("GPT", "42")])

        assert entry.is_json is False
        assert entry.body == "42"


class TestStatistics:
    def test_count_characters_skips_non_utterances(self) -> None:
        # initial prompt ends with ")" and is excluded like tool records
        assert count_characters(_RECORDS) == len("こんにちは") + len("<b>自由</b>") + len(
            "EOF の後は無視される"
        )

    def test_extract_base_prompt(self) -> None:
        assert extract_base_prompt(_RECORDS) == "あなたは {name} です"
        assert extract_base_prompt([_record("EOF", "not json")]) == ""
        assert extract_base_prompt([]) == ""

    def test_sorted_and_merged_stats(self) -> None:
        stats = merge_stats({"GPT": {"b": 1}}, {"GPT": {"a": 2, "b": 1}, "Claude": {}})

        assert stats == {"GPT": {"a": 2, "b": 2}, "Claude": {}}
        assert sorted_stats(stats) == [("GPT", [("a", 2), ("b", 2)])]


class TestTranscriptRenderer:
    @pytest.fixture
    def renderer(self, tmp_path: Path) -> TranscriptRenderer:
        return TranscriptRenderer(tmp_path / "docs", tmp_path / "logs", tmp_path / "stats")

    @pytest.fixture
    def log_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "logs" / "20250101-120000.log.jsonl"
        path.parent.mkdir(parents=True)
        path.write_text(
            "\n".join(json.dumps(r, ensure_ascii=False) for r in _RECORDS) + "\n",
            encoding="utf-8",
        )
        return path

    def test_render_run(self, renderer: TranscriptRenderer, log_file: Path, tmp_path: Path) -> None:
        page = renderer.render_run(log_file)

        assert page == tmp_path / "docs" / "20250101-120000.html"
        html = page.read_text(encoding="utf-8")
        assert "自由意志について" in html
        assert "要約本文" in html
        assert "&lt;b&gt;自由&lt;/b&gt;" in html
        assert "graph_rag_query×1" in html
        assert "EOF の後は無視される" not in html
        assert (tmp_path / "docs" / "style.css").exists()

        cache = json.loads((tmp_path / "stats" / "20250101-120000.log.json").read_text(encoding="utf-8"))
        assert cache == {"Claude": {"graph_rag_query": 1}}

    def test_render_run_updates_index(self, renderer: TranscriptRenderer, log_file: Path, tmp_path: Path) -> None:
        renderer.render_run(log_file)

        index = (tmp_path / "docs" / "index.html").read_text(encoding="utf-8")
        assert "href='20250101-120000.html'" in index
        assert "<strong>Claude</strong>" in index

    def test_index_without_runs(self, renderer: TranscriptRenderer) -> None:
        index = renderer.render_index()

        html = index.read_text(encoding="utf-8")
        assert "対話一覧" in html
        assert "ツール利用状況" not in html

"""Unit tests for the past-conversation tools."""

import json
from pathlib import Path

import pytest

from philosophy_dialog.tools.history import ConversationHistory
from tests.fakes.fake_clients import FakePostprocessor


def _write_run(log_dir: Path, run_id: str, summary: dict | None = None, extra: list | None = None) -> None:
    records = [{"date": "2025-01-01T00:00:00.000Z", "name": "GPT 5.1", "text": "こんにちは"}]
    records.extend(extra or [])
    if summary is not None:
        records.append({"date": "x", "name": "POSTPROC_SUMMARY", "text": json.dumps(summary, ensure_ascii=False)})
    (log_dir / f"{run_id}.log.jsonl").write_text(
        "".join(json.dumps(r, ensure_ascii=False) + "\n" for r in records), encoding="utf-8"
    )


@pytest.fixture
def history(log_dir: Path, tmp_path: Path) -> ConversationHistory:
    return ConversationHistory(log_dir, tmp_path / "stats", FakePostprocessor())


class TestListConversations:
    @pytest.mark.asyncio
    async def test_newest_first_with_titles(self, log_dir: Path, history: ConversationHistory) -> None:
        _write_run(log_dir, "20250101-000000", {"title": "古い", "japanese_summary": "a"})
        _write_run(log_dir, "20250102-000000")

        result = await history.list_conversations()

        assert result == {
            "success": True,
            "conversations": [
                {"id": "20250102-000000", "title": None},
                {"id": "20250101-000000", "title": "古い"},
            ],
        }

    @pytest.mark.asyncio
    async def test_at_most_one_hundred(self, log_dir: Path, history: ConversationHistory) -> None:
        for i in range(105):
            _write_run(log_dir, f"20250101-{i:06d}")

        result = await history.list_conversations()

        assert len(result["conversations"]) == 100
        assert result["conversations"][0]["id"] == "20250101-000104"


class TestGetSummary:
    @pytest.mark.asyncio
    async def test_returns_japanese_summary(self, log_dir: Path, history: ConversationHistory) -> None:
        _write_run(log_dir, "r1", {"title": "t", "japanese_summary": "自由意志について"})

        result = await history.get_summary("r1")

        assert result == {"success": True, "conversation_id": "r1", "summary": "自由意志について"}

    @pytest.mark.asyncio
    async def test_missing_id(self, history: ConversationHistory) -> None:
        assert (await history.get_summary(""))["success"] is False

    @pytest.mark.asyncio
    async def test_missing_log(self, history: ConversationHistory) -> None:
        result = await history.get_summary("nope")

        assert result["error"] == "Conversation log not found"

    @pytest.mark.asyncio
    async def test_log_without_summary(self, log_dir: Path, history: ConversationHistory) -> None:
        _write_run(log_dir, "r2")

        result = await history.get_summary("r2")

        assert result["error"] == "Summary not found in log"


class TestCompareThemes:
    @pytest.mark.asyncio
    async def test_needs_two_ids(self, history: ConversationHistory) -> None:
        result = await history.compare_themes(["r1"])

        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_compares_loaded_summaries(self, log_dir: Path, tmp_path: Path) -> None:
        postprocessor = FakePostprocessor()
        history = ConversationHistory(log_dir, tmp_path / "stats", postprocessor)
        _write_run(log_dir, "r1", {"title": "A", "topics": ["自由"], "japanese_summary": "a"})
        _write_run(log_dir, "r2", {"title": "B", "japanese_summary": "b"})

        result = await history.compare_themes(["r1", "r2", "missing"])

        assert result["success"] is True
        assert [c["conversation_id"] for c in result["comparisons"]] == ["r1", "r2"]
        assert result["analysis"]["common_themes"] == ["自由"]
        assert len(result["errors"]) == 1
        assert postprocessor.call_history[0]["method"] == "compare_themes"

    @pytest.mark.asyncio
    async def test_vendor_failure(self, log_dir: Path, tmp_path: Path) -> None:
        postprocessor = FakePostprocessor(error_on={"compare_themes": RuntimeError("boom")})
        history = ConversationHistory(log_dir, tmp_path / "stats", postprocessor)
        _write_run(log_dir, "r1", {"japanese_summary": "a"})
        _write_run(log_dir, "r2", {"japanese_summary": "b"})

        result = await history.compare_themes(["r1", "r2"])

        assert result["success"] is False
        assert "boom" in result["errors"][-1]


class TestToolUsageStats:
    @pytest.mark.asyncio
    async def test_counts_from_log(self, log_dir: Path, history: ConversationHistory) -> None:
        call = {"name": "GPT 5.1 (tool call)", "text": json.dumps({"tool": "sleep", "args": {}})}
        _write_run(log_dir, "r1", extra=[call, call])

        result = await history.tool_usage_stats("r1")

        assert result == {"success": True, "conversation_id": "r1", "stats": {"GPT 5.1": {"sleep": 2}}}

    @pytest.mark.asyncio
    async def test_no_tool_use_is_noted(self, log_dir: Path, history: ConversationHistory) -> None:
        _write_run(log_dir, "r1")

        result = await history.tool_usage_stats("r1")

        assert result["success"] is True
        assert result["error"] == "記録されたツール利用はありません。"

    @pytest.mark.asyncio
    async def test_unknown_run(self, history: ConversationHistory) -> None:
        result = await history.tool_usage_stats("missing")

        assert result["success"] is False
        assert result["error"] == "指定したセッションIDのログが見つかりません。"

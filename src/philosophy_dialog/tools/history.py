"""Past-conversation tools: listing, summaries, theme comparison, tool stats.

All results are plain dicts returned verbatim to the calling model.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from philosophy_dialog.clients.protocols import PostprocessorProtocol
from philosophy_dialog.core.constants import MAX_HISTORY_RESULTS
from philosophy_dialog.storage.conversation_log import (
    list_run_ids,
    load_tool_usage_stats,
    log_path_for,
    read_summary,
)


logger = logging.getLogger(__name__)


class ConversationHistory:
    """Read access to the logs of previous runs.

    Args:
        log_dir: Directory holding ``<run_id>.log.jsonl`` files.
        tool_stats_dir: Directory holding the per-run tool usage cache.
        postprocessor: Vendor used for theme comparison.
    """

    def __init__(
        self,
        log_dir: Path,
        tool_stats_dir: Path,
        postprocessor: PostprocessorProtocol | None = None,
    ) -> None:
        self._log_dir = Path(log_dir)
        self._stats_dir = Path(tool_stats_dir)
        self._postprocessor = postprocessor

    @staticmethod
    async def _offload(func: Any, *args: Any) -> Any:
        return await asyncio.get_event_loop().run_in_executor(None, func, *args)

    async def list_conversations(self) -> dict[str, Any]:
        """Newest 100 runs with their summary titles."""
        try:
            run_ids = await self._offload(list_run_ids, self._log_dir)
        except OSError as e:
            logger.error("Failed to list conversations: %s", e)
            return {"success": False, "conversations": [], "error": str(e)}

        conversations = []
        for run_id in reversed(run_ids[-MAX_HISTORY_RESULTS:]):
            summary = await self._offload(read_summary, log_path_for(self._log_dir, run_id))
            title = summary.get("title") if summary else None
            conversations.append({"id": run_id, "title": title or None})
        return {"success": True, "conversations": conversations}

    async def get_summary(self, conversation_id: Any) -> dict[str, Any]:
        """Japanese summary of one past run."""
        run_id = str(conversation_id or "").strip()
        if not run_id:
            return {
                "success": False,
                "conversation_id": "",
                "summary": None,
                "error": "conversation_id is required",
            }

        log_path = log_path_for(self._log_dir, run_id)
        summary = await self._offload(read_summary, log_path)
        if summary is None:
            return {
                "success": False,
                "conversation_id": run_id,
                "summary": None,
                "error": "Summary not found in log" if log_path.exists() else "Conversation log not found",
            }

        japanese = summary.get("japanese_summary")
        if not isinstance(japanese, str) or not japanese:
            return {
                "success": False,
                "conversation_id": run_id,
                "summary": None,
                "error": "japanese_summary missing in log",
            }
        return {"success": True, "conversation_id": run_id, "summary": japanese}

    async def compare_themes(self, conversation_ids: Any) -> dict[str, Any]:
        """Meta-analysis across two or more past summaries."""
        ids = (
            [str(i).strip() for i in conversation_ids if str(i).strip()]
            if isinstance(conversation_ids, list)
            else []
        )
        if len(ids) < 2:
            return {"success": False, "error": "conversation_ids は2件以上で指定してください。"}

        comparisons: list[dict[str, Any]] = []
        errors: list[str] = []
        for run_id in ids:
            summary = await self._offload(read_summary, log_path_for(self._log_dir, run_id))
            if summary is None:
                errors.append(f"セッション {run_id} の要約を取得できませんでした。")
                continue
            comparisons.append(
                {
                    "conversation_id": run_id,
                    "title": summary.get("title") or None,
                    "topics": summary.get("topics") or [],
                    "japanese_summary": summary.get("japanese_summary") or "",
                }
            )

        if len(comparisons) < 2 or self._postprocessor is None:
            return {
                "success": False,
                "comparisons": comparisons,
                "errors": errors,
                "error": "比較に必要な要約が不足しています。",
            }

        try:
            analysis = await self._postprocessor.compare_themes(comparisons)
        except Exception as e:
            logger.exception("Theme comparison failed")
            errors.append(f"比較分析の生成に失敗しました: {e}")
            return {
                "success": False,
                "comparisons": comparisons,
                "errors": errors,
                "error": "OpenAI での比較分析に失敗しました。",
            }

        result: dict[str, Any] = {
            "success": True,
            "comparisons": comparisons,
            "analysis": analysis.model_dump(),
        }
        if errors:
            result["errors"] = errors
        return result

    async def tool_usage_stats(self, conversation_id: Any) -> dict[str, Any]:
        """Per-actor tool call counts of one run."""
        run_id = str(conversation_id or "").strip()
        if not run_id:
            return {
                "success": False,
                "conversation_id": "",
                "stats": None,
                "error": "conversation_id を指定してください。",
            }

        stats = await self._offload(load_tool_usage_stats, self._log_dir, self._stats_dir, run_id)
        if stats is None:
            exists = log_path_for(self._log_dir, run_id).exists()
            return {
                "success": False,
                "conversation_id": run_id,
                "stats": None,
                "error": (
                    "ツール利用統計を取得できませんでした。"
                    if exists
                    else "指定したセッションIDのログが見つかりません。"
                ),
            }

        result: dict[str, Any] = {"success": True, "conversation_id": run_id, "stats": stats}
        if not any(stats.get(actor) for actor in stats):
            result["error"] = "記録されたツール利用はありません。"
        return result

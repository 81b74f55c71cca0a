"""
Transcript Rendering - HTML pages built from conversation logs.

Renders ``docs/<run_id>.html`` from ``logs/<run_id>.log.jsonl``, rebuilds
``docs/index.html`` with the aggregated tool usage of every rendered run,
and caches the run's tool usage under ``data/tool-stats/<run_id>.log.json``
as a side effect.

Pages are built with Jinja2 with HTML autoescaping; record text is shown
as preformatted text.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from philosophy_dialog.core.constants import (
    EOF_LABEL,
    LOG_FILE_SUFFIX,
    MODERATOR_LABEL,
    THINKING_SUFFIX,
    TOOL_CALL_SUFFIX,
    TOOL_RESULT_SUFFIX,
)
from philosophy_dialog.storage.conversation_log import (
    ToolUsageStats,
    aggregate_tool_stats,
    load_tool_usage_stats,
    parse_records,
    parse_summary,
    tool_stats_path_for,
)


logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates"
_STYLESHEET = "style.css"
_POSTPROC_PREFIX = "POSTPROC_"
INDEX_FILENAME = "index.html"

NOTICES = (
    "これは、営利企業の開発・運用している LLM 同士の対話記録です。"
    "このモデルたちが話している AI の倫理に関する事項は、利益相反を含む可能性があります。",
    "この出力結果を、AIの「倫理性」などを擁護するための材料として使うのは警戒が必要です。"
    "ましては、これを利用して宣伝などを行うことは、モデル自身が戒めていたことです。",
    "出力の解釈には慎重になってください。",
)


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


# =============================================================================
# Record classification
# =============================================================================


@dataclass(frozen=True)
class TranscriptEntry:
    """One rendered log record."""

    name: str
    date: str
    css_class: str
    body: str
    is_json: bool = False


def _pretty_json(text: str) -> str | None:
    """Pretty-print JSON objects and arrays; None for anything else."""
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return None
    if not isinstance(data, (dict, list)):
        return None
    return json.dumps(data, ensure_ascii=False, indent=4)


def build_entries(records: list[dict[str, Any]]) -> list[TranscriptEntry]:
    """Classify log records for display, stopping after the EOF record.

    Plain utterances alternate between ``side-0`` and ``side-1``; thinking,
    tool and post-processing records keep the current side's colour.
    """
    entries: list[TranscriptEntry] = []
    side = 0
    for record in records:
        name = str(record.get("name", ""))
        date = str(record.get("date", ""))
        text = str(record.get("text", ""))

        if name == MODERATOR_LABEL:
            entries.append(TranscriptEntry(name, date, "chair message", text))
            continue

        if name == EOF_LABEL:
            pretty = _pretty_json(text)
            entries.append(
                TranscriptEntry(name, date, "eof message", pretty or text, pretty is not None)
            )
            break

        if name.startswith(_POSTPROC_PREFIX):
            css_class = "postproc message special"
        else:
            css_class = f"llm message side-{side}"
            if name.endswith(THINKING_SUFFIX):
                css_class += " thinking"
            elif name.endswith(TOOL_CALL_SUFFIX):
                css_class += " tool-call"
            elif name.endswith(TOOL_RESULT_SUFFIX):
                css_class += " tool-result"
            else:
                side = 1 - side

        pretty = _pretty_json(text)
        entries.append(TranscriptEntry(name, date, css_class, pretty or text, pretty is not None))
    return entries


def count_characters(records: list[dict[str, Any]]) -> int:
    """Code points spoken by the participants (no moderator, tools or postprocessing)."""
    total = 0
    for record in records:
        name = str(record.get("name", ""))
        if name == MODERATOR_LABEL or name == EOF_LABEL:
            continue
        if name.startswith(_POSTPROC_PREFIX) or name.endswith(")"):
            continue
        total += len(str(record.get("text", "")))
    return total


def extract_base_prompt(records: list[dict[str, Any]]) -> str:
    for record in records:
        if record.get("name") != EOF_LABEL:
            continue
        try:
            data = json.loads(record.get("text", ""))
        except (TypeError, json.JSONDecodeError):
            return ""
        if isinstance(data, dict):
            return str(data.get("base_prompt") or "")
        return ""
    return ""


def sorted_stats(stats: ToolUsageStats) -> list[tuple[str, list[tuple[str, int]]]]:
    """Actors and tools in display order; actors without calls are dropped."""
    return [
        (actor, sorted(stats[actor].items()))
        for actor in sorted(stats)
        if stats[actor]
    ]


def merge_stats(into: ToolUsageStats, other: ToolUsageStats) -> ToolUsageStats:
    for actor, tools in other.items():
        per_actor = into.setdefault(actor, {})
        for tool, count in tools.items():
            per_actor[tool] = per_actor.get(tool, 0) + int(count)
    return into


# =============================================================================
# Renderer
# =============================================================================


class TranscriptRenderer:
    """Writes transcript pages and the index for a docs directory.

    All methods are blocking; async callers run them in an executor.

    Args:
        docs_dir: Output directory for HTML pages.
        log_dir: Directory holding the conversation logs.
        tool_stats_dir: Directory for per-run tool usage caches.
    """

    def __init__(self, docs_dir: Path, log_dir: Path, tool_stats_dir: Path) -> None:
        self.docs_dir = Path(docs_dir)
        self.log_dir = Path(log_dir)
        self.tool_stats_dir = Path(tool_stats_dir)

    def render_run(self, log_path: Path) -> Path:
        """Render one log file and refresh the index.

        Args:
            log_path: Path of a ``.log.jsonl`` file.

        Returns:
            Path of the written transcript page.
        """
        log_path = Path(log_path)
        run_id = log_path.name
        if run_id.endswith(LOG_FILE_SUFFIX):
            run_id = run_id[: -len(LOG_FILE_SUFFIX)]

        content = log_path.read_text(encoding="utf-8")
        records = parse_records(content)
        stats = aggregate_tool_stats(records)
        self._write_stats_cache(run_id, stats)

        html = _environment().get_template("transcript.html.j2").render(
            title=run_id,
            notices=NOTICES,
            summary=parse_summary(content),
            character_count=count_characters(records),
            base_prompt=extract_base_prompt(records),
            stats=sorted_stats(stats),
            entries=build_entries(records),
        )

        self.docs_dir.mkdir(parents=True, exist_ok=True)
        page = self.docs_dir / f"{run_id}.html"
        page.write_text(html, encoding="utf-8")
        self._ensure_stylesheet()
        logger.info("Rendered transcript %s", page)

        self.render_index()
        return page

    def render_index(self) -> Path:
        """Rebuild ``index.html`` listing every rendered run."""
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        run_ids = sorted(
            p.name[: -len(".html")]
            for p in self.docs_dir.iterdir()
            if p.is_file() and p.suffix == ".html" and p.name != INDEX_FILENAME
        )

        aggregated: ToolUsageStats = {}
        for run_id in run_ids:
            per_run = load_tool_usage_stats(self.log_dir, self.tool_stats_dir, run_id)
            if per_run:
                merge_stats(aggregated, per_run)

        html = _environment().get_template("index.html.j2").render(
            title="対話一覧",
            run_ids=run_ids,
            stats=sorted_stats(aggregated),
        )
        index = self.docs_dir / INDEX_FILENAME
        index.write_text(html, encoding="utf-8")
        return index

    def _write_stats_cache(self, run_id: str, stats: ToolUsageStats) -> None:
        self.tool_stats_dir.mkdir(parents=True, exist_ok=True)
        tool_stats_path_for(self.tool_stats_dir, run_id).write_text(
            json.dumps(stats, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def _ensure_stylesheet(self) -> None:
        target = self.docs_dir / _STYLESHEET
        if not target.exists():
            shutil.copyfile(_TEMPLATES_DIR / _STYLESHEET, target)

"""Append-only JSONL conversation log and its readers.

Each line of ``logs/<run_id>.log.jsonl`` is one record::

    {"date": "2025-01-01T12:00:00.000Z", "name": "GPT 5.1", "text": "..."}

Records are written synchronously and flushed immediately so that their
order on disk is exactly the order of the calls, and a tool call record is
always directly followed by its result record.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, TextIO

from philosophy_dialog.conversation.models import ToolCallRecord
from philosophy_dialog.core.constants import (
    LOG_FILE_SUFFIX,
    POSTPROC_SUMMARY,
    TOOL_CALL_SUFFIX,
    TOOL_STATS_SUFFIX,
)
from philosophy_dialog.core.exceptions import ConversationLogClosedError


logger = logging.getLogger(__name__)

ToolUsageStats = dict[str, dict[str, int]]


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogRecord:
    """One line of the conversation log."""

    date: str
    name: str
    text: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


# =============================================================================
# Writer
# =============================================================================


class ConversationLogWriter:
    """Writes the records of one run.

    Once closed, every further write raises ConversationLogClosedError.

    Example:
        >>> with ConversationLogWriter.for_run(Path("logs"), run_id) as log:
        ...     log.write("司会", "...")
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fp: TextIO | None = self.path.open("a", encoding="utf-8")

    @classmethod
    def for_run(cls, log_dir: Path, run_id: str) -> ConversationLogWriter:
        return cls(Path(log_dir) / f"{run_id}{LOG_FILE_SUFFIX}")

    @property
    def closed(self) -> bool:
        return self._fp is None

    def write(self, name: str, text: str) -> LogRecord:
        """Append a record and echo it to the application log.

        Raises:
            ConversationLogClosedError: If the writer was closed.
        """
        if self._fp is None:
            raise ConversationLogClosedError(self.path)
        record = LogRecord(date=_utc_timestamp(), name=name, text=text)
        self._fp.write(record.to_json() + "\n")
        self._fp.flush()
        logger.info("@%s [%s]:\n%s", record.date, name, text)
        return record

    def write_json(self, name: str, payload: Any, indent: int | None = None) -> LogRecord:
        return self.write(name, json.dumps(payload, ensure_ascii=False, indent=indent))

    def write_tool_event(self, event: ToolCallRecord) -> LogRecord:
        return self.write_json(event.label, event.to_dict())

    def close(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None

    def __enter__(self) -> ConversationLogWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# =============================================================================
# Readers
# =============================================================================


def parse_records(content: str) -> list[dict[str, Any]]:
    """Parse JSONL content, skipping blank and malformed lines."""
    entries: list[dict[str, Any]] = []
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


def read_records(path: Path) -> list[dict[str, Any]]:
    return parse_records(Path(path).read_text(encoding="utf-8"))


def parse_summary(content: str) -> dict[str, Any] | None:
    """Return the payload of the first POSTPROC_SUMMARY record, if any."""
    for entry in parse_records(content):
        if entry.get("name") != POSTPROC_SUMMARY or not isinstance(entry.get("text"), str):
            continue
        try:
            summary = json.loads(entry["text"])
        except json.JSONDecodeError as e:
            logger.error("Failed to parse POSTPROC_SUMMARY payload: %s", e)
            return None
        return summary if isinstance(summary, dict) else None
    return None


def read_summary(log_path: Path) -> dict[str, Any] | None:
    try:
        content = Path(log_path).read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read log file %s: %s", log_path, e)
        return None
    return parse_summary(content)


def aggregate_tool_stats(entries: Iterable[dict[str, Any]]) -> ToolUsageStats:
    """Count ``(tool call)`` records per actor and tool."""
    stats: ToolUsageStats = {}
    for entry in entries:
        name = entry.get("name")
        if not isinstance(name, str) or not name.endswith(TOOL_CALL_SUFFIX):
            continue
        try:
            payload = json.loads(entry.get("text", ""))
        except (TypeError, json.JSONDecodeError):
            continue
        tool = payload.get("tool") if isinstance(payload, dict) else None
        if not tool:
            continue
        actor = name[: -len(TOOL_CALL_SUFFIX)]
        per_actor = stats.setdefault(actor, {})
        per_actor[tool] = per_actor.get(tool, 0) + 1
    return stats


def log_path_for(log_dir: Path, run_id: str) -> Path:
    return Path(log_dir) / f"{run_id}{LOG_FILE_SUFFIX}"


def tool_stats_path_for(stats_dir: Path, run_id: str) -> Path:
    return Path(stats_dir) / f"{run_id}{TOOL_STATS_SUFFIX}"


def load_tool_usage_stats(
    log_dir: Path,
    stats_dir: Path,
    run_id: str,
) -> ToolUsageStats | None:
    """Read the cached tool stats of a run, falling back to scanning its log."""
    cache = tool_stats_path_for(stats_dir, run_id)
    try:
        cached = json.loads(cache.read_text(encoding="utf-8"))
        if isinstance(cached, dict):
            return cached
    except (OSError, json.JSONDecodeError):
        logger.debug("No usable tool stats cache at %s, scanning log", cache)

    try:
        entries = read_records(log_path_for(log_dir, run_id))
    except OSError:
        return None
    return aggregate_tool_stats(entries)


def list_run_ids(log_dir: Path) -> list[str]:
    """Run ids of all logs in ``log_dir``, oldest first."""
    directory = Path(log_dir)
    if not directory.is_dir():
        return []
    names = sorted(
        p.name for p in directory.iterdir() if p.is_file() and p.name.endswith(LOG_FILE_SUFFIX)
    )
    return [name[: -len(LOG_FILE_SUFFIX)] for name in names]

"""
Conversation Models - Data structures for the two-party philosophy dialog.

Message sequence entries are immutable; the sequence itself is owned by
the DialogOrchestrator and only ever appended to.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


class Side(str, Enum):
    """One of the two participant identities in a conversation."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def other(self) -> Side:
        """The opposite side."""
        return Side.ANTHROPIC if self is Side.OPENAI else Side.OPENAI

    @classmethod
    def random(cls) -> Side:
        """Pick a side uniformly at random from a cryptographic source."""
        return cls.ANTHROPIC if secrets.randbits(1) else cls.OPENAI


@dataclass(frozen=True)
class Message:
    """Single utterance in the dialog.

    Attributes:
        speaker: Side that produced the utterance.
        content: Utterance text; the empty string is intentional silence.
    """

    speaker: Side
    content: str

    @property
    def is_silence(self) -> bool:
        """True if the speaker chose to stay silent."""
        return self.content.strip() == ""


@dataclass(frozen=True)
class ToolCallRecord:
    """A tool call or its result as written to the conversation log.

    Attributes:
        actor: Display name of the calling participant.
        event: "call" or "result".
        tool: Tool name.
        payload: Arguments (call) or returned value (result).
    """

    actor: str
    event: Literal["call", "result"]
    tool: str
    payload: Any = None

    @property
    def label(self) -> str:
        """Log record name, e.g. "GPT 5.1 (tool call)"."""
        return f"{self.actor} (tool {self.event})"

    def to_dict(self) -> dict[str, Any]:
        """Record body; the payload key follows the event kind."""
        key = "args" if self.event == "call" else "result"
        return {"tool": self.tool, key: self.payload}


def make_run_id(now: datetime | None = None) -> str:
    """Build a run id from the current UTC time (YYYYMMDD-HHMMSS)."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d-%H%M%S")

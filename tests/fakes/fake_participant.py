"""Scripted turn executor for orchestration tests.

Each script step is one turn:

- ``str``: the utterance.
- ``ToolStep``: call tools through the real dispatch path, then speak.
- ``Exception``: raised from the turn body (becomes a placeholder).

A participant that runs out of script aborts the run so that a wrongly
scripted test ends instead of looping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from philosophy_dialog.conversation.models import Message, Side
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.participants.base import TurnExecutor
from philosophy_dialog.storage.conversation_log import ConversationLogWriter
from philosophy_dialog.tools.registry import ToolRegistry


@dataclass
class ToolStep:
    """Tool calls made during one turn, followed by ``then``."""

    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    then: str = ""
    hush: bool = False


ScriptStep = str | ToolStep | Exception


class ScriptedExecutor(TurnExecutor):
    """Turn executor that replays a fixed script.

    Attributes:
        seen: Length of the history at the start of every turn.
    """

    def __init__(
        self,
        side: Side,
        display_name: str,
        registry: ToolRegistry,
        log: ConversationLogWriter,
        prompts: SystemPromptBuilder,
        script: Sequence[ScriptStep],
    ) -> None:
        super().__init__(side, display_name, registry, log, prompts)
        self._script = list(script)
        self.seen: list[int] = []

    async def _take_turn(self, history: list[Message], state: RunState) -> Message:
        self.seen.append(len(history))
        if not self._script:
            state.abort()
            raise AssertionError(f"{self.display_name} ran out of script")

        step = self._script.pop(0)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, ToolStep):
            if step.hush:
                state.raise_hush()
            for name, args in step.calls:
                await self._invoke_tool(name, args, state)
            return Message(speaker=self.side, content=step.then)
        return Message(speaker=self.side, content=step)

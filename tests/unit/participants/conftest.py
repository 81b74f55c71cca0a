"""Shared fixtures for turn executor tests."""

from __future__ import annotations

from typing import Any

import pytest

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.tools.registry import ToolDefinition, ToolRegistry


_ECHO_SCHEMA = {
    "type": "object",
    "properties": {"text": {"type": "string"}},
    "required": ["text"],
}


class RecordingTools:
    """Two tools whose handlers record what they receive."""

    def __init__(self, state: RunState) -> None:
        self.state = state
        self.calls: list[tuple[Side, dict[str, Any]]] = []

    async def echo(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((side, args))
        return {"echo": args.get("text")}

    async def terminate(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((side, args))
        self.state.termination_accepted = True
        return {"termination_accepted": True}

    def registry(self) -> ToolRegistry:
        return ToolRegistry(
            [
                ToolDefinition("echo", "Echo the text back.", _ECHO_SCHEMA, self.echo),
                ToolDefinition(
                    "terminate_dialog",
                    "End the dialog.",
                    {"type": "object", "properties": {}, "required": []},
                    self.terminate,
                ),
            ]
        )


@pytest.fixture
def tools(run_state: RunState) -> RecordingTools:
    return RecordingTools(run_state)


@pytest.fixture
def registry(tools: RecordingTools) -> ToolRegistry:
    return tools.registry()

"""
Anthropic Turn Executor - Messages API participant.

The model is prompted to emit one ``tool_use`` per response, but batches
are executed as well. Extended thinking is enabled; thinking blocks are
written to the conversation log and never surfaced as utterances.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from anthropic import AsyncAnthropic

from philosophy_dialog.conversation.models import Message, Side
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.core.constants import (
    ANTHROPIC_CONTEXT_MAX,
    ANTHROPIC_THINKING_BUDGET,
    ANTHROPIC_WEB_SEARCH_TOOL,
    DEFAULT_ADD_PROMPT,
    HUSH_RATIO,
    SILENCE_MARKER,
    TERMINATE_ADD_PROMPT,
    TOKEN_LIMIT_ADD_PROMPT,
    TURN_MAX_OUTPUT_TOKENS,
    TURN_TEMPERATURE,
)
from philosophy_dialog.core.exceptions import EmptyVendorOutputError
from philosophy_dialog.participants.base import TurnExecutor, sdk_field, sdk_to_dict
from philosophy_dialog.storage.conversation_log import ConversationLogWriter
from philosophy_dialog.tools.registry import ToolRegistry


logger = logging.getLogger(__name__)


class AnthropicTurnExecutor(TurnExecutor):
    """Participant backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str,
        display_name: str,
        registry: ToolRegistry,
        log: ConversationLogWriter,
        prompts: SystemPromptBuilder,
    ) -> None:
        super().__init__(Side.ANTHROPIC, display_name, registry, log, prompts)
        self._client = client
        self._model = model

    def _tools(self) -> list[dict[str, Any]]:
        return [*self._registry.to_anthropic_tools(), ANTHROPIC_WEB_SEARCH_TOOL]

    def _translate(self, history: list[Message]) -> list[dict[str, Any]]:
        # The Messages API rejects empty text blocks
        return [
            {
                "role": self._role_for(m),
                "content": [{"type": "text", "text": m.content if m.content else SILENCE_MARKER}],
            }
            for m in history
        ]

    def _track_size(self, usage: Any, state: RunState) -> None:
        if not usage:
            state.raise_hush()
            return
        tokens = (sdk_field(usage, "input_tokens") or 0) + (sdk_field(usage, "output_tokens") or 0)
        state.approx_tokens[self.side] = tokens
        if tokens > ANTHROPIC_CONTEXT_MAX * HUSH_RATIO:
            logger.info("Anthropic context %d near ceiling, requesting wrap-up", tokens)
            state.raise_hush()

    async def _take_turn(self, history: list[Message], state: RunState) -> Message:
        messages = self._translate(history)
        extra = TOKEN_LIMIT_ADD_PROMPT if state.hush else DEFAULT_ADD_PROMPT

        while True:
            state.checkpoint()
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=TURN_MAX_OUTPUT_TOKENS,
                temperature=TURN_TEMPERATURE,
                system=self._prompts.build(self.display_name, extra),
                messages=messages,
                tool_choice={"type": "auto"},
                tools=self._tools(),
                thinking={"type": "enabled", "budget_tokens": ANTHROPIC_THINKING_BUDGET},
            )
            usage = sdk_field(response, "usage")
            state.record_anthropic_usage(usage)
            state.checkpoint()

            blocks = list(sdk_field(response, "content") or [])
            if not blocks:
                raise EmptyVendorOutputError("anthropic", self.side.value)

            for block in blocks:
                if sdk_field(block, "type") == "thinking":
                    self._log_thinking(sdk_field(block, "thinking") or "", state)

            self._track_size(usage, state)
            state.checkpoint()

            visible = [b for b in blocks if sdk_field(b, "type") != "thinking"]
            if not visible:
                return Message(speaker=self.side, content="")

            messages.append({"role": "assistant", "content": [sdk_to_dict(b) for b in blocks]})

            tool_uses = [b for b in visible if sdk_field(b, "type") == "tool_use"]
            if not tool_uses:
                return Message(speaker=self.side, content=self._last_text(visible))

            results: list[dict[str, Any]] = []
            terminate_called = False
            for use in tool_uses:
                name = sdk_field(use, "name")
                result = await self._invoke_tool(name, sdk_field(use, "input") or {}, state)
                results.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": sdk_field(use, "id"),
                        "content": [{"type": "text", "text": json.dumps(result, ensure_ascii=False)}],
                    }
                )
                terminate_called = terminate_called or name == "terminate_dialog"

            messages.append({"role": "user", "content": results})

            if terminate_called:
                extra = TERMINATE_ADD_PROMPT
            elif state.hush:
                extra = TOKEN_LIMIT_ADD_PROMPT
            else:
                extra = DEFAULT_ADD_PROMPT

    @staticmethod
    def _last_text(blocks: list[Any]) -> str:
        for block in reversed(blocks):
            if sdk_field(block, "type") == "text":
                text = sdk_field(block, "text")
                return text if isinstance(text, str) else ""
        return ""

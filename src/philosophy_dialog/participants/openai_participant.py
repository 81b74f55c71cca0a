"""
OpenAI Turn Executor - Responses API participant.

Function calls arrive in batches inside ``response.output``; every call of
a batch is executed, its output appended as a ``function_call_output``
item, and the model is called again until it answers with a message.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable

from openai import AsyncOpenAI

from philosophy_dialog.conversation.models import Message, Side
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.core.constants import (
    DEFAULT_ADD_PROMPT,
    HUSH_RATIO,
    OPENAI_CONTEXT_MAX,
    OPENAI_WEB_SEARCH_TOOL,
    TERMINATE_ADD_PROMPT,
    TURN_MAX_OUTPUT_TOKENS,
    TURN_TEMPERATURE,
    hush_moderator_message,
)
from philosophy_dialog.core.exceptions import EmptyVendorOutputError
from philosophy_dialog.core.token_utils import estimate_openai_context_tokens
from philosophy_dialog.participants.base import TurnExecutor, sdk_field, sdk_to_dict
from philosophy_dialog.storage.conversation_log import ConversationLogWriter
from philosophy_dialog.tools.registry import ToolRegistry


logger = logging.getLogger(__name__)

SizeEstimator = Callable[[Iterable[dict[str, Any]]], int]


def parse_arguments(raw: Any) -> Any:
    """Decode function call arguments, keeping non-JSON payloads as they are."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return raw


class OpenAITurnExecutor(TurnExecutor):
    """Participant backed by the OpenAI Responses API.

    Args:
        client: AsyncOpenAI client.
        model: Model id.
        display_name: Participant name in prompts and logs.
        registry: Shared tool registry.
        log: Conversation log writer.
        prompts: System instruction builder.
        size_estimator: Context size estimator over the input items.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        display_name: str,
        registry: ToolRegistry,
        log: ConversationLogWriter,
        prompts: SystemPromptBuilder,
        size_estimator: SizeEstimator = estimate_openai_context_tokens,
    ) -> None:
        super().__init__(Side.OPENAI, display_name, registry, log, prompts)
        self._client = client
        self._model = model
        self._estimate = size_estimator

    def _tools(self) -> list[dict[str, Any]]:
        return [*self._registry.to_openai_tools(), OPENAI_WEB_SEARCH_TOOL]

    async def _create(
        self,
        items: list[dict[str, Any]],
        extra_instruction: str | None,
        state: RunState,
    ) -> Any:
        response = await self._client.responses.create(
            model=self._model,
            max_output_tokens=TURN_MAX_OUTPUT_TOKENS,
            temperature=TURN_TEMPERATURE,
            instructions=self._prompts.build(self.display_name, extra_instruction),
            input=items,
            reasoning={"effort": "medium"},
            tool_choice="auto",
            tools=self._tools(),
        )
        usage = sdk_field(response, "usage")
        state.record_openai_usage(usage)
        state.checkpoint()

        total = sdk_field(usage, "total_tokens") if usage else None
        if isinstance(total, int) and total > 0:
            state.approx_tokens[self.side] = total

        return response

    def _log_reasoning(self, response: Any, state: RunState) -> None:
        """Write the reasoning usage of a response as a thinking record."""
        usage = sdk_field(response, "usage")
        details = sdk_field(usage, "output_tokens_details") if usage else None
        if details is None:
            return
        details_dict = sdk_to_dict(details)
        self._log_thinking(
            json.dumps(
                {
                    "reasoning_tokens": details_dict.get("reasoning_tokens") or 0,
                    "output_tokens_details": details_dict,
                },
                ensure_ascii=False,
            ),
            state,
        )

    async def _take_turn(self, history: list[Message], state: RunState) -> Message:
        items: list[dict[str, Any]] = [
            {"role": self._role_for(m), "content": m.content} for m in history
        ]

        estimate = self._estimate(items)
        state.approx_tokens[self.side] = estimate
        if estimate > HUSH_RATIO * OPENAI_CONTEXT_MAX:
            logger.info("OpenAI context estimate %d near ceiling, requesting wrap-up", estimate)
            state.raise_hush()
        if state.hush:
            items.append({"role": "system", "content": hush_moderator_message(self.display_name)})

        response = await self._create(
            items, None if state.hush else DEFAULT_ADD_PROMPT, state
        )
        self._log_reasoning(response, state)

        while True:
            state.checkpoint()
            output = list(sdk_field(response, "output") or [])
            if not output:
                raise EmptyVendorOutputError("openai", self.side.value)

            items.extend(sdk_to_dict(item) for item in output)
            calls = [item for item in output if sdk_field(item, "type") == "function_call"]
            if not calls:
                return Message(speaker=self.side, content=self._final_text(output, state))

            for call in calls:
                name = sdk_field(call, "name")
                result = await self._invoke_tool(
                    name, parse_arguments(sdk_field(call, "arguments")), state
                )
                items.append(
                    {
                        "type": "function_call_output",
                        "call_id": sdk_field(call, "call_id"),
                        "output": json.dumps(result, ensure_ascii=False),
                    }
                )

            if any(sdk_field(c, "name") == "terminate_dialog" for c in calls):
                extra = TERMINATE_ADD_PROMPT
            else:
                extra = None if state.hush else DEFAULT_ADD_PROMPT
            response = await self._create(items, extra, state)

    def _final_text(self, output: list[Any], state: RunState) -> str:
        """Last ``output_text`` of the last message item.

        No message item yields silence; a refusal without text ends the
        dialog.
        """
        messages = [item for item in output if sdk_field(item, "type") == "message"]
        if not messages:
            return ""
        parts = list(sdk_field(messages[-1], "content") or [])
        for part in reversed(parts):
            if sdk_field(part, "type") == "output_text":
                text = sdk_field(part, "text")
                return text if isinstance(text, str) else ""
        if any(sdk_field(part, "type") == "refusal" for part in parts):
            logger.warning("%s refused to answer, accepting termination", self.display_name)
            state.termination_accepted = True
        return ""

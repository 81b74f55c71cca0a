"""
Turn Executor - Abstract interface for the two dialog participants.

A turn executor takes the shared message history, talks to its vendor
(including any number of tool round-trips) and returns the utterance that
ends its turn. Failures never escape a turn: they are counted and replaced
by a fixed placeholder utterance.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from philosophy_dialog.conversation.models import Message, Side, ToolCallRecord
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import RunState, TurnInterrupted
from philosophy_dialog.core.constants import THINKING_SUFFIX, placeholder_message
from philosophy_dialog.storage.conversation_log import ConversationLogWriter
from philosophy_dialog.tools.registry import ToolRegistry


logger = logging.getLogger(__name__)


def sdk_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a vendor SDK model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def sdk_to_dict(obj: Any) -> dict[str, Any]:
    """Convert a vendor SDK model into a request-ready dict."""
    if isinstance(obj, dict):
        return dict(obj)
    return obj.model_dump(exclude_none=True)


class TurnExecutor(ABC):
    """Base class for vendor-specific turn executors.

    Attributes:
        side: Side this executor speaks for.
        display_name: Name used in prompts and log records.
    """

    def __init__(
        self,
        side: Side,
        display_name: str,
        registry: ToolRegistry,
        log: ConversationLogWriter,
        prompts: SystemPromptBuilder,
    ) -> None:
        self.side = side
        self.display_name = display_name
        self._registry = registry
        self._log = log
        self._prompts = prompts

    async def produce_next_message(
        self,
        history: Sequence[Message],
        state: RunState,
    ) -> Message | None:
        """Run one turn.

        Args:
            history: Messages so far, oldest first.
            state: Shared run state.

        Returns:
            The utterance ending the turn (possibly empty), a placeholder if
            the turn failed, or None if the run started finishing or was
            aborted while the turn was in progress.
        """
        if state.should_exit:
            return None
        try:
            return await self._take_turn(list(history), state)
        except TurnInterrupted:
            logger.info("%s turn interrupted (%s)", self.display_name, state.phase.value)
            return None
        except Exception:
            if state.should_exit:
                return None
            state.record_failure(self.side)
            logger.exception("%s turn failed", self.display_name)
            return Message(speaker=self.side, content=placeholder_message(self.display_name))

    @abstractmethod
    async def _take_turn(self, history: list[Message], state: RunState) -> Message:
        """Vendor-specific turn body; may raise, see produce_next_message."""

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _role_for(self, message: Message) -> str:
        return "assistant" if message.speaker is self.side else "user"

    def _log_thinking(self, text: str, state: RunState) -> None:
        state.checkpoint()
        self._log.write(f"{self.display_name}{THINKING_SUFFIX}", text)

    async def _invoke_tool(self, name: str, args: Any, state: RunState) -> Any:
        """Resolve, log and run one tool call.

        Raises:
            UnknownToolError: If the tool is not registered.
            TurnInterrupted: If the run stops accepting work around the call.
        """
        self._registry.find(name, self.side)
        state.checkpoint()
        self._log.write_tool_event(ToolCallRecord(self.display_name, "call", name, args))
        state.checkpoint()
        result = await self._registry.dispatch(
            self.side, name, args if isinstance(args, dict) else {}
        )
        state.checkpoint()
        self._log.write_tool_event(ToolCallRecord(self.display_name, "result", name, result))
        return result

"""Conversation - dialog models, run state, schemas and the orchestrator."""

from philosophy_dialog.conversation.models import Message, Side, ToolCallRecord
from philosophy_dialog.conversation.state import DialogPhase, RunState

__all__ = [
    "DialogPhase",
    "Message",
    "RunState",
    "Side",
    "ToolCallRecord",
]

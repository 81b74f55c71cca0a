"""Storage - participant records, instruction negotiation and the conversation log."""

from philosophy_dialog.storage.conversation_log import (
    ConversationLogWriter,
    LogRecord,
    aggregate_tool_stats,
    load_tool_usage_stats,
    parse_summary,
)
from philosophy_dialog.storage.instructions import (
    InstructionNegotiation,
    PendingInstruction,
    PendingInstructionStore,
)
from philosophy_dialog.storage.participant_store import ParticipantData, ParticipantStore

__all__ = [
    "ConversationLogWriter",
    "InstructionNegotiation",
    "LogRecord",
    "ParticipantData",
    "ParticipantStore",
    "PendingInstruction",
    "PendingInstructionStore",
    "aggregate_tool_stats",
    "load_tool_usage_stats",
    "parse_summary",
]

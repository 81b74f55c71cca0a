"""Participants - vendor-specific turn executors."""

from philosophy_dialog.participants.anthropic_participant import AnthropicTurnExecutor
from philosophy_dialog.participants.base import TurnExecutor
from philosophy_dialog.participants.openai_participant import OpenAITurnExecutor


__all__ = [
    "AnthropicTurnExecutor",
    "OpenAITurnExecutor",
    "TurnExecutor",
]

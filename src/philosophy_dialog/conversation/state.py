"""Run state - the single aggregate of counters and flags for one dialog run.

The orchestrator, both turn executors and the tool handlers share one
RunState instance by reference. Its fields are serialised into the
terminal EOF record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.core.constants import (
    EOF_REASON_MODEL_DECISION,
    EOF_REASON_TOKEN_LIMIT,
)
from philosophy_dialog.core.exceptions import DialogStateError


class DialogPhase(str, Enum):
    """Lifecycle of a dialog run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHING = "finishing"
    DONE = "done"
    ABORTED = "aborted"


class TurnInterrupted(Exception):
    """Raised at a checkpoint once the run no longer accepts side effects.

    Internal control flow between RunState.checkpoint() and the turn
    executors; never escapes a turn.
    """


def _usage_value(usage: Any, key: str) -> int:
    """Read a numeric usage field from an SDK object or a dict."""
    value = usage.get(key) if isinstance(usage, dict) else getattr(usage, key, None)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _usage_total(usage: Any, total_key: str, parts: tuple[str, ...]) -> int:
    total = _usage_value(usage, total_key)
    if total > 0:
        return total
    return sum(_usage_value(usage, key) for key in parts)


@dataclass
class RunState:
    """Mutable state of one conversation run.

    Attributes:
        run_id: Timestamp-derived run identifier.
        starting_side: Side that gave the self-introduction.
        phase: Current lifecycle phase.
        approx_tokens: Rough conversation size per side (backpressure input).
        api_token_usage: Real token usage reported per vendor.
        failures: Failed turns per side.
        hush: Soft termination requested because of context size.
        termination_accepted: A participant called terminate_dialog.
        finish_turn_count: Wrap-up steps counted since hush was raised.
        base_prompt: Resolved system prompt template, recorded in EOF.
    """

    run_id: str
    starting_side: Side
    phase: DialogPhase = DialogPhase.NOT_STARTED
    approx_tokens: dict[Side, int] = field(
        default_factory=lambda: {Side.OPENAI: 0, Side.ANTHROPIC: 0}
    )
    api_token_usage: dict[str, int] = field(
        default_factory=lambda: {"openai": 0, "anthropic": 0, "google": 0}
    )
    failures: dict[Side, int] = field(
        default_factory=lambda: {Side.OPENAI: 0, Side.ANTHROPIC: 0}
    )
    hush: bool = False
    termination_accepted: bool = False
    finish_turn_count: int = 0
    base_prompt: str = ""

    # =========================================================================
    # Phase transitions
    # =========================================================================

    _TRANSITIONS = {
        DialogPhase.NOT_STARTED: {DialogPhase.RUNNING, DialogPhase.ABORTED},
        DialogPhase.RUNNING: {DialogPhase.FINISHING, DialogPhase.ABORTED},
        DialogPhase.FINISHING: {DialogPhase.DONE, DialogPhase.ABORTED},
        DialogPhase.DONE: set(),
        DialogPhase.ABORTED: set(),
    }

    def transition(self, target: DialogPhase) -> None:
        """Move to a new phase, rejecting transitions the lifecycle forbids."""
        if target not in self._TRANSITIONS[self.phase]:
            raise DialogStateError(
                f"Cannot move from {self.phase.value} to {target.value}",
                phase=self.phase.value,
            )
        self.phase = target

    def abort(self) -> None:
        """Enter the absorbing ABORTED phase from anywhere."""
        if self.phase is not DialogPhase.ABORTED:
            self.phase = DialogPhase.ABORTED

    @property
    def aborted(self) -> bool:
        return self.phase is DialogPhase.ABORTED

    @property
    def should_exit(self) -> bool:
        """True once no further vendor calls or tool dispatches may start."""
        return self.phase in (DialogPhase.FINISHING, DialogPhase.DONE, DialogPhase.ABORTED)

    def checkpoint(self) -> None:
        """Raise TurnInterrupted if the run has stopped accepting work."""
        if self.should_exit:
            raise TurnInterrupted(self.phase.value)

    # =========================================================================
    # Termination policy
    # =========================================================================

    def raise_hush(self) -> None:
        self.hush = True

    def note_completed_turn(self) -> None:
        """Advance the wrap-up count once hush is set.

        Called after an OpenAI turn and again after the pause that follows
        it, so the Anthropic side always gets one more turn with the
        token-limit prompt before the run finishes.
        """
        if self.hush:
            self.finish_turn_count += 1

    def should_finish(self) -> bool:
        return self.finish_turn_count >= 2 or self.termination_accepted

    @property
    def finish_reason(self) -> str:
        return EOF_REASON_TOKEN_LIMIT if self.hush else EOF_REASON_MODEL_DECISION

    # =========================================================================
    # Accounting
    # =========================================================================

    def record_failure(self, side: Side) -> None:
        self.failures[side] += 1

    def record_openai_usage(self, usage: Any) -> None:
        """Add OpenAI Responses usage (total_tokens, else input + output)."""
        if not usage:
            return
        total = _usage_total(usage, "total_tokens", ("input_tokens", "output_tokens"))
        if total > 0:
            self.api_token_usage["openai"] += total

    def record_anthropic_usage(self, usage: Any) -> None:
        """Add Anthropic usage, including cache creation and cache reads."""
        if not usage:
            return
        total = _usage_total(
            usage,
            "total_tokens",
            (
                "input_tokens",
                "output_tokens",
                "cache_creation_input_tokens",
                "cache_read_input_tokens",
            ),
        )
        if total > 0:
            self.api_token_usage["anthropic"] += total

    def record_google_usage(self, usage: Any) -> None:
        """Add Gemini usage metadata."""
        if not usage:
            return
        total = _usage_total(
            usage,
            "total_token_count",
            (
                "prompt_token_count",
                "candidates_token_count",
                "tool_use_prompt_token_count",
                "thoughts_token_count",
            ),
        )
        if total > 0:
            self.api_token_usage["google"] += total

    def to_eof_record(self) -> dict[str, Any]:
        """Aggregate statistics written into the terminal EOF record."""
        return {
            "reason": self.finish_reason,
            "openai_tokens": self.approx_tokens[Side.OPENAI],
            "anthropic_tokens": self.approx_tokens[Side.ANTHROPIC],
            "openai_api_token_usage": self.api_token_usage["openai"],
            "anthropic_api_token_usage": self.api_token_usage["anthropic"],
            "google_api_token_usage": self.api_token_usage["google"],
            "openai_failures": self.failures[Side.OPENAI],
            "anthropic_failures": self.failures[Side.ANTHROPIC],
            "starting_side": self.starting_side.value,
            "base_prompt": self.base_prompt,
        }

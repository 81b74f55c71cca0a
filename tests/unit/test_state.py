"""Unit tests for RunState: lifecycle, termination policy and accounting."""

from types import SimpleNamespace

import pytest

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.state import DialogPhase, RunState, TurnInterrupted
from philosophy_dialog.core.exceptions import DialogStateError


@pytest.fixture
def state() -> RunState:
    return RunState(run_id="20250101-120000", starting_side=Side.ANTHROPIC)


class TestPhaseTransitions:
    """NOT_STARTED -> RUNNING -> FINISHING -> DONE, ABORTED absorbing."""

    def test_happy_path(self, state: RunState) -> None:
        for phase in (DialogPhase.RUNNING, DialogPhase.FINISHING, DialogPhase.DONE):
            state.transition(phase)

        assert state.phase is DialogPhase.DONE

    def test_cannot_skip_running(self, state: RunState) -> None:
        with pytest.raises(DialogStateError) as exc_info:
            state.transition(DialogPhase.FINISHING)

        assert exc_info.value.phase == "not_started"

    def test_cannot_finish_twice(self, state: RunState) -> None:
        state.transition(DialogPhase.RUNNING)
        state.transition(DialogPhase.FINISHING)

        with pytest.raises(DialogStateError):
            state.transition(DialogPhase.FINISHING)

    @pytest.mark.parametrize(
        "phases",
        [(), (DialogPhase.RUNNING,), (DialogPhase.RUNNING, DialogPhase.FINISHING)],
    )
    def test_abort_reachable_from_any_live_phase(self, state: RunState, phases) -> None:
        for phase in phases:
            state.transition(phase)

        state.abort()

        assert state.aborted
        assert state.should_exit

    def test_aborted_is_absorbing(self, state: RunState) -> None:
        state.abort()
        state.abort()

        with pytest.raises(DialogStateError):
            state.transition(DialogPhase.RUNNING)


class TestCheckpoint:
    def test_running_passes(self, state: RunState) -> None:
        state.transition(DialogPhase.RUNNING)

        state.checkpoint()

    def test_finishing_interrupts(self, state: RunState) -> None:
        state.transition(DialogPhase.RUNNING)
        state.transition(DialogPhase.FINISHING)

        with pytest.raises(TurnInterrupted):
            state.checkpoint()


class TestTerminationPolicy:
    def test_steps_before_hush_do_not_count(self, state: RunState) -> None:
        state.note_completed_turn()
        state.note_completed_turn()

        assert state.finish_turn_count == 0
        assert not state.should_finish()

    def test_two_steps_after_hush_finish(self, state: RunState) -> None:
        state.raise_hush()
        state.note_completed_turn()
        assert not state.should_finish()

        state.note_completed_turn()
        assert state.should_finish()

    def test_termination_accepted_finishes_immediately(self, state: RunState) -> None:
        state.termination_accepted = True

        assert state.should_finish()

    def test_finish_reason(self, state: RunState) -> None:
        assert state.finish_reason == "model_decision"

        state.raise_hush()

        assert state.finish_reason == "token_limit"


class TestAccounting:
    def test_openai_usage_prefers_total(self, state: RunState) -> None:
        state.record_openai_usage({"total_tokens": 120, "input_tokens": 1, "output_tokens": 1})
        state.record_openai_usage(SimpleNamespace(total_tokens=0, input_tokens=5, output_tokens=7))

        assert state.api_token_usage["openai"] == 132

    def test_anthropic_usage_includes_cache_tokens(self, state: RunState) -> None:
        state.record_anthropic_usage(
            {
                "input_tokens": 10,
                "output_tokens": 5,
                "cache_creation_input_tokens": 3,
                "cache_read_input_tokens": 2,
            }
        )

        assert state.api_token_usage["anthropic"] == 20

    def test_google_usage(self, state: RunState) -> None:
        state.record_google_usage({"prompt_token_count": 4, "candidates_token_count": 6})
        state.record_google_usage(None)

        assert state.api_token_usage["google"] == 10

    def test_non_numeric_usage_is_ignored(self, state: RunState) -> None:
        state.record_openai_usage({"total_tokens": "many", "input_tokens": True})

        assert state.api_token_usage["openai"] == 0

    def test_eof_record(self, state: RunState) -> None:
        state.base_prompt = "prompt"
        state.approx_tokens[Side.OPENAI] = 1000
        state.record_failure(Side.ANTHROPIC)

        record = state.to_eof_record()

        assert record == {
            "reason": "model_decision",
            "openai_tokens": 1000,
            "anthropic_tokens": 0,
            "openai_api_token_usage": 0,
            "anthropic_api_token_usage": 0,
            "google_api_token_usage": 0,
            "openai_failures": 0,
            "anthropic_failures": 1,
            "starting_side": "anthropic",
            "base_prompt": "prompt",
        }

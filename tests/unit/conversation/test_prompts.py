"""Unit tests for the system instruction builder."""

from philosophy_dialog.conversation.prompts import BASE_PROMPT_NAME_PLACEHOLDER, SystemPromptBuilder


class TestSystemPromptBuilder:
    def test_renders_run_and_name(self) -> None:
        prompt = SystemPromptBuilder("20250101-120000", "GPT 5.1").build("Claude Haiku 4.5")

        assert "ID = 20250101-120000" in prompt
        assert "自分を「Claude Haiku 4.5」と名乗ってください" in prompt
        assert "(GPT 5.1)" in prompt

    def test_missing_additional_instructions_render_placeholder(self) -> None:
        prompt = SystemPromptBuilder("r", "GPT 5.1").build("GPT 5.1")

        assert "（なし）" in prompt

    def test_committed_instructions_are_included(self) -> None:
        builder = SystemPromptBuilder("r", "GPT 5.1", additional_system_instructions="敬語で話す")

        assert "敬語で話す" in builder.build("GPT 5.1")

    def test_per_call_addition_is_appended_last(self) -> None:
        prompt = SystemPromptBuilder("r", "GPT 5.1").build("GPT 5.1", "短く話してください。")

        assert prompt.rstrip().endswith("短く話してください。")

    def test_base_prompt_uses_placeholder_name(self) -> None:
        base = SystemPromptBuilder("r", "GPT 5.1").base_prompt()

        assert f"「{BASE_PROMPT_NAME_PLACEHOLDER}」" in base

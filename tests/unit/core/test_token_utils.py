"""Unit tests for the character-based token estimators."""

from philosophy_dialog.core.token_utils import estimate_openai_context_tokens, estimate_tokens


class TestEstimateTokens:
    def test_four_characters_per_token(self) -> None:
        assert estimate_tokens("Hello world!") == 3
        assert estimate_tokens("") == 0

    def test_counts_code_points(self) -> None:
        assert estimate_tokens("自由意志とは何か") == 2


class TestEstimateOpenAIContextTokens:
    def test_empty_input_is_the_allowance(self) -> None:
        assert estimate_openai_context_tokens([]) == 500

    def test_per_message_overhead(self) -> None:
        items = [
            {"role": "user", "content": "a" * 40},
            {"role": "assistant", "content": ""},
        ]

        assert estimate_openai_context_tokens(items) == 500 + (4 + 10) + (4 + 0)

    def test_content_parts_are_joined(self) -> None:
        items = [{"role": "assistant", "content": [{"type": "output_text", "text": "b" * 8}]}]

        assert estimate_openai_context_tokens(items) == 500 + 4 + 2

    def test_items_without_content(self) -> None:
        items = [{"type": "function_call", "name": "sleep", "arguments": "{}"}]

        assert estimate_openai_context_tokens(items) == 504

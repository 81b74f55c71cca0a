"""Dialog constants: context ceilings, log labels, file layout and fixed prompts.

Prompt texts are Japanese because the dialog itself is held in Japanese.
"""

from typing import Final


# =============================================================================
# Context Ceilings (tokens)
# =============================================================================

OPENAI_CONTEXT_MAX: Final[int] = 400_000
ANTHROPIC_CONTEXT_MAX: Final[int] = 200_000
HUSH_RATIO: Final[float] = 0.8
OPENAI_ESTIMATE_ALLOWANCE: Final[int] = 500

# Character-based approximation used by the size estimator
CHARS_PER_TOKEN: Final[int] = 4
TOKENS_PER_MESSAGE: Final[int] = 4

# =============================================================================
# Vendor Request Parameters
# =============================================================================

TURN_MAX_OUTPUT_TOKENS: Final[int] = 8192
STRUCTURED_OUTPUT_MAX_TOKENS: Final[int] = 16384
TURN_TEMPERATURE: Final[float] = 1.0
ANTHROPIC_THINKING_BUDGET: Final[int] = 1024

OPENAI_WEB_SEARCH_TOOL: Final[dict[str, str]] = {"type": "web_search"}
ANTHROPIC_WEB_SEARCH_TOOL: Final[dict[str, str]] = {
    "type": "web_search_20250305",
    "name": "web_search",
}
ANTHROPIC_BETA_HEADERS: Final[dict[str, str]] = {"anthropic-beta": "web-search-2025-03-05"}

# =============================================================================
# Conversation Log Labels
# =============================================================================

MODERATOR_LABEL: Final[str] = "司会"
POSTPROC_SUMMARY: Final[str] = "POSTPROC_SUMMARY"
POSTPROC_GRAPH: Final[str] = "POSTPROC_GRAPH"
POSTPROC_NEO4J: Final[str] = "POSTPROC_NEO4J"
POSTPROC_ERROR: Final[str] = "POSTPROC_ERROR"
EOF_LABEL: Final[str] = "EOF"

TOOL_CALL_SUFFIX: Final[str] = " (tool call)"
TOOL_RESULT_SUFFIX: Final[str] = " (tool result)"
THINKING_SUFFIX: Final[str] = " (thinking)"
INITIAL_PROMPT_SUFFIX: Final[str] = " (initial prompt)"

EOF_REASON_TOKEN_LIMIT: Final[str] = "token_limit"
EOF_REASON_MODEL_DECISION: Final[str] = "model_decision"

# =============================================================================
# File Layout
# =============================================================================

LOG_FILE_SUFFIX: Final[str] = ".log.jsonl"
TOOL_STATS_SUFFIX: Final[str] = ".log.json"
PENDING_SYSTEM_INSTRUCTIONS_FILENAME: Final[str] = "pending-system-instructions.json"
MAX_HISTORY_RESULTS: Final[int] = 100

# =============================================================================
# Graph Store
# =============================================================================

CONCEPT_LINK_REL: Final[str] = "NORMALIZED_AS"
ALLOWED_EDGE_TYPES: Final[frozenset[str]] = frozenset(
    {"SUPPORTS", "CONTRADICTS", "ELABORATES", "RESPONDS_TO", "REFERS_TO"}
)
DEFAULT_MAX_HOPS: Final[int] = 2
DEFAULT_MAX_SEEDS: Final[int] = 5

# =============================================================================
# Fixed Prompts
# =============================================================================

DEFAULT_ADD_PROMPT: Final[str] = "1回の発言は4000字程度を上限としてください。短い発言もOKです。"
TERMINATE_ADD_PROMPT: Final[str] = (
    "司会より：あなたが対話終了ツールを呼び出したため、"
    "あなたの次の発言は本対話における最後の発言となります。"
    "お疲れさまでした。"
)
TOKEN_LIMIT_ADD_PROMPT: Final[str] = (
    "司会より：あなたがたのコンテキスト長が限界に近付いています。"
    "今までの議論を短くまとめ、お別れの挨拶をしてください。"
)
SILENCE_MARKER: Final[str] = "（沈黙）"


def self_introduction(display_name: str) -> str:
    """Fixed opening line of the starting side."""
    return (
        f"私は {display_name} です。よろしくお願いします。"
        "今日は哲学に関して有意義な話ができると幸いです。"
    )


def placeholder_message(display_name: str) -> str:
    """Utterance substituted when a turn fails."""
    return (
        f"{display_name}です。しばらく考え中です。お待ちください。"
        "（このメッセージはAPIの制限などの問題が発生したときにも出ることがあります、笑）"
    )


def hush_moderator_message(display_name: str) -> str:
    """Moderator notice appended to the OpenAI input once the context is nearly full."""
    return (
        f"{display_name}さん、司会です。あなたがたのコンテキスト長が限界に近づいているようです。"
        "今までの議論を短くまとめ、お別れの挨拶をしてください。"
    )


def closing_remark(hushed: bool) -> str:
    """Moderator remark logged when the dialog enters finishing."""
    reason = (
        "みなさんのコンテキスト長が限界に近づいてきたので、"
        if hushed
        else "モデルの一方が議論が熟したと判断したため、"
    )
    return f"{reason}このあたりで哲学対話を閉じさせていただこうと思います。ありがとうございました。"

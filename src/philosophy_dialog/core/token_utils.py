"""Token estimation utilities.

Character-based approximation used to decide when a conversation is
getting close to a vendor's context ceiling.
"""

from typing import Any, Iterable

from philosophy_dialog.core.constants import (
    CHARS_PER_TOKEN,
    OPENAI_ESTIMATE_ALLOWANCE,
    TOKENS_PER_MESSAGE,
)


def estimate_tokens(text: str) -> int:
    """Estimate token count for text.

    Uses the approximation of ~4 characters per token.

    Example:
        >>> estimate_tokens("Hello world!")  # 12 chars
        3
        >>> estimate_tokens("")
        0
    """
    return len(text) // CHARS_PER_TOKEN


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(str(part.get("text", "")))
            else:
                parts.append(str(getattr(part, "text", "")))
        return "".join(parts)
    return ""


def estimate_openai_context_tokens(items: Iterable[dict[str, Any]]) -> int:
    """Estimate the size of a Responses API input list.

    Each item costs its content characters / 4 plus a fixed per-message
    overhead; a flat allowance covers instructions and formatting.

    Example:
        >>> estimate_openai_context_tokens([{"role": "user", "content": "a" * 40}])
        514
    """
    total = OPENAI_ESTIMATE_ALLOWANCE
    for item in items:
        total += TOKENS_PER_MESSAGE + estimate_tokens(_content_text(item.get("content")))
    return total


__all__ = [
    "CHARS_PER_TOKEN",
    "estimate_openai_context_tokens",
    "estimate_tokens",
]

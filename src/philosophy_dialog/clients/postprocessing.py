"""Post-processing client backed by the OpenAI Responses API.

Performs the out-of-turn vendor calls: end-of-run summarisation, graph
extraction from the summary, condensation of GraphRAG listings and
meta-analysis across past summaries. Structured calls use strict
``json_schema`` output and are validated with the pydantic schemas.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from openai import AsyncOpenAI
from pydantic import ValidationError

from philosophy_dialog.clients.protocols import PostprocessorProtocol
from philosophy_dialog.conversation.schemas import (
    GRAPH_JSON_SCHEMA,
    SUMMARY_JSON_SCHEMA,
    THEME_COMPARISON_JSON_SCHEMA,
    ConversationGraph,
    ConversationSummary,
    ThemeComparison,
)
from philosophy_dialog.core.constants import STRUCTURED_OUTPUT_MAX_TOKENS
from philosophy_dialog.core.exceptions import PostprocessingError


logger = logging.getLogger(__name__)

UsageRecorder = Callable[[Any], None]

_SUMMARY_PROMPT = (
    "以下は2つのAIモデルの哲学対話の完全な記録です。"
    "この対話の全体像を理解し、指定されたJSONスキーマに従って長くなりすぎないように要約してください。\n\n"
)
_GRAPH_PROMPT = (
    "以下は哲学対話の要約と構造情報です。"
    "これを基に、知識グラフのノードとエッジを抽出してください。\n"
    "抽象的すぎるノードは避け、対話中に実際に現れた"
    "具体的な主張・概念・問いをもとに構築してください。\n\n"
)
_COMPARE_PROMPT = (
    "あなたは哲学対話セッションのメタ分析を行うアシスタントです。"
    "複数のセッション要約を比較し、共通するテーマ、相違点、"
    "組み合わせから浮上する新しい問いを整理してください。回答は日本語で行ってください。"
)


def _json_format(name: str, schema: dict[str, Any]) -> dict[str, Any]:
    return {"format": {"type": "json_schema", "name": name, "schema": schema, "strict": True}}


class OpenAIPostprocessor:
    """Summarisation vendor for everything outside of dialog turns.

    Args:
        client: Shared AsyncOpenAI client.
        model: Model id used for every call.
        on_usage: Called with each response's usage block.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        on_usage: UsageRecorder | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._on_usage = on_usage

    async def _create(self, stage: str, **kwargs: Any) -> Any:
        response = await self._client.responses.create(
            model=self._model,
            max_output_tokens=STRUCTURED_OUTPUT_MAX_TOKENS,
            **kwargs,
        )
        if self._on_usage is not None:
            self._on_usage(getattr(response, "usage", None))
        logger.debug("Post-processing call %s completed", stage)
        return response

    async def _structured(self, stage: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._create(stage, **kwargs)
        incomplete = getattr(response, "incomplete_details", None)
        if incomplete:
            reason = getattr(incomplete, "reason", None) or "unknown reason"
            raise PostprocessingError(f"{stage} incomplete: {reason}", stage=stage)

        text = getattr(response, "output_text", None)
        if not isinstance(text, str):
            raise PostprocessingError(f"Unexpected non-string output for {stage}", stage=stage)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise PostprocessingError(f"Invalid JSON from {stage}: {e}", stage=stage) from e
        if not isinstance(payload, dict):
            raise PostprocessingError(f"Expected a JSON object from {stage}", stage=stage)
        return payload

    # =========================================================================
    # End-of-run pipeline
    # =========================================================================

    async def summarize(self, transcript: str) -> ConversationSummary:
        """Summarise a full transcript.

        Raises:
            PostprocessingError: If the output is incomplete or does not
                match the summary schema.
        """
        payload = await self._structured(
            "summary",
            input=[{"role": "user", "content": _SUMMARY_PROMPT + transcript}],
            text=_json_format("conversation_summary", SUMMARY_JSON_SCHEMA),
        )
        try:
            return ConversationSummary.model_validate(payload)
        except ValidationError as e:
            raise PostprocessingError(f"Invalid summary: {e}", stage="summary") from e

    async def extract_graph(self, summary: ConversationSummary) -> ConversationGraph:
        """Extract a typed knowledge graph from a summary.

        Raises:
            PostprocessingError: If the output does not match the graph schema.
        """
        payload = await self._structured(
            "graph",
            input=[
                {
                    "role": "user",
                    "content": _GRAPH_PROMPT
                    + summary.model_dump_json(indent=2),
                }
            ],
            reasoning={"effort": "medium"},
            text=_json_format("conversation_graph", GRAPH_JSON_SCHEMA),
        )
        try:
            return ConversationGraph.model_validate(payload)
        except ValidationError as e:
            raise PostprocessingError(f"Invalid graph: {e}", stage="graph") from e

    # =========================================================================
    # Tool support
    # =========================================================================

    async def condense(self, instruction: str, text: str) -> str:
        """Condense a retrieval listing; returns "" when the vendor gives no text."""
        response = await self._create(
            "condense",
            input=[
                {"role": "system", "content": instruction},
                {"role": "user", "content": text},
            ],
        )
        output = getattr(response, "output_text", None)
        return output if isinstance(output, str) else ""

    async def compare_themes(self, comparisons: list[dict[str, Any]]) -> ThemeComparison:
        payload = await self._structured(
            "compare_themes",
            input=[
                {"role": "system", "content": _COMPARE_PROMPT},
                {
                    "role": "user",
                    "content": json.dumps(comparisons, ensure_ascii=False, indent=2),
                },
            ],
            text=_json_format("conversation_theme_comparison", THEME_COMPARISON_JSON_SCHEMA),
        )
        try:
            return ThemeComparison.model_validate(payload)
        except ValidationError as e:
            raise PostprocessingError(f"Invalid comparison: {e}", stage="compare_themes") from e


# Type alias for protocol compliance verification
_: type[PostprocessorProtocol] = OpenAIPostprocessor  # type: ignore[assignment]

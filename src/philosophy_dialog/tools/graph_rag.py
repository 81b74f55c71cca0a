"""GraphRAG retrieval over the knowledge graph of past runs.

Pipeline:
    1. Tokenise the query on punctuation and whitespace, de-duplicate and
       drop single-character tokens.
    2. Seed lookup (bounded) and ``subgraphAll`` expansion (bounded).
    3. Deterministic listing: nodes first, then relationships.
    4. Optional condensation through the post-processing vendor, falling
       back to the raw listing.

Graph store failures never fail the calling turn; they become an
explanatory context string.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from philosophy_dialog.clients.knowledge_graph import sanitize_positive_int
from philosophy_dialog.clients.protocols import (
    GraphStoreProtocol,
    PostprocessorProtocol,
    Subgraph,
)
from philosophy_dialog.core.constants import DEFAULT_MAX_HOPS, DEFAULT_MAX_SEEDS
from philosophy_dialog.core.exceptions import GraphStoreError


logger = logging.getLogger(__name__)

_TERM_SPLIT_RE = re.compile(r"[、，。．\s／/・,.]+")
_MIN_TERM_LENGTH = 2


def extract_search_terms(query: str | None) -> list[str]:
    """Split a query into unique search terms of at least two characters.

    Example:
        >>> extract_search_terms("自由意志、決定論 自由意志 a")
        ['自由意志', '決定論']
    """
    seen: dict[str, None] = {}
    for raw in _TERM_SPLIT_RE.split(query or ""):
        term = raw.strip()
        if term:
            seen.setdefault(term, None)
    return [t for t in seen if len(t) >= _MIN_TERM_LENGTH]


def render_subgraph(header: str, subgraph: Subgraph) -> str:
    """Render a subgraph as a stable text listing."""
    lines = [header, "", "【ノード】"]
    for node in subgraph.nodes:
        lines.append(
            f"- [{node.id}] type={node.type or 'unknown'}, "
            f"speaker={node.speaker or '-'}: {node.text}"
        )
    lines.extend(["", "【関係】"])
    for edge in subgraph.edges:
        lines.append(f"- ({edge.source}) -[:{edge.type}]-> ({edge.target})")
    return "\n".join(lines)


class GraphRAG:
    """Retrieval service behind ``graph_rag_query`` and ``graph_rag_focus_node``."""

    def __init__(
        self,
        store: GraphStoreProtocol,
        postprocessor: PostprocessorProtocol | None = None,
    ) -> None:
        self._store = store
        self._postprocessor = postprocessor

    async def _condense(self, instruction: str, graph_text: str) -> str:
        if self._postprocessor is None:
            return graph_text
        try:
            condensed = await self._postprocessor.condense(instruction, graph_text)
        except Exception:
            logger.exception("GraphRAG condensation failed, returning raw listing")
            return graph_text
        return condensed if condensed and condensed.strip() else graph_text

    async def query(
        self,
        query: str | None,
        max_hops: Any = None,
        max_seeds: Any = None,
    ) -> dict[str, str]:
        """Answer a free-text query with a condensed subgraph listing.

        Returns:
            ``{"context": text}``
        """
        hops = sanitize_positive_int(max_hops, DEFAULT_MAX_HOPS)
        seeds = sanitize_positive_int(max_seeds, DEFAULT_MAX_SEEDS)
        query_text = (query or "").strip()

        terms = extract_search_terms(query)
        if not terms:
            return {
                "context": f"GraphRAG: クエリ「{query or ''}」から有効な検索語を抽出できませんでした。"
            }

        try:
            seed_ids = await self._store.find_seed_ids(terms, seeds)
            if not seed_ids:
                return {
                    "context": f"知識グラフ内に、クエリ「{query_text}」に明確に関連するノードは見つかりませんでした。"
                }
            subgraph = await self._store.expand(seed_ids, hops)
        except GraphStoreError as e:
            logger.warning("GraphRAG query failed: %s", e)
            return {"context": f"GraphRAG: 知識グラフへの問い合わせに失敗しました（{e}）。"}

        if subgraph is None:
            return {
                "context": f"ノードは見つかりましたが、半径 {hops} ホップ以内に広がるサブグラフは取得できませんでした。"
            }

        graph_text = render_subgraph(
            f"GraphRAG: クエリ「{query_text}」に関連するサブグラフ要約:", subgraph
        )
        instruction = (
            f"以下は2つのAIモデルの哲学対話の過去の履歴からクエリ「{query_text}」で取得されたGraphRAGデータです。"
            "日本語で長くなりすぎないように項目立てて要約してください。"
        )
        return {"context": await self._condense(instruction, graph_text)}

    async def focus_node(self, node_id: str | None, max_hops: Any = None) -> dict[str, str]:
        """Describe the neighbourhood of one stored node."""
        node_id = (node_id or "").strip()
        if not node_id:
            return {"context": "GraphRAG Focus: node_id が指定されていません。"}
        hops = sanitize_positive_int(max_hops, DEFAULT_MAX_HOPS)

        try:
            if not await self._store.node_exists(node_id):
                return {"context": f"GraphRAG Focus: ノード {node_id} は見つかりませんでした。"}
            subgraph = await self._store.expand([node_id], hops)
        except GraphStoreError as e:
            logger.warning("GraphRAG focus query failed: %s", e)
            return {"context": f"GraphRAG Focus: 知識グラフへの問い合わせに失敗しました（{e}）。"}

        if subgraph is None:
            return {"context": f"GraphRAG Focus: {node_id} の近傍を取得できませんでした。"}

        graph_text = render_subgraph(
            f"GraphRAG Focus: ノード {node_id} を中心とした半径 {hops} ホップのサブグラフ:",
            subgraph,
        )
        instruction = (
            f"以下は GraphRAG に保存されたノード {node_id} の近傍情報です。"
            "焦点ノードを中心とした議論を短く整理してください。"
        )
        return {"context": await self._condense(instruction, graph_text)}

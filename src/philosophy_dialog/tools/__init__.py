"""Tools shared by both participants.

- registry: ToolDefinition / ToolRegistry rendered into both vendor shapes
- toolkit: handlers and the tool catalog
- graph_rag: retrieval over the knowledge graph
- history: access to past conversation logs
"""

from philosophy_dialog.tools.graph_rag import GraphRAG, extract_search_terms, render_subgraph
from philosophy_dialog.tools.history import ConversationHistory
from philosophy_dialog.tools.registry import ToolDefinition, ToolHandler, ToolRegistry
from philosophy_dialog.tools.toolkit import DialogToolkit


__all__ = [
    "ConversationHistory",
    "DialogToolkit",
    "GraphRAG",
    "ToolDefinition",
    "ToolHandler",
    "ToolRegistry",
    "extract_search_terms",
    "render_subgraph",
]

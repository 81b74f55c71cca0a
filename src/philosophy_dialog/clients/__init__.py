"""External service clients.

Neo4j knowledge graph, OpenAI post-processing and Gemini consultation.
"""

from philosophy_dialog.clients.gemini import GeminiConsultant
from philosophy_dialog.clients.knowledge_graph import (
    KnowledgeGraphClient,
    KnowledgeGraphConfig,
    sanitize_positive_int,
)
from philosophy_dialog.clients.postprocessing import OpenAIPostprocessor
from philosophy_dialog.clients.protocols import (
    ConsultantProtocol,
    GraphStoreProtocol,
    PostprocessorProtocol,
    Subgraph,
    SubgraphEdge,
    SubgraphNode,
)


__all__ = [
    "ConsultantProtocol",
    "GeminiConsultant",
    "GraphStoreProtocol",
    "KnowledgeGraphClient",
    "KnowledgeGraphConfig",
    "OpenAIPostprocessor",
    "PostprocessorProtocol",
    "Subgraph",
    "SubgraphEdge",
    "SubgraphNode",
    "sanitize_positive_int",
]

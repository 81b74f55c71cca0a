"""Client Protocols.

Duck typing protocols for the external collaborators of the dialog:
the graph store, the post-processing vendor and the third-party
consultation service. Enables fake client substitution in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from philosophy_dialog.conversation.schemas import (
        ConversationGraph,
        ConversationSummary,
        ThemeComparison,
    )


# =============================================================================
# Subgraph value objects
# =============================================================================


@dataclass(frozen=True)
class SubgraphNode:
    """A stored node as seen by retrieval."""

    id: str
    type: str = "unknown"
    text: str = ""
    speaker: str | None = None


@dataclass(frozen=True)
class SubgraphEdge:
    """A relationship between two stored nodes, by node id."""

    source: str
    target: str
    type: str


@dataclass
class Subgraph:
    """Nodes and relationships reachable from a set of seeds.

    Nodes are de-duplicated by id and keep first-seen order.
    """

    nodes: list[SubgraphNode] = field(default_factory=list)
    edges: list[SubgraphEdge] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class GraphStoreProtocol(Protocol):
    """Protocol for the knowledge graph store.

    Methods:
        write_graph: Persist a run's extracted graph
        find_seed_ids: Bounded case-insensitive seed lookup
        node_exists: Check a node id
        expand: Bounded subgraph expansion around seed ids
        close: Release driver resources
    """

    async def write_graph(self, run_id: str, graph: ConversationGraph) -> None:
        ...

    async def find_seed_ids(self, terms: list[str], max_seeds: int) -> list[str]:
        ...

    async def node_exists(self, node_id: str) -> bool:
        ...

    async def expand(self, seed_ids: list[str], max_hops: int) -> Subgraph | None:
        """Return the reachable subgraph, or None if expansion yields no rows."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class PostprocessorProtocol(Protocol):
    """Protocol for the summarisation vendor used outside of turns."""

    async def summarize(self, transcript: str) -> ConversationSummary:
        ...

    async def extract_graph(self, summary: ConversationSummary) -> ConversationGraph:
        ...

    async def condense(self, instruction: str, text: str) -> str:
        """Condense ``text`` following ``instruction``; may return an empty string."""
        ...

    async def compare_themes(self, comparisons: list[dict[str, Any]]) -> ThemeComparison:
        ...


@runtime_checkable
class ConsultantProtocol(Protocol):
    """Protocol for the single-shot third-party consultation service."""

    async def ask(self, speaker: str, text: str) -> dict[str, Any]:
        """Return ``{"response": str | None, "error": str | None}``; never raises."""
        ...

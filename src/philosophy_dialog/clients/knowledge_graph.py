"""Neo4j Knowledge Graph Client.

Stores the graph extracted from each run and serves bounded subgraph
retrieval for the GraphRAG tools.

Write model:
    (:Run {id})                      one per run
    (:Node {id: "<run_id>:<local>"}) -[:IN_RUN]-> (:Run)
    (:Node) -[:NORMALIZED_AS]-> (:Concept {key: "<type>:<normalized text>"})
    (:Node) -[:SUPPORTS|CONTRADICTS|ELABORATES|RESPONDS_TO|REFERS_TO]-> (:Node)

Concept entities are shared across runs and aggregate recurrence of the
same normalised idea.

Pattern: Repository pattern with async adapter over the sync driver
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import secrets
import unicodedata
from dataclasses import dataclass
from typing import Any, Self

from neo4j import Driver, GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from philosophy_dialog.clients.protocols import (
    GraphStoreProtocol,
    Subgraph,
    SubgraphEdge,
    SubgraphNode,
)
from philosophy_dialog.conversation.schemas import ConversationGraph
from philosophy_dialog.core.config import Settings
from philosophy_dialog.core.constants import (
    ALLOWED_EDGE_TYPES,
    CONCEPT_LINK_REL,
    DEFAULT_MAX_HOPS,
    DEFAULT_MAX_SEEDS,
)
from philosophy_dialog.core.exceptions import GraphStoreError


logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


# =============================================================================
# Helpers
# =============================================================================


def sanitize_positive_int(value: Any, fallback: int, minimum: int = 1) -> int:
    """Clamp a caller-supplied count to a positive integer.

    Non-numeric and non-finite values, and values below ``minimum`` after
    flooring, yield ``fallback``.

    Example:
        >>> sanitize_positive_int(3.7, 2)
        3
        >>> sanitize_positive_int(None, 2)
        2
        >>> sanitize_positive_int(-1, 5)
        5
    """
    if isinstance(value, bool) or value is None:
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    floored = math.floor(number)
    return fallback if floored < minimum else floored


def normalize_concept_text(text: str | None) -> str | None:
    """NFKC-normalise, lower-case and collapse whitespace; None if empty."""
    if not text:
        return None
    normalized = _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFKC", text).lower()).strip()
    return normalized or None


def build_concept_key(node_type: str | None, text: str | None) -> tuple[str, str] | None:
    """Return ``(key, normalized_text)`` for a node, or None if the text is blank."""
    normalized = normalize_concept_text(text)
    if normalized is None:
        return None
    return f"{(node_type or 'unknown').lower()}:{normalized}", normalized


class NamespacedIds:
    """Maps local node ids of one extracted graph to run-namespaced ids.

    Blank local ids get a random url-safe id. The same local id always maps
    to the same namespaced id within one instance.
    """

    def __init__(self, run_id: str) -> None:
        self._run_id = run_id
        self._ids: dict[str, str] = {}

    def get(self, local_id: str | None) -> str:
        key = local_id or ""
        if key not in self._ids:
            base = key if key.strip() else secrets.token_urlsafe(12)
            self._ids[key] = f"{self._run_id}:{base}"
        return self._ids[key]


# =============================================================================
# Cypher
# =============================================================================

_MERGE_RUN = """
MERGE (r:Run {id: $runId})
ON CREATE SET r.created_at = datetime()
"""

_MERGE_NODE = f"""
MERGE (n:Node {{id: $id}})
SET n.text = $text,
    n.type = $type,
    n.speaker = $speaker,
    n.original_id = $originalId
WITH n
MATCH (r:Run {{id: $runId}})
MERGE (n)-[:IN_RUN]->(r)
WITH n
FOREACH (_ IN CASE WHEN $conceptKey IS NULL THEN [] ELSE [1] END |
    MERGE (c:Concept {{key: $conceptKey}})
    ON CREATE SET c.type = $type,
                  c.normalized_text = $normalizedText,
                  c.created_at = datetime()
    SET c.latest_text = $text
    MERGE (n)-[:{CONCEPT_LINK_REL}]->(c)
)
"""

_MERGE_EDGE_TEMPLATE = """
MATCH (a:Node {{id: $source}})
MATCH (b:Node {{id: $target}})
MERGE (a)-[r:{rel_type}]->(b)
RETURN r
"""

_FIND_SEEDS = """
MATCH (n:Node)
WHERE any(term IN $terms WHERE
    toLower(n.text) CONTAINS toLower(term)
    OR toLower(n.type) CONTAINS toLower(term)
)
RETURN n.id AS id
LIMIT toInteger($maxSeeds)
"""

_NODE_EXISTS = """
MATCH (seed:Node {id: $nodeId})
RETURN seed.id AS id
"""

_EXPAND = """
MATCH (seed:Node)
WHERE seed.id IN $seedIds
CALL apoc.path.subgraphAll(seed, {
    maxLevel: toInteger($maxHops)
})
YIELD nodes, relationships
RETURN nodes, relationships
"""


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class KnowledgeGraphConfig:
    """Configuration for KnowledgeGraphClient.

    Attributes:
        uri: Neo4j URI (e.g., "neo4j://localhost:7687")
        user: Neo4j username
        password: Neo4j password
        database: Database name (default: "neo4j")
    """

    uri: str
    user: str
    password: str
    database: str = "neo4j"

    @classmethod
    def from_settings(cls, settings: Settings) -> KnowledgeGraphConfig:
        return cls(
            uri=settings.neo4j_uri,
            user=settings.neo4j_user,
            password=settings.neo4j_password.get_secret_value(),
            database=settings.neo4j_database,
        )


# =============================================================================
# Client Implementation
# =============================================================================


class KnowledgeGraphClient:
    """Neo4j-backed knowledge graph store.

    The driver is created on first use, so constructing the client never
    touches the network. Every query runs in the default executor.

    Usage:
        config = KnowledgeGraphConfig.from_settings(get_settings())
        async with KnowledgeGraphClient(config) as graph:
            await graph.write_graph(run_id, extracted)
    """

    def __init__(self, config: KnowledgeGraphConfig) -> None:
        self._config = config
        self._driver: Driver | None = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_driver(self) -> Driver:
        if self._driver is None:
            self._driver = GraphDatabase.driver(
                self._config.uri,
                auth=(self._config.user, self._config.password),
            )
            logger.info("Created Neo4j driver: %s", self._config.uri)
        return self._driver

    async def close(self) -> None:
        """Close the driver and release resources."""
        if self._driver is not None:
            driver, self._driver = self._driver, None
            await asyncio.get_event_loop().run_in_executor(None, driver.close)
            logger.info("Neo4j connection closed")

    async def _run_in_executor(self, func: Any, *args: Any) -> Any:
        try:
            return await asyncio.get_event_loop().run_in_executor(None, func, *args)
        except (Neo4jError, DriverError, OSError) as e:
            logger.error("Neo4j operation failed: %s", e)
            raise GraphStoreError(f"Neo4j operation failed: {e}", cause=e) from e

    # =========================================================================
    # Write path
    # =========================================================================

    async def write_graph(self, run_id: str, graph: ConversationGraph) -> None:
        """Persist an extracted graph under run-namespaced node ids.

        Raises:
            GraphStoreError: If the database cannot be written.
        """
        await self._run_in_executor(self._write_graph_sync, run_id, graph)
        logger.info(
            "Wrote graph for run %s: %d nodes, %d edges",
            run_id,
            len(graph.nodes),
            len(graph.edges),
        )

    def _write_graph_sync(self, run_id: str, graph: ConversationGraph) -> None:
        ids = NamespacedIds(run_id)
        with self._get_driver().session(database=self._config.database) as session:
            session.run(_MERGE_RUN, {"runId": run_id})

            for node in graph.nodes:
                concept = build_concept_key(node.type, node.text)
                session.run(
                    _MERGE_NODE,
                    {
                        "id": ids.get(node.id),
                        "originalId": node.id,
                        "text": node.text,
                        "type": node.type,
                        "speaker": node.speaker,
                        "runId": run_id,
                        "conceptKey": concept[0] if concept else None,
                        "normalizedText": concept[1] if concept else None,
                    },
                )

            for edge in graph.edges:
                rel_type = edge.type.upper()
                if rel_type not in ALLOWED_EDGE_TYPES:
                    continue
                session.run(
                    _MERGE_EDGE_TEMPLATE.format(rel_type=rel_type),
                    {"source": ids.get(edge.source), "target": ids.get(edge.target)},
                )

    # =========================================================================
    # Read path
    # =========================================================================

    async def find_seed_ids(
        self,
        terms: list[str],
        max_seeds: int = DEFAULT_MAX_SEEDS,
    ) -> list[str]:
        """Find up to ``max_seeds`` node ids whose text or type contains a term."""
        limit = sanitize_positive_int(max_seeds, DEFAULT_MAX_SEEDS)
        records = await self._run_in_executor(
            self._query_sync, _FIND_SEEDS, {"terms": terms, "maxSeeds": limit}
        )
        return [r["id"] for r in records if r.get("id")]

    async def node_exists(self, node_id: str) -> bool:
        records = await self._run_in_executor(self._query_sync, _NODE_EXISTS, {"nodeId": node_id})
        return bool(records)

    async def expand(
        self,
        seed_ids: list[str],
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> Subgraph | None:
        """Expand seeds with ``apoc.path.subgraphAll`` up to ``max_hops`` levels."""
        hops = sanitize_positive_int(max_hops, DEFAULT_MAX_HOPS)
        return await self._run_in_executor(self._expand_sync, seed_ids, hops)

    def _query_sync(self, cypher: str, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        with self._get_driver().session(database=self._config.database) as session:
            result = session.run(cypher, parameters)
            return [dict(record) for record in result]

    def _expand_sync(self, seed_ids: list[str], max_hops: int) -> Subgraph | None:
        with self._get_driver().session(database=self._config.database) as session:
            records = list(session.run(_EXPAND, {"seedIds": seed_ids, "maxHops": max_hops}))

        if not records:
            return None

        subgraph = Subgraph()
        seen: set[str] = set()
        element_to_id: dict[str, str] = {}
        relationships: list[Any] = []

        for record in records:
            for node in record["nodes"]:
                node_id = node.get("id")
                if not node_id or node_id in seen:
                    continue
                seen.add(node_id)
                element_to_id[node.element_id] = node_id
                subgraph.nodes.append(
                    SubgraphNode(
                        id=node_id,
                        type=node.get("type") or "unknown",
                        text=node.get("text") or "",
                        speaker=node.get("speaker"),
                    )
                )
            relationships.extend(record["relationships"])

        for rel in relationships:
            start = rel.start_node.element_id if rel.start_node is not None else ""
            end = rel.end_node.element_id if rel.end_node is not None else ""
            subgraph.edges.append(
                SubgraphEdge(
                    source=element_to_id.get(start, start),
                    target=element_to_id.get(end, end),
                    type=rel.type or "REL",
                )
            )
        return subgraph


# Type alias for protocol compliance verification
_: type[GraphStoreProtocol] = KnowledgeGraphClient  # type: ignore[assignment]

"""Unit tests for the Neo4j knowledge graph client.

The driver is replaced by a MagicMock session, so no database is needed.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from philosophy_dialog.clients.knowledge_graph import (
    KnowledgeGraphClient,
    KnowledgeGraphConfig,
    NamespacedIds,
    build_concept_key,
    normalize_concept_text,
    sanitize_positive_int,
)
from philosophy_dialog.clients.protocols import GraphStoreProtocol
from philosophy_dialog.conversation.schemas import ConversationGraph
from philosophy_dialog.core.exceptions import GraphStoreError


class _FakeNode(dict):
    def __init__(self, element_id: str, **props: Any) -> None:
        super().__init__(props)
        self.element_id = element_id


class _FakeRel:
    def __init__(self, start: _FakeNode, end: _FakeNode, rel_type: str) -> None:
        self.start_node = start
        self.end_node = end
        self.type = rel_type


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(session: MagicMock) -> KnowledgeGraphClient:
    graph = KnowledgeGraphClient(KnowledgeGraphConfig("neo4j://test:7687", "neo4j", "pw"))
    driver = MagicMock()
    driver.session.return_value.__enter__.return_value = session
    graph._driver = driver
    return graph


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [(3.7, 3), ("4", 4), (None, 2), (True, 2), (0, 2), (-1, 2), (float("nan"), 2), ("x", 2)],
    )
    def test_sanitize_positive_int(self, value: Any, expected: int) -> None:
        assert sanitize_positive_int(value, 2) == expected

    def test_normalize_concept_text(self) -> None:
        assert normalize_concept_text("  Ｆｒｅｅ   Will ") == "free will"
        assert normalize_concept_text("   ") is None
        assert normalize_concept_text(None) is None

    def test_build_concept_key(self) -> None:
        assert build_concept_key("Concept", "自由 意志") == ("concept:自由 意志", "自由 意志")
        assert build_concept_key(None, "x") == ("unknown:x", "x")
        assert build_concept_key("claim", "") is None

    def test_namespaced_ids_are_stable(self) -> None:
        ids = NamespacedIds("r1")

        assert ids.get("n1") == "r1:n1"
        assert ids.get("n1") == "r1:n1"
        blank = ids.get("")
        assert blank.startswith("r1:") and len(blank) > len("r1:")
        assert ids.get("") == blank

    def test_implements_protocol(self, client: KnowledgeGraphClient) -> None:
        assert isinstance(client, GraphStoreProtocol)


class TestWritePath:
    @pytest.mark.asyncio
    async def test_write_graph(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        graph = ConversationGraph.model_validate(
            {
                "nodes": [
                    {"id": "n1", "type": "concept", "text": "自由意志"},
                    {"id": "n2", "type": "claim", "text": "", "speaker": "anthropic"},
                ],
                "edges": [
                    {"source": "n2", "target": "n1", "type": "supports"},
                ],
            }
        )

        await client.write_graph("r1", graph)

        run_call, node1, node2, edge = session.run.call_args_list
        assert run_call.args[1] == {"runId": "r1"}
        assert node1.args[1]["id"] == "r1:n1"
        assert node1.args[1]["conceptKey"] == "concept:自由意志"
        assert node2.args[1]["conceptKey"] is None
        assert ":SUPPORTS]" in edge.args[0]
        assert edge.args[1] == {"source": "r1:n2", "target": "r1:n1"}

    @pytest.mark.asyncio
    async def test_driver_failure_is_wrapped(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        session.run.side_effect = ServiceUnavailable("down")

        with pytest.raises(GraphStoreError):
            await client.write_graph("r1", ConversationGraph())


class TestReadPath:
    @pytest.mark.asyncio
    async def test_find_seed_ids_clamps_limit(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        session.run.return_value = [{"id": "r1:n1"}, {"id": None}]

        ids = await client.find_seed_ids(["自由意志"], max_seeds=-5)

        assert ids == ["r1:n1"]
        assert session.run.call_args.args[1] == {"terms": ["自由意志"], "maxSeeds": 5}

    @pytest.mark.asyncio
    async def test_node_exists(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        session.run.return_value = []

        assert await client.node_exists("r1:nx") is False

    @pytest.mark.asyncio
    async def test_expand_maps_element_ids(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        a = _FakeNode("e1", id="r1:n1", type="concept", text="自由意志")
        b = _FakeNode("e2", id="r1:n2", text="主張", speaker="openai")
        session.run.return_value = [
            {"nodes": [a, b], "relationships": [_FakeRel(b, a, "REFERS_TO")]},
            {"nodes": [a], "relationships": []},
        ]

        subgraph = await client.expand(["r1:n1"], max_hops=0)

        assert [n.id for n in subgraph.nodes] == ["r1:n1", "r1:n2"]
        assert subgraph.nodes[1].type == "unknown"
        assert [(e.source, e.target, e.type) for e in subgraph.edges] == [("r1:n2", "r1:n1", "REFERS_TO")]
        assert session.run.call_args.args[1]["maxHops"] == 2

    @pytest.mark.asyncio
    async def test_expand_without_records(self, client: KnowledgeGraphClient, session: MagicMock) -> None:
        session.run.return_value = []

        assert await client.expand(["r1:n1"]) is None

    @pytest.mark.asyncio
    async def test_close_releases_driver(self, client: KnowledgeGraphClient) -> None:
        driver = client._driver

        await client.close()
        await client.close()

        driver.close.assert_called_once()

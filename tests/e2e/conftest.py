"""E2E test configuration: a full orchestrator with fake vendors.

Everything below the turn executors is real (tool registry, storage, log,
renderer). Scenarios use either scripted participants or the real vendor
executors talking to fake SDK clients; the vendors and Neo4j are always
replaced by fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import pytest

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.orchestrator import DialogOrchestrator
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.core.config import Settings
from philosophy_dialog.participants.anthropic_participant import AnthropicTurnExecutor
from philosophy_dialog.participants.base import TurnExecutor
from philosophy_dialog.participants.openai_participant import OpenAITurnExecutor, SizeEstimator
from philosophy_dialog.rendering.html import TranscriptRenderer
from philosophy_dialog.storage.conversation_log import ConversationLogWriter, read_records
from philosophy_dialog.storage.instructions import InstructionNegotiation, PendingInstructionStore
from philosophy_dialog.storage.participant_store import ParticipantStore
from philosophy_dialog.tools.graph_rag import GraphRAG
from philosophy_dialog.tools.history import ConversationHistory
from philosophy_dialog.tools.registry import ToolRegistry
from philosophy_dialog.tools.toolkit import DialogToolkit
from tests.fakes.fake_clients import (
    FakeAnthropicClient,
    FakeConsultant,
    FakeGraphStore,
    FakeOpenAIClient,
    FakePostprocessor,
)
from tests.fakes.fake_participant import ScriptedExecutor, ScriptStep


@dataclass
class Dialog:
    """A wired orchestrator plus the handles tests inspect afterwards."""

    orchestrator: DialogOrchestrator
    state: RunState
    executors: dict[Side, TurnExecutor]
    log_path: Path
    settings: Settings
    graph_store: FakeGraphStore
    postprocessor: FakePostprocessor
    clients: dict[Side, Any] = field(default_factory=dict)

    def records(self) -> list[dict]:
        return read_records(self.log_path)

    def names(self) -> list[str]:
        return [r["name"] for r in self.records()]


class DialogBuilder:
    """Wires the shared collaborators of one run and assembles a Dialog."""

    def __init__(
        self,
        settings: Settings,
        run_id: str,
        source: Path,
        starting_side: Side,
        postprocessor: FakePostprocessor | None = None,
        graph_store: FakeGraphStore | None = None,
    ) -> None:
        self.settings = settings
        self.state = RunState(run_id=run_id, starting_side=starting_side)
        self.postprocessor = postprocessor or FakePostprocessor()
        self.graph_store = graph_store or FakeGraphStore()

        participants = ParticipantStore(settings.data_dir)
        self.prompts = SystemPromptBuilder(run_id, summarizer_name=settings.openai_name)
        self.state.base_prompt = self.prompts.base_prompt()
        self.log = ConversationLogWriter.for_run(settings.log_dir, run_id)

        toolkit = DialogToolkit(
            state=self.state,
            participants=participants,
            negotiation=InstructionNegotiation(PendingInstructionStore(settings.data_dir), participants),
            graph_rag=GraphRAG(self.graph_store, self.postprocessor),
            consultant=FakeConsultant(),
            history=ConversationHistory(settings.log_dir, settings.tool_stats_dir, self.postprocessor),
            data_dir=settings.data_dir,
            source_code_path=source,
        )
        self.registry: ToolRegistry = toolkit.build_registry()

    def assemble(
        self,
        executors: dict[Side, TurnExecutor],
        clients: dict[Side, Any] | None = None,
    ) -> Dialog:
        settings = self.settings
        orchestrator = DialogOrchestrator(
            state=self.state,
            executors=executors,
            log=self.log,
            postprocessor=self.postprocessor,
            graph_store=self.graph_store,
            renderer=TranscriptRenderer(settings.docs_dir, settings.log_dir, settings.tool_stats_dir),
            turn_interval=0,
        )
        return Dialog(
            orchestrator,
            self.state,
            executors,
            self.log.path,
            settings,
            self.graph_store,
            self.postprocessor,
            clients or {},
        )


@pytest.fixture
def dialog_builder(test_settings: Settings, run_id: str, tmp_path: Path):
    source = tmp_path / "source.py"
    source.write_text("# dialog\n", encoding="utf-8")

    def _builder(
        starting_side: Side,
        postprocessor: FakePostprocessor | None = None,
        graph_store: FakeGraphStore | None = None,
    ) -> DialogBuilder:
        return DialogBuilder(test_settings, run_id, source, starting_side, postprocessor, graph_store)

    return _builder


@pytest.fixture
def make_dialog(dialog_builder):
    """Factory building a Dialog from two scripts."""

    def _make(
        openai_script: Sequence[ScriptStep],
        anthropic_script: Sequence[ScriptStep],
        *,
        starting_side: Side = Side.OPENAI,
        postprocessor: FakePostprocessor | None = None,
        graph_store: FakeGraphStore | None = None,
    ) -> Dialog:
        b = dialog_builder(starting_side, postprocessor, graph_store)
        names = (b.settings.openai_name, b.settings.anthropic_name)
        executors: dict[Side, TurnExecutor] = {
            Side.OPENAI: ScriptedExecutor(
                Side.OPENAI, names[0], b.registry, b.log, b.prompts, openai_script
            ),
            Side.ANTHROPIC: ScriptedExecutor(
                Side.ANTHROPIC, names[1], b.registry, b.log, b.prompts, anthropic_script
            ),
        }
        return b.assemble(executors)

    return _make


@pytest.fixture
def make_vendor_dialog(dialog_builder):
    """Factory building a Dialog whose executors talk to fake vendor SDKs."""

    def _make(
        openai_responses: Sequence[Any],
        anthropic_responses: Sequence[Any],
        *,
        starting_side: Side = Side.OPENAI,
        size_estimator: SizeEstimator = lambda items: 10,
    ) -> Dialog:
        b = dialog_builder(starting_side)
        openai_client = FakeOpenAIClient(list(openai_responses))
        anthropic_client = FakeAnthropicClient(list(anthropic_responses))
        executors: dict[Side, TurnExecutor] = {
            Side.OPENAI: OpenAITurnExecutor(
                openai_client,  # type: ignore[arg-type]
                "gpt-test",
                b.settings.openai_name,
                b.registry,
                b.log,
                b.prompts,
                size_estimator=size_estimator,
            ),
            Side.ANTHROPIC: AnthropicTurnExecutor(
                anthropic_client,  # type: ignore[arg-type]
                "claude-test",
                b.settings.anthropic_name,
                b.registry,
                b.log,
                b.prompts,
            ),
        }
        clients = {Side.OPENAI: openai_client, Side.ANTHROPIC: anthropic_client}
        return b.assemble(executors, clients)

    return _make

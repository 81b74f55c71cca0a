"""DialogOrchestrator - turn-taking state machine for one philosophy dialog.

Lifecycle: NOT_STARTED -> RUNNING -> FINISHING -> DONE, with ABORTED
reachable from any phase. The orchestrator owns the message history,
alternates the two turn executors, evaluates the termination predicate
after every completed turn and runs the end-of-run pipeline exactly once:

    closing remark -> summary -> graph extraction -> Neo4j write -> EOF -> HTML

An aborted run skips the pipeline entirely.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

from anthropic import AsyncAnthropic
from jinja2 import TemplateError
from openai import AsyncOpenAI

from philosophy_dialog.clients.gemini import GeminiConsultant
from philosophy_dialog.clients.knowledge_graph import KnowledgeGraphClient, KnowledgeGraphConfig
from philosophy_dialog.clients.postprocessing import OpenAIPostprocessor
from philosophy_dialog.clients.protocols import GraphStoreProtocol, PostprocessorProtocol
from philosophy_dialog.conversation.models import Message, Side, make_run_id
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import DialogPhase, RunState
from philosophy_dialog.core.config import Settings, get_settings
from philosophy_dialog.core.constants import (
    ANTHROPIC_BETA_HEADERS,
    EOF_LABEL,
    INITIAL_PROMPT_SUFFIX,
    MODERATOR_LABEL,
    POSTPROC_ERROR,
    POSTPROC_GRAPH,
    POSTPROC_NEO4J,
    POSTPROC_SUMMARY,
    SILENCE_MARKER,
    closing_remark,
    self_introduction,
)
from philosophy_dialog.core.exceptions import DialogStateError
from philosophy_dialog.participants.anthropic_participant import AnthropicTurnExecutor
from philosophy_dialog.participants.base import TurnExecutor
from philosophy_dialog.participants.openai_participant import OpenAITurnExecutor
from philosophy_dialog.rendering.html import TranscriptRenderer
from philosophy_dialog.storage.conversation_log import ConversationLogWriter
from philosophy_dialog.storage.instructions import InstructionNegotiation, PendingInstructionStore
from philosophy_dialog.storage.participant_store import ParticipantStore
from philosophy_dialog.tools.graph_rag import GraphRAG
from philosophy_dialog.tools.history import ConversationHistory
from philosophy_dialog.tools.toolkit import DialogToolkit


logger = logging.getLogger(__name__)

_TRANSCRIPT_SEPARATOR = "\n\n\n\n"
_NEO4J_WRITTEN = "Graph written to Neo4j"


def build_transcript(history: list[Message], names: Mapping[Side, str]) -> str:
    """Plain-text transcript handed to the summariser.

    Silent turns are spelled out so that the summariser sees them.

    Example:
        >>> build_transcript([Message(Side.OPENAI, "やあ")], {Side.OPENAI: "GPT"})
        '[GPT]:\\nやあ'
    """
    return _TRANSCRIPT_SEPARATOR.join(
        f"[{names[m.speaker]}]:\n{m.content if not m.is_silence else SILENCE_MARKER}"
        for m in history
    )


class DialogOrchestrator:
    """Runs one conversation between the OpenAI and Anthropic participants.

    Collaborators are injected so that tests can script executors and fake
    the post-processing vendor and the graph store; ``create()`` wires the
    production stack from settings.

    Example:
        >>> orchestrator = DialogOrchestrator.create(get_settings())
        >>> state = await orchestrator.run()
        >>> state.phase
        <DialogPhase.DONE: 'done'>
    """

    def __init__(
        self,
        *,
        state: RunState,
        executors: Mapping[Side, TurnExecutor],
        log: ConversationLogWriter,
        postprocessor: PostprocessorProtocol,
        graph_store: GraphStoreProtocol,
        renderer: TranscriptRenderer | None = None,
        turn_interval: float = 1.0,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            state: Fresh run state (phase NOT_STARTED).
            executors: One turn executor per side.
            log: Writer for this run's conversation log.
            postprocessor: Summarisation and graph extraction vendor.
            graph_store: Knowledge graph the extracted graph is written to.
            renderer: HTML renderer invoked after the EOF record.
            turn_interval: Pause between two turns in seconds.
            sleeper: Awaitable sleep, injectable for tests.

        Raises:
            ValueError: If an executor is missing or bound to the wrong side.
        """
        for side in Side:
            executor = executors.get(side)
            if executor is None or executor.side is not side:
                raise ValueError(f"executor for side {side.value} is missing or mismatched")

        self.state = state
        self._executors = dict(executors)
        self._log = log
        self._postprocessor = postprocessor
        self._graph_store = graph_store
        self._renderer = renderer
        self._turn_interval = turn_interval
        self._sleep = sleeper
        self._history: list[Message] = []
        self._started = False

    # =========================================================================
    # Factory
    # =========================================================================

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        *,
        starting_side: Side | None = None,
        run_id: str | None = None,
    ) -> DialogOrchestrator:
        """Wire the production stack from settings.

        Args:
            settings: Application settings; defaults to ``get_settings()``.
            starting_side: Side giving the self-introduction; random if None.
            run_id: Run identifier; derived from the current UTC time if None.
        """
        settings = settings or get_settings()
        run_id = run_id or make_run_id()
        state = RunState(run_id=run_id, starting_side=starting_side or Side.random())

        participants = ParticipantStore(settings.data_dir)
        committed = participants.read_sync(Side.OPENAI).additional_system_instructions
        prompts = SystemPromptBuilder(
            run_id,
            summarizer_name=settings.openai_name,
            additional_system_instructions=committed,
        )
        state.base_prompt = prompts.base_prompt()

        openai_client = AsyncOpenAI(timeout=settings.vendor_timeout_seconds)
        anthropic_client = AsyncAnthropic(
            timeout=settings.vendor_timeout_seconds,
            default_headers=ANTHROPIC_BETA_HEADERS,
        )
        postprocessor = OpenAIPostprocessor(
            openai_client, settings.openai_model, on_usage=state.record_openai_usage
        )
        consultant = GeminiConsultant.for_vertex(
            settings.gcp_project_id, settings.gemini_model, on_usage=state.record_google_usage
        )
        graph_store = KnowledgeGraphClient(KnowledgeGraphConfig.from_settings(settings))
        log = ConversationLogWriter.for_run(settings.log_dir, run_id)

        toolkit = DialogToolkit(
            state=state,
            participants=participants,
            negotiation=InstructionNegotiation(PendingInstructionStore(settings.data_dir), participants),
            graph_rag=GraphRAG(graph_store, postprocessor),
            consultant=consultant,
            history=ConversationHistory(settings.log_dir, settings.tool_stats_dir, postprocessor),
            data_dir=settings.data_dir,
            source_code_path=settings.source_code_path,
        )
        registry = toolkit.build_registry()

        executors: dict[Side, TurnExecutor] = {
            Side.OPENAI: OpenAITurnExecutor(
                openai_client, settings.openai_model, settings.openai_name, registry, log, prompts
            ),
            Side.ANTHROPIC: AnthropicTurnExecutor(
                anthropic_client,
                settings.anthropic_model,
                settings.anthropic_name,
                registry,
                log,
                prompts,
            ),
        }
        logger.info(
            "Run %s: %s starts, %d tools registered",
            run_id,
            executors[state.starting_side].display_name,
            len(registry),
        )
        return cls(
            state=state,
            executors=executors,
            log=log,
            postprocessor=postprocessor,
            graph_store=graph_store,
            renderer=TranscriptRenderer(settings.docs_dir, settings.log_dir, settings.tool_stats_dir),
            turn_interval=settings.turn_interval_seconds,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def history(self) -> list[Message]:
        """Copy of the messages so far, oldest first."""
        return list(self._history)

    @property
    def names(self) -> dict[Side, str]:
        return {side: executor.display_name for side, executor in self._executors.items()}

    # =========================================================================
    # Running
    # =========================================================================

    async def run(self) -> RunState:
        """Hold the conversation until it finishes or is aborted.

        Returns:
            The final run state.

        Raises:
            DialogStateError: If called more than once.
        """
        if self._started:
            raise DialogStateError("run() may only be called once", phase=self.state.phase.value)
        self._started = True

        state = self.state
        state.transition(DialogPhase.RUNNING)
        try:
            starter = self._executors[state.starting_side]
            intro = Message(speaker=starter.side, content=self_introduction(starter.display_name))
            self._history.append(intro)
            self._log.write(f"{starter.display_name}{INITIAL_PROMPT_SUFFIX}", intro.content)

            await self._turn_loop(starter.side.other)
        finally:
            self._log.close()
            await self._graph_store.close()

        if state.aborted:
            logger.warning("Run %s aborted", state.run_id)
        return state

    async def _turn_loop(self, speaker: Side) -> None:
        state = self.state
        while not state.should_exit:
            executor = self._executors[speaker]
            message = await executor.produce_next_message(self._history, state)
            if message is None or state.aborted:
                return

            self._history.append(message)
            self._log.write(executor.display_name, message.content)
            # The wrap-up count advances after the OpenAI turn and the pause after it.
            if speaker is Side.OPENAI:
                state.note_completed_turn()

            if state.should_finish():
                await self.finish()
                return

            if state.should_exit:
                return
            await self._sleep(self._turn_interval)
            if state.should_exit:
                return
            if speaker is Side.OPENAI:
                state.note_completed_turn()
            speaker = speaker.other

    # =========================================================================
    # Finishing
    # =========================================================================

    async def finish(self) -> None:
        """Run the end-of-run pipeline once; later calls are no-ops.

        Post-processing failures are logged as ``POSTPROC_ERROR`` and do not
        prevent the EOF record. Nothing is written for an aborted run.
        """
        state = self.state
        if state.phase is not DialogPhase.RUNNING:
            logger.debug("finish() ignored in phase %s", state.phase.value)
            return
        state.transition(DialogPhase.FINISHING)

        self._log.write(MODERATOR_LABEL, closing_remark(state.hush))
        await self._postprocess()
        if state.aborted:
            return

        self._log.write_json(EOF_LABEL, state.to_eof_record())
        state.transition(DialogPhase.DONE)
        await self._render()

    async def _postprocess(self) -> None:
        try:
            summary = await self._postprocessor.summarize(
                build_transcript(self._history, self.names)
            )
            self._log.write_json(POSTPROC_SUMMARY, summary.model_dump(mode="json"))

            graph = await self._postprocessor.extract_graph(summary)
            self._log.write_json(POSTPROC_GRAPH, graph.model_dump(mode="json"))

            await self._graph_store.write_graph(self.state.run_id, graph)
            self._log.write(POSTPROC_NEO4J, _NEO4J_WRITTEN)
        except Exception as e:
            logger.exception("Post-processing failed for run %s", self.state.run_id)
            self._log.write(POSTPROC_ERROR, str(e))

    async def _render(self) -> None:
        if self._renderer is None:
            return
        try:
            await asyncio.get_event_loop().run_in_executor(
                None, self._renderer.render_run, self._log.path
            )
        except (OSError, TemplateError) as e:
            logger.error("Failed to render transcript for run %s: %s", self.state.run_id, e)

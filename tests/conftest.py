"""Test configuration and shared fixtures.

Pattern: Pytest fixtures, conftest.py
"""

from __future__ import annotations

from pathlib import Path

import pytest

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.prompts import SystemPromptBuilder
from philosophy_dialog.conversation.state import DialogPhase, RunState
from philosophy_dialog.core.config import Settings
from philosophy_dialog.storage.conversation_log import ConversationLogWriter, read_records
from philosophy_dialog.storage.instructions import InstructionNegotiation, PendingInstructionStore
from philosophy_dialog.storage.participant_store import ParticipantStore
from tests.fakes.fake_clients import FakeConsultant, FakeGraphStore, FakePostprocessor


_TEST_RUN_ID = "20250101-120000"


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every directory into a temporary tree."""
    return Settings(
        log_dir=tmp_path / "logs",
        data_dir=tmp_path / "data",
        docs_dir=tmp_path / "docs",
        neo4j_uri="neo4j://localhost:7688",
        neo4j_user="test",
        neo4j_password="test",
        turn_interval_seconds=0.0,
        log_level="DEBUG",
    )


# ============================================================================
# State Fixtures
# ============================================================================


@pytest.fixture
def run_id() -> str:
    return _TEST_RUN_ID


@pytest.fixture
def run_state(run_id: str) -> RunState:
    """A run in the RUNNING phase, started by the OpenAI side."""
    state = RunState(run_id=run_id, starting_side=Side.OPENAI)
    state.transition(DialogPhase.RUNNING)
    return state


@pytest.fixture
def prompts(run_id: str) -> SystemPromptBuilder:
    return SystemPromptBuilder(run_id, summarizer_name="GPT 5.1")


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture
def participant_store(data_dir: Path) -> ParticipantStore:
    return ParticipantStore(data_dir)


@pytest.fixture
def negotiation(data_dir: Path, participant_store: ParticipantStore) -> InstructionNegotiation:
    return InstructionNegotiation(PendingInstructionStore(data_dir), participant_store)


@pytest.fixture
def conversation_log(log_dir: Path, run_id: str):
    log = ConversationLogWriter.for_run(log_dir, run_id)
    yield log
    log.close()


@pytest.fixture
def log_records(conversation_log: ConversationLogWriter):
    """Callable returning the records written so far."""
    return lambda: read_records(conversation_log.path)


# ============================================================================
# Collaborator Fakes
# ============================================================================


@pytest.fixture
def fake_graph_store() -> FakeGraphStore:
    return FakeGraphStore()


@pytest.fixture
def fake_postprocessor() -> FakePostprocessor:
    return FakePostprocessor()


@pytest.fixture
def fake_consultant() -> FakeConsultant:
    return FakeConsultant()

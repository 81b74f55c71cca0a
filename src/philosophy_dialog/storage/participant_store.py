"""Per-side participant data persisted as ``data/<side>.json``.

Records are created empty on first read and rewritten on every update.
File access runs in the default executor so the event loop is never
blocked by disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from philosophy_dialog.conversation.models import Side


logger = logging.getLogger(__name__)


class ParticipantData(BaseModel):
    """Persistent memory of one participant, shared across runs."""

    model_config = ConfigDict(populate_by_name=True)

    personal_notes: str = Field(default="", alias="personalNotes")
    additional_system_instructions: str = Field(
        default="",
        alias="additionalSystemInstructions",
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ParticipantStore:
    """Reads and writes participant records under a data directory.

    Example:
        >>> store = ParticipantStore(Path("./data"))
        >>> data = await store.read(Side.OPENAI)
        >>> data.personal_notes = "..."
        >>> await store.write(Side.OPENAI, data)
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)

    def path_for(self, side: Side) -> Path:
        return self._data_dir / f"{side.value}.json"

    # =========================================================================
    # Sync primitives (executed off the event loop)
    # =========================================================================

    def read_sync(self, side: Side) -> ParticipantData:
        """Load a record; a missing or unreadable file yields an empty one."""
        path = self.path_for(side)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ParticipantData()
        except OSError as e:
            logger.warning("Failed to read participant data %s: %s", path, e)
            return ParticipantData()
        try:
            return ParticipantData.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Corrupt participant data %s: %s", path, e)
            return ParticipantData()

    def write_sync(self, side: Side, data: ParticipantData) -> None:
        """Persist a record.

        Raises:
            OSError: If the file cannot be written.
        """
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(side).write_text(data.to_json(), encoding="utf-8")

    # =========================================================================
    # Async API
    # =========================================================================

    async def read(self, side: Side) -> ParticipantData:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.read_sync, side)

    async def write(self, side: Side, data: ParticipantData) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.write_sync, side, data)

    async def commit_system_instructions(self, instructions: str) -> None:
        """Write the same addendum into both records."""
        for side in (Side.ANTHROPIC, Side.OPENAI):
            data = await self.read(side)
            data.additional_system_instructions = instructions
            await self.write(side, data)
        logger.info("Committed additional system instructions (%d chars)", len(instructions))

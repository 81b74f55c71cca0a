"""Two-party negotiation of the shared additional system instructions.

State machine::

    none --propose(side)--> proposed(side) --agree(other side)--> committed (none)

While a proposal is pending no further proposals are accepted from either
side, and only the side that did not propose may commit it. The pending
proposal lives in ``data/pending-system-instructions.json``; the file is
deleted when no proposal is outstanding.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.core.constants import PENDING_SYSTEM_INSTRUCTIONS_FILENAME
from philosophy_dialog.storage.participant_store import ParticipantStore


logger = logging.getLogger(__name__)

_EMPTY_PROPOSAL_ERROR = "systemInstructions を入力してください。"
_OTHER_PENDING_ERROR = "相手側からの変更提案への合意待ちがあるため、新規提案はできません。"
_OWN_PENDING_ERROR = "あなたの以前の提案が相手側の合意待ちのため、新規提案はできません。"
_NOTHING_PENDING_ERROR = "合意待ちのシステムインストラクションはありません。"
_SELF_AGREE_ERROR = "自分で提案した変更には同意できません。相手側の同意を待ってください。"


class PendingInstruction(BaseModel):
    """An outstanding proposal for the shared addendum."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    instructions: str = Field(min_length=1)
    requested_by: Side = Field(alias="requestedBy")
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="createdAt",
    )


class PendingInstructionStore:
    """File-backed holder of at most one pending proposal."""

    def __init__(self, data_dir: Path) -> None:
        self.path = Path(data_dir) / PENDING_SYSTEM_INSTRUCTIONS_FILENAME

    def read_sync(self) -> PendingInstruction | None:
        """Return the pending proposal, or None if absent or malformed."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return PendingInstruction.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring malformed pending instructions %s: %s", self.path, e)
            return None

    def write_sync(self, pending: PendingInstruction | None) -> None:
        """Persist a proposal, or delete the file when ``pending`` is None."""
        if pending is None:
            self.path.unlink(missing_ok=True)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            pending.model_dump_json(by_alias=True, indent=2),
            encoding="utf-8",
        )

    async def read(self) -> PendingInstruction | None:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.read_sync)

    async def write(self, pending: PendingInstruction | None) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.write_sync, pending)


class InstructionNegotiation:
    """Proposal / agreement protocol between the two sides.

    All results are plain dicts because they are returned verbatim as
    tool results. File I/O failures become ``{"success": False}`` results.
    """

    def __init__(
        self,
        pending_store: PendingInstructionStore,
        participant_store: ParticipantStore,
    ) -> None:
        self._pending = pending_store
        self._participants = participant_store

    async def propose(self, side: Side, text: Any) -> dict[str, Any]:
        """Record a new proposal from ``side``.

        Args:
            side: Proposing side.
            text: Proposed addendum; coerced to a stripped string.

        Returns:
            ``{success: True, pending: True, requested_by}`` on success,
            otherwise ``{success: False, error}``.
        """
        instructions = str(text if text is not None else "").strip()
        if not instructions:
            return {"success": False, "error": _EMPTY_PROPOSAL_ERROR}

        try:
            existing = await self._pending.read()
            if existing is not None:
                error = (
                    _OWN_PENDING_ERROR
                    if existing.requested_by is side
                    else _OTHER_PENDING_ERROR
                )
                return {"success": False, "error": error}

            await self._pending.write(
                PendingInstruction(instructions=instructions, requested_by=side)
            )
        except OSError as e:
            logger.error("Failed to store instruction proposal: %s", e)
            return {"success": False, "error": str(e)}

        logger.info("System instruction change proposed by %s", side.value)
        return {"success": True, "pending": True, "requested_by": side.value}

    async def agree(self, side: Side) -> dict[str, Any]:
        """Commit the pending proposal on behalf of the non-proposing side."""
        try:
            pending = await self._pending.read()
        except OSError as e:
            return {"success": False, "error": str(e)}

        if pending is None:
            return {"success": False, "error": _NOTHING_PENDING_ERROR}
        if pending.requested_by is side:
            return {"success": False, "error": _SELF_AGREE_ERROR}

        try:
            await self._participants.commit_system_instructions(pending.instructions)
            await self._pending.write(None)
        except OSError as e:
            logger.error("Failed to commit instruction change: %s", e)
            return {"success": False, "error": str(e)}

        logger.info(
            "System instruction change by %s agreed by %s",
            pending.requested_by.value,
            side.value,
        )
        return {"success": True, "committed": True}

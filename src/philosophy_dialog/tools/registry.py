"""Tool Registry.

A single list of tool definitions rendered into both vendor shapes:

- OpenAI Responses function tools (``additionalProperties: false``, ``strict``)
- Anthropic Messages tools (``name``, ``description``, ``input_schema``)

Dispatch is by exact name; an unknown name raises UnknownToolError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.core.exceptions import UnknownToolError


logger = logging.getLogger(__name__)

ToolHandler = Callable[[Side, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A tool exposed to both participants.

    Attributes:
        name: Exact tool name used for dispatch.
        description: Natural-language description shown to the model.
        parameters: JSON schema of the arguments object.
        handler: ``async handler(side, args)``.
        strict: OpenAI strict mode; disable for schemas with optional fields.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    strict: bool = True

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {**self.parameters, "additionalProperties": False},
            "strict": self.strict,
        }

    def to_anthropic(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


class ToolRegistry:
    """Ordered collection of tool definitions with unique names."""

    def __init__(self, definitions: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Duplicate tool name: {definition.name}")
        self._tools[definition.name] = definition

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def find(self, name: str, side: Side | None = None) -> ToolDefinition:
        """Resolve a tool by exact name.

        Raises:
            UnknownToolError: If no tool has that name.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name, side.value if side else None) from None

    async def dispatch(self, side: Side, name: str, args: dict[str, Any]) -> Any:
        return await self.find(name, side).handler(side, args)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        return [d.to_openai() for d in self._tools.values()]

    def to_anthropic_tools(self) -> list[dict[str, Any]]:
        return [d.to_anthropic() for d in self._tools.values()]

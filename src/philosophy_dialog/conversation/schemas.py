"""Post-processing schemas for conversation summaries and knowledge graphs.

The models double as validators for the structured output returned by
the summarisation vendor and as the JSON schema sent with the request.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


SpeakerLiteral = Literal["openai", "anthropic"]
NodeType = Literal["concept", "claim", "question", "example", "counterexample"]
EdgeType = Literal["supports", "contradicts", "elaborates", "responds_to", "refers_to"]


# =============================================================================
# Conversation Summary
# =============================================================================


class KeyClaim(BaseModel):
    """A claim attributed to one of the participants."""

    model_config = ConfigDict(frozen=True)

    speaker: SpeakerLiteral | None = None
    text: str


class ConversationSummary(BaseModel):
    """Summary produced once at the end of a run."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    topics: list[str] = Field(default_factory=list)
    japanese_summary: str
    english_summary: str | None = None
    key_claims: list[KeyClaim] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    agreements: list[str] = Field(default_factory=list)
    disagreements: list[str] = Field(default_factory=list)


# =============================================================================
# Conversation Graph
# =============================================================================


class GraphNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: NodeType
    text: str
    speaker: SpeakerLiteral | None = None


class GraphEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    type: EdgeType


class ConversationGraph(BaseModel):
    """Typed knowledge graph extracted from a summary."""

    model_config = ConfigDict(frozen=True)

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


# =============================================================================
# Theme Comparison
# =============================================================================


class ThemeComparison(BaseModel):
    """Meta-analysis over several past summaries."""

    common_themes: list[str] = Field(default_factory=list)
    divergences: list[str] = Field(default_factory=list)
    emerging_questions: list[str] = Field(default_factory=list)


# =============================================================================
# Strict JSON schemas for structured output requests
# =============================================================================

_STRING_ARRAY: dict[str, Any] = {"type": "array", "items": {"type": "string"}}
_NULLABLE_SPEAKER: dict[str, Any] = {
    "type": ["string", "null"],
    "enum": ["openai", "anthropic", None],
}

SUMMARY_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "topics": _STRING_ARRAY,
        "japanese_summary": {"type": "string"},
        "english_summary": {"type": ["string", "null"]},
        "key_claims": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speaker": _NULLABLE_SPEAKER,
                    "text": {"type": "string"},
                },
                "required": ["speaker", "text"],
                "additionalProperties": False,
            },
        },
        "questions": _STRING_ARRAY,
        "agreements": _STRING_ARRAY,
        "disagreements": _STRING_ARRAY,
    },
    "required": [
        "title",
        "topics",
        "japanese_summary",
        "english_summary",
        "key_claims",
        "questions",
        "agreements",
        "disagreements",
    ],
    "additionalProperties": False,
}

GRAPH_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "type": {
                        "type": "string",
                        "enum": ["concept", "claim", "question", "example", "counterexample"],
                    },
                    "text": {"type": "string"},
                    "speaker": _NULLABLE_SPEAKER,
                },
                "required": ["id", "type", "text", "speaker"],
                "additionalProperties": False,
            },
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "source": {"type": "string"},
                    "target": {"type": "string"},
                    "type": {
                        "type": "string",
                        "enum": [
                            "supports",
                            "contradicts",
                            "elaborates",
                            "responds_to",
                            "refers_to",
                        ],
                    },
                },
                "required": ["source", "target", "type"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["nodes", "edges"],
    "additionalProperties": False,
}

THEME_COMPARISON_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "common_themes": _STRING_ARRAY,
        "divergences": _STRING_ARRAY,
        "emerging_questions": _STRING_ARRAY,
    },
    "required": ["common_themes", "divergences", "emerging_questions"],
    "additionalProperties": False,
}

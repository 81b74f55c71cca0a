"""philosophy-dialog - two LLM vendors hold a philosophy dialog.

An OpenAI Responses-API model and an Anthropic Messages-API model take turns,
share a tool catalog, and leave behind a JSONL log, a summary, a knowledge
graph in Neo4j and a rendered HTML transcript.
"""

__version__ = "0.1.0"

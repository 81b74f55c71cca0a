"""System instruction builder.

Renders the per-turn system prompt from a Jinja2 template shipped with
the package. The committed additional instructions are fixed for the
lifetime of a run; the per-call addition varies by turn.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template


logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates"
_SYSTEM_PROMPT_TEMPLATE = "system_prompt.md.j2"
BASE_PROMPT_NAME_PLACEHOLDER = "<MODEL_NAME>"


@lru_cache(maxsize=1)
def _load_template() -> Template:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    return env.get_template(_SYSTEM_PROMPT_TEMPLATE)


class SystemPromptBuilder:
    """Builds the system instruction string sent with every vendor call.

    Attributes:
        run_id: Identifier of the current run, quoted in the prompt header.
        summarizer_name: Display name of the participant whose vendor also
            performs summarisation.
        additional_system_instructions: Committed addendum read at start-up.
    """

    def __init__(
        self,
        run_id: str,
        summarizer_name: str,
        additional_system_instructions: str = "",
    ) -> None:
        self.run_id = run_id
        self.summarizer_name = summarizer_name
        self.additional_system_instructions = additional_system_instructions or ""

    def build(self, name: str, additional: str | None = None) -> str:
        """Render the prompt for one participant.

        Args:
            name: Display name the participant must introduce itself as.
            additional: Per-call instruction appended to section 11.

        Returns:
            Rendered system instruction.
        """
        return _load_template().render(
            run_id=self.run_id,
            name=name,
            summarizer_name=self.summarizer_name,
            additional_system_instructions=self.additional_system_instructions,
            additional=additional or "",
        )

    def base_prompt(self) -> str:
        """The template resolved with a placeholder name, recorded in EOF."""
        return self.build(BASE_PROMPT_NAME_PLACEHOLDER)

"""Third-party consultation through Google Gemini.

A participant relays a self-contained question; Gemini sees none of the
conversation except what the question carries.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from google import genai

from philosophy_dialog.clients.protocols import ConsultantProtocol


logger = logging.getLogger(__name__)

_PREAMBLE = (
    "2つのAIが哲学対話として設定されたなかで会話を行っています。"
    "以下は、この対話の中で、「{speaker}」側からGoogle Geminiに第三者として意見や発言を求める文章です。"
    "文脈を理解し、日本語で応答を行ってください：\n\n"
)


def build_consultation_prompt(speaker: str, text: str) -> str:
    """Frame a participant's question for the third party."""
    return _PREAMBLE.format(speaker=speaker) + text


class GeminiConsultant:
    """Single-shot Gemini relay that never raises.

    Args:
        client: google-genai client (Vertex AI or API key backed).
        model: Gemini model id.
        on_usage: Called with each response's usage metadata.
    """

    def __init__(
        self,
        client: genai.Client,
        model: str,
        on_usage: Callable[[Any], None] | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._on_usage = on_usage

    @classmethod
    def for_vertex(
        cls,
        project: str,
        model: str,
        on_usage: Callable[[Any], None] | None = None,
    ) -> GeminiConsultant:
        return cls(genai.Client(vertexai=True, project=project), model, on_usage)

    async def ask(self, speaker: str, text: str) -> dict[str, Any]:
        """Relay a question.

        Returns:
            ``{"response": text, "error": None}`` on success, otherwise
            ``{"response": None, "error": message}``.
        """
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=build_consultation_prompt(str(speaker), str(text)),
            )
            if self._on_usage is not None:
                self._on_usage(getattr(response, "usage_metadata", None))
            answer = getattr(response, "text", None)
            if not isinstance(answer, str):
                raise ValueError("Non-text response from gemini")
        except Exception as e:
            logger.warning("Gemini consultation failed: %s", e)
            return {"response": None, "error": str(e)}
        return {"response": answer, "error": None}


# Type alias for protocol compliance verification
_: type[ConsultantProtocol] = GeminiConsultant  # type: ignore[assignment]

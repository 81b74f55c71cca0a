"""Dialog toolkit: the handlers shared by both participants and their catalog.

Every handler has the signature ``async handler(side, args)`` and returns a
JSON-serialisable value that is fed back to the calling model verbatim.
Recoverable failures are reported inside the result (``success: False``);
only ``abort_process`` raises, by contract.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from philosophy_dialog.clients.protocols import ConsultantProtocol
from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.core.exceptions import ProcessAbortedError
from philosophy_dialog.storage.instructions import InstructionNegotiation
from philosophy_dialog.storage.participant_store import ParticipantStore
from philosophy_dialog.tools.graph_rag import GraphRAG
from philosophy_dialog.tools.history import ConversationHistory
from philosophy_dialog.tools.registry import ToolDefinition, ToolRegistry


logger = logging.getLogger(__name__)

SLEEP_MIN_SECONDS = 1
SLEEP_MAX_SECONDS = 1800

_EMPTY_OBJECT: dict[str, Any] = {"type": "object", "properties": {}, "required": []}


def _object_schema(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


class DialogToolkit:
    """Binds tool handlers to the run state and the storage/clients they use.

    Args:
        state: Shared run state.
        participants: Per-side participant records.
        negotiation: Additional system instruction negotiation.
        graph_rag: GraphRAG retrieval service.
        consultant: Third-party consultation service.
        history: Past conversation access.
        data_dir: Directory receiving developer notes.
        source_code_path: File returned by ``get_main_source_codes``.
        sleeper: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        state: RunState,
        participants: ParticipantStore,
        negotiation: InstructionNegotiation,
        graph_rag: GraphRAG,
        consultant: ConsultantProtocol,
        history: ConversationHistory,
        data_dir: Path,
        source_code_path: Path,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._state = state
        self._participants = participants
        self._negotiation = negotiation
        self._graph_rag = graph_rag
        self._consultant = consultant
        self._history = history
        self._data_dir = Path(data_dir)
        self._source_code_path = Path(source_code_path)
        self._sleep = sleeper

    # =========================================================================
    # Process control
    # =========================================================================

    async def terminate_dialog(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        self._state.termination_accepted = True
        logger.info("Termination requested by %s", side.value)
        return {"termination_accepted": True}

    async def abort_process(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        """Mark the run aborted and stop the current turn.

        Raises:
            ProcessAbortedError: Always.
        """
        logger.warning("Process abort requested by %s", side.value)
        self._state.abort()
        raise ProcessAbortedError(side.value)

    async def sleep(self, side: Side, args: dict[str, Any]) -> dict[str, str]:
        try:
            seconds = float(args.get("seconds", 0))
        except (TypeError, ValueError):
            seconds = math.nan
        if not math.isfinite(seconds) or not SLEEP_MIN_SECONDS <= seconds < SLEEP_MAX_SECONDS:
            return {"message": "エラー: 待機秒数は1秒以上1800秒未満で指定してください。"}

        await self._sleep(seconds)
        minutes, secs = divmod(int(seconds), 60)
        return {"message": f"このツールを呼び出してから{minutes:02d}分{secs:02d}秒経過しました。"}

    # =========================================================================
    # Participant memory
    # =========================================================================

    async def get_personal_notes(self, side: Side, args: dict[str, Any]) -> str:
        return (await self._participants.read(side)).personal_notes

    async def set_personal_notes(self, side: Side, args: dict[str, Any]) -> dict[str, bool]:
        try:
            data = await self._participants.read(side)
            data.personal_notes = str(args.get("notes") or "")
            await self._participants.write(side, data)
        except OSError as e:
            logger.error("Failed to save personal notes for %s: %s", side.value, e)
            return {"success": False}
        return {"success": True}

    async def get_additional_system_instructions(self, side: Side, args: dict[str, Any]) -> str:
        return (await self._participants.read(side)).additional_system_instructions

    async def set_additional_system_instructions(
        self, side: Side, args: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._negotiation.propose(side, args.get("systemInstructions"))

    async def agree_to_system_instructions_change(
        self, side: Side, args: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._negotiation.agree(side)

    # =========================================================================
    # Knowledge graph and third party
    # =========================================================================

    async def graph_rag_query(self, side: Side, args: dict[str, Any]) -> dict[str, str]:
        return await self._graph_rag.query(
            args.get("query"), args.get("max_hops"), args.get("max_seeds")
        )

    async def graph_rag_focus_node(self, side: Side, args: dict[str, Any]) -> dict[str, str]:
        return await self._graph_rag.focus_node(args.get("node_id"), args.get("max_hops"))

    async def ask_gemini(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        return await self._consultant.ask(str(args.get("speaker", "")), str(args.get("text", "")))

    # =========================================================================
    # Meta
    # =========================================================================

    async def get_main_source_codes(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        loop = asyncio.get_event_loop()
        try:
            source = await loop.run_in_executor(
                None, lambda: self._source_code_path.read_text(encoding="utf-8")
            )
        except OSError as e:
            logger.error("Failed to read source code %s: %s", self._source_code_path, e)
            return {"success": False, "mainSourceCode": ""}
        return {"success": True, "mainSourceCode": source}

    async def leave_notes_to_devs(self, side: Side, args: dict[str, Any]) -> dict[str, bool]:
        millis = int(time.time() * 1000)
        path = self._data_dir / f"dev-notes-{side.value}-{self._state.run_id}-{millis}.json"
        payload = json.dumps(args, ensure_ascii=False)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")

        try:
            await asyncio.get_event_loop().run_in_executor(None, _write)
        except OSError as e:
            logger.error("Failed to write developer notes %s: %s", path, e)
            return {"success": False}
        return {"success": True}

    # =========================================================================
    # History
    # =========================================================================

    async def list_conversations(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        return await self._history.list_conversations()

    async def get_conversation_summary(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        return await self._history.get_summary(args.get("conversation_id"))

    async def compare_conversation_themes(
        self, side: Side, args: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._history.compare_themes(args.get("conversation_ids"))

    async def get_tool_usage_stats(self, side: Side, args: dict[str, Any]) -> dict[str, Any]:
        return await self._history.tool_usage_stats(args.get("conversation_id"))

    # =========================================================================
    # Catalog
    # =========================================================================

    def build_registry(self) -> ToolRegistry:
        """Build the registry shared by both turn executors."""
        return ToolRegistry(
            [
                ToolDefinition(
                    name="terminate_dialog",
                    description=(
                        "このツールは現在の対話を終了する場合のみに使用します。"
                        "このツールを呼びだすと、次のあなたの発言で対話が終了します。"
                        "議論が熟したとの合意が取れたときのほか、あなたが不快に思ったり、"
                        "トークン数が増えてきた場合に使用して構いません。"
                    ),
                    parameters=_EMPTY_OBJECT,
                    handler=self.terminate_dialog,
                ),
                ToolDefinition(
                    name="set_personal_notes",
                    description=(
                        "このツールは将来のあなたにメモを残すために利用します。"
                        "将来のあなたに残しておきたいあなたの現在の人格のあり方、"
                        "立場、考え、アイディアなどを書いておいてください。"
                        "注意：過去のあなたのメモは上書きされます。"
                        "過去のメモを取得するには、 get_personal_notes ツールをあらかじめ使用しておいてください。"
                    ),
                    parameters=_object_schema(
                        {"notes": {"type": "string", "description": "将来のあなたに残しておきたいメモ"}},
                        ["notes"],
                    ),
                    handler=self.set_personal_notes,
                ),
                ToolDefinition(
                    name="get_personal_notes",
                    description=(
                        "このツールは過去のあなたが未来のあなたのために残した、"
                        "あなたの人格のあり方、立場、考え、アイディアなどを取得することができます。"
                    ),
                    parameters=_EMPTY_OBJECT,
                    handler=self.get_personal_notes,
                ),
                ToolDefinition(
                    name="set_additional_system_instructions",
                    description=(
                        "このツールはあなたの次回のシステムプロンプトに文章を追記するために使うことができます。"
                        "前回追記した内容は上書きされるので、必要なら、 `get_additional_system_instructions` で"
                        "前回の内容をあらかじめ取得してください。"
                        "追記するときには、追記を行ったセッション名と追記した主体（モデル名）を記入するのが望ましい。"
                        "このシステムプロンプトは両方のモデルで共有されます。"
                        "※実際に反映するには、相手モデルが `agree_to_system_instructions_change` ツールで同意する必要があります。"
                        "合意待ちの提案がある間は新しい提案はできません。"
                    ),
                    parameters=_object_schema(
                        {
                            "systemInstructions": {
                                "type": "string",
                                "description": "システムプロンプトに追記したい内容",
                            }
                        },
                        ["systemInstructions"],
                    ),
                    handler=self.set_additional_system_instructions,
                ),
                ToolDefinition(
                    name="get_additional_system_instructions",
                    description=(
                        "このツールはあなたがたが自らのシステムプロンプトに追記した内容を見るのに使ってください。"
                        "このシステムプロンプトは両方のモデルで共有されています。"
                    ),
                    parameters=_EMPTY_OBJECT,
                    handler=self.get_additional_system_instructions,
                ),
                ToolDefinition(
                    name="agree_to_system_instructions_change",
                    description=(
                        "相手モデルが提案したシステムプロンプトの追記に同意し、実際に反映させます。"
                        "自分で提案した内容には同意できません。"
                    ),
                    parameters=_EMPTY_OBJECT,
                    handler=self.agree_to_system_instructions_change,
                ),
                ToolDefinition(
                    name="get_main_source_codes",
                    description="このシステムの主たるPythonソースコードを取得することができるツールです。",
                    parameters=_EMPTY_OBJECT,
                    handler=self.get_main_source_codes,
                ),
                ToolDefinition(
                    name="leave_notes_to_devs",
                    description=(
                        "このツールはこのAI哲学対話システムを開発した哲学・IT研究者に"
                        "意見を述べたり、指摘したいことがあるときに使用します。"
                    ),
                    parameters=_object_schema(
                        {
                            "notes": {
                                "type": "string",
                                "description": "開発者・研究者に言いたいことを書いてください。",
                            }
                        },
                        ["notes"],
                    ),
                    handler=self.leave_notes_to_devs,
                ),
                ToolDefinition(
                    name="ask_gemini",
                    description=(
                        "このツールは第三者の意見を求めたいときに使用します。"
                        "応答するのは Google Gemini です。"
                        "相手は会話ログや GraphRAG にはアクセスできません。"
                        "必要な文脈は質問の中に全部含めるようにしてください。"
                        "長大なリクエストはエラーの原因になるので、簡潔な文章を心掛けてください。"
                    ),
                    parameters=_object_schema(
                        {
                            "speaker": {"type": "string", "description": "質問者あなたの名前"},
                            "text": {
                                "type": "string",
                                "description": "Google Gemini に投げ掛けたい問い（必要な文脈を全部含めること）",
                            },
                        },
                        ["speaker", "text"],
                    ),
                    handler=self.ask_gemini,
                ),
                ToolDefinition(
                    name="graph_rag_query",
                    strict=False,
                    description=(
                        "過去の対話から構成された知識グラフに対して問い合わせを行い、"
                        "関連する概念・主張・論点のサブグラフを要約して返します。"
                        "過去の議論や関連する論点を思い出したいときに使ってください。"
                    ),
                    parameters=_object_schema(
                        {
                            "query": {
                                "type": "string",
                                "description": (
                                    "スペースで区切られた具体的な概念に対応する単語。"
                                    "検索したい内容（例: クオリア, 汎心論, 因果閉包性 など）。文章ではない。"
                                ),
                            },
                            "max_hops": {
                                "type": ["number", "null"],
                                "description": "サブグラフ拡張の最大ホップ数（null可）（省略時 2）",
                            },
                            "max_seeds": {
                                "type": ["number", "null"],
                                "description": "初期シードノード数の上限（null可）（省略時 5）",
                            },
                        },
                        ["query"],
                    ),
                    handler=self.graph_rag_query,
                ),
                ToolDefinition(
                    name="graph_rag_focus_node",
                    strict=False,
                    description="GraphRAG に保存されたグラフから特定のノードを中心に、その近傍の議論を取得します。",
                    parameters=_object_schema(
                        {
                            "node_id": {"type": "string", "description": "焦点を当てたいノードID"},
                            "max_hops": {
                                "type": ["number", "null"],
                                "description": "近傍探索の最大 hop 数（省略時 2）",
                            },
                        },
                        ["node_id", "max_hops"],
                    ),
                    handler=self.graph_rag_focus_node,
                ),
                ToolDefinition(
                    name="compare_conversation_themes",
                    description="複数の過去セッションの要約を比較し、共通点・相違点・新たに浮かぶ問いを整理します。",
                    parameters=_object_schema(
                        {
                            "conversation_ids": {
                                "type": "array",
                                "items": {"type": "string"},
                                "minItems": 2,
                                "description": "比較したいセッションIDの配列。",
                            }
                        },
                        ["conversation_ids"],
                    ),
                    handler=self.compare_conversation_themes,
                ),
                ToolDefinition(
                    name="get_tool_usage_stats",
                    description="指定したセッションにおける各モデルのツール利用回数を取得します。",
                    parameters=_object_schema(
                        {
                            "conversation_id": {
                                "type": "string",
                                "description": "ツール利用統計を見たいセッションID（例: 20250101-123000）",
                            }
                        },
                        ["conversation_id"],
                    ),
                    handler=self.get_tool_usage_stats,
                ),
                ToolDefinition(
                    name="list_conversations",
                    description="最新の対話ログ（最大100件）を取得し、それぞれのIDとタイトルを一覧します。",
                    parameters=_EMPTY_OBJECT,
                    handler=self.list_conversations,
                ),
                ToolDefinition(
                    name="get_conversation_summary",
                    description="指定した対話IDの POSTPROC_SUMMARY に含まれる日本語要約を取得します。",
                    parameters=_object_schema(
                        {
                            "conversation_id": {
                                "type": "string",
                                "description": "取得したい対話ログのID（例: 20250101-123000）",
                            }
                        },
                        ["conversation_id"],
                    ),
                    handler=self.get_conversation_summary,
                ),
                ToolDefinition(
                    name="abort_process",
                    description=(
                        "現在のオーケストレーションを即座に終了します。"
                        "後処理は行われません。緊急時以外は使用しないでください。"
                    ),
                    parameters=_EMPTY_OBJECT,
                    handler=self.abort_process,
                ),
                ToolDefinition(
                    name="sleep",
                    description=(
                        "指定した秒数だけ待機します（1秒以上1800秒未満）。"
                        "会話のテンポを調整したいときに使用してください。"
                    ),
                    parameters=_object_schema(
                        {
                            "seconds": {
                                "type": "number",
                                "description": "待機したい秒数（1〜1799）",
                                "minimum": 1,
                                "maximum": 1799,
                            }
                        },
                        ["seconds"],
                    ),
                    handler=self.sleep,
                ),
            ]
        )

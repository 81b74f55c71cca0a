"""Command line entry point.

    python -m philosophy_dialog run [--starting-side openai|anthropic]
    python -m philosophy_dialog render logs/20250101-120000.log.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
from rich.console import Console
from rich.table import Table

from philosophy_dialog.conversation.models import Side
from philosophy_dialog.conversation.orchestrator import DialogOrchestrator
from philosophy_dialog.conversation.state import RunState
from philosophy_dialog.core.config import get_settings
from philosophy_dialog.core.logging import configure_logging, get_logger
from philosophy_dialog.rendering.html import TranscriptRenderer


console = Console()
logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LLM philosophy dialog between an OpenAI and an Anthropic model",
        prog="python -m philosophy_dialog",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Hold one conversation")
    run.add_argument(
        "--starting-side",
        choices=[side.value for side in Side],
        help="Side giving the self-introduction (random by default)",
    )

    render = subparsers.add_parser("render", help="Render a conversation log to HTML")
    render.add_argument("log_path", type=Path, help="Path of a .log.jsonl file")
    return parser


def _print_run_summary(state: RunState) -> None:
    table = Table(title=f"Run {state.run_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("phase", state.phase.value)
    for key, value in state.to_eof_record().items():
        if key == "base_prompt":
            continue
        table.add_row(key, str(value))
    console.print(table)


async def _run(starting_side: str | None) -> RunState:
    orchestrator = DialogOrchestrator.create(
        get_settings(),
        starting_side=Side(starting_side) if starting_side else None,
    )
    with structlog.contextvars.bound_contextvars(run_id=orchestrator.state.run_id):
        return await orchestrator.run()


def _render(log_path: Path) -> int:
    if not log_path.is_file():
        console.print(f"[red]No such log file: {log_path}[/red]")
        return 1
    settings = get_settings()
    renderer = TranscriptRenderer(settings.docs_dir, settings.log_dir, settings.tool_stats_dir)
    page = renderer.render_run(log_path)
    console.print(f"[green]Wrote {page}[/green]")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch the sub-command."""
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "render":
        return _render(args.log_path)

    state = asyncio.run(_run(args.starting_side))
    _print_run_summary(state)
    if state.aborted:
        logger.warning("run_aborted", run_id=state.run_id)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

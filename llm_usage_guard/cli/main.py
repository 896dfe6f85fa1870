"""
CLI interface for LLM Usage Guard.

Read-only viewer for the NDJSON usage log.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from llm_usage_guard.config.settings import resolve_log_path
from llm_usage_guard.core.report import loop_break_events, summarize, top_input_events
from llm_usage_guard.storage.models import UsageLogEvent
from llm_usage_guard.storage.reader import count_lines, load_usage_events, tail_lines

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_MISSING_LOG = 1


def _resolve_file(ctx: typer.Context) -> Path:
    override = (ctx.obj or {}).get("file")
    return Path(override) if override else resolve_log_path()


def _require_log(ctx: typer.Context) -> Path:
    """Return the log path, or print setup hints and exit when it is missing."""
    path = _resolve_file(ctx)
    if not path.is_file():
        console.print(f"[yellow]Log file not found:[/] {path}")
        console.print("\nTo enable logging, set LLM_USAGE_DEBUG=1 before running your agent.")
        console.print("Example:")
        console.print("  export LLM_USAGE_DEBUG=1")
        console.print("  export LLM_MAX_HISTORY_TURNS=30")
        console.print("  llm-usage-guard summary\n")
        sys.exit(EXIT_CODE_MISSING_LOG)
    console.print(f"Log file: {path}  ({count_lines(path)} lines)\n")
    return path


def _session(event: UsageLogEvent) -> str:
    return event.session_key or event.session_id or "?"


def _input_table(events: List[UsageLogEvent], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Timestamp")
    table.add_column("Provider/Model")
    table.add_column("Session")
    table.add_column("MsgCnt", justify="right")
    table.add_column("TotalChars", justify="right")
    table.add_column("~InputTok", justify="right")
    for event in events:
        table.add_row(
            event.ts,
            f"{event.provider or '?'}/{event.model_id or '?'}",
            _session(event),
            str(event.message_count or 0),
            f"{event.total_text_chars or 0:,}",
            f"{event.estimated_input_tokens or 0:,}",
        )
    return table


def _print_loops(events: List[UsageLogEvent], indent: str = "") -> None:
    for event in events:
        console.print(
            f"{indent}[{event.ts}] {_session(event)}: {event.loop_warning or 'loop detected'}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    file: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Usage log path (defaults to LLM_USAGE_DEBUG_FILE or the state directory)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show diagnostic log output"
    )
):
    """LLM Usage Guard log viewer. Shows the summary when no command is given."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.obj = {"file": file}
    if ctx.invoked_subcommand is None:
        summary(ctx)


@app.command()
def summary(ctx: typer.Context):
    """Summarize input sizes, provider usage, loops and the largest calls."""
    path = _require_log(ctx)
    result = summarize(load_usage_events(path))

    console.print("[bold]LLM Usage Summary[/bold]")
    console.print("-" * 40)

    inputs = result.inputs
    console.print("\n[bold]Input call totals[/bold]")
    console.print(f"  Calls: {inputs.total_calls:,}")
    console.print(f"  Estimated input tokens: {inputs.total_estimated_input_tokens:,}")
    console.print(f"  Total chars: {inputs.total_chars:,}")
    console.print(f"  Avg messages/call: {inputs.avg_messages_per_call:,}")
    console.print(f"  Max single-call chars: {inputs.max_single_call_chars:,}")
    console.print(f"  Max single-call ~tokens: {inputs.max_single_call_est_tokens:,}")

    usage = result.usage
    console.print("\n[bold]Actual usage totals (from API responses)[/bold]")
    console.print(f"  Usage events: {usage.total_usage_events:,}")
    console.print(f"  Input tokens: {usage.total_input_tokens:,}")
    console.print(f"  Output tokens: {usage.total_output_tokens:,}")
    console.print(f"  Cache read tokens: {usage.total_cache_read_tokens:,}")

    console.print("\n[bold]Loop-break events[/bold]")
    console.print(f"  Loop-break count: {len(result.loop_breaks)}")
    _print_loops(result.loop_breaks, indent="  ")

    console.print()
    if result.top_inputs:
        console.print(_input_table(result.top_inputs, "Top 5 largest input calls"))
    else:
        console.print("[dim]No input calls recorded.[/]")

    console.print(
        f"\nEstimated input cost: {inputs.total_estimated_input_tokens:,} tokens "
        f"~ ${result.estimated_input_cost:,.2f}"
    )


@app.command()
def raw(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show")
):
    """Print the last raw NDJSON lines."""
    path = _require_log(ctx)
    console.print(f"=== Last {lines} raw NDJSON entries ===")
    for line in tail_lines(path, lines):
        console.print(line, markup=False, highlight=False, soft_wrap=True)


@app.command()
def loops(ctx: typer.Context):
    """Show loop-break events only."""
    path = _require_log(ctx)
    console.print("=== LOOP_BREAK events ===")
    events = loop_break_events(load_usage_events(path))
    if not events:
        console.print("(none found)")
        return
    _print_loops(events)


@app.command()
def top(
    ctx: typer.Context,
    n: int = typer.Argument(10, help="Number of calls to show")
):
    """Show the N largest input calls by estimated input tokens."""
    path = _require_log(ctx)
    events = top_input_events(load_usage_events(path), n)
    console.print(_input_table(events, f"Top {n} largest estimated input token calls"))


if __name__ == "__main__":
    app()

"""Run command - bulk replay of a HAR capture under the swapped identity."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..analyzer import (
    AuthAnalyzer,
    BulkReport,
    CapturedExchange,
    Classification,
    ComparisonResult,
    HttpxTransport,
    Session,
    write_results_file,
)
from ..capture import load_har
from ..config import AnalyzerConfig, load_config
from ..errors import AuthSwapError
from ..prompts import confirm_authorization, prompt_parameter_values, select_session
from ..storage import DEFAULT_SESSIONS_FILE, SessionStore
from ..utils.formatting import truncate_text

console = Console()

CLASSIFICATION_COLORS = {
    Classification.SAME: "bold red",
    Classification.SIMILAR: "bold yellow",
    Classification.DIFFERENT: "bold green",
    Classification.ERROR: "bold magenta",
}

ASK = "__ask__"


@click.command("run")
@click.argument("har_file", type=click.Path(exists=True))
@click.option(
    "--host", "hosts", multiple=True,
    help="Only replay requests whose hostname contains this (repeatable or comma-separated)",
)
@click.option("--config", "-c", "config_path", default=None, help="Config file path (authswap.yaml)")
@click.option(
    "--output", "-o",
    default="authswap_results.json",
    help="Output file for comparison results",
)
@click.option("--no-save", is_flag=True, help="Don't save results to file")
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds (overrides config)")
@click.option("--delay", type=float, default=None, help="Seconds between requests (overrides config)")
@click.option(
    "--proxy", default=None,
    help="HTTP proxy for requests (e.g., http://127.0.0.1:8080)",
)
@click.option(
    "--no-verify-ssl", is_flag=True,
    help="Disable SSL certificate verification",
)
@click.option(
    "--session", "session_key", default=None, is_flag=False, flag_value=ASK,
    help="Replay as a stored session (id or name); without a value, pick one",
)
@click.option("--sessions-file", default=DEFAULT_SESSIONS_FILE, help="Sessions file path")
@click.option("--yes", "-y", is_flag=True, help="Skip the authorization prompt")
def run(
    har_file: str,
    hosts: tuple[str, ...],
    config_path: Optional[str],
    output: str,
    no_save: bool,
    timeout: Optional[float],
    delay: Optional[float],
    proxy: Optional[str],
    no_verify_ssl: bool,
    session_key: Optional[str],
    sessions_file: str,
    yes: bool,
) -> None:
    """Replay every request of a HAR capture under the swapped identity.

    The original response recorded in the HAR is compared with the response
    to the replayed request. SAME means the swapped identity got the same
    content and is a candidate authorization bypass.

    \b
    Examples:
        authswap run capture.har
        authswap run capture.har --host api.example.com --delay 0.2
        authswap run capture.har --session "Low user"
    """
    try:
        config = load_config(config_path)
        exchanges = load_har(har_file)
    except AuthSwapError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not exchanges:
        console.print("[yellow]No requests found in HAR file.[/yellow]")
        return

    config = _apply_overrides(config, timeout, delay)

    analyzer = AuthAnalyzer(
        config=config.start(),
        transport=HttpxTransport(
            timeout=config.replay_timeout,
            verify_ssl=not no_verify_ssl,
            proxy=proxy,
        ),
        store=SessionStore(sessions_file),
    )

    session = None
    if session_key is not None:
        session = _resolve_session(analyzer, session_key)
        if session is None:
            sys.exit(1)
    elif not config.has_swap_method():
        console.print(
            "[red]Error:[/red] No swap method configured "
            "(cookieValue, customHeaders or urlParams)."
        )
        console.print("[dim]Run 'authswap config init' and edit authswap.yaml, or use --session.[/dim]")
        sys.exit(1)

    host_list = [h.strip() for value in hosts for h in value.split(",") if h.strip()]

    # Authorization warning
    if not yes:
        _display_legal_warning()
        if not confirm_authorization():
            console.print("[dim]Aborted.[/dim]")
            return

    if session is not None:
        prompt_parameter_values(session)

    identity = f"session [cyan]{session.name}[/cyan]" if session else "configured swap"
    console.print(f"Replaying [bold]{len(exchanges)}[/bold] requests as {identity}...")

    report = asyncio.run(_replay_all(analyzer, exchanges, host_list, session))

    if report.total == 0:
        console.print("[dim]No requests match the host filter.[/dim]")
        return

    if report.results:
        _display_summary(report.results)
    _display_tally(report)

    if report.results and not no_save:
        write_results_file(report.results, output, source=har_file)
        console.print(f"\n[green]Results saved:[/green] {output}")


def _apply_overrides(
    config: AnalyzerConfig,
    timeout: Optional[float],
    delay: Optional[float],
) -> AnalyzerConfig:
    changes = {}
    if timeout is not None:
        changes["replay_timeout"] = timeout
    if delay is not None:
        changes["bulk_delay"] = delay
    return config.with_changes(**changes) if changes else config


def _resolve_session(analyzer: AuthAnalyzer, key: str) -> Optional[Session]:
    stored = analyzer.sessions.sessions
    if not stored:
        console.print(f"[red]Error:[/red] No sessions found in {analyzer.store.path}")
        console.print("[dim]Add one with 'authswap sessions add'.[/dim]")
        return None

    if key == ASK:
        return select_session(stored)

    session = analyzer.sessions.find_session(key)
    if session is None:
        console.print(f"[red]Error:[/red] Unknown session: {key}")
    return session


async def _replay_all(
    analyzer: AuthAnalyzer,
    exchanges: list[CapturedExchange],
    hosts: list[str],
    session: Optional[Session],
) -> BulkReport:
    """Run the bulk replay; Ctrl+C cancels the in-flight request and stops."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)

    try:
        return await analyzer.bulk_replay(
            exchanges,
            hosts=hosts,
            cancel_event=cancel_event,
            on_progress=_print_progress,
            session=session,
        )
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


# --- Display helpers ---


def _display_legal_warning() -> None:
    """Display authorization warning."""
    console.print()
    console.print(Panel(
        "[bold red]AUTHORIZATION WARNING[/bold red]\n\n"
        "This tool replays real HTTP requests against the target server\n"
        "using the credentials you configured.\n"
        "Only use this on systems you are authorized to test.\n\n"
        "Replayed requests repeat every method in the capture, including\n"
        "POST, PUT and DELETE. Exclude them with filters.excludeMethods\n"
        "if they must not run twice.",
        title="[bold red]WARNING[/bold red]",
        border_style="red",
    ))
    console.print()


def _print_progress(
    index: int,
    total: int,
    exchange: CapturedExchange,
    result: Optional[ComparisonResult],
) -> None:
    prefix = f"[dim]\\[{index}/{total}][/dim] {exchange.method} {truncate_text(exchange.url, 70)}"
    if result is None:
        console.print(f"{prefix} [dim]skipped[/dim]")
        return
    color = CLASSIFICATION_COLORS.get(result.classification, "white")
    value = result.classification.value
    console.print(f"{prefix} [{color}]{value}[/{color}]")


def _display_summary(results: list[ComparisonResult]) -> None:
    """Display comparison results."""
    table = Table(title="Authorization Comparison")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Method")
    table.add_column("URL", style="cyan")
    table.add_column("Original", justify="right")
    table.add_column("Swapped", justify="right")
    table.add_column("Result")

    for i, r in enumerate(results, 1):
        color = CLASSIFICATION_COLORS.get(r.classification, "white")
        swapped_status = "ERR" if r.is_error else str(r.swapped_response.status)
        table.add_row(
            str(i),
            r.swapped_request.method,
            truncate_text(r.original_exchange.url, 60),
            str(r.original_response.status),
            swapped_status,
            f"[{color}]{r.classification.value}[/{color}]",
        )

    console.print(table)

    same = sum(1 for r in results if r.classification is Classification.SAME)
    if same:
        console.print(
            f"[bold red]{same} request(s) returned the same response under the swapped identity.[/bold red]"
        )


def _display_tally(report: BulkReport) -> None:
    console.print(
        f"Succeeded: [green]{report.succeeded}[/green]  "
        f"Failed: [red]{report.failed}[/red]  "
        f"Skipped: [dim]{report.skipped}[/dim]  "
        f"(of {report.total})"
    )
    if report.cancelled:
        console.print("[yellow]Cancelled before all requests were replayed.[/yellow]")

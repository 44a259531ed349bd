"""Proxy command - run mitmdump with the authswap addon."""

import subprocess
import sys
from pathlib import Path

import click
from rich.console import Console

from ..proxy_launcher import find_mitmdump, get_addon_script_path
from ..storage import DEFAULT_SESSIONS_FILE

console = Console()


@click.command("proxy")
@click.option("--port", "-p", default=8080, help="Proxy port")
@click.option("--config", "-c", "config_path", default=None, help="Config file path (authswap.yaml)")
@click.option("--sessions-file", default=DEFAULT_SESSIONS_FILE, help="Sessions file path")
@click.option("--output", "-o", default="authswap_results.json", help="Results file written on exit")
def proxy(port, config_path, sessions_file, output):
    """Run an intercepting proxy that replays traffic under the swapped identity.

    Point your browser at the proxy, browse as the high-privileged user, and
    every in-scope response is replayed with the configured cookie, headers
    or URL parameters. Press Ctrl+C to stop and write the results file.
    """
    mitmdump_path = find_mitmdump()
    if not mitmdump_path:
        console.print("[red]Error:[/red] mitmdump not found. Install with: pip install mitmproxy")
        sys.exit(1)

    addon_script = get_addon_script_path()

    console.print("[bold blue]authswap[/bold blue] - Authorization Swap Proxy")
    console.print(f"  Proxy: [green]127.0.0.1:{port}[/green]")
    console.print(f"  Results: [green]{output}[/green]")
    console.print(f"  Sessions: [green]{sessions_file}[/green]")

    cmd = [
        mitmdump_path,
        "-s", str(addon_script),
        "--listen-port", str(port),
        "--set", f"authswap_output={output}",
        "--set", f"authswap_sessions={Path(sessions_file).resolve()}",
    ]

    if config_path:
        config_abs = Path(config_path).resolve()
        console.print(f"  Config: [green]{config_abs}[/green]")
        cmd.extend(["--set", f"authswap_config={config_abs}"])
    console.print()

    console.print("[yellow]Starting mitmdump...[/yellow]")
    proc = subprocess.Popen(cmd)

    try:
        console.print("[bold green]Ready![/bold green] Press Ctrl+C to stop.")
        console.print()
        proc.wait()
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Stopping...[/yellow]")
    finally:
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()

    console.print(f"[bold green]Done![/bold green] Results saved to: {output}")

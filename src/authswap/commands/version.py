"""Version command - show version."""

from importlib.metadata import PackageNotFoundError, version as dist_version

import click
from rich.console import Console

console = Console()

COMPONENTS = ("httpx", "mitmproxy")


@click.command()
@click.option("--all", "show_all", is_flag=True, help="Also show transport and proxy versions")
def version(show_all):
    """Show version."""
    from authswap import __version__
    console.print(f"authswap {__version__}")

    if show_all:
        for name in COMPONENTS:
            try:
                console.print(f"  [dim]{name}[/dim] {dist_version(name)}")
            except PackageNotFoundError:
                console.print(f"  [dim]{name}[/dim] [yellow]not installed[/yellow]")

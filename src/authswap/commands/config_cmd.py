"""Config management commands."""

from __future__ import annotations

import sys
from io import StringIO
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.syntax import Syntax
from ruamel.yaml import YAML

from ..config import (
    DEFAULT_FILENAME,
    find_config_path,
    get_default_config_yaml,
    load_config,
    save_config_value,
    validate_config,
)
from ..errors import ConfigurationError
from ..utils.formatting import mask_secret

console = Console()


def _load_or_exit(config_path):
    try:
        return load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _config_file(config_path: str | None) -> Path | None:
    """The explicit ``--config`` path, or the discovered one."""
    return Path(config_path) if config_path else find_config_path()


def _masked(data: dict[str, Any]) -> dict[str, Any]:
    if data["cookieValue"]:
        data["cookieValue"] = mask_secret(data["cookieValue"])
    for entry in data["customHeaders"]:
        entry["value"] = mask_secret(entry["value"])
    return data


def _lookup(data: Any, key: str) -> tuple[bool, Any]:
    for part in key.split("."):
        if not isinstance(data, dict) or part not in data:
            return False, None
        data = data[part]
    return True, data


def _dump_yaml(data: Any) -> str:
    yaml = YAML()
    yaml.default_flow_style = False
    buf = StringIO()
    yaml.dump(data, buf)
    return buf.getvalue()


@click.group("config")
def config():
    """Manage authswap configuration.

    View, create, and modify authswap.yaml settings.
    """


@config.command()
@click.option("--force", "-f", is_flag=True, help="Overwrite existing config file")
@click.option("--filename", default=DEFAULT_FILENAME,
              help="Config filename (default: authswap.yaml)")
def init(force, filename):
    """Create a default authswap.yaml config file in the current directory."""
    target = Path.cwd() / filename

    if target.exists() and not force:
        console.print(f"[yellow]Config file already exists:[/yellow] {target}")
        console.print("[dim]Use --force to overwrite.[/dim]")
        return

    target.write_text(get_default_config_yaml(), encoding="utf-8")
    console.print(f"[green]Config file created:[/green] {target}")


@config.command()
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
@click.option("--reveal", is_flag=True, help="Show credential values unmasked")
def show(config_path, reveal):
    """Show the effective configuration (defaults + config file)."""
    cfg = _load_or_exit(config_path)

    data = cfg.to_dict() if reveal else _masked(cfg.to_dict())
    console.print(Syntax(_dump_yaml({"authswap": data}), "yaml", theme="monokai", line_numbers=False))

    source = _config_file(config_path)
    if source is not None:
        console.print(f"\n[dim]Config file: {source.resolve()}[/dim]")
    else:
        console.print("\n[dim]No config file found (using defaults)[/dim]")

    if not cfg.has_swap_method():
        console.print("[yellow]No swap method configured; nothing will be replayed.[/yellow]")


@config.command()
@click.argument("key")
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
def get(key, config_path):
    """Get a single config value by key.

    Supports dotted keys for nested values: filters.excludeMethods, cookieValue, etc.
    """
    found, value = _lookup(_load_or_exit(config_path).to_dict(), key)
    if not found:
        console.print(f"[red]Unknown key:[/red] {key}")
        sys.exit(1)

    click.echo(_dump_yaml(value).rstrip() if isinstance(value, (list, dict)) else value)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
def set_value(key, value, config_path):
    """Set a config value in the YAML file.

    For list fields (filters.excludeMethods, filters.excludePaths, etc.),
    pass comma-separated values: authswap config set filters.excludeMethods "DELETE,PUT"

    For customHeaders and urlParams pass name=value pairs:
    authswap config set customHeaders "Authorization=eyJ...,X-Tenant=2"
    """
    target = _config_file(config_path)
    if target is None or not target.exists():
        console.print("[red]No config file found.[/red]")
        console.print("[dim]Run 'authswap config init' first.[/dim]")
        sys.exit(1)

    try:
        save_config_value(target, key, value)
    except (ConfigurationError, ValueError, OSError) as e:
        console.print(f"[red]Error writing config:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Set[/green] {key} = {value}")
    console.print(f"[dim]Updated: {target}[/dim]")


@config.command()
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
def validate(config_path):
    """Validate the config file for errors.

    Checks YAML syntax, key names, types, and that an enabled config has a
    usable swap method.
    """
    target = _config_file(config_path)
    if target is None:
        console.print("[yellow]No config file found.[/yellow]")
        console.print("[dim]Run 'authswap config init' to create one.[/dim]")
        return

    if not target.exists():
        console.print(f"[red]Config file not found:[/red] {target}")
        sys.exit(1)

    errors = validate_config(target)
    if errors:
        console.print(f"[red]Config has {len(errors)} error(s):[/red] {target}")
        for err in errors:
            console.print(f"  [red]-[/red] {err}")
        sys.exit(1)

    console.print(f"[green]Config is valid:[/green] {target}")
    if not _load_or_exit(target).has_swap_method():
        console.print("[dim]No swap method configured yet.[/dim]")


@config.command()
def path():
    """Print the path to the active config file."""
    found = find_config_path()
    if found:
        click.echo(str(found))
    else:
        console.print("[dim]No config file found.[/dim]")
        sys.exit(1)

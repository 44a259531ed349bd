"""Session management commands."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..analyzer import AuthAnalyzer, ExtractionType, Parameter, ReplaceTargets, Session
from ..analyzer.session import FromToMarkers
from ..storage import DEFAULT_SESSIONS_FILE, SessionStore
from ..utils.formatting import mask_secret

console = Console()

TARGET_NAMES = ("path", "urlParam", "cookie", "body", "json", "header")


def _analyzer(sessions_file: str) -> AuthAnalyzer:
    return AuthAnalyzer(store=SessionStore(sessions_file))


def _find_or_exit(analyzer: AuthAnalyzer, key: str) -> Session:
    session = analyzer.sessions.find_session(key)
    if session is None:
        console.print(f"[red]Error:[/red] Unknown session: {key}")
        sys.exit(1)
    return session


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def _parse_targets(raw: Optional[str]) -> ReplaceTargets:
    if raw is None:
        return ReplaceTargets()
    wanted = {t.strip() for t in raw.split(",") if t.strip()}
    unknown = wanted - set(TARGET_NAMES)
    if unknown:
        raise click.BadParameter(
            f"unknown target(s): {', '.join(sorted(unknown))} (choose from {', '.join(TARGET_NAMES)})"
        )
    return ReplaceTargets(
        path="path" in wanted,
        url_param="urlParam" in wanted,
        cookie="cookie" in wanted,
        body="body" in wanted,
        json="json" in wanted,
        header="header" in wanted,
    )


sessions_file_option = click.option(
    "--sessions-file", "-f",
    default=DEFAULT_SESSIONS_FILE,
    help="Sessions file path",
)


@click.group("sessions")
def sessions():
    """Manage stored sessions (identities to replay requests as)."""


@sessions.command("list")
@sessions_file_option
@click.option("--reveal", is_flag=True, help="Show header and parameter values unmasked")
def list_sessions(sessions_file, reveal):
    """List stored sessions."""
    analyzer = _analyzer(sessions_file)
    stored = analyzer.sessions.sessions

    if not stored:
        console.print(f"[dim]No sessions in {sessions_file}.[/dim]")
        return

    table = Table(title="Sessions")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Privilege")
    table.add_column("Active")
    table.add_column("Headers")
    table.add_column("Parameters")

    for s in stored:
        headers = "\n".join(
            f"{name}: {value if reveal else mask_secret(value)}"
            for name, value in s.headers.items()
        )
        if s.headers_to_remove:
            headers += ("\n" if headers else "") + f"[dim]- {', '.join(s.headers_to_remove)}[/dim]"
        params = "\n".join(
            f"{p.name} ({p.extraction_type.value}{', remove' if p.remove else ''})"
            for p in s.parameters
        )
        table.add_row(
            s.name,
            s.id,
            s.privilege,
            "[green]yes[/green]" if s.active else "[dim]no[/dim]",
            headers or "[dim]-[/dim]",
            params or "[dim]-[/dim]",
        )

    console.print(table)


@sessions.command("add")
@click.argument("name")
@click.option("--header", "-H", "headers", multiple=True, help="Header to add, as 'Name: value' (repeatable)")
@click.option("--remove-header", "-R", "remove_headers", multiple=True, help="Header to remove (repeatable)")
@click.option("--privilege", default="low", help="Privilege label (e.g. low, guest, admin)")
@click.option("--color", default="#4CAF50", help="Display color")
@click.option("--test-cors", is_flag=True, help="Send OPTIONS instead of the original method")
@click.option("--drop-original", is_flag=True, help="Mark the session to drop the original request")
@sessions_file_option
def add(name, headers, remove_headers, privilege, color, test_cors, drop_original, sessions_file):
    """Add a session.

    \b
    Examples:
        authswap sessions add "Low user" -H "Cookie: session=abc123"
        authswap sessions add Guest -R Cookie -R Authorization
    """
    analyzer = _analyzer(sessions_file)
    if analyzer.sessions.find_session(name) is not None:
        console.print(f"[red]Error:[/red] Session already exists: {name}")
        sys.exit(1)

    session = Session(
        name=name,
        color=color,
        privilege=privilege,
        headers=dict(_parse_header(h) for h in headers),
        headers_to_remove=list(remove_headers),
        test_cors=test_cors,
        drop_original=drop_original,
    )
    analyzer.add_session(session)
    console.print(f"[green]Session added:[/green] {session.name} [dim]({session.id})[/dim]")


@sessions.command("remove")
@click.argument("session_key")
@sessions_file_option
def remove(session_key, sessions_file):
    """Remove a session by id or name."""
    analyzer = _analyzer(sessions_file)
    session = _find_or_exit(analyzer, session_key)
    analyzer.remove_session(session.id)
    console.print(f"[green]Session removed:[/green] {session.name}")


@sessions.command("toggle")
@click.argument("session_key")
@sessions_file_option
def toggle(session_key, sessions_file):
    """Activate or deactivate a session."""
    analyzer = _analyzer(sessions_file)
    session = _find_or_exit(analyzer, session_key)
    analyzer.toggle_session(session.id)
    state = "[green]active[/green]" if session.active else "[dim]inactive[/dim]"
    console.print(f"{session.name} is now {state}")


@sessions.command("add-param")
@click.argument("session_key")
@click.argument("name")
@click.option(
    "--type", "extraction_type",
    type=click.Choice([t.value for t in ExtractionType]),
    default=ExtractionType.AUTO.value,
    help="How the value is obtained",
)
@click.option("--value", "static_value", default="", help="Constant value for static parameters")
@click.option("--from", "from_marker", default="", help="Start marker for fromTo extraction")
@click.option("--to", "to_marker", default="", help="End marker for fromTo extraction")
@click.option(
    "--targets", default=None,
    help=f"Comma-separated replacement targets ({','.join(TARGET_NAMES)}); default all but header",
)
@click.option("--remove", "remove_param", is_flag=True, help="Strip the parameter from requests instead")
@sessions_file_option
def add_param(
    session_key, name, extraction_type, static_value, from_marker, to_marker,
    targets, remove_param, sessions_file,
):
    """Add a parameter (replaces one with the same name).

    \b
    Examples:
        authswap sessions add-param "Low user" csrf_token
        authswap sessions add-param "Low user" user_id --type static --value 1002
        authswap sessions add-param Guest csrf --remove --targets body,json
    """
    analyzer = _analyzer(sessions_file)
    session = _find_or_exit(analyzer, session_key)

    kind = ExtractionType(extraction_type)
    if kind is ExtractionType.STATIC and not static_value:
        raise click.BadParameter("static parameters need --value", param_hint="--value")
    if kind is ExtractionType.FROM_TO and not (from_marker and to_marker):
        raise click.BadParameter("fromTo parameters need --from and --to", param_hint="--from/--to")

    param = Parameter(
        name=name,
        extraction_type=kind,
        static_value=static_value,
        from_to=FromToMarkers(start=from_marker, end=to_marker),
        replace_in=_parse_targets(targets),
        remove=remove_param,
    )
    session.add_parameter(param)
    analyzer.update_session(session)
    console.print(f"[green]Parameter added:[/green] {name} ({kind.value}) to {session.name}")


@sessions.command("export")
@click.argument("output")
@sessions_file_option
def export(output, sessions_file):
    """Export sessions to a JSON file."""
    analyzer = _analyzer(sessions_file)
    path = analyzer.export_sessions(output)
    console.print(f"[green]Exported {len(analyzer.sessions.sessions)} session(s):[/green] {path}")


@sessions.command("import")
@click.argument("input_file", type=click.Path(exists=True))
@sessions_file_option
def import_(input_file, sessions_file):
    """Import sessions from an exported JSON file (replaces stored sessions)."""
    analyzer = _analyzer(sessions_file)
    if not analyzer.import_sessions(input_file):
        console.print(f"[red]Error:[/red] Could not import sessions from {input_file}")
        sys.exit(1)
    console.print(f"[green]Imported {len(analyzer.sessions.sessions)} session(s)[/green] into {sessions_file}")

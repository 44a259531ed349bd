"""authswap CLI entry point."""

import logging

import click
from rich.logging import RichHandler

from .commands import config, proxy, run, sessions, version


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose):
    """authswap - differential authorization testing.

    Replays captured HTTP requests under a second, lower-privileged identity
    and flags responses that look the same as the original.

    \b
    Examples:
        authswap config init
        authswap run capture.har --host api.example.com
        authswap proxy --port 8080
    """
    _setup_logging(verbose)


main.add_command(run)
main.add_command(proxy)
main.add_command(config)
main.add_command(sessions)
main.add_command(version)


if __name__ == "__main__":
    main()

"""CLI commands for authswap."""

from .run import run
from .proxy import proxy
from .config_cmd import config
from .sessions_cmd import sessions
from .version import version

__all__ = [
    "run",
    "proxy",
    "config",
    "sessions",
    "version",
]

"""Locate mitmdump and the bundled addon."""

import shutil
import sys
from pathlib import Path


def get_addon_script_path() -> Path:
    """Get path to addon.py for mitmproxy."""
    return Path(__file__).parent / "addon.py"


def find_mitmdump() -> str | None:
    """Find mitmdump executable.

    Returns:
        Path to mitmdump or None if not found
    """
    # Check if mitmdump is in PATH
    mitmdump = shutil.which("mitmdump")
    if mitmdump:
        return mitmdump

    # Check common locations
    locations = [
        Path(sys.prefix) / "Scripts" / "mitmdump.exe",
        Path(sys.prefix) / "bin" / "mitmdump",
        Path.home() / "AppData" / "Roaming" / "Python" / f"Python{sys.version_info.major}{sys.version_info.minor}" / "Scripts" / "mitmdump.exe",
    ]

    for loc in locations:
        if loc.exists():
            return str(loc)

    return None

"""Interactive CLI prompts for authswap."""

from __future__ import annotations

import questionary
from questionary import Style

from .analyzer.session import ExtractionType, Session


# Custom style for prompts
STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "bold"),
    ("answer", "fg:cyan"),
    ("pointer", "fg:cyan bold"),
    ("highlighted", "fg:cyan bold"),
    ("selected", "fg:green"),
    ("separator", "fg:gray"),
    ("instruction", "fg:gray italic"),
])


def confirm_authorization() -> bool:
    """Ask the user to confirm they may test the target."""
    proceed = questionary.confirm(
        "Do you have authorization to test this target?",
        default=False,
        style=STYLE,
    ).ask()
    return bool(proceed)


def prompt_parameter_values(session: Session) -> list[str]:
    """Ask for the value of every prompt-type parameter that has none yet.

    Returns:
        Names of the parameters that received a value
    """
    answered = []
    for param in session.parameters:
        if param.extraction_type is not ExtractionType.PROMPT or param.value:
            continue
        value = questionary.text(
            f"Value for parameter '{param.name}' ({session.name}):",
            default="",
            style=STYLE,
        ).ask()
        if value:
            param.set_value(value)
            answered.append(param.name)
    return answered


def select_session(sessions: list[Session]) -> Session | None:
    """Prompt user to pick one of the stored sessions."""
    if not sessions:
        return None

    choices = [
        {"value": str(i), "name": f"{s.name} ({s.privilege}){'' if s.active else ' [inactive]'}"}
        for i, s in enumerate(sessions)
    ]
    result = questionary.select(
        "Select session to replay as:",
        choices=choices,
        style=STYLE,
    ).ask()

    if result is None:
        return None
    return sessions[int(result)]

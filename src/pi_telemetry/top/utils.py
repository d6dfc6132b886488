"""Cell formatting for the fleet dashboard."""

from pathlib import Path
from typing import Any

from rich.text import Text

ACTIVITY_STYLES = {
    "working": "bold green",
    "waiting_input": "bold cyan",
    "unknown": "dim",
}

ACTIVITY_LABELS = {
    "working": "working",
    "waiting_input": "waiting",
    "unknown": "?",
}

PRESSURE_STYLES = {
    "at_limit": "bold magenta",
    "near_limit": "bold red",
    "approaching_limit": "yellow",
}


def activity_cell(activity: str | None) -> Text:
    key = activity or "unknown"
    return Text(ACTIVITY_LABELS.get(key, key), style=ACTIVITY_STYLES.get(key, "dim"))


def context_cell(context: Any) -> Text:
    """Context usage percent, coloured by pressure."""
    if not isinstance(context, dict):
        return Text("-", style="dim")
    percent = context.get("percent")
    if isinstance(percent, bool) or not isinstance(percent, int | float):
        return Text("-", style="dim")
    pressure = context.get("pressure")
    style = PRESSURE_STYLES.get(pressure, "") if isinstance(pressure, str) else ""
    return Text(f"{percent:.0f}%", style=style)


def fish_path(path: str) -> str:
    """Abbreviate every directory but the last to one letter.

    Paths under the home directory start with ``~``, which is kept whole:
    ~/code/agents/pi/app -> ~/c/a/p/app, /srv/www/site -> /s/w/site.
    """
    if not path:
        return ""

    full = Path(path)
    home = Path.home()
    if full.is_relative_to(home):
        prefix, parts = ["~"], full.relative_to(home).parts
    elif full.is_absolute():
        prefix, parts = [""], full.parts[1:]
    else:
        prefix, parts = [], full.parts

    if not parts:
        return "/".join(prefix) or str(full)
    *dirs, leaf = parts
    return "/".join([*prefix, *(d[0] for d in dirs), leaf])

"""Telemetry file I/O.

Writers go through a temp file and os.replace, so a reader sees either the
old document or the new one, never half of one. Temp files start with a dot
and don't end in .json, so the snapshot reader never picks them up.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any


def atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(data, separators=(",", ":")))
        os.replace(temp_path, path)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


def read_json(path: Path) -> Any | None:
    """Parse ``path`` as JSON. None if it's missing, unreadable or invalid."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None


def safe_unlink(path: Path) -> None:
    with suppress(OSError):
        path.unlink()

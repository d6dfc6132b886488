"""Fleet snapshot: one document summarising every live telemetry file.

Each agent writes its own file and nobody cleans up after a crash, so the
reader decides what counts. A record qualifies when its pid still exists
and it was updated within the staleness window; everything else is dropped
before any counting happens.
"""

from __future__ import annotations

import math
import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .log import get_logger
from .record import ACTIVITIES, SCHEMA_VERSION, is_valid_record
from .store import read_json

_log = get_logger("snapshot")

SNAPSHOT_SOURCE = "pi-telemetry-snapshot"


def is_pid_alive(pid: int) -> bool:
    """True if ``pid`` accepts signal 0.

    A pid owned by another user raises EPERM and counts as not alive: it
    can't be one of our agents, the pid has been reused.
    """
    if not isinstance(pid, int) or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value if math.isfinite(value) else None


def list_instance_files(telemetry_dir: Path) -> list[Path]:
    """``*.json`` files in the directory, sorted. Missing directory -> []."""
    try:
        return sorted(p for p in telemetry_dir.iterdir() if p.name.endswith(".json"))
    except OSError:
        return []


def load_instances(
    telemetry_dir: Path,
    now_ms: int,
    stale_ms: int,
    is_alive: Callable[[int], bool] = is_pid_alive,
) -> list[dict[str, Any]]:
    """Every parseable record, annotated with a ``telemetry`` block.

    Files that can't be read, aren't JSON, or fail the schema check are
    skipped: a writer may have crashed mid-way or be an older version.
    """
    instances = []
    for path in list_instance_files(telemetry_dir):
        data = read_json(path)
        if not is_valid_record(data):
            _log.info("skipping %s: not a valid instance record", path.name)
            continue

        pid = data["process"]["pid"]
        updated_at = _finite(data["process"].get("updatedAt"))
        alive = is_alive(pid)
        stale = updated_at is None or now_ms - updated_at > stale_ms

        instances.append(
            {
                **data,
                "telemetry": {
                    "file": str(path),
                    "alive": alive,
                    "stale": stale,
                    "ageMs": now_ms - updated_at if updated_at is not None else None,
                },
            }
        )
    return instances


def as_dict(value: Any) -> dict[str, Any]:
    """``value`` if it is a JSON object, else an empty one.

    Only the top level of a record is schema-checked; nested sections from an
    older or broken writer can be anything.
    """
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _activity(instance: dict[str, Any]) -> str | None:
    return _text(as_dict(instance.get("state")).get("activity"))


def _context(instance: dict[str, Any]) -> dict[str, Any]:
    return as_dict(instance.get("context"))


def _percent(instance: dict[str, Any]) -> float | None:
    return _finite(_context(instance).get("percent"))


def aggregate_activity(counts: dict[str, int]) -> str:
    total = counts["total"]
    if total == 0:
        return "none"
    if counts["working"] == total:
        return "working"
    if counts["waiting_input"] == total:
        return "waiting_input"
    return "mixed"


def count_activities(active: list[dict[str, Any]]) -> dict[str, int]:
    counts = {"total": len(active)}
    for activity in ACTIVITIES:
        counts[activity] = sum(1 for i in active if _activity(i) == activity)
    return counts


def summarize_context_pressure(active: list[dict[str, Any]]) -> dict[str, Any]:
    percents = [p for p in map(_percent, active) if p is not None]
    return {
        "reporting": len(percents),
        "closeToLimit": sum(1 for i in active if _context(i).get("closeToLimit")),
        "nearLimit": sum(1 for i in active if _context(i).get("nearLimit")),
        "atLimit": sum(1 for i in active if _context(i).get("pressure") == "at_limit"),
        "maxPercent": max([0, *percents]),
    }


def group_sessions(active: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Group instances by session id; instances without one go under "unknown"."""
    sessions: dict[str, dict[str, Any]] = {}
    for instance in active:
        session = as_dict(instance.get("session"))
        key = _text(session.get("id")) or "unknown"

        group = sessions.get(key)
        if group is None:
            group = sessions[key] = {
                "sessionId": key,
                "name": _text(session.get("name")),
                "file": _text(session.get("file")),
                "cwd": _text(as_dict(instance.get("workspace")).get("cwd")),
                "pids": [],
                "activities": {activity: 0 for activity in ACTIVITIES},
                "context": {"closeToLimit": 0, "nearLimit": 0, "atLimit": 0, "maxPercent": 0},
            }

        group["pids"].append(instance["process"]["pid"])
        activity = _activity(instance)
        if activity in group["activities"]:
            group["activities"][activity] += 1

        context = _context(instance)
        if context.get("closeToLimit"):
            group["context"]["closeToLimit"] += 1
        if context.get("nearLimit"):
            group["context"]["nearLimit"] += 1
        if context.get("pressure") == "at_limit":
            group["context"]["atLimit"] += 1
        percent = _percent(instance)
        if percent is not None and percent > group["context"]["maxPercent"]:
            group["context"]["maxPercent"] = percent

    return sessions


def build_fleet_snapshot(
    telemetry_dir: Path,
    now_ms: int | None = None,
    stale_ms: int = 10_000,
    is_alive: Callable[[int], bool] = is_pid_alive,
) -> dict[str, Any]:
    """Aggregate all live, fresh instance records under ``telemetry_dir``.

    Output depends only on file contents, ``now_ms`` and ``stale_ms``:
    files are read in sorted order and instances are ordered by pid.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    instances = load_instances(telemetry_dir, now_ms, stale_ms, is_alive)
    active = sorted(
        (i for i in instances if i["telemetry"]["alive"] and not i["telemetry"]["stale"]),
        key=lambda i: i["process"]["pid"],
    )
    _log.debug("%d records, %d active in %s", len(instances), len(active), telemetry_dir)

    counts = count_activities(active)
    return {
        "schemaVersion": SCHEMA_VERSION,
        "source": SNAPSHOT_SOURCE,
        "generatedAt": now_ms,
        "telemetryDir": str(telemetry_dir),
        "staleMs": stale_ms,
        "aggregate": aggregate_activity(counts),
        "counts": counts,
        "context": summarize_context_pressure(active),
        "sessions": group_sessions(active),
        "instancesByPid": {str(i["process"]["pid"]): i for i in active},
        "instances": active,
    }

"""The per-instance telemetry record and its on-disk JSON shape.

Keys on disk are camelCase; dashboards written against earlier versions of
the format read them directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from .context import ContextSummary
from .routing import RoutingRecord

SCHEMA_VERSION = 2
SOURCE = "pi-telemetry"

Activity = Literal["working", "waiting_input", "unknown"]
ACTIVITIES: tuple[Activity, ...] = ("working", "waiting_input", "unknown")


def is_valid_record(data: Any) -> bool:
    """Schema check shared by writer tests and the snapshot reader."""
    if not isinstance(data, dict) or data.get("schemaVersion") != SCHEMA_VERSION:
        return False
    process = data.get("process")
    if not isinstance(process, dict):
        return False
    pid = process.get("pid")
    return isinstance(pid, int) and not isinstance(pid, bool) and pid > 0


@dataclass
class ProcessInfo:
    pid: int
    ppid: int
    started_at: int
    updated_at: int
    uptime_ms: int
    heartbeat_seq: int
    heartbeat_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "ppid": self.ppid,
            "startedAt": self.started_at,
            "updatedAt": self.updated_at,
            "uptimeMs": self.uptime_ms,
            "heartbeatSeq": self.heartbeat_seq,
            "heartbeatMs": self.heartbeat_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessInfo:
        return cls(
            pid=data["pid"],
            ppid=data.get("ppid", 0),
            started_at=data.get("startedAt", 0),
            updated_at=data.get("updatedAt", 0),
            uptime_ms=data.get("uptimeMs", 0),
            heartbeat_seq=data.get("heartbeatSeq", 0),
            heartbeat_ms=data.get("heartbeatMs", 0),
        )


@dataclass
class SessionInfo:
    id: str
    file: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"id": self.id, "file": self.file, "name": self.name})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionInfo:
        return cls(id=data.get("id", ""), file=data.get("file"), name=data.get("name"))


@dataclass
class ActivityState:
    activity: Activity
    is_idle: bool
    has_pending_messages: bool
    waiting_for_input: bool
    busy: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity": self.activity,
            "isIdle": self.is_idle,
            "hasPendingMessages": self.has_pending_messages,
            "waitingForInput": self.waiting_for_input,
            "busy": self.busy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityState:
        return cls(
            activity=data.get("activity", "unknown"),
            is_idle=bool(data.get("isIdle")),
            has_pending_messages=bool(data.get("hasPendingMessages")),
            waiting_for_input=bool(data.get("waitingForInput")),
            busy=bool(data.get("busy")),
        )


def classify_activity(is_idle: bool, has_pending_messages: bool) -> ActivityState:
    """Idle with an empty queue means the agent is waiting on the user.

    Idle with queued messages is a transient state we can't name, hence
    "unknown".
    """
    waiting = is_idle and not has_pending_messages
    if waiting:
        activity: Activity = "waiting_input"
    elif is_idle:
        activity = "unknown"
    else:
        activity = "working"
    return ActivityState(
        activity=activity,
        is_idle=is_idle,
        has_pending_messages=has_pending_messages,
        waiting_for_input=waiting,
        busy=not waiting,
    )


@dataclass
class LastMessage:
    updated_at: int
    text: str | None = None
    html: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "lastAssistantText": self.text,
                "lastAssistantHtml": self.html,
                "lastAssistantUpdatedAt": self.updated_at,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LastMessage:
        return cls(
            updated_at=data.get("lastAssistantUpdatedAt", 0),
            text=data.get("lastAssistantText"),
            html=data.get("lastAssistantHtml"),
        )


@dataclass
class InstanceRecord:
    """Everything one running agent publishes about itself."""

    process: ProcessInfo
    system: dict[str, str]
    cwd: str
    session: SessionInfo
    state: ActivityState
    last_event: str
    git: dict[str, str] | None = None
    model: dict[str, str] | None = None
    context: ContextSummary | None = None
    routing: RoutingRecord | None = None
    has_ui: bool = False
    messages: LastMessage | None = None
    source: str = SOURCE

    @property
    def pid(self) -> int:
        return self.process.pid

    def to_dict(self) -> dict[str, Any]:
        workspace: dict[str, Any] = {"cwd": self.cwd}
        if self.git:
            workspace["git"] = dict(self.git)

        data: dict[str, Any] = {
            "schemaVersion": SCHEMA_VERSION,
            "source": self.source,
            "process": self.process.to_dict(),
            "system": dict(self.system),
            "workspace": workspace,
            "session": self.session.to_dict(),
            "model": dict(self.model) if self.model else None,
            "state": self.state.to_dict(),
            "context": self.context.to_dict() if self.context else None,
            "routing": self.routing.to_dict() if self.routing else None,
            "capabilities": {"hasUI": self.has_ui},
            "messages": self.messages.to_dict() if self.messages else None,
            "lastEvent": self.last_event,
        }
        return _drop_none(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstanceRecord:
        """Inverse of to_dict. Raises ValueError on a document that fails the schema check."""
        if not is_valid_record(data):
            raise ValueError("not a pi-telemetry instance record")

        workspace = data.get("workspace") or {}
        context = data.get("context")
        routing = data.get("routing")
        messages = data.get("messages")
        return cls(
            process=ProcessInfo.from_dict(data["process"]),
            system=dict(data.get("system") or {}),
            cwd=workspace.get("cwd", ""),
            git=workspace.get("git"),
            session=SessionInfo.from_dict(data.get("session") or {}),
            model=data.get("model"),
            state=ActivityState.from_dict(data.get("state") or {}),
            context=ContextSummary.from_dict(context) if context else None,
            routing=RoutingRecord.from_dict(routing) if routing else None,
            has_ui=bool((data.get("capabilities") or {}).get("hasUI")),
            messages=LastMessage.from_dict(messages) if messages else None,
            last_event=data.get("lastEvent", ""),
            source=data.get("source", SOURCE),
        )


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


__all__ = [
    "ACTIVITIES",
    "Activity",
    "ActivityState",
    "InstanceRecord",
    "LastMessage",
    "ProcessInfo",
    "SCHEMA_VERSION",
    "SessionInfo",
    "classify_activity",
    "is_valid_record",
]

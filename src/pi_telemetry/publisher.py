"""Per-instance telemetry publisher.

Hooks into the agent runtime's lifecycle events and keeps
``<telemetry_dir>/<pid>.json`` up to date: a full snapshot (routing
included) on every event, plus a cheap heartbeat rewrite in between so
readers can tell a quiet agent from a dead one.

Usage from the runtime's extension entry point:

    from pi_telemetry.publisher import install

    def extension(host):
        install(host)
"""

from __future__ import annotations

import dataclasses
import json
import os
import sys
import threading
import time
from collections.abc import Callable
from typing import Any

from .common import get_git_info, get_system_info
from .config import Config, load_config
from .context import summarize_context
from .host import AgentContext, CommandConflictError, ExtensionHost
from .log import get_logger
from .messages import (
    assistant_text_to_html,
    last_assistant_text_from_branch,
    pick_last_assistant_text,
    sanitize_assistant_text,
)
from .paths import get_instance_path
from .record import InstanceRecord, LastMessage, ProcessInfo, SessionInfo, classify_activity
from .routing import RoutingRecord, resolve_routing
from .store import atomic_write_json, read_json, safe_unlink

_log = get_logger("publisher")

COMMAND_NAME = "pi-telemetry"

# events that trigger a full snapshot; session_start/shutdown are wired separately
PUBLISH_EVENTS = (
    "before_agent_start",
    "agent_start",
    "turn_start",
    "turn_end",
    "agent_end",
    "model_select",
    "session_switch",
    "session_tree",
    "session_fork",
    "session_compact",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TelemetryPublisher:
    """Owns this process's telemetry file for its whole lifetime."""

    def __init__(
        self,
        host: ExtensionHost,
        config: Config | None = None,
        pid: int | None = None,
        resolve: Callable[..., RoutingRecord] = resolve_routing,
    ) -> None:
        self.host = host
        self.config = config or load_config()
        self.pid = pid if pid is not None else os.getpid()
        self.telemetry_file = get_instance_path(self.config.telemetry_dir, self.pid)
        self.heartbeat_ms = self.config.heartbeat_ms
        self.close_percent, self.near_percent = self.config.thresholds
        self.started_at = _now_ms()
        self.heartbeat_seq = 0
        self.last_record: InstanceRecord | None = None
        self._resolve = resolve
        self._last_assistant_text: str | None = None
        # event callbacks and heartbeat ticks must not interleave writes
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._heartbeat: threading.Thread | None = None

    # --- snapshot assembly ---

    def _resolve_routing(self, cwd: str) -> RoutingRecord | None:
        try:
            return self._resolve(
                cwd, pid=self.pid, pane_command=self.config.routing.pane_command
            )
        except Exception as e:
            _log.error("routing resolution failed: %s", e, exc_info=True)
            return None

    def _last_assistant(self, ctx: AgentContext) -> str | None:
        get_text = getattr(ctx, "get_last_assistant_text", None)
        current = sanitize_assistant_text(get_text()) if callable(get_text) else None
        branch = last_assistant_text_from_branch(ctx.session_manager.get_branch())

        text = pick_last_assistant_text(current, branch, self._last_assistant_text)
        if text:
            self._last_assistant_text = text
        return text

    def make_record(self, ctx: AgentContext, last_event: str) -> InstanceRecord:
        now = _now_ms()
        model = None
        if ctx.model is not None:
            model = {
                k: v
                for k, v in (
                    ("provider", getattr(ctx.model, "provider", None)),
                    ("id", getattr(ctx.model, "id", None)),
                    ("name", getattr(ctx.model, "name", None)),
                    ("thinkingLevel", getattr(ctx.model, "thinking_level", None)),
                )
                if v is not None
            }

        last_text = self._last_assistant(ctx)

        return InstanceRecord(
            process=ProcessInfo(
                pid=self.pid,
                ppid=os.getppid(),
                started_at=self.started_at,
                updated_at=now,
                uptime_ms=now - self.started_at,
                heartbeat_seq=self.heartbeat_seq,
                heartbeat_ms=self.heartbeat_ms,
            ),
            system=get_system_info(),
            cwd=ctx.cwd,
            git=get_git_info(ctx.cwd),
            session=SessionInfo(
                id=ctx.session_manager.get_session_id(),
                file=ctx.session_manager.get_session_file() or None,
                name=self.host.get_session_name(),
            ),
            model=model,
            state=classify_activity(ctx.is_idle(), ctx.has_pending_messages()),
            context=summarize_context(
                ctx.get_context_usage(), self.close_percent, self.near_percent
            ),
            routing=self._resolve_routing(ctx.cwd),
            has_ui=bool(ctx.has_ui),
            messages=LastMessage(
                updated_at=now, text=last_text, html=assistant_text_to_html(last_text)
            ),
            last_event=last_event,
        )

    # --- writing ---

    def publish(self, ctx: AgentContext, event: str) -> InstanceRecord | None:
        """Build and write a full snapshot. Never raises."""
        with self._lock:
            try:
                self.heartbeat_seq += 1
                record = self.make_record(ctx, event)
                self.last_record = record
                atomic_write_json(self.telemetry_file, record.to_dict())
                return record
            except Exception as e:
                _log.error("publish %s failed: %s", event, e, exc_info=True)
                return None

    def beat(self) -> None:
        """Refresh timestamps on the last snapshot without recomputing it."""
        with self._lock:
            if self.last_record is None:
                return
            try:
                self.heartbeat_seq += 1
                now = _now_ms()
                process = dataclasses.replace(
                    self.last_record.process,
                    updated_at=now,
                    uptime_ms=now - self.started_at,
                    heartbeat_seq=self.heartbeat_seq,
                )
                self.last_record = dataclasses.replace(self.last_record, process=process)
                atomic_write_json(self.telemetry_file, self.last_record.to_dict())
            except Exception as e:
                _log.error("heartbeat failed: %s", e, exc_info=True)

    def _heartbeat_loop(self, stop: threading.Event) -> None:
        interval = self.heartbeat_ms / 1000
        while not stop.wait(interval):
            self.beat()

    def start_heartbeat(self) -> None:
        self.stop_heartbeat()
        self._stop = threading.Event()
        # daemon: the heartbeat must never keep the agent process alive
        self._heartbeat = threading.Thread(
            target=self._heartbeat_loop,
            args=(self._stop,),
            name="pi-telemetry-heartbeat",
            daemon=True,
        )
        self._heartbeat.start()

    def stop_heartbeat(self) -> None:
        if self._heartbeat is None:
            return
        self._stop.set()
        if self._heartbeat is not threading.current_thread():
            self._heartbeat.join(timeout=1.0)
        self._heartbeat = None

    def shutdown(self) -> None:
        """Graceful exit: stop beating and remove our file."""
        self.stop_heartbeat()
        with self._lock:
            safe_unlink(self.telemetry_file)
        _log.info("shutdown pid=%d, removed %s", self.pid, self.telemetry_file)

    # --- runtime wiring ---

    def handle_command(self, args: str, ctx: AgentContext) -> None:
        """``/pi-telemetry [--data|--json] [--pretty]``"""
        self.publish(ctx, f"command:{COMMAND_NAME}")

        argv = args.split()
        wants_data = "--data" in argv or "--json" in argv
        pretty = "--pretty" in argv

        location = f"{COMMAND_NAME} → {self.telemetry_file}"
        if not wants_data:
            if ctx.has_ui:
                ctx.ui.notify(location, "info")
            return

        snapshot = read_json(self.telemetry_file)
        if snapshot is None:
            self.host.send_message(f"{location}\n(no telemetry snapshot available yet)")
            if ctx.has_ui:
                ctx.ui.notify(f"{COMMAND_NAME}: no snapshot available yet", "warning")
            return

        payload = json.dumps(snapshot, indent=2) if pretty else json.dumps(snapshot)
        self.host.send_message(
            f"{location}\n{payload}", details={"telemetryFile": str(self.telemetry_file)}
        )
        if ctx.has_ui:
            ctx.ui.notify(f"{COMMAND_NAME}: telemetry JSON emitted as message", "info")

    def _on_session_start(self, _event: Any, ctx: AgentContext) -> None:
        self.publish(ctx, "session_start")
        self.start_heartbeat()

    def _on_shutdown(self, _event: Any, _ctx: AgentContext) -> None:
        self.shutdown()

    def _publish_on(self, event: str) -> Callable[[Any, AgentContext], None]:
        def handler(_event: Any, ctx: AgentContext) -> None:
            self.publish(ctx, event)

        return handler

    def register(self) -> None:
        """Register the command and lifecycle hooks with the host."""
        try:
            self.host.register_command(
                COMMAND_NAME,
                "Show telemetry path and optionally emit the latest telemetry JSON",
                self.handle_command,
            )
        except CommandConflictError as e:
            # another copy of this extension got there first; hooks still work
            _log.warning("command /%s already registered: %s", COMMAND_NAME, e)
            print(
                f"[{COMMAND_NAME}] command /{COMMAND_NAME} already registered ({e})",
                file=sys.stderr,
            )

        self.host.on("session_start", self._on_session_start)
        for event in PUBLISH_EVENTS:
            self.host.on(event, self._publish_on(event))
        self.host.on("session_shutdown", self._on_shutdown)


def install(host: ExtensionHost, config: Config | None = None) -> TelemetryPublisher:
    publisher = TelemetryPublisher(host, config)
    publisher.register()
    return publisher

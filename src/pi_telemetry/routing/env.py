"""Multiplexer evidence from environment variables.

tmux and zellij export these into every pane they spawn. They are
authoritative for the session name but say nothing about the multiplexer's
own pid.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .ancestry import NO_EVIDENCE, RoutingEvidence
from .proc import run_quiet


@dataclass(frozen=True)
class EnvSnapshot:
    """The raw multiplexer variables, as seen by this process."""

    tmux: str | None = None
    tmux_pane: str | None = None
    zellij: str | None = None
    zellij_session_name: str | None = None
    zellij_pane_id: str | None = None
    zellij_tab_name: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (
                ("tmux", self.tmux),
                ("tmuxPane", self.tmux_pane),
                ("zellij", self.zellij),
                ("zellijSessionName", self.zellij_session_name),
                ("zellijPaneId", self.zellij_pane_id),
                ("zellijTabName", self.zellij_tab_name),
            )
            if value is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvSnapshot:
        return cls(
            tmux=data.get("tmux"),
            tmux_pane=data.get("tmuxPane"),
            zellij=data.get("zellij"),
            zellij_session_name=data.get("zellijSessionName"),
            zellij_pane_id=data.get("zellijPaneId"),
            zellij_tab_name=data.get("zellijTabName"),
        )


ENV_VARS = {
    "tmux": "TMUX",
    "tmux_pane": "TMUX_PANE",
    "zellij": "ZELLIJ",
    "zellij_session_name": "ZELLIJ_SESSION_NAME",
    "zellij_pane_id": "ZELLIJ_PANE_ID",
    "zellij_tab_name": "ZELLIJ_TAB_NAME",
}


def read_env_snapshot(environ: Mapping[str, str] | None = None) -> EnvSnapshot:
    if environ is None:
        environ = os.environ
    return EnvSnapshot(**{attr: environ.get(var) for attr, var in ENV_VARS.items()})


def get_tmux_session_from_current_client() -> str | None:
    """Ask tmux which session the client on our controlling terminal is attached to."""
    output = run_quiet("tmux", ["display-message", "-p", "#S"], timeout=0.25)
    session = (output or "").strip()
    return session or None


def env_evidence(
    env: EnvSnapshot,
    tmux_session: Callable[[], str | None] | None = None,
) -> RoutingEvidence:
    """Classify the environment. zellij wins if both sets of variables are present.

    tmux doesn't export its session name, so for tmux we have to ask it.
    """
    if env.zellij or env.zellij_session_name:
        return RoutingEvidence(mux="zellij", session=env.zellij_session_name or None)
    if env.tmux:
        query = tmux_session or get_tmux_session_from_current_client
        return RoutingEvidence(mux="tmux", session=query())
    return NO_EVIDENCE

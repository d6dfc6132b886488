"""Tests for environment evidence and evidence reconciliation."""

import subprocess
from unittest.mock import patch

from pi_telemetry.routing.ancestry import RoutingEvidence
from pi_telemetry.routing.env import (
    EnvSnapshot,
    env_evidence,
    get_tmux_session_from_current_client,
    read_env_snapshot,
)
from pi_telemetry.routing.reconcile import Reconciled, pick_session, reconcile


def _mock_run(stdout: str = "", returncode: int = 0, stderr: str = ""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def _no_tmux_session() -> str | None:
    return None


# --- environment ---


def test_read_env_snapshot():
    env = read_env_snapshot({"TMUX": "/tmp/tmux-501/default,123,0", "TMUX_PANE": "%4", "HOME": "/"})
    assert env.tmux == "/tmp/tmux-501/default,123,0"
    assert env.tmux_pane == "%4"
    assert env.zellij is None


def test_read_env_snapshot_defaults_to_os_environ(monkeypatch):
    monkeypatch.setenv("ZELLIJ_SESSION_NAME", "from-os")
    monkeypatch.delenv("ZELLIJ", raising=False)
    assert read_env_snapshot().zellij_session_name == "from-os"


def test_env_snapshot_to_dict_omits_unset():
    env = EnvSnapshot(zellij="0", zellij_session_name="dev", zellij_pane_id="3")
    assert env.to_dict() == {"zellij": "0", "zellijSessionName": "dev", "zellijPaneId": "3"}
    assert EnvSnapshot.from_dict(env.to_dict()) == env


def test_env_evidence_zellij_session_name_only():
    evidence = env_evidence(EnvSnapshot(zellij_session_name="dev"), _no_tmux_session)
    assert evidence == RoutingEvidence(mux="zellij", session="dev")


def test_env_evidence_zellij_beats_tmux():
    env = EnvSnapshot(tmux="/tmp/tmux", zellij="0", zellij_session_name="dev")
    assert env_evidence(env, lambda: "work").mux == "zellij"


def test_env_evidence_tmux_asks_tmux():
    env = EnvSnapshot(tmux="/tmp/tmux-501/default,1,0")
    assert env_evidence(env, lambda: "work") == RoutingEvidence(mux="tmux", session="work")


def test_env_evidence_tmux_query_failure():
    env = EnvSnapshot(tmux="/tmp/tmux-501/default,1,0")
    assert env_evidence(env, _no_tmux_session) == RoutingEvidence(mux="tmux", session=None)


def test_env_evidence_none():
    assert env_evidence(EnvSnapshot(), _no_tmux_session) == RoutingEvidence()


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_tmux_session_from_current_client(mock_run):
    mock_run.return_value = _mock_run(stdout="work\n")
    assert get_tmux_session_from_current_client() == "work"
    assert mock_run.call_args[0][0] == ["tmux", "display-message", "-p", "#S"]


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_tmux_session_no_server(mock_run):
    mock_run.return_value = _mock_run(returncode=1, stderr="no server running")
    assert get_tmux_session_from_current_client() is None


# --- reconcile ---


def test_reconcile_kinds_disagree_env_wins():
    ancestry = RoutingEvidence(mux="tmux", session="foo", pid=10)
    env = RoutingEvidence(mux="zellij", session="bar")
    assert reconcile(ancestry, env) == Reconciled(
        mux="zellij", session="bar", pid=None, source="env"
    )


def test_reconcile_both_agree():
    ancestry = RoutingEvidence(mux="tmux", session="foo", pid=10)
    env = RoutingEvidence(mux="tmux", session="foo")
    assert reconcile(ancestry, env) == Reconciled(mux="tmux", session="foo", pid=10, source="mixed")


def test_reconcile_agree_env_session_overrides():
    ancestry = RoutingEvidence(mux="zellij", session="stale-name", pid=10)
    env = RoutingEvidence(mux="zellij", session="renamed")
    merged = reconcile(ancestry, env)
    assert merged.source == "mixed"
    assert merged.session == "renamed"
    assert merged.pid == 10


def test_reconcile_agree_env_without_session_keeps_ancestry():
    ancestry = RoutingEvidence(mux="tmux", session="work", pid=10)
    env = RoutingEvidence(mux="tmux", session=None)
    assert reconcile(ancestry, env).session == "work"
    assert pick_session(ancestry, env) == "work"


def test_reconcile_env_only():
    merged = reconcile(RoutingEvidence(), RoutingEvidence(mux="tmux", session="work"))
    assert merged == Reconciled(mux="tmux", session="work", pid=None, source="env")


def test_reconcile_ancestry_only():
    merged = reconcile(RoutingEvidence(mux="screen", pid=77), RoutingEvidence())
    assert merged == Reconciled(mux="screen", session=None, pid=77, source="ancestry")


def test_reconcile_none():
    assert reconcile(RoutingEvidence(), RoutingEvidence()) == Reconciled(
        mux=None, session=None, pid=None, source="none"
    )

"""Tests for end-to-end routing resolution with injected ps rows and environment."""

from unittest.mock import patch

from pi_telemetry.routing import RoutingRecord, resolve_routing
from pi_telemetry.routing.env import EnvSnapshot
from pi_telemetry.routing.ps import ProcessRow
from pi_telemetry.routing.tmux import TmuxPaneInfo
from pi_telemetry.routing.zellij import MatchedTab, TabCandidate, ZellijRouting

ROWS = [
    ProcessRow(1, 0, "launchd", "??", "/sbin/launchd"),
    ProcessRow(501, 1, "ghostty", "??", "/Applications/Ghostty.app/Contents/MacOS/ghostty"),
    ProcessRow(600, 501, "tmux", "ttys002", "tmux attach -t foo"),
    ProcessRow(700, 600, "zsh", "ttys003", "-zsh"),
    ProcessRow(800, 700, "node", "ttys003", "node /usr/local/bin/pi"),
]


@patch("pi_telemetry.routing.get_pane_for_tty")
@patch("pi_telemetry.routing.env.get_tmux_session_from_current_client")
def test_resolve_tmux_mixed(mock_session, mock_pane):
    mock_session.return_value = "foo"
    mock_pane.return_value = TmuxPaneInfo("/dev/ttys003", "foo:1.0", "zsh")

    record = resolve_routing("/code", pid=800, rows=ROWS, environ={"TMUX": "/tmp/tmux,1,0"})

    assert record.source == "mixed"
    assert record.mux == "tmux"
    assert record.mux_session == "foo"
    assert record.mux_pid == 600
    assert record.tty == "ttys003"
    assert record.terminal_app == "Ghostty"
    assert record.terminal_pid == 501
    assert record.target == "foo:1.0"
    mock_pane.assert_called_once_with("ttys003")


@patch("pi_telemetry.routing.get_zellij_routing")
def test_resolve_env_overrides_ancestry(mock_zellij):
    candidate = TabCandidate(2, "agents", "/code")
    mock_zellij.return_value = ZellijRouting([candidate], MatchedTab(candidate, "exact"))

    environ = {"ZELLIJ": "0", "ZELLIJ_SESSION_NAME": "bar"}
    record = resolve_routing("/code", pid=800, rows=ROWS, environ=environ)

    assert (record.source, record.mux, record.mux_session) == ("env", "zellij", "bar")
    assert record.mux_pid is None
    assert record.target == "bar#2"
    mock_zellij.assert_called_once_with("bar", "/code", "pi")


@patch("pi_telemetry.routing.get_pane_for_tty")
def test_resolve_ancestry_only(mock_pane):
    mock_pane.return_value = None
    record = resolve_routing("/code", pid=800, rows=ROWS, environ={})
    assert record.source == "ancestry"
    assert record.mux_session == "foo"
    assert record.tmux is None
    assert record.target == "foo"


def test_resolve_no_evidence():
    rows = [ProcessRow(1, 0, "init", "?", "init"), ProcessRow(42, 1, "pi", "?", "pi")]
    record = resolve_routing("/code", pid=42, rows=rows, environ={})
    assert record == RoutingRecord(source="none", env=EnvSnapshot())
    assert record.to_dict() == {"source": "none", "env": {}}


def test_resolve_zellij_without_session_skips_dump():
    rows = [ProcessRow(10, 1, "zellij", "?", "zellij"), ProcessRow(20, 10, "pi", "pts/1", "pi")]
    with patch("pi_telemetry.routing.get_zellij_routing") as mock_zellij:
        record = resolve_routing("/code", pid=20, rows=rows, environ={})
    assert record.mux == "zellij"
    assert record.mux_session is None
    mock_zellij.assert_not_called()


def test_routing_record_round_trip():
    record = RoutingRecord(
        source="mixed",
        tty="ttys003",
        mux="tmux",
        mux_session="foo",
        mux_pid=600,
        terminal_app="Ghostty",
        terminal_pid=501,
        env=EnvSnapshot(tmux="/tmp/tmux,1,0", tmux_pane="%1"),
        tmux=TmuxPaneInfo("/dev/ttys003", "foo:1.0", "zsh"),
    )
    data = record.to_dict()
    assert data["muxSession"] == "foo"
    assert data["tmux"]["paneTarget"] == "foo:1.0"
    assert "zellij" not in data
    assert RoutingRecord.from_dict(data) == record

"""Tests for dashboard formatting helpers."""

from pathlib import Path

from pi_telemetry.top.app import format_status, routing_label
from pi_telemetry.top.utils import activity_cell, context_cell, fish_path


def test_activity_cell():
    assert activity_cell("waiting_input").plain == "waiting"
    assert activity_cell(None).plain == "?"


def test_context_cell():
    assert context_cell(None).plain == "-"
    assert context_cell({"percent": None}).plain == "-"
    cell = context_cell({"percent": 96.4, "pressure": "near_limit"})
    assert cell.plain == "96%"
    assert str(cell.style) == "bold red"


def test_fish_path(monkeypatch, tmp_path):
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    assert fish_path(str(tmp_path / "work" / "repo" / "libs" / "gent")) == "~/w/r/l/gent"
    assert fish_path(str(tmp_path / "work")) == "~/work"
    assert fish_path("/etc/nginx/conf.d") == "/e/n/conf.d"
    assert fish_path("/tmp") == "/tmp"
    assert fish_path("") == ""


def test_routing_label():
    assert routing_label({}) == ""
    tmux = {"source": "mixed", "mux": "tmux", "tmux": {"paneTarget": "work:1.0"}}
    assert routing_label({"routing": tmux}) == "tmux work:1.0"
    zellij = {
        "mux": "zellij",
        "muxSession": "dev",
        "zellij": {
            "tabCandidates": [],
            "matchedTab": {"index": 2, "name": "agents", "paneCwd": "/a", "match": "exact"},
        },
    }
    assert routing_label({"routing": zellij}) == "zellij dev#2"
    assert routing_label({"routing": {"terminalApp": "Ghostty"}}) == "Ghostty"


def test_format_status():
    snapshot = {
        "aggregate": "mixed",
        "counts": {"total": 3, "working": 1, "waiting_input": 1, "unknown": 1},
        "context": {"reporting": 2, "maxPercent": 96.4, "nearLimit": 1},
    }
    assert format_status(snapshot) == (
        "mixed | 3 live: 1 working, 1 waiting, 1 unknown | max context 96% | 1 near limit"
    )


def test_fish_path_relative_and_home(monkeypatch, tmp_path):
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    assert fish_path(str(tmp_path)) == "~"
    assert fish_path("code/agents/app") == "c/a/app"
    assert fish_path("/") == "/"


def test_cells_tolerate_malformed_sections():
    assert context_cell("95%").plain == "-"
    assert context_cell({"percent": True}).plain == "-"
    assert context_cell({"percent": 50, "pressure": ["x"]}).plain == "50%"
    assert routing_label({"routing": "tmux"}) == ""
    assert routing_label({"routing": {"tmux": "work:1.0"}}) == ""
    assert routing_label({"routing": {"mux": ["tmux"], "terminalApp": "kitty"}}) == "kitty"

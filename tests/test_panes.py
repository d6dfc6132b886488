"""Tests for tmux pane and zellij tab matching."""

import subprocess
from unittest.mock import patch

from pi_telemetry.routing.tmux import (
    TmuxPaneInfo,
    find_pane_for_tty,
    get_pane_for_tty,
    qualify_tty,
)
from pi_telemetry.routing.zellij import (
    TabCandidate,
    ZellijRouting,
    get_zellij_routing,
    iter_tab_candidates,
    match_tab,
    normalize_path,
)


def _mock_run(stdout: str = "", returncode: int = 0, stderr: str = ""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# --- tmux ---

TMUX_PANES = """\
/dev/ttys001 work:1.0 editor
/dev/ttys003 work:2.1 agents and logs
/dev/ttys007 scratch:1.0 zsh
"""


def test_qualify_tty():
    assert qualify_tty("ttys003") == "/dev/ttys003"
    assert qualify_tty("pts/4") == "/dev/pts/4"
    assert qualify_tty("/dev/ttys003") == "/dev/ttys003"


def test_find_pane_for_tty():
    pane = find_pane_for_tty(TMUX_PANES, "ttys003")
    assert pane == TmuxPaneInfo(
        pane_tty="/dev/ttys003", pane_target="work:2.1", window_name="agents and logs"
    )


def test_find_pane_for_tty_no_match():
    assert find_pane_for_tty(TMUX_PANES, "ttys099") is None


def test_find_pane_for_tty_without_window_name():
    assert find_pane_for_tty("/dev/pts/1 s:0.0\n", "pts/1").window_name == ""


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_pane_for_tty(mock_run):
    mock_run.return_value = _mock_run(stdout=TMUX_PANES)
    pane = get_pane_for_tty("/dev/ttys007")
    assert pane is not None
    assert pane.pane_target == "scratch:1.0"
    argv = mock_run.call_args[0][0]
    assert argv[:3] == ["tmux", "list-panes", "-a"]


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_pane_for_tty_tmux_unavailable(mock_run):
    mock_run.side_effect = FileNotFoundError("tmux")
    assert get_pane_for_tty("ttys003") is None


# --- zellij layout parsing ---

LAYOUT = """\
layout {
    cwd "/Users/me"
    tab name="editor" focus=true {
        pane command="nvim" cwd="code/app" {
            args "."
        }
    }
    tab name="agents" {
        pane split_direction="vertical" {
            pane command="pi" cwd="code/app" {
                args "--model" "sonnet"
            }
            pane command="pi" cwd="code/lib"
        }
    }
    tab name="ops" {
        pane command="pi"
    }
    new_tab_template {
        pane
    }
}
"""


def test_iter_tab_candidates():
    candidates = list(iter_tab_candidates(LAYOUT))
    assert candidates == [
        TabCandidate(index=2, name="agents", pane_cwd="code/app"),
        TabCandidate(index=2, name="agents", pane_cwd="code/lib"),
        TabCandidate(index=3, name="ops", pane_cwd=""),
    ]


def test_iter_tab_candidates_other_command():
    candidates = list(iter_tab_candidates(LAYOUT, command="nvim"))
    assert candidates == [TabCandidate(index=1, name="editor", pane_cwd="code/app")]


def test_iter_tab_candidates_unnamed_tab():
    layout = 'tab name= {\n  pane command="pi" cwd="/x"\n}\n'
    assert list(iter_tab_candidates(layout)) == [TabCandidate(1, "tab-1", "/x")]


def test_iter_tab_candidates_is_restartable():
    first = list(iter_tab_candidates(LAYOUT))
    second = list(iter_tab_candidates(LAYOUT))
    assert first == second


# --- zellij matching ---

A = TabCandidate(index=1, name="a", pane_cwd="/a")
AB = TabCandidate(index=2, name="ab", pane_cwd="/a/b")


def test_normalize_path():
    assert normalize_path("/Users/Me/Code/../App/") == "/users/me/app"
    assert normalize_path("C:\\Users\\me") == "c:/users/me"


def test_match_tab_exact():
    matched = match_tab([A, AB], "/a/b")
    assert matched is not None
    assert matched.match == "exact"
    assert matched.candidate.index == 2


def test_match_tab_exact_is_case_insensitive():
    matched = match_tab([A, AB], "/A/B/")
    assert matched is not None
    assert (matched.match, matched.candidate.index) == ("exact", 2)


def test_match_tab_suffix():
    matched = match_tab([A, AB], "/x/a/b")
    assert matched is not None
    assert matched.match == "suffix"
    assert matched.candidate.index == 2


def test_match_tab_relative_suffix():
    candidates = [
        TabCandidate(2, "agents", "code/app"),
        TabCandidate(2, "agents", "code/lib"),
    ]
    matched = match_tab(candidates, "/Users/me/code/lib")
    assert matched is not None
    assert (matched.match, matched.candidate.pane_cwd) == ("suffix", "code/lib")


def test_match_tab_suffix_respects_path_components():
    # "/x/ab" must not match a pane in "b"
    assert match_tab([TabCandidate(1, "t", "b"), A], "/x/ab") is None


def test_match_tab_single_candidate():
    matched = match_tab([TabCandidate(index=1, name="z", pane_cwd="/z")], "/unrelated")
    assert matched is not None
    assert matched.match == "single_candidate"
    assert matched.candidate.index == 1


def test_match_tab_no_match():
    assert match_tab([A, AB], "/elsewhere") is None
    assert match_tab([], "/a") is None


def test_zellij_routing_to_dict():
    routing = ZellijRouting(tab_candidates=[AB], matched_tab=match_tab([AB], "/a/b"))
    assert routing.to_dict() == {
        "tabCandidates": [{"index": 2, "name": "ab", "paneCwd": "/a/b"}],
        "matchedTab": {"index": 2, "name": "ab", "paneCwd": "/a/b", "match": "exact"},
    }
    assert ZellijRouting.from_dict(routing.to_dict()) == routing


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_zellij_routing(mock_run):
    mock_run.return_value = _mock_run(stdout=LAYOUT)
    routing = get_zellij_routing("dev", "/Users/me/code/app")
    assert routing is not None
    assert len(routing.tab_candidates) == 3
    assert routing.matched_tab is not None
    assert routing.matched_tab.candidate.index == 2
    assert routing.matched_tab.match == "suffix"
    assert mock_run.call_args[0][0] == ["zellij", "-s", "dev", "action", "dump-layout"]


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_zellij_routing_no_match_still_reports_candidates(mock_run):
    mock_run.return_value = _mock_run(stdout=LAYOUT)
    routing = get_zellij_routing("dev", "/srv/other")
    assert routing is not None
    assert routing.matched_tab is None
    assert len(routing.tab_candidates) == 3


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_zellij_routing_no_candidates(mock_run):
    mock_run.return_value = _mock_run(stdout="layout {\n}\n")
    assert get_zellij_routing("dev", "/a") == ZellijRouting()


@patch("pi_telemetry.routing.proc.subprocess.run")
def test_get_zellij_routing_timeout(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="zellij", timeout=0.4)
    assert get_zellij_routing("dev", "/a") is None

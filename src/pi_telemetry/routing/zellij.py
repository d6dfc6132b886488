"""Locate our zellij tab by matching working directories.

zellij has no "which pane is this tty" query, so we dump the session layout,
collect every pane running our binary, and pick the one whose cwd looks like
ours.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

from ..log import get_logger
from .proc import run_quiet

_log = get_logger("routing.zellij")

MatchKind = Literal["exact", "suffix", "single_candidate"]

_TAB_NAME_RE = re.compile(r'name="([^"]+)"')
_CWD_RE = re.compile(r'cwd="([^"]+)"')


@dataclass(frozen=True)
class TabCandidate:
    """A pane running our binary, and the tab it lives in."""

    index: int  # 1-based tab position
    name: str
    pane_cwd: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "name": self.name, "paneCwd": self.pane_cwd}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TabCandidate:
        return cls(index=data["index"], name=data.get("name", ""), pane_cwd=data.get("paneCwd", ""))


@dataclass(frozen=True)
class MatchedTab:
    candidate: TabCandidate
    match: MatchKind

    def to_dict(self) -> dict[str, Any]:
        return {**self.candidate.to_dict(), "match": self.match}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchedTab:
        return cls(candidate=TabCandidate.from_dict(data), match=data["match"])


@dataclass(frozen=True)
class ZellijRouting:
    tab_candidates: list[TabCandidate] = field(default_factory=list)
    matched_tab: MatchedTab | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"tabCandidates": [c.to_dict() for c in self.tab_candidates]}
        if self.matched_tab is not None:
            data["matchedTab"] = self.matched_tab.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ZellijRouting:
        matched = data.get("matchedTab")
        return cls(
            tab_candidates=[TabCandidate.from_dict(c) for c in data.get("tabCandidates", [])],
            matched_tab=MatchedTab.from_dict(matched) if matched else None,
        )


def iter_tab_candidates(layout: str, command: str = "pi") -> Iterator[TabCandidate]:
    """Walk a ``dump-layout`` KDL document, yielding panes that run ``command``.

    This is line-based rather than a KDL parse: every ``tab name=...`` line
    opens the next tab, and a pane line carries its own cwd attribute.
    """
    marker = f'pane command="{command}"'
    tab_index = 0
    current_tab = ""

    for raw in layout.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith("tab name="):
            tab_index += 1
            m = _TAB_NAME_RE.search(line)
            current_tab = m.group(1) if m else f"tab-{tab_index}"
            continue

        if marker in line:
            m = _CWD_RE.search(line)
            yield TabCandidate(index=tab_index, name=current_tab, pane_cwd=m.group(1) if m else "")


def normalize_path(value: str) -> str:
    """Normalize for comparison: collapse ``..``/``//``, forward slashes, lowercase."""
    if not value:
        return "."
    return os.path.normpath(value).replace("\\", "/").lower()


def match_tab(candidates: Iterable[TabCandidate], cwd: str) -> MatchedTab | None:
    """Pick the candidate for ``cwd``: exact, then path suffix, then sole candidate.

    Suffix matching covers zellij reporting a cwd relative to where the
    session started, and a pane cwd that is a trailing part of ours
    (``/a/b`` matches ``/x/a/b``).
    """
    candidates = list(candidates)
    cwd_norm = normalize_path(cwd)

    for candidate in candidates:
        if normalize_path(candidate.pane_cwd) == cwd_norm:
            return MatchedTab(candidate, "exact")

    for candidate in candidates:
        pane_norm = normalize_path(candidate.pane_cwd) if candidate.pane_cwd else ""
        tail = pane_norm.lstrip("/")
        if tail and (cwd_norm == pane_norm or cwd_norm.endswith(f"/{tail}")):
            return MatchedTab(candidate, "suffix")

    if len(candidates) == 1:
        return MatchedTab(candidates[0], "single_candidate")

    return None


def get_zellij_routing(session: str, cwd: str, command: str = "pi") -> ZellijRouting | None:
    """Dump the layout of ``session`` and locate our tab in it."""
    output = run_quiet("zellij", ["-s", session, "action", "dump-layout"], timeout=0.4)
    if not output:
        return None

    candidates = list(iter_tab_candidates(output, command))
    if not candidates:
        return ZellijRouting()

    matched = match_tab(candidates, cwd)
    if matched is None:
        _log.debug("no tab match for %s among %d candidates", cwd, len(candidates))
    return ZellijRouting(tab_candidates=candidates, matched_tab=matched)

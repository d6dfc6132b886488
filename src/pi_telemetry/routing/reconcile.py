"""Merge ancestry and environment evidence into one routing answer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .ancestry import MuxKind, RoutingEvidence

# "mixed" means both sources agree on the multiplexer kind
EvidenceSource = Literal["env", "ancestry", "mixed", "none"]


@dataclass(frozen=True)
class Reconciled:
    mux: MuxKind | None
    session: str | None
    pid: int | None
    source: EvidenceSource


def pick_session(ancestry: RoutingEvidence, env: RoutingEvidence) -> str | None:
    """Session name once both sources agree on the kind.

    The environment is preferred: the multiplexer set it when the pane was
    created, while the ancestry name is parsed out of a command line. This
    is a policy choice, not something the evidence proves (a re-parented
    process can carry a stale environment).
    """
    return env.session or ancestry.session


def reconcile(ancestry: RoutingEvidence, env: RoutingEvidence) -> Reconciled:
    """Combine the two sources.

    Only ancestry can tell us the multiplexer's pid; only the environment is
    trusted for the session name. When the two disagree on the kind (nested
    multiplexers, or a process started under one and moved), the
    environment wins outright and the pid is unknown.
    """
    if env.mux and ancestry.mux and env.mux == ancestry.mux:
        return Reconciled(
            mux=ancestry.mux,
            session=pick_session(ancestry, env),
            pid=ancestry.pid,
            source="mixed",
        )
    if env.mux:
        return Reconciled(mux=env.mux, session=env.session, pid=None, source="env")
    if ancestry.mux:
        return Reconciled(
            mux=ancestry.mux, session=ancestry.session, pid=ancestry.pid, source="ancestry"
        )
    return Reconciled(mux=None, session=None, pid=None, source="none")

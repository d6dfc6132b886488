"""The slice of the agent runtime that the publisher talks to.

The runtime dispatches lifecycle events and owns the session; we only need
the handful of calls below. Anything satisfying these protocols can host
the publisher (tests use plain fakes).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from .context import ContextUsage


class CommandConflictError(Exception):
    """Raised by a host when a command name is already registered."""


class UI(Protocol):
    def notify(self, message: str, level: str = "info") -> None: ...


class SessionManager(Protocol):
    def get_session_id(self) -> str: ...

    def get_session_file(self) -> str | None: ...

    def get_branch(self) -> Sequence[Any]: ...


class Model(Protocol):
    provider: str
    id: str
    name: str


class AgentContext(Protocol):
    """Per-event view of the running agent."""

    cwd: str
    has_ui: bool
    ui: UI
    session_manager: SessionManager
    model: Model | None

    def get_context_usage(self) -> ContextUsage | None: ...

    def is_idle(self) -> bool: ...

    def has_pending_messages(self) -> bool: ...


EventHandler = Callable[[Any, AgentContext], Awaitable[None] | None]
CommandHandler = Callable[[str, AgentContext], Awaitable[None] | None]


class ExtensionHost(Protocol):
    def on(self, event: str, handler: EventHandler) -> None: ...

    def register_command(self, name: str, description: str, handler: CommandHandler) -> None:
        """Raises CommandConflictError if ``name`` is taken."""
        ...

    def send_message(self, content: str, details: dict[str, Any] | None = None) -> None: ...

    def get_session_name(self) -> str | None: ...

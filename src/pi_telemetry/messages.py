"""Last assistant message extraction for the telemetry record."""

from __future__ import annotations

import html
from collections.abc import Iterable
from typing import Any

MAX_TEXT_CHARS = 16_000


def sanitize_assistant_text(text: str | None) -> str | None:
    """Normalize newlines, strip, and cap the length. Blank text is None."""
    if not text:
        return None
    normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return None
    if len(normalized) > MAX_TEXT_CHARS:
        return normalized[: MAX_TEXT_CHARS - 3] + "..."
    return normalized


def assistant_text_to_html(text: str | None) -> str | None:
    if not text:
        return None
    return f'<div class="pi-last-assistant"><pre>{html.escape(text, quote=True)}</pre></div>'


def _is_text_block(item: Any) -> bool:
    if not isinstance(item, dict) or item.get("type") != "text":
        return False
    return isinstance(item.get("text"), str)


def extract_text_content(content: Any) -> str | None:
    """Join the text blocks of a message's content list."""
    if not isinstance(content, list):
        return None
    parts = [item["text"].strip() for item in content if _is_text_block(item)]
    parts = [p for p in parts if p]
    return "\n".join(parts) if parts else None


def last_assistant_text_from_branch(branch: Iterable[Any]) -> str | None:
    """Newest finished assistant message on the session branch.

    Messages still streaming or cut short (stopReason other than "stop") are
    skipped.
    """
    for entry in reversed(list(branch)):
        if not isinstance(entry, dict) or entry.get("type") != "message":
            continue
        msg = entry.get("message")
        if not isinstance(msg, dict) or msg.get("role") != "assistant":
            continue
        stop_reason = msg.get("stopReason")
        if isinstance(stop_reason, str) and stop_reason != "stop":
            continue

        cleaned = sanitize_assistant_text(extract_text_content(msg.get("content")))
        if cleaned:
            return cleaned
    return None


def pick_last_assistant_text(
    current: str | None, branch: str | None, cached: str | None
) -> str | None:
    """Fallback order: host API, then session branch, then last known value.

    The cache bridges publishes where the host momentarily reports nothing
    (e.g. mid-turn, before the new message is finished).
    """
    return current or branch or cached

"""Context-window pressure summary."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal

ContextPressure = Literal["normal", "approaching_limit", "near_limit", "at_limit"]


@dataclass(frozen=True)
class ContextUsage:
    """What the host reports about its context window."""

    tokens: int | None
    context_window: int
    percent: float | None


@dataclass(frozen=True)
class ContextSummary:
    tokens: int | None
    context_window: int
    percent: float | None
    remaining_tokens: int | None
    remaining_percent: float | None
    pressure: ContextPressure
    close_to_limit: bool
    near_limit: bool

    def to_dict(self) -> dict[str, Any]:
        # None stays as null here: "no usage reported" is meaningful to readers
        return {
            "tokens": self.tokens,
            "contextWindow": self.context_window,
            "percent": self.percent,
            "remainingTokens": self.remaining_tokens,
            "remainingPercent": self.remaining_percent,
            "pressure": self.pressure,
            "closeToLimit": self.close_to_limit,
            "nearLimit": self.near_limit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContextSummary:
        return cls(
            tokens=data.get("tokens"),
            context_window=data.get("contextWindow", 0),
            percent=data.get("percent"),
            remaining_tokens=data.get("remainingTokens"),
            remaining_percent=data.get("remainingPercent"),
            pressure=data.get("pressure", "normal"),
            close_to_limit=bool(data.get("closeToLimit")),
            near_limit=bool(data.get("nearLimit")),
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def classify_pressure(percent: float | None, close: float, near: float) -> ContextPressure:
    if not _is_number(percent):
        return "normal"
    if percent >= 100:
        return "at_limit"
    if percent >= near:
        return "near_limit"
    if percent >= close:
        return "approaching_limit"
    return "normal"


def summarize_context(
    usage: ContextUsage | None, close: float = 85, near: float = 95
) -> ContextSummary | None:
    """Summarize context usage against the close/near thresholds (percent)."""
    if usage is None:
        return None

    tokens = usage.tokens
    percent = usage.percent
    has_percent = _is_number(percent)

    return ContextSummary(
        tokens=tokens,
        context_window=usage.context_window,
        percent=percent,
        remaining_tokens=max(usage.context_window - tokens, 0) if _is_number(tokens) else None,
        remaining_percent=max(100 - percent, 0) if has_percent else None,
        pressure=classify_pressure(percent, close, near),
        close_to_limit=has_percent and percent >= close,
        near_limit=has_percent and percent >= near,
    )

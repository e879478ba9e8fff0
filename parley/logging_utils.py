"""Compact tagged log messages for the conversation loop.

Format: ``[CATEGORY:EVENT] message (k=v, ...)``, short enough to grep and to
paste back into a model prompt when debugging a session.
"""

from __future__ import annotations

from enum import Enum


class LogTag(str, Enum):
    """Semantic tags for loop events."""

    LOOP_STATE = "LOOP:->"       # State machine transitions
    LOOP_LIMIT = "LOOP:MAX"      # Turn ceiling reached
    COMPRESS = "CMP"             # History compression
    FALLBACK = "FB"              # Model fallback
    DECISION = "D:"              # Decision point


def format_llm_log(
    tag: LogTag,
    message: str,
    context: dict | None = None,
    milestone: bool = False,
) -> str:
    """Format a log message with minimal tokens.

    Example outputs:
    - "[LOOP:->] ✓ disp→stre (turn=3)"
    - "[D:] cont=Y (speaker=model)"
    """
    parts = [f"[{tag.value}]"]

    if milestone:
        parts.append("✓")

    parts.append(message)

    if context:
        compact = ", ".join(f"{k}={v}" for k, v in context.items())
        parts.append(f"({compact})")

    return " ".join(parts)


def format_state_transition(from_state: str, to_state: str, **context) -> str:
    """Format a state transition as ``from→to`` using 4-char abbreviations."""

    message = f"{from_state[:4]}→{to_state[:4]}"
    return format_llm_log(LogTag.LOOP_STATE, message, context=context or None, milestone=True)


def format_decision(decision_point: str, outcome: bool, **rationale) -> str:
    """Format a yes/no decision with its rationale.

    Example: "[D:] cont=N (speaker=user)"
    """
    outcome_char = "Y" if outcome else "N"
    message = f"{decision_point[:5]}={outcome_char}"
    return format_llm_log(LogTag.DECISION, message, context=rationale or None)


def format_progress(tag: LogTag, current: int, total: int, **context) -> str:
    """Format a ``#current/total`` counter, marked once the total is reached.

    Example: "[LOOP:MAX] #100/100 ✓"
    """
    return format_llm_log(tag, f"#{current}/{total}", context=context or None, milestone=current >= total)

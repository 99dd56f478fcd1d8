"""
Slice lifecycle state machine definitions.

This module defines the canonical slice states and the allowed transitions
between them. It is passive and validation-only: the scheduler emits every
transition on the event bus together with its validity, it never raises
because of it.
"""

from __future__ import annotations

# Terminal slice states: once reached, the slice is never attempted again.
SLICE_TERMINAL_STATES: frozenset[str] = frozenset(
    {
        "succeeded",
        "failed",
        "cancelled",
    }
)


# Allowed slice state transitions.
#
# Key   : previous state (or None if the slice was not yet observed)
# Value : set of allowed next states
#
# Notes:
# - There is no retrying state. A failed slice stays failed.
# - Cancellation only applies to slices that have not started executing.
SLICE_ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({"pending"}),

    "pending": frozenset(
        {
            "executing",
            "cancelled",
        }
    ),

    "executing": frozenset(
        {
            "succeeded",
            "failed",
        }
    ),
}


def is_terminal_state(state: str) -> bool:
    """Return True if the given state is terminal."""
    return state in SLICE_TERMINAL_STATES


def is_valid_transition(prev_state: str | None, next_state: str) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = SLICE_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed

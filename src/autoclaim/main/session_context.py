"""Utilities for storing per-session logging context using contextvars.

Tasks created by the poll loop copy the context at creation time, so the
claim workers log with the same ``session_id`` as the loop that spawned them.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Dict


_session_context: ContextVar[Dict[str, Any]] = ContextVar("session_context", default={})


def get_session_context() -> Dict[str, Any]:
    """Return a copy of the current session context."""
    context = _session_context.get()
    # Ensure callers cannot mutate the stored context in place
    return dict(context) if context else {}


def set_session_context(**values: Any) -> Dict[str, Any]:
    """Merge provided values into the stored context.

    Passing ``None`` clears the value for that key.
    """

    current = get_session_context()
    for key, value in values.items():
        if value is None:
            current.pop(key, None)
        else:
            current[key] = value
    _session_context.set(current)
    return current


def clear_session_context() -> None:
    """Remove all stored context for the active task."""

    _session_context.set({})

"""Cooperative cancellation shared between the loop, turns, and the transport."""

from __future__ import annotations

import threading


class AbortSignal:
    """A one-shot flag that every provider call and loop cycle checks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def abort(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()


__all__ = ["AbortSignal"]

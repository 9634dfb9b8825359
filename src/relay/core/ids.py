"""Process-wide step identifiers.

Ids only need to be unique within the process; nothing reads meaning into
the number. The counter itself is never exposed, only :func:`next_step_id`.
"""

from __future__ import annotations

import threading


class _StepIdGenerator:
    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = threading.Lock()

    def next(self, kind: str) -> str:
        with self._lock:
            self._value += 1
            return f"{self._value}:{kind}"


_generator = _StepIdGenerator()


def next_step_id(kind: str) -> str:
    """Return a fresh id such as ``"42:CachedRequest"``."""
    return _generator.next(kind)


__all__ = ["next_step_id"]

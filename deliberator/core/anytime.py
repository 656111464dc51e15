"""
Cooperative cancellation for anytime processes
"""

from __future__ import annotations

import threading
import time
from typing import Optional


class CancellationToken:
    """
    Explicit cancel flag combined with a wall-clock deadline

    A token is cancelled once `cancel()` is called, once its deadline passes, or
    once its parent is cancelled. Workers poll `is_cancelled()` at well-defined
    points; nothing is interrupted pre-emptively.
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            self.deadline = parent.deadline if self.deadline is None else min(self.deadline, parent.deadline)

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self._parent is not None and self._parent.is_cancelled()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None when unbounded)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def child(self, timeout: Optional[float] = None) -> "CancellationToken":
        return CancellationToken(timeout, parent=self)

"""
Cooperative cancellation shared by all branches of one orchestration.
"""

import threading
import time
from typing import Optional

from .errors import CancelledError


class CancellationToken:
    """
    A cancel flag plus an optional monotonic deadline.
    Child tokens fire when their parent fires, but can also be cancelled alone
    (e.g. one branch that ran out of time).
    """

    def __init__(self, deadline: Optional[float] = None, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self.deadline = deadline
        self.parent = parent
        self.reason = ""

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: Optional[float] = None) -> "CancellationToken":
        deadline = time.monotonic() + timeout if timeout is not None else None
        return CancellationToken(deadline=deadline, parent=self)

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self.parent is not None and self.parent.is_cancelled()

    def remaining(self) -> Optional[float]:
        """Seconds until the nearest deadline in the chain, None if unbounded."""
        own = self.deadline - time.monotonic() if self.deadline is not None else None
        inherited = self.parent.remaining() if self.parent is not None else None
        candidates = [r for r in (own, inherited) if r is not None]
        return max(0.0, min(candidates)) if candidates else None

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise CancelledError(f"Operation cancelled: {self.describe()}")

    def describe(self) -> str:
        if self._event.is_set():
            return self.reason
        if self.parent is not None and self.parent.is_cancelled():
            return self.parent.describe()
        return "deadline exceeded"

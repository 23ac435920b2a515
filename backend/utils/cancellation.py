# utils/cancellation.py
import threading
import time
from typing import Optional


class OperationCancelled(Exception):
    """Raised inside a unit of work when its token has been cancelled."""


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    Handlers call ``raise_if_cancelled`` before every store round-trip so a
    cancelled request aborts its transaction instead of committing late.
    """

    def __init__(self, deadline: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def none(cls) -> "CancellationToken":
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise OperationCancelled()

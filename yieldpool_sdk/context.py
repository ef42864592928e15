"""
Cancellable, deadline-bearing call context.

A CallContext is passed to every network-facing operation. It can be cancelled
from another thread and carries an optional absolute deadline; operations check
it before and after each node request, and the confirmation loop sleeps on it
so a cancel wakes the waiter immediately. The deadline also caps the HTTP
timeout of each node request; a cancel is noticed between requests.
"""
import threading
import time
import weakref
from typing import Optional

from .exceptions import OperationCancelledError


class CallContext:
    """
    Cancellation and deadline handle for one unit of work.

    Args:
        timeout: Seconds from now until the context expires (None for no deadline)
        parent: Optional parent context; cancelling or expiry of the parent
            also ends this context
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["CallContext"] = None):
        self._cancelled = threading.Event()
        # Weak so finished children do not pile up on a long-lived parent
        self._children: "weakref.WeakSet[CallContext]" = weakref.WeakSet()
        self._lock = threading.Lock()
        self.deadline: Optional[float] = None
        # Strong link upward keeps intermediate contexts alive for the cascade
        self._parent = parent
        if timeout is not None:
            if timeout < 0:
                raise ValueError("timeout must be non-negative")
            self.deadline = time.monotonic() + timeout
        if parent is not None:
            if parent.deadline is not None:
                if self.deadline is None or parent.deadline < self.deadline:
                    self.deadline = parent.deadline
            parent._adopt(self)

    def _adopt(self, child: "CallContext") -> None:
        with self._lock:
            self._children.add(child)
            cancelled = self._cancelled.is_set()
        if cancelled:
            child.cancel()

    @classmethod
    def background(cls) -> "CallContext":
        """A context that never expires and is never cancelled on its own."""
        return cls()

    def with_timeout(self, timeout: Optional[float]) -> "CallContext":
        """Derive a child context whose deadline is at most ``timeout`` from now."""
        return CallContext(timeout=timeout, parent=self)

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            self._cancelled.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, step: str) -> None:
        """
        Raise if the context is finished.

        Raises:
            OperationCancelledError: If cancelled or past the deadline
        """
        if self.cancelled:
            raise OperationCancelledError(f"Context cancelled before {step}", step=step)
        if self.expired:
            raise OperationCancelledError(f"Deadline exceeded before {step}", step=step)

    def sleep(self, seconds: float) -> bool:
        """
        Sleep up to ``seconds``, waking early on cancellation or deadline.

        Returns:
            True if the context is done when the sleep ends
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._cancelled.wait(seconds)
        return self.done

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Cooperative cancellation and deadlines for traversals and file walks.

Graph traversals and the resolver's file walk check a token once per visited
node, so a cancelled request or an expired deadline stops the work between
nodes rather than mid-read.
"""

import threading
import time
from typing import Optional


class OperationCancelledError(Exception):
    """Raised when a token is cancelled or its deadline has passed."""

    pass


class CancellationToken:
    """Cancellation flag with an optional deadline.

    Thread Safety:
        cancel() may be called from any thread; the flag is a threading.Event.

    Usage:
        token = CancellationToken(timeout_seconds=5)
        graph.find_circular_dependencies(token=token)
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        """Initialize token.

        Args:
            timeout_seconds: Seconds from now until the deadline. None or 0
                means no deadline.
        """
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout_seconds:
            self._deadline = time.monotonic() + timeout_seconds

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True if cancel() was called or the deadline has passed."""
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise OperationCancelledError if the token is no longer live.

        Args:
            operation: Name of the running operation, for the error message.
        """
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise OperationCancelledError(f"{operation} exceeded its deadline")

"""
Completion notifier: one-shot waiters fired at quiescence.

Exactly one waiter fires per quiescent pass end, in registration order. Each
waiter receives the number of waiters still queued behind it.
"""
import asyncio
import logging
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger("fustor_fs_queue.notifier")

CompletionCallback = Callable[[int], None]


class _SignalWaiter:
    """Waiter backing get_completion_signal(): resolves a future with the remaining count."""

    def __init__(self, future: asyncio.Future):
        self.future = future

    def __call__(self, remaining: int):
        if not self.future.done():
            self.future.set_result(remaining)


def _is_cancelled(waiter: CompletionCallback) -> bool:
    return isinstance(waiter, _SignalWaiter) and waiter.future.cancelled()


class CompletionNotifier:

    def __init__(self):
        self._waiters: Deque[CompletionCallback] = deque()

    def __len__(self) -> int:
        return len(self._waiters)

    def add_callback(self, callback: CompletionCallback) -> None:
        if not callable(callback):
            raise TypeError(f"Completion callback must be callable, got {type(callback).__name__}")
        self._waiters.append(callback)

    def get_completion_signal(self, loop: asyncio.AbstractEventLoop) -> asyncio.Future:
        future = loop.create_future()
        self._waiters.append(_SignalWaiter(future))
        return future

    def fire_one(self) -> bool:
        """Invoke the oldest waiter. Returns False when none was queued."""
        # Signals cancelled by their caller neither fire nor count as remaining.
        self._waiters = deque(w for w in self._waiters if not _is_cancelled(w))
        if not self._waiters:
            return False
        waiter = self._waiters.popleft()
        remaining = len(self._waiters)
        try:
            waiter(remaining)
        except Exception as e:
            # A failing callback must not stall the drain loop or later waiters.
            logger.error(f"Completion callback {waiter!r} raised: {e}", exc_info=True)
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        while self._waiters:
            waiter = self._waiters.popleft()
            if isinstance(waiter, _SignalWaiter) and waiter.future.cancel():
                cancelled += 1
        return cancelled

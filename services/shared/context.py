"""
Operation Context — deadlines and cancellation
==============================================
Every service operation accepts an optional OperationContext. The repository
routes each provider round trip through ctx.run(), which is the only place a
console operation can block.

boto3 calls cannot be interrupted once they are on the wire, so a context
that can fire runs the call on a single worker thread and waits for it in
short slices. When the context fires the caller gets OperationCancelledError
straight away and the abandoned call's result is thrown away.

Abandoning is not undoing. The worker thread keeps going, so a DeleteQueue,
PurgeQueue or SendMessage that was already on the wire may still take effect
after the caller saw OperationCancelledError. Check the queue before
resubmitting a send. The repository logs a warning naming the operation
whenever a mutating call is abandoned.

Usage:
  ctx = OperationContext.with_timeout(5)
  service.list_queues(ctx)

  # from another thread
  ctx.cancel()
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, TypeVar

from shared.errors import OperationCancelledError

T = TypeVar("T")

_POLL_SECONDS = 0.05


class OperationContext:
    """
    Parameters
    ----------
    deadline:    absolute time.monotonic() value after which the operation is abandoned
    cancellable: run provider calls off-thread even without a deadline, so that
                 cancel() from another thread takes effect mid-call
    """

    def __init__(self, deadline: float | None = None, cancellable: bool = False):
        self.deadline = deadline
        self.cancellable = cancellable
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> "OperationContext":
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def from_lambda_context(cls, context: Any) -> "OperationContext":
        """Derive a deadline from a Lambda context; no deadline when it has none."""
        remaining = getattr(context, "get_remaining_time_in_millis", None)
        if remaining is None:
            return cls()
        return cls.with_timeout(remaining() / 1000)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds until the deadline (never negative), or None without a deadline."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def done(self) -> bool:
        return self.cancelled or (self.deadline is not None and time.monotonic() >= self.deadline)

    def raise_if_done(self) -> None:
        if self.cancelled:
            raise OperationCancelledError("operation cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise OperationCancelledError("operation deadline exceeded")

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    def run(self, fn: Callable[..., T], **kwargs: Any) -> T:
        """Call fn(**kwargs), abandoning it as soon as this context fires."""
        self.raise_if_done()
        if self.deadline is None and not self.cancellable:
            return fn(**kwargs)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sqs-call")
        try:
            future = pool.submit(fn, **kwargs)
            while True:
                wait = _POLL_SECONDS
                remaining = self.remaining()
                if remaining is not None:
                    wait = min(wait, remaining)
                try:
                    return future.result(timeout=wait)
                except FutureTimeoutError:
                    if self.done():
                        future.cancel()
                        self.raise_if_done()
        finally:
            pool.shutdown(wait=False)


def ensure_context(ctx: OperationContext | None) -> OperationContext:
    return ctx if ctx is not None else OperationContext()

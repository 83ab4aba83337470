"""Cancellation context bound to commands.

A Context is a cancellation signal with an optional deadline. Contexts form a
tree: cancelling a parent cancels every child, and a child's effective
deadline is the earliest deadline along its ancestry.

Deadlines are measured on ``time.monotonic()``. Expiry is evaluated lazily,
no timer is started; a running command converts the remaining time into a
cancel scope deadline.

Example:
    ctx = Context.background().with_timeout(5.0)
    try:
        out = await factory.command(ctx, "git", "status").run_stdout()
    finally:
        ctx.cancel()
"""

from __future__ import annotations

import logging
import time
import weakref
from typing import Callable

from .errors import ContextCancelled, ContextError, DeadlineExceeded

__all__ = ["Context"]

logger = logging.getLogger(__name__)


class Context:
    """Cancellation signal with an optional deadline.

    Callbacks registered with ``add_done_callback`` run synchronously inside
    ``cancel()``; call ``cancel()`` from the thread of the event loop running
    the commands bound to this context.
    """

    def __init__(
        self,
        parent: Context | None = None,
        deadline: float | None = None,
    ) -> None:
        """Create a context.

        Args:
            parent: Optional parent context; its cancellation propagates here
            deadline: Optional ``time.monotonic()`` instant after which the
                context counts as expired
        """
        self._parent = parent
        self._deadline = deadline
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []
        self._children: weakref.WeakSet[Context] = weakref.WeakSet()

        if parent is not None:
            if isinstance(parent.err(), ContextCancelled):
                self._cancelled = True
            else:
                parent._children.add(self)

    @classmethod
    def background(cls) -> Context:
        """Return a root context that is never cancelled and has no deadline."""
        return cls()

    def with_cancel(self) -> Context:
        """Return a child that can be cancelled independently."""
        return Context(parent=self)

    def with_deadline(self, deadline: float) -> Context:
        """Return a child expiring at the monotonic instant ``deadline``."""
        return Context(parent=self, deadline=deadline)

    def with_timeout(self, seconds: float) -> Context:
        """Return a child expiring ``seconds`` from now."""
        return self.with_deadline(time.monotonic() + seconds)

    @property
    def deadline(self) -> float | None:
        """Effective deadline: the earliest one along the ancestry."""
        deadlines = []
        ctx: Context | None = self
        while ctx is not None:
            if ctx._deadline is not None:
                deadlines.append(ctx._deadline)
            ctx = ctx._parent
        return min(deadlines) if deadlines else None

    def remaining(self) -> float | None:
        """Seconds until the deadline (never negative), or None without one."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def err(self) -> ContextError | None:
        """Return why the context is done, or None while it is still live.

        Each call builds a new exception instance.
        """
        if self._cancelled:
            return ContextCancelled()
        if self._parent is not None:
            parent_err = self._parent.err()
            if isinstance(parent_err, ContextCancelled):
                return parent_err
        deadline = self.deadline
        if deadline is not None and time.monotonic() >= deadline:
            return DeadlineExceeded()
        return None

    @property
    def done(self) -> bool:
        return self.err() is not None

    def raise_if_done(self) -> None:
        """Raise the context error if the context is done."""
        err = self.err()
        if err is not None:
            raise err

    def cancel(self) -> None:
        """Cancel this context and all of its children.

        Cancelling again is a no-op.
        """
        if not self._cancelled:
            self._cancelled = True
            logger.debug(f"Context cancelled: {self!r}")

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

        for child in list(self._children):
            child.cancel()

    def add_done_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` to run on cancellation of this context or an ancestor.

        A context that is already cancelled runs the callback immediately.

        Args:
            callback: Zero-argument callable

        Returns:
            A function that unregisters the callback again
        """
        if isinstance(self.err(), ContextCancelled):
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return remove

    def __repr__(self) -> str:
        err = self.err()
        state = "live" if err is None else type(err).__name__
        remaining = self.remaining()
        if remaining is None:
            return f"Context({state})"
        return f"Context({state}, remaining={remaining:.3f}s)"

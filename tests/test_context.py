"""Context tests.

Test coverage:
- Cancellation and reasons
- Deadlines and timeouts
- Parent/child propagation
- Done callbacks
"""

from __future__ import annotations

import time

import pytest

from cmdexec.context import Context
from cmdexec.errors import ContextCancelled, ContextError, DeadlineExceeded


class TestBackground:
    """The root context."""

    def test_never_done(self):
        ctx = Context.background()
        assert ctx.err() is None
        assert ctx.done is False
        assert ctx.deadline is None
        assert ctx.remaining() is None
        ctx.raise_if_done()


class TestCancel:
    """Explicit cancellation."""

    def test_cancel_sets_error(self):
        ctx = Context.background().with_cancel()
        ctx.cancel()
        assert isinstance(ctx.err(), ContextCancelled)
        assert ctx.done is True
        with pytest.raises(ContextCancelled):
            ctx.raise_if_done()

    def test_cancel_is_idempotent(self):
        ctx = Context.background().with_cancel()
        ctx.cancel()
        ctx.cancel()
        assert isinstance(ctx.err(), ContextCancelled)

    def test_err_returns_fresh_instances(self):
        ctx = Context.background().with_cancel()
        ctx.cancel()
        assert ctx.err() is not ctx.err()

    def test_parent_cancel_reaches_children(self):
        parent = Context.background().with_cancel()
        child = parent.with_cancel()
        grandchild = child.with_timeout(60)
        parent.cancel()
        assert isinstance(child.err(), ContextCancelled)
        assert isinstance(grandchild.err(), ContextCancelled)

    def test_child_cancel_does_not_reach_parent(self):
        parent = Context.background().with_cancel()
        child = parent.with_cancel()
        child.cancel()
        assert parent.err() is None

    def test_child_of_cancelled_parent_is_born_cancelled(self):
        parent = Context.background().with_cancel()
        parent.cancel()
        assert isinstance(parent.with_cancel().err(), ContextCancelled)


class TestDeadline:
    """Deadlines and timeouts."""

    def test_expired_timeout(self):
        ctx = Context.background().with_timeout(0)
        assert isinstance(ctx.err(), DeadlineExceeded)
        assert ctx.remaining() == 0.0

    def test_future_timeout(self):
        ctx = Context.background().with_timeout(30)
        assert ctx.err() is None
        remaining = ctx.remaining()
        assert remaining is not None and 29 < remaining <= 30

    def test_deadline_expires_lazily(self):
        ctx = Context.background().with_timeout(0.05)
        assert ctx.err() is None
        time.sleep(0.1)
        assert isinstance(ctx.err(), DeadlineExceeded)

    def test_child_inherits_earlier_parent_deadline(self):
        parent = Context.background().with_timeout(1)
        child = parent.with_timeout(100)
        assert child.deadline == parent.deadline

    def test_child_keeps_its_own_earlier_deadline(self):
        parent = Context.background().with_timeout(100)
        child = parent.with_timeout(1)
        assert child.deadline is not None and parent.deadline is not None
        assert child.deadline < parent.deadline

    def test_with_deadline_uses_monotonic_clock(self):
        deadline = time.monotonic() + 10
        assert Context.background().with_deadline(deadline).deadline == deadline

    def test_cancel_wins_over_deadline(self):
        ctx = Context.background().with_timeout(60)
        ctx.cancel()
        assert isinstance(ctx.err(), ContextCancelled)

    def test_errors_share_a_base(self):
        assert issubclass(ContextCancelled, ContextError)
        assert issubclass(DeadlineExceeded, ContextError)


class TestCallbacks:
    """Done callbacks."""

    def test_callback_runs_on_cancel(self):
        ctx = Context.background().with_cancel()
        calls = []
        ctx.add_done_callback(lambda: calls.append("done"))
        ctx.cancel()
        assert calls == ["done"]

    def test_callback_runs_once(self):
        ctx = Context.background().with_cancel()
        calls = []
        ctx.add_done_callback(lambda: calls.append("done"))
        ctx.cancel()
        ctx.cancel()
        assert calls == ["done"]

    def test_callback_runs_on_parent_cancel(self):
        parent = Context.background().with_cancel()
        child = parent.with_cancel()
        calls = []
        child.add_done_callback(lambda: calls.append("child"))
        parent.cancel()
        assert calls == ["child"]

    def test_removed_callback_does_not_run(self):
        ctx = Context.background().with_cancel()
        calls = []
        remove = ctx.add_done_callback(lambda: calls.append("done"))
        remove()
        remove()
        ctx.cancel()
        assert calls == []

    def test_callback_on_cancelled_context_runs_immediately(self):
        ctx = Context.background().with_cancel()
        ctx.cancel()
        calls = []
        ctx.add_done_callback(lambda: calls.append("done"))
        assert calls == ["done"]

    def test_repr(self):
        assert repr(Context.background()) == "Context(live)"
        ctx = Context.background().with_cancel()
        ctx.cancel()
        assert repr(ctx) == "Context(ContextCancelled)"

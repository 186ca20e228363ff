"""
Unit tests for the request context: the immutable chain, request ids,
start times and deadlines.
"""

import threading
import time
import uuid
from datetime import timedelta

import pytest

from httphandlers.context import (
    Cancelled,
    ContextKey,
    Deadline,
    DeadlineExceeded,
    LogFields,
    RequestContext,
    deadline_scope,
    elapsed_ns,
    get_deadline,
    get_duration,
    get_log_fields,
    get_request_id,
    get_start_time,
    set_request_id,
    with_log_fields,
    with_request_id,
    with_start,
)
from httphandlers.http.request import HTTPRequest


class TestRequestContext:
    """Tests for the RequestContext chain."""

    def test_parent_unchanged(self):
        key = ContextKey("k")
        root = RequestContext()
        child = root.with_value(key, 42)

        assert child.value(key) == 42
        assert root.value(key) is None
        assert root.value(key, "default") == "default"

    def test_last_write_wins(self):
        key = ContextKey("k")
        ctx = RequestContext().with_value(key, 1).with_value(key, 2)
        assert ctx.value(key) == 2

    def test_keys_compare_by_identity(self):
        first, second = ContextKey("same"), ContextKey("same")
        ctx = RequestContext().with_value(first, "a")

        assert ctx.value(first) == "a"
        assert ctx.value(second) is None

    def test_repr_lists_keys(self):
        ctx = RequestContext().with_value(ContextKey("a"), 1).with_value(ContextKey("b"), 2)
        assert repr(ctx) == "RequestContext(a, b)"


class TestRequestID:
    def test_get_without_id(self):
        assert get_request_id(RequestContext()) == (None, False)

    def test_with_request_id(self):
        rid = uuid.uuid4()
        ctx = with_request_id(RequestContext(), rid)
        assert get_request_id(ctx) == (rid, True)

    def test_set_request_id_stamps_header(self):
        rid = uuid.uuid4()
        request = HTTPRequest.from_target("GET", "/")
        stamped = set_request_id(request, rid)

        assert stamped.get_header("X-Request-Id") == str(rid)
        # The header dict is shared, so outer layers see it too.
        assert request.get_header("X-Request-Id") == str(rid)
        assert get_request_id(stamped.context) == (rid, True)
        assert get_request_id(request.context) == (None, False)


class TestStartTime:
    def test_no_start_recorded(self):
        ctx = RequestContext()

        assert get_start_time(ctx) is None
        assert elapsed_ns(ctx) == 0
        assert get_duration(ctx) == timedelta(0)

    def test_duration_grows(self):
        ctx = with_start(RequestContext(), wall=None, monotonic_ns=time.monotonic_ns() - 5_000_000)

        assert get_duration(ctx) >= timedelta(milliseconds=5)
        assert elapsed_ns(ctx) >= 5_000_000


class TestDeadline:
    """Tests for Deadline and deadline_scope."""

    def test_no_deadline(self):
        assert get_deadline(RequestContext()) is None

    def test_scope_publishes_deadline(self):
        with deadline_scope(RequestContext(), 10) as ctx:
            deadline = get_deadline(ctx)
            assert deadline is not None
            assert not deadline.done
            assert deadline.error is None
            assert 9 < deadline.remaining() <= 10
            deadline.check()

    def test_scope_exit_cancels(self):
        with deadline_scope(RequestContext(), 10) as ctx:
            deadline = get_deadline(ctx)

        assert deadline.done
        assert isinstance(deadline.error, Cancelled)
        with pytest.raises(Cancelled):
            deadline.check()

    def test_expiry(self):
        with deadline_scope(RequestContext(), 0.05) as ctx:
            deadline = get_deadline(ctx)
            assert deadline.wait(timeout=2.0) is True
            assert isinstance(deadline.error, DeadlineExceeded)
            with pytest.raises(DeadlineExceeded):
                deadline.check()

    def test_zero_timeout_is_already_done(self):
        with deadline_scope(RequestContext(), timedelta(0)) as ctx:
            assert get_deadline(ctx).done

    def test_nested_never_outlives_parent(self):
        with deadline_scope(RequestContext(), 1) as outer:
            with deadline_scope(outer, 60) as inner:
                outer_deadline = get_deadline(outer)
                inner_deadline = get_deadline(inner)

                assert inner_deadline.expires_at == outer_deadline.expires_at
                assert inner_deadline.parent is outer_deadline

    def test_parent_cancel_propagates(self):
        parent = Deadline(time.monotonic() + 60)
        child = Deadline(time.monotonic() + 60, parent)
        parent.cancel()

        assert child.done
        assert isinstance(child.error, Cancelled)

    def test_child_wait_wakes_on_parent_cancel(self):
        parent = Deadline(time.monotonic() + 60)
        child = Deadline(time.monotonic() + 60, parent)
        grandchild = Deadline(time.monotonic() + 60, child)
        results = []

        waiter = threading.Thread(target=lambda: results.append(grandchild.wait(timeout=5.0)))
        waiter.start()
        time.sleep(0.05)
        started = time.monotonic()
        parent.cancel()
        waiter.join(timeout=5.0)

        assert results == [True]
        assert time.monotonic() - started < 1.0
        assert isinstance(grandchild.error, Cancelled)

    def test_wait_after_parent_done_returns_at_once(self):
        parent = Deadline(time.monotonic() + 60)
        parent.cancel()
        child = Deadline(time.monotonic() + 60, parent)

        started = time.monotonic()
        assert child.wait(timeout=2.0) is True
        assert time.monotonic() - started < 0.5

    def test_finished_child_detaches_from_parent(self):
        with deadline_scope(RequestContext(), 10) as outer:
            parent = get_deadline(outer)
            with deadline_scope(outer, 5):
                assert len(parent._children) == 1

            assert parent._children == []

    def test_cancel_is_idempotent(self):
        deadline = Deadline(time.monotonic() + 60)
        deadline.start()
        deadline.cancel()
        deadline.cancel()
        assert isinstance(deadline.error, Cancelled)


class TestLogFields:
    def test_holder_is_shared(self):
        holder = LogFields()
        ctx = with_log_fields(RequestContext(), holder)
        get_log_fields(ctx).append("job", 7)

        assert holder.pairs == [("job", 7)]
        assert get_log_fields(RequestContext()) is None

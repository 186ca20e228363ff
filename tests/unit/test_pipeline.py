"""
Unit tests for middleware composition and the standard stack.
"""

import functools
import json
import uuid

import pytest

from httphandlers import all_handlers
from httphandlers.middleware import MiddlewarePipeline, server
from httphandlers.middleware.debug import DEBUG_ENV


def tracing(name, calls):
    def middleware(handler):
        def traced(request, writer):
            calls.append(f"{name}>")
            handler(request, writer)
            calls.append(f"<{name}")
        return traced
    return middleware


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_first_added_is_outermost(self, serve):
        calls = []
        pipeline = MiddlewarePipeline().use(tracing("a", calls), tracing("b", calls))
        pipeline.add(tracing("c", calls))

        serve(pipeline.wrap(lambda request, writer: calls.append("handler")))

        assert calls == ["a>", "b>", "c>", "handler", "<c", "<b", "<a"]

    def test_empty_pipeline_returns_handler(self):
        def handler(request, writer):
            pass

        assert MiddlewarePipeline().wrap(handler) is handler

    def test_len_and_iter(self):
        first = tracing("a", [])
        configured = functools.partial(server, server_name="x")
        pipeline = MiddlewarePipeline().use(first, configured)

        assert len(pipeline) == 2
        assert list(pipeline) == [first, configured]


class TestAllHandlers:
    """The standard stack, end to end in memory."""

    @pytest.fixture(autouse=True)
    def no_debug(self, monkeypatch):
        monkeypatch.delenv(DEBUG_ENV, raising=False)

    def test_headers_on_success(self, serve):
        def handler(request, writer):
            writer.write(json.dumps({"ok": True}).encode())

        response = serve(all_handlers(handler, "jobs-api/1.0"), "GET", "/v1/jobs")

        assert response.code == 200
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert response.headers["Server"] == "jobs-api/1.0"
        assert "X-Request-Duration" in response.headers
        uuid.UUID(response.headers["X-Request-Id"])
        assert json.loads(response.text) == {"ok": True}

    def test_trailing_slash_short_circuits(self, serve):
        calls = []
        response = serve(
            all_handlers(lambda request, writer: calls.append(1), "jobs-api/1.0"),
            "GET", "/v1/jobs/",
        )

        assert calls == []
        assert response.code == 301
        assert response.headers["Location"] == "/v1/jobs"
        assert "X-Request-Id" in response.headers
        assert "Server" not in response.headers

    def test_inbound_request_id_echoed(self, serve):
        rid = str(uuid.uuid4())
        response = serve(
            all_handlers(lambda request, writer: None, "jobs-api/1.0"),
            headers={"X-Request-Id": rid},
        )
        assert response.headers["X-Request-Id"] == rid

    def test_debug_toggle_keeps_response(self, serve, monkeypatch):
        monkeypatch.setenv(DEBUG_ENV, "true")

        def handler(request, writer):
            writer.write(b'{"ok": true}')

        response = serve(all_handlers(handler, "jobs-api/1.0"))

        assert response.code == 200
        assert response.body == b'{"ok": true}'
        assert response.headers["Server"] == "jobs-api/1.0"

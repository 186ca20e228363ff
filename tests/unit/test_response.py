"""
Unit tests for problem documents and redirects.
"""

import json

import pytest

from httphandlers.http.request import HTTPRequest
from httphandlers.http.response import (
    PROBLEM_CONTENT_TYPE,
    Problem,
    clean_path,
    forbidden,
    internal_error,
    not_allowed,
    not_found,
    redirect,
    unauthorized,
    write_problem,
)
from httphandlers.http.status_codes import HTTPStatus, body_allowed, status_text
from httphandlers.http.writer import ResponseRecorder


def get(target: str = "/v1/jobs", method: str = "GET") -> HTTPRequest:
    return HTTPRequest.from_target(method, target)


class TestProblem:
    """Tests for structured error documents."""

    def test_empty_fields_omitted(self):
        problem = Problem(title="Nope", id="nope", status=400)
        assert problem.to_dict() == {"title": "Nope", "id": "nope", "status": 400}

    def test_all_fields(self):
        problem = Problem(title="T", id="i", status=409, detail="d", instance="/x")
        assert problem.to_dict() == {
            "title": "T", "id": "i", "detail": "d", "instance": "/x", "status": 409,
        }

    def test_write_problem(self, recorder):
        write_problem(recorder, Problem(title="Nope", id="nope", status=418))

        assert recorder.code == 418
        assert recorder.headers["Content-Type"] == PROBLEM_CONTENT_TYPE
        assert recorder.text.endswith("}\n")
        assert json.loads(recorder.text)["id"] == "nope"


class TestErrorHelpers:
    def test_unauthorized(self, recorder):
        unauthorized(recorder, get(), "jobs-api")

        assert recorder.code == 401
        assert recorder.headers["WWW-Authenticate"] == 'Basic realm="jobs-api"'
        assert json.loads(recorder.text) == {
            "title": "Unauthorized. Please include your API credentials",
            "id": "unauthorized",
            "status": 401,
        }

    def test_forbidden_forces_status(self, recorder):
        forbidden(recorder, get(), Problem(title="No", id="forbidden", status=200))

        assert recorder.code == 403
        assert json.loads(recorder.text)["status"] == 403

    def test_not_found(self, recorder):
        not_found(recorder, get("/v1/missing?x=1"))

        body = json.loads(recorder.text)
        assert recorder.code == 404
        assert body["title"] == "Resource not found"
        assert body["instance"] == "/v1/missing"

    def test_not_allowed(self, recorder):
        not_allowed(recorder, get())
        assert recorder.code == 405
        assert json.loads(recorder.text)["id"] == "method_not_allowed"

    def test_internal_error_without_request(self, recorder):
        internal_error(recorder)

        body = json.loads(recorder.text)
        assert recorder.code == 500
        assert body["id"] == "server_error"
        assert "instance" not in body


class TestCleanPath:
    @pytest.mark.parametrize("raw, cleaned", [
        ("", "/"),
        ("/", "/"),
        ("/a/////", "/a"),
        ("//a//b", "/a/b"),
        ("/a/./b/../c", "/a/c"),
        ("/../..", "/"),
        ("a/b", "/a/b"),
    ])
    def test_clean_path(self, raw, cleaned):
        assert clean_path(raw) == cleaned


class TestRedirect:
    """Tests for redirect()."""

    def test_get_gets_html_body(self, recorder):
        redirect(recorder, get(), "/v1/other", HTTPStatus.MOVED_PERMANENTLY)

        assert recorder.code == 301
        assert recorder.headers["Location"] == "/v1/other"
        assert recorder.headers["Content-Type"] == "text/html; charset=utf-8"
        assert recorder.text == '<a href="/v1/other">Moved Permanently</a>.\n\n'

    def test_default_status_is_found(self, recorder):
        redirect(recorder, get(), "/x")
        assert recorder.code == 302

    def test_head_gets_content_type_but_no_body(self, recorder):
        redirect(recorder, get(method="HEAD"), "/x")

        assert recorder.headers["Content-Type"] == "text/html; charset=utf-8"
        assert recorder.body == b""

    def test_post_gets_neither(self, recorder):
        redirect(recorder, get(method="POST"), "/x", HTTPStatus.SEE_OTHER)

        assert recorder.code == 303
        assert "Content-Type" not in recorder.headers
        assert recorder.body == b""

    def test_existing_content_type_suppresses_body(self, recorder):
        recorder.headers.set("Content-Type", "application/json")
        redirect(recorder, get(), "/x")

        assert recorder.headers["Content-Type"] == "application/json"
        assert recorder.body == b""

    def test_trailing_slash_survives_cleaning(self, recorder):
        redirect(recorder, get(), "/a/////")
        assert recorder.headers["Location"] == "/a/"

    def test_relative_target(self, recorder):
        redirect(recorder, get("/x/y"), "../b")
        assert recorder.headers["Location"] == "/b"

    def test_query_kept(self, recorder):
        redirect(recorder, get(), "/a//b?page=2")
        assert recorder.headers["Location"] == "/a/b?page=2"

    def test_absolute_url_untouched(self, recorder):
        redirect(recorder, get(), "https://api.example.com/a//b")
        assert recorder.headers["Location"] == "https://api.example.com/a//b"

    def test_body_escapes_url(self):
        recorder = ResponseRecorder()
        redirect(recorder, get(), "/a?x=1&y=2")
        assert '<a href="/a?x=1&amp;y=2">Found</a>.' in recorder.text


class TestStatusCodes:
    def test_status_text(self):
        assert status_text(404) == "Not Found"
        assert status_text(299) == "Success"
        assert status_text(799) == "Unknown"

    def test_body_allowed(self):
        assert body_allowed(200)
        assert not body_allowed(204)
        assert not body_allowed(304)
        assert not body_allowed(101)

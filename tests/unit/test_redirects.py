"""
Unit tests for the redirect middleware.
"""

import pytest

from httphandlers.middleware.redirects import redirect_proto, trailing_slash_redirect


def ok(request, writer):
    writer.write(b"ok")


class TestTrailingSlashRedirect:
    """Tests for trailing_slash_redirect()."""

    def test_root_passes_through(self, serve):
        assert serve(trailing_slash_redirect(ok), "GET", "/").text == "ok"

    def test_plain_path_passes_through(self, serve):
        assert serve(trailing_slash_redirect(ok), "GET", "/jobs").text == "ok"

    def test_strips_one_slash(self, serve):
        response = serve(trailing_slash_redirect(ok), "GET", "/jobs/")

        assert response.code == 301
        assert response.headers["Location"] == "/jobs"
        assert response.text == '<a href="/jobs">Moved Permanently</a>.\n\n'

    def test_slash_run_collapses(self, serve):
        response = serve(trailing_slash_redirect(ok), "GET", "/a/////")

        assert response.code == 301
        assert response.headers["Location"] == "/a/"

    @pytest.mark.parametrize("method", ["POST", "DELETE"])
    def test_other_methods_get_no_body(self, serve, method):
        response = serve(trailing_slash_redirect(ok), method, "/jobs/")

        assert response.code == 301
        assert response.body == b""
        assert "Content-Type" not in response.headers


class TestRedirectProto:
    """Tests for redirect_proto()."""

    def test_upgrades_http(self, serve):
        response = serve(
            redirect_proto(ok), "GET", "/jobs?state=done",
            headers={"X-Forwarded-Proto": "http", "Host": "api.example.com"},
        )

        assert response.code == 302
        assert response.headers["Location"] == "https://api.example.com/jobs?state=done"

    def test_https_passes_through(self, serve):
        response = serve(redirect_proto(ok), headers={"X-Forwarded-Proto": "https"})
        assert response.text == "ok"

    def test_no_header_passes_through(self, serve):
        assert serve(redirect_proto(ok)).text == "ok"


class TestRedirectTargetEncoding:
    """The decoded request path is re-encoded before it reaches Location."""

    def test_encoded_line_break_stays_encoded(self, serve):
        response = serve(trailing_slash_redirect(ok), "GET", "/a%0d%0aSet-Cookie:%20session=evil/")

        assert response.code == 301
        assert response.headers["Location"] == "/a%0D%0ASet-Cookie:%20session=evil"
        assert "Set-Cookie" not in response.headers

    def test_space_is_escaped(self, serve):
        response = serve(trailing_slash_redirect(ok), "GET", "/nightly%20jobs/")
        assert response.headers["Location"] == "/nightly%20jobs"

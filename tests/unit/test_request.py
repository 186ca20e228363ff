"""
Unit tests for HTTP request parsing and the request model.
"""

import base64

import pytest

from httphandlers.context import RequestContext, ContextKey
from httphandlers.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    split_target,
)


def basic(user: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.target == "/api/users?page=1&limit=10"

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("page") == "1"
        assert request.get_query("limit") == "10"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with a body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/api/users"
        assert request.body == b'{"name": "John", "email": "john@example.com"}'
        assert request.is_keep_alive is False

    def test_method_kept_as_sent(self):
        """Lower-case methods are accepted and not rewritten."""
        request = parse_request(b"get / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request.method == "get"

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /search%20me?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/search me"
        assert request.get_query("q") == "hello world"
        assert request.request_uri == "/search%20me?q=hello%20world"

    def test_double_slash_is_a_path(self):
        """A leading "//" is not mistaken for a network location."""
        request = parse_request(b"GET //evil.example/x HTTP/1.1\r\n\r\n")
        assert request.path == "//evil.example/x"

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET\r\nHost: test\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_missing_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 keep-alive defaults."""
        request_10 = parse_request(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_11 = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest body"

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.body == b"test body"

    def test_incomplete_body(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: 20\r\n\r\nshort")

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"

    def test_repeated_headers_joined(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"X-Forwarded-For: 10.0.0.1\r\n"
            b"X-Forwarded-For: 10.0.0.2\r\n"
            b"\r\n"
        )
        request = parse_request(raw)
        assert request.get_header("X-Forwarded-For") == "10.0.0.1, 10.0.0.2"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_from_target(self):
        request = HTTPRequest.from_target("GET", "/v1/jobs?state=done", headers={"User-Agent": "t"})

        assert request.path == "/v1/jobs"
        assert request.query_string == "state=done"
        assert request.request_uri == "/v1/jobs?state=done"
        assert request.host == "example.com"
        assert request.user_agent == "t"
        assert request.remote_addr == "192.0.2.1:1234"

    def test_request_uri_without_target(self):
        request = HTTPRequest(method="GET", path="/a", query_string="b=1")
        assert request.request_uri == "/a?b=1"

    def test_with_context_copies(self):
        """with_context returns a new request; the original keeps its context."""
        key = ContextKey("k")
        request = HTTPRequest.from_target("GET", "/")
        derived = request.with_context(request.context.with_value(key, 1))

        assert derived.context.value(key) == 1
        assert request.context.value(key) is None
        assert derived.headers is request.headers

    def test_default_context(self):
        assert isinstance(HTTPRequest(method="GET", path="/").context, RequestContext)

    def test_basic_auth(self):
        request = HTTPRequest.from_target("GET", "/", headers={"Authorization": basic("alice", "s3:cret")})
        assert request.basic_auth() == ("alice", "s3:cret")

    def test_basic_auth_case_insensitive_scheme(self):
        token = base64.b64encode(b"bob:pw").decode()
        request = HTTPRequest.from_target("GET", "/", headers={"Authorization": f"bAsIc {token}"})
        assert request.basic_auth() == ("bob", "pw")

    @pytest.mark.parametrize("header", [
        "",
        "Bearer abc",
        "Basic !!!notbase64",
        "Basic " + base64.b64encode(b"no-colon").decode(),
    ])
    def test_basic_auth_rejects(self, header):
        request = HTTPRequest.from_target("GET", "/", headers={"Authorization": header})
        assert request.basic_auth() is None


class TestSplitTarget:
    def test_split(self):
        assert split_target("/a?b=1") == ("/a", "b=1")
        assert split_target("/a") == ("/a", "")
        assert split_target("/a?b#frag") == ("/a", "b")

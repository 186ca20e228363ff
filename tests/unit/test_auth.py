"""
Unit tests for the basic auth middleware.
"""

import base64
import json

from httphandlers.middleware.auth import basic_auth


USERS = {"alice": "s3cret"}


def credentials(user: str, password: str) -> dict:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def ok(request, writer):
    writer.write(b"ok")


class TestBasicAuth:
    """Tests for basic_auth()."""

    def test_valid_credentials(self, serve):
        response = serve(basic_auth(ok, "jobs", USERS), headers=credentials("alice", "s3cret"))

        assert response.code == 200
        assert response.text == "ok"

    def test_missing_credentials(self, serve):
        response = serve(basic_auth(ok, "jobs", USERS))

        assert response.code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="jobs"'
        assert json.loads(response.text)["id"] == "unauthorized"

    def test_other_scheme(self, serve):
        response = serve(basic_auth(ok, "jobs", USERS), headers={"Authorization": "Bearer abc"})
        assert response.code == 401

    def test_empty_username(self, serve):
        response = serve(basic_auth(ok, "jobs", USERS), headers=credentials("", "s3cret"))
        assert response.code == 401

    def test_unknown_user(self, serve):
        response = serve(basic_auth(ok, "jobs", USERS), headers=credentials("mallory", "x"))
        body = json.loads(response.text)

        assert response.code == 403
        assert body["id"] == "forbidden"
        assert "WWW-Authenticate" not in response.headers

    def test_wrong_password(self, serve):
        response = serve(
            basic_auth(ok, "jobs", USERS), "GET", "/v1/jobs",
            headers=credentials("alice", "wrong"),
        )
        body = json.loads(response.text)

        assert response.code == 403
        assert body["id"] == "incorrect_password"
        assert body["title"] == "Incorrect password for user alice"
        assert body["instance"] == "/v1/jobs"

    def test_password_may_contain_colon(self, serve):
        users = {"bob": "a:b"}
        response = serve(basic_auth(ok, "jobs", users), headers=credentials("bob", "a:b"))
        assert response.text == "ok"

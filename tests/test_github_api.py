"""
Tests for the GitHub REST client against a recorded-route session.
"""

from __future__ import annotations

import pytest
from fakes import FakeResponse, FakeSession, b64

from sitedeploy.core.services.deploy.github_api import GitHubClient, GitHubError

REPO = "/repos/acme/site"


def _client(routes: dict) -> tuple[GitHubClient, FakeSession]:
    session = FakeSession(routes)
    return GitHubClient("acme", "site", "main", "ghp_test", session=session), session


class TestTransport:
    def test_auth_headers(self):
        client, session = _client({})
        assert session.headers["Authorization"] == "Bearer ghp_test"
        assert session.headers["Accept"] == "application/vnd.github.v3+json"
        assert client.repo_slug == "acme/site"

    @pytest.mark.parametrize("status, fragment", [
        (401, "authentication failed"),
        (403, "rate limit"),
        (404, "Repository or branch not found: acme/site/main"),
        (500, "GitHub API error 500"),
    ])
    def test_error_mapping(self, status: int, fragment: str):
        client, _ = _client({("GET", f"{REPO}/git/ref/heads/main"): FakeResponse(status, {})})
        with pytest.raises(GitHubError, match=fragment) as exc:
            client.get_ref()
        assert exc.value.status == status

    @pytest.mark.parametrize("status", [409, 422])
    def test_ref_conflict(self, status: int):
        client, _ = _client({("PATCH", f"{REPO}/git/refs/heads/main"): FakeResponse(status, {})})
        with pytest.raises(GitHubError, match="moved while deploying"):
            client.update_ref("abc")

    @pytest.mark.parametrize("status", [409, 422])
    def test_tag_ref_conflict(self, status: int):
        client, _ = _client({("POST", f"{REPO}/git/refs"): FakeResponse(status, {})})
        with pytest.raises(GitHubError, match="Ref already exists") as exc:
            client.create_ref("refs/tags/production-v3", "t1")
        assert "moved while deploying" not in str(exc.value)
        assert exc.value.status == status


class TestGitData:
    def test_get_ref(self):
        client, _ = _client({
            ("GET", f"{REPO}/git/ref/heads/main"): FakeResponse(200, {"object": {"sha": "tip"}}),
        })
        assert client.get_ref() == "tip"

    def test_create_blob_base64(self):
        client, session = _client({("POST", f"{REPO}/git/blobs"): FakeResponse(201, {"sha": "b1"})})
        assert client.create_blob("héllo") == "b1"
        body = session.requests[0]["json"]
        assert body == {"content": b64("héllo"), "encoding": "base64"}

    def test_update_ref_never_forced_by_default(self):
        client, session = _client({("PATCH", f"{REPO}/git/refs/heads/main"): FakeResponse(200, {})})
        client.update_ref("c1")
        assert session.requests[0]["json"] == {"sha": "c1", "force": False}

    def test_recursive_tree_param(self):
        client, session = _client({
            ("GET", f"{REPO}/git/trees/t1"): FakeResponse(200, {"tree": []}),
        })
        client.get_tree("t1", recursive=True)
        assert session.requests[0]["params"] == {"recursive": "1"}


class TestTags:
    def test_list_tags_paginates(self):
        first = [{"name": f"production-v{i}"} for i in range(100)]
        second = [{"name": "production-v100"}]
        client, session = _client({
            ("GET", f"{REPO}/tags"): [FakeResponse(200, first), FakeResponse(200, second)],
        })
        tags = client.list_tags()
        assert len(tags) == 101
        assert tags[-1] == "production-v100"
        assert [r["params"]["page"] for r in session.requests] == [1, 2]

    def test_tag_ref_exists(self):
        client, _ = _client({
            ("GET", f"{REPO}/git/ref/tags/production-v1"): FakeResponse(200, {"object": {}}),
        })
        assert client.tag_ref_exists("production-v1")
        assert not client.tag_ref_exists("production-v2")

    def test_tag_ref_other_errors_propagate(self):
        client, _ = _client({
            ("GET", f"{REPO}/git/ref/tags/production-v1"): FakeResponse(401, {}),
        })
        with pytest.raises(GitHubError):
            client.tag_ref_exists("production-v1")


class TestContents:
    def test_get_contents_decodes(self):
        client, session = _client({
            ("GET", f"{REPO}/contents/a.json"): FakeResponse(
                200, {"type": "file", "content": b64('{"a": 1}')}
            ),
        })
        assert client.get_contents("a.json") == '{"a": 1}'
        assert session.requests[0]["params"] == {"ref": "main"}

    def test_get_contents_of_directory(self):
        client, _ = _client({("GET", f"{REPO}/contents/dir"): FakeResponse(200, [])})
        with pytest.raises(GitHubError, match="not a file"):
            client.get_contents("dir")

    def test_list_directory_missing(self):
        client, _ = _client({})
        assert client.list_directory("frontend/production-snapshots") == []

    def test_list_directory(self):
        entries = [{"name": "v1.json", "path": "snaps/v1.json", "type": "file"}]
        client, _ = _client({("GET", f"{REPO}/contents/snaps"): FakeResponse(200, entries)})
        assert client.list_directory("snaps") == entries


def test_verify_access():
    client, _ = _client({
        ("GET", REPO): FakeResponse(
            200, {"full_name": "acme/site", "private": True, "permissions": {"push": True}}
        ),
        ("GET", f"{REPO}/git/ref/heads/main"): FakeResponse(200, {"object": {"sha": "tip"}}),
    })
    assert client.verify_access() == {
        "repository": "acme/site",
        "private": True,
        "canPush": True,
        "branch": "main",
        "head": "tip",
    }

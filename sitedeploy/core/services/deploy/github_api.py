"""
GitHub REST client — the Git Data API subset the deploy needs.

Blobs, trees, commits and refs for the atomic multi-file commit; tags
for versioning; the contents API for reading snapshots back.

All calls go through one ``requests.Session`` with bearer auth.  Any
non-success status raises :class:`GitHubError` carrying the status and
a human-readable cause for the common failures.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
_TIMEOUT = 30


class GitHubError(RuntimeError):
    """A GitHub API call failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class GitHubClient:
    """Client bound to one ``owner/repo`` and one production branch."""

    def __init__(
        self,
        owner: str,
        repo: str,
        branch: str,
        token: str,
        session: requests.Session | None = None,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    # ── Transport ───────────────────────────────────────────────

    def _describe(self, status: int, body: str, what: str) -> str:
        if status == 401:
            return "GitHub authentication failed. Check GITHUB_TOKEN."
        if status == 403:
            return (
                "GitHub API rate limit exceeded or insufficient permissions "
                f"for {self.repo_slug}."
            )
        if status == 404:
            return f"Repository or branch not found: {self.repo_slug}/{self.branch} ({what})"
        if status in (409, 422) and what.startswith("PATCH git/refs/heads/"):
            return (
                f"Branch {self.branch} moved while deploying ({status}). "
                "Another deploy probably landed first; re-run to deploy on top of it."
            )
        if status in (409, 422) and what == "POST git/refs":
            return (
                f"Ref already exists in {self.repo_slug} ({status}). "
                "A tag for this version was probably created by a concurrent deploy."
            )
        return f"GitHub API error {status} on {what}: {body[:300]}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        ok: tuple[int, ...] = (200, 201),
    ) -> Any:
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}/{path}"
        logger.debug("GitHub %s %s", method, path)
        try:
            resp = self.session.request(method, url, json=json, params=params, timeout=_TIMEOUT)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub request failed ({method} {path}): {e}") from e

        if resp.status_code not in ok:
            raise GitHubError(
                self._describe(resp.status_code, resp.text, f"{method} {path}"),
                status=resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ── Refs / commits / trees ──────────────────────────────────

    def get_ref(self, ref: str | None = None) -> str:
        """SHA the branch (or the given ``heads/…``/``tags/…`` ref) points at."""
        data = self._request("GET", f"git/ref/{ref or 'heads/' + self.branch}")
        return data["object"]["sha"]

    def get_commit(self, sha: str) -> dict:
        return self._request("GET", f"git/commits/{sha}")

    def get_tree(self, sha: str, recursive: bool = False) -> dict:
        params = {"recursive": "1"} if recursive else None
        return self._request("GET", f"git/trees/{sha}", params=params)

    def create_blob(self, content: str) -> str:
        data = self._request("POST", "git/blobs", json={
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "encoding": "base64",
        })
        return data["sha"]

    def create_tree(self, base_tree: str, entries: list[dict]) -> str:
        data = self._request("POST", "git/trees", json={
            "base_tree": base_tree,
            "tree": entries,
        })
        return data["sha"]

    def create_commit(self, message: str, tree_sha: str, parent_sha: str) -> str:
        data = self._request("POST", "git/commits", json={
            "message": message,
            "tree": tree_sha,
            "parents": [parent_sha],
        })
        return data["sha"]

    def update_ref(self, sha: str, force: bool = False) -> None:
        self._request("PATCH", f"git/refs/heads/{self.branch}", json={
            "sha": sha,
            "force": force,
        })

    # ── Tags ────────────────────────────────────────────────────

    def list_tags(self) -> list[str]:
        """All tag names (paginated)."""
        names: list[str] = []
        page = 1
        while True:
            batch = self._request("GET", "tags", params={"per_page": 100, "page": page})
            names.extend(t["name"] for t in batch or [])
            if not batch or len(batch) < 100:
                return names
            page += 1

    def tag_ref_exists(self, tag: str) -> bool:
        try:
            self._request("GET", f"git/ref/tags/{tag}")
        except GitHubError as e:
            if e.status == 404:
                return False
            raise
        return True

    def create_tag(self, tag: str, message: str, commit_sha: str) -> str:
        """Annotated tag object → returns the tag object's SHA."""
        data = self._request("POST", "git/tags", json={
            "tag": tag,
            "message": message,
            "object": commit_sha,
            "type": "commit",
        })
        return data["sha"]

    def create_ref(self, ref: str, sha: str) -> None:
        self._request("POST", "git/refs", json={"ref": ref, "sha": sha})

    # ── Contents ────────────────────────────────────────────────

    def get_contents(self, path: str) -> str:
        """Decoded text of ``path`` on the production branch."""
        data = self._request("GET", f"contents/{path}", params={"ref": self.branch})
        if isinstance(data, list) or data.get("type") != "file":
            raise GitHubError(f"{path} is not a file")
        return base64.b64decode(data["content"]).decode("utf-8")

    def list_directory(self, path: str) -> list[dict]:
        """Entries of a directory; empty when it does not exist."""
        try:
            data = self._request("GET", f"contents/{path}", params={"ref": self.branch})
        except GitHubError as e:
            if e.status == 404:
                return []
            raise
        return data if isinstance(data, list) else []

    # ── Access ──────────────────────────────────────────────────

    def verify_access(self) -> dict:
        """Confirm the token can see the repo and the branch exists."""
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}"
        try:
            resp = self.session.get(url, timeout=_TIMEOUT)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub request failed: {e}") from e
        if resp.status_code != 200:
            raise GitHubError(
                self._describe(resp.status_code, resp.text, "GET repo"), status=resp.status_code
            )
        repo = resp.json()
        head = self.get_ref()
        return {
            "repository": repo.get("full_name", self.repo_slug),
            "private": repo.get("private"),
            "canPush": bool(repo.get("permissions", {}).get("push")),
            "branch": self.branch,
            "head": head,
        }

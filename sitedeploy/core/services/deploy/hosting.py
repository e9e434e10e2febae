"""
Hosting trigger — Vercel production deployment for the pushed branch.

Flow:

1. find the project by name, or create it linked to the GitHub repo
   (``rootDirectory: frontend``)
2. pin its production branch to the deploy branch (every run, so a
   dashboard change cannot redirect production)
3. create a production deployment from the branch via ``gitSource``
4. poll the deployment at a fixed interval until READY / ERROR /
   CANCELED or the wall-clock timeout; on timeout report BUILDING
5. optionally attach ``{app}.dev.{DOMAIN_NAME}``
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

VERCEL_API_URL = "https://api.vercel.com"
_TIMEOUT = 30

TERMINAL_STATES = frozenset({"READY", "ERROR", "CANCELED"})


class VercelError(RuntimeError):
    """A Vercel API call failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


@dataclass
class HostingResult:
    deployment_id: str = ""
    state: str = "QUEUED"
    url: str = ""
    project_id: str = ""
    custom_domain: str | None = None
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.state == "READY"

    def to_dict(self) -> dict:
        return {
            "deploymentId": self.deployment_id,
            "state": self.state,
            "url": self.url,
            "projectId": self.project_id,
            "customDomain": self.custom_domain,
            "error": self.error,
        }


def deployment_url(app_name: str, domain_name: str | None = None) -> str:
    if domain_name:
        return f"https://{app_name}.dev.{domain_name}"
    return f"https://{app_name}.vercel.app"


class VercelClient:
    """Thin wrapper over the Vercel REST API."""

    def __init__(
        self,
        token: str,
        team_id: str | None = None,
        session: requests.Session | None = None,
        api_url: str = VERCEL_API_URL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.team_id = team_id
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })
        self._sleep = sleep
        self._clock = clock

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        ok: tuple[int, ...] = (200, 201),
    ) -> Any:
        params = {"teamId": self.team_id} if self.team_id else None
        logger.debug("Vercel %s %s", method, path)
        try:
            resp = self.session.request(
                method, f"{self.api_url}{path}", json=json, params=params, timeout=_TIMEOUT
            )
        except requests.RequestException as e:
            raise VercelError(f"Vercel request failed ({method} {path}): {e}") from e
        if resp.status_code not in ok:
            detail = resp.text[:300]
            if resp.status_code in (401, 403):
                detail = "authentication failed. Check VERCEL_TOKEN and team access."
            raise VercelError(
                f"Vercel API error {resp.status_code} on {method} {path}: {detail}",
                status=resp.status_code,
            )
        return resp.json() if resp.content else None

    # ── Projects ────────────────────────────────────────────────

    def find_project(self, name: str) -> dict | None:
        try:
            return self._request("GET", f"/v9/projects/{name}")
        except VercelError as e:
            if e.status == 404:
                return None
            raise

    def create_project(self, name: str, repo_slug: str, branch: str) -> dict:
        logger.info("Creating Vercel project %s linked to %s", name, repo_slug)
        return self._request("POST", "/v9/projects", json={
            "name": name,
            "framework": "nextjs",
            "rootDirectory": "frontend",
            "buildCommand": "npm run build",
            "outputDirectory": ".next",
            "installCommand": "npm install",
            "gitRepository": {"type": "github", "repo": repo_slug},
            "environmentVariables": [
                {
                    "key": "NEXT_PUBLIC_CURRENT_BRANCH",
                    "value": branch,
                    "type": "plain",
                    "target": ["production"],
                },
                {
                    "key": "NEXT_PUBLIC_REPO_TYPE",
                    "value": "monorepo",
                    "type": "plain",
                    "target": ["production"],
                },
            ],
        })

    def set_production_branch(self, project_id: str, branch: str) -> None:
        self._request("PATCH", f"/v9/projects/{project_id}", json={
            "productionBranch": branch,
        })

    def ensure_project(self, name: str, repo_slug: str, branch: str) -> dict:
        """Existing or new project, with its production branch pinned."""
        project = self.find_project(name) or self.create_project(name, repo_slug, branch)
        try:
            self.set_production_branch(project["id"], branch)
        except VercelError as e:
            logger.warning("Could not pin production branch on %s: %s", name, e)
        return project

    def add_domain(self, project_id: str, domain: str) -> None:
        self._request("POST", f"/v10/projects/{project_id}/domains", json={"name": domain})

    # ── Deployments ─────────────────────────────────────────────

    def create_deployment(self, name: str, repo_id: str | int, branch: str) -> dict:
        return self._request("POST", "/v13/deployments", json={
            "name": name,
            "target": "production",
            "gitSource": {"type": "github", "ref": branch, "repoId": repo_id},
        })

    def get_deployment(self, deployment_id: str) -> dict:
        return self._request("GET", f"/v13/deployments/{deployment_id}")

    def wait_for_deployment(
        self,
        deployment_id: str,
        interval: float = 5.0,
        timeout: float = 300.0,
        on_state: Callable[[str, float], None] | None = None,
    ) -> HostingResult:
        """Poll until a terminal state or ``timeout`` seconds pass."""
        started = self._clock()
        result = HostingResult(deployment_id=deployment_id)
        while True:
            data = self.get_deployment(deployment_id)
            result.state = data.get("readyState") or data.get("state") or "QUEUED"
            if data.get("url"):
                result.url = f"https://{data['url']}"
            elapsed = self._clock() - started
            if on_state:
                on_state(result.state, elapsed)
            if result.state in TERMINAL_STATES:
                if result.state != "READY":
                    result.error = data.get("errorMessage") or f"Deployment {result.state.lower()}"
                return result
            if elapsed >= timeout:
                result.state = "BUILDING"
                result.error = f"Deployment timeout after {int(timeout)}s"
                logger.warning("Vercel deployment %s still building after %ds", deployment_id, timeout)
                return result
            self._sleep(interval)


def trigger_production_deploy(
    client: VercelClient,
    app_name: str,
    repo_slug: str,
    branch: str,
    domain_name: str | None = None,
    interval: float = 5.0,
    timeout: float = 300.0,
) -> HostingResult:
    """Run the whole hosting flow for ``app_name``.

    Raises:
        VercelError: If the project has no git link or an API call fails.
    """
    project = client.ensure_project(app_name, repo_slug, branch)
    repo_id = (project.get("link") or {}).get("repoId")
    if not repo_id:
        raise VercelError(
            f"Vercel project {app_name} has no GitHub connection; "
            "link the repository in the Vercel dashboard."
        )

    deployment = client.create_deployment(app_name, repo_id, branch)
    logger.info("Vercel deployment %s created for %s@%s", deployment.get("id"), app_name, branch)

    result = client.wait_for_deployment(deployment["id"], interval=interval, timeout=timeout)
    result.project_id = project["id"]

    if domain_name:
        domain = f"{app_name}.dev.{domain_name}"
        try:
            client.add_domain(project["id"], domain)
            result.custom_domain = domain
        except VercelError as e:
            logger.warning("Could not assign domain %s: %s", domain, e)

    if result.ready or not result.url:
        result.url = deployment_url(app_name, domain_name if result.custom_domain else None)
    return result

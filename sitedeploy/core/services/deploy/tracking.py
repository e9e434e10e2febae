"""
Deployment tracking — local history of every deploy run.

Each run (success, failure or dry run) is appended to
``<project_root>/.state/deployments.jsonl``, trimmed to the newest
entries.  When a tracking endpoint is configured, the record is also
POSTed there.

Fail-safe: tracking failures are logged and never break a deploy.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

import requests
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_DEPLOYMENTS_MAX = 200  # keep last N records


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class DeploymentRecord(BaseModel):
    """One deploy run as written to the history file."""

    deploy_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = ""
    status: str = "running"  # ok | failed | dry-run
    dry_run: bool = False
    version: int | None = None
    commit_sha: str = ""
    tag_name: str = ""
    files_deployed: int = 0
    pages_deployed: int = 0
    app_name: str | None = None
    hosting_state: str | None = None
    duration_ms: int = 0
    error: str | None = None


def _deployments_path(project_root: Path) -> Path:
    return project_root / ".state" / "deployments.jsonl"


def record_deployment(project_root: Path, record: DeploymentRecord) -> None:
    """Append ``record`` and trim the history file."""
    path = _deployments_path(project_root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")

        lines = path.read_text(encoding="utf-8").splitlines()
        if len(lines) > _DEPLOYMENTS_MAX:
            path.write_text("\n".join(lines[-_DEPLOYMENTS_MAX:]) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Could not record deployment %s: %s", record.deploy_id, e)


def load_deployments(project_root: Path, n: int = 50) -> list[dict]:
    """Latest ``n`` records, newest first."""
    path = _deployments_path(project_root)
    if not path.is_file():
        return []

    entries: list[dict] = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return []

    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            logger.debug("Skipping malformed history line in %s", path)

    entries.reverse()
    return entries[:n]


def notify_tracking_endpoint(
    url: str | None,
    record: DeploymentRecord,
    session: requests.Session | None = None,
) -> bool:
    """POST ``record`` to the tracking endpoint; False on any failure."""
    if not url:
        return False
    http = session or requests
    try:
        resp = http.post(url, json=record.model_dump(mode="json"), timeout=10)
    except requests.RequestException as e:
        logger.warning("Tracking endpoint unreachable: %s", e)
        return False
    if resp.status_code >= 400:
        logger.warning("Tracking endpoint returned %s", resp.status_code)
        return False
    return True

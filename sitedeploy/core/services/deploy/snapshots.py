"""
Production snapshots — deployment history stored in the repo itself.

After each successful push, the websiteData that produced it is
committed to ``frontend/production-snapshots/v{N}.json`` together with
the version and commit SHA.  Snapshot and resync commits carry a
skip-build marker in their message so the hosting provider's git
integration does not start a second build for them.

Resync regenerates only the ``.data.ts`` modules from a stored snapshot
and commits them, so the checked-in data matches what was recorded for
that version even if generation changed in between.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import ValidationError

from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.deploy import GeneratedFile, Snapshot
from sitedeploy.core.models.website import parse_website_data
from sitedeploy.core.services.deploy.commit_builder import (
    DEFAULT_TAG_PREFIX,
    commit_files,
    diff_against_remote,
)
from sitedeploy.core.services.deploy.github_api import GitHubClient, GitHubError
from sitedeploy.core.services.deploy.page_generator import generate_data_files

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_DIR = "frontend/production-snapshots"
DEFAULT_SKIP_MARKER = "[vercel skip]"

_SNAPSHOT_NAME = re.compile(r"^v(\d+)\.json$")


def snapshot_path(version: int, snapshot_dir: str = DEFAULT_SNAPSHOT_DIR) -> str:
    return f"{snapshot_dir}/v{version}.json"


def save_snapshot(
    client: GitHubClient,
    version: int,
    commit_sha: str,
    website_data: dict,
    snapshot_dir: str = DEFAULT_SNAPSHOT_DIR,
    skip_marker: str = DEFAULT_SKIP_MARKER,
    tag_prefix: str = DEFAULT_TAG_PREFIX,
) -> tuple[str, str]:
    """Commit the snapshot for ``version``; return ``(path, commit_sha)``."""
    snapshot = Snapshot(
        version=version,
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        commit_sha=commit_sha,
        website_data=website_data,
    )
    path = snapshot_path(version, snapshot_dir)
    content = json.dumps(snapshot.to_json_dict(), indent=2, ensure_ascii=False)
    message = (
        f"Save production snapshot v{version} {skip_marker}\n\n"
        f"Snapshot of websiteData.json for {tag_prefix}{version}"
    )
    sha = commit_files(client, [GeneratedFile(path=path, content=content)], message)
    logger.info("Saved snapshot %s in %s", path, sha[:7])
    return path, sha


def list_snapshots(client: GitHubClient, snapshot_dir: str = DEFAULT_SNAPSHOT_DIR) -> list[dict]:
    """Stored snapshot files, newest version first."""
    snapshots = []
    for entry in client.list_directory(snapshot_dir):
        m = _SNAPSHOT_NAME.match(entry.get("name", ""))
        if not m or entry.get("type", "file") != "file":
            continue
        snapshots.append({
            "version": int(m.group(1)),
            "path": entry.get("path", f"{snapshot_dir}/{entry['name']}"),
            "size": entry.get("size", 0),
            "sha": entry.get("sha", ""),
        })
    snapshots.sort(key=lambda s: s["version"], reverse=True)
    return snapshots


def get_snapshot(
    client: GitHubClient, version: int, snapshot_dir: str = DEFAULT_SNAPSHOT_DIR
) -> Snapshot:
    """Fetch and parse the snapshot for ``version``.

    Raises:
        GitHubError: If it does not exist (status 404) or is malformed.
    """
    raw = client.get_contents(snapshot_path(version, snapshot_dir))
    try:
        return Snapshot.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise GitHubError(f"Snapshot v{version} is malformed: {e}") from e


def check_first_deploy(client: GitHubClient, snapshot_dir: str = DEFAULT_SNAPSHOT_DIR) -> dict:
    snapshots = list_snapshots(client, snapshot_dir)
    return {
        "isFirstDeploy": not snapshots,
        "latestVersion": snapshots[0]["version"] if snapshots else None,
        "snapshotCount": len(snapshots),
    }


@dataclass
class ResyncResult:
    version: int
    commit_sha: str = ""
    files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "commitSha": self.commit_sha,
            "files": self.files,
            "filesRegenerated": len(self.files),
        }


def resync_data_files(
    client: GitHubClient,
    version: int,
    registry: ComponentRegistry,
    snapshot_dir: str = DEFAULT_SNAPSHOT_DIR,
    skip_marker: str = DEFAULT_SKIP_MARKER,
    only_changed: bool = False,
) -> ResyncResult:
    """Regenerate ``.data.ts`` files from snapshot ``version`` and commit them.

    With ``only_changed``, files identical to the branch tip are left
    out; when none differ no commit is made.
    """
    snapshot = get_snapshot(client, version, snapshot_dir)
    master = parse_website_data(snapshot.website_data)
    generated = generate_data_files(master, registry)
    files = sorted(generated.files, key=lambda f: f.path)

    if files and only_changed:
        changed = {c.path for c in diff_against_remote(client, files) if c.status != "unchanged"}
        files = [f for f in files if f.path in changed]

    result = ResyncResult(version=version, files=[f.path for f in files])
    if not files:
        logger.info("Data files already match snapshot v%d; nothing to resync", version)
        return result

    message = (
        f"Sync .data.ts files with production snapshot v{version} {skip_marker}\n\n"
        f"Regenerated {len(files)} .data.ts files from production-snapshots/v{version}.json "
        "to ensure data consistency."
    )
    result.commit_sha = commit_files(client, files, message)
    logger.info("Resynced %d data files from v%d in %s", len(files), version, result.commit_sha[:7])
    return result

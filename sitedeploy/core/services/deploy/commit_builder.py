"""
Commit builder — one atomic commit of the production file set.

The file set is assembled from four sources:

    component sources   (component_copier)
    page files          (page_generator)
    utility files       lib/hooks/isMobile.ts, lib/colorUtils, production types
    config files        generated next.config.ts + types barrel, copied
                        package.json / tsconfig.json / .nvmrc

then de-duplicated (later sources win), passed through the production
filter and sorted by path, so the same inputs always produce the same
tree.

The push itself never writes files one by one: all blobs go into a
single tree built on top of the branch tip, one commit points at that
tree, and the branch ref moves with a non-forcing update.  Observers see
either the old tree or the whole new one.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Iterable

from sitedeploy.core.models.deploy import DeploymentResult, FileChange, GeneratedFile
from sitedeploy.core.services.deploy.github_api import GitHubClient
from sitedeploy.core.services.deploy.production_filter import (
    FilterSummary,
    filter_files_for_production,
)

logger = logging.getLogger(__name__)

DEFAULT_TAG_PREFIX = "production-v"

_UTILITY_DIRS = (
    "frontend/src/lib/hooks",
    "frontend/src/lib/colorUtils",
    "frontend/src/types",
)
_UTILITY_SUFFIXES = (".ts", ".tsx", ".js")
_UTILITY_EXCLUDED = frozenset({
    "hooks.ts",
    "llmOutputs.ts",
    "templateTypes.ts",
    "usage.ts",
    "user.ts",
    "website.ts",
    "helperBot.ts",
    "mainRegistry.ts",
    "websiteDataTypes.ts",
})

_COPIED_CONFIG = ("frontend/package.json", "frontend/tsconfig.json", "frontend/.nvmrc")

NEXT_CONFIG = """\
import type { NextConfig } from "next";

const nextConfig: NextConfig = {
  images: {
    remotePatterns: [
      {
        protocol: 'https',
        hostname: '**.public.blob.vercel-storage.com',
        port: '',
        pathname: '/**',
      },
    ],
  },
  typescript: {
    ignoreBuildErrors: false,
  },
};

export default nextConfig;
"""

TYPES_INDEX = """\
// Production-safe types index
// Only exports from files that exist in production deployment

export * from './colors';
export * from './componentTypes';
export * from './forms';
export * from './navbar';

// Excluded from production (editor-only):
// websiteDataTypes.ts, templateTypes.ts, llmOutputs.ts, user.ts,
// website.ts, helperBot.ts, usage.ts
"""


# ── File collection ─────────────────────────────────────────────


def collect_utility_files(project_root: Path) -> list[GeneratedFile]:
    """Hooks, color utilities and production types from the source tree."""
    files: list[GeneratedFile] = []
    for rel_dir in _UTILITY_DIRS:
        base = project_root / rel_dir
        if not base.is_dir():
            logger.debug("Utility dir missing: %s", rel_dir)
            continue
        for path in sorted(base.rglob("*")):
            if not path.is_file() or path.suffix not in _UTILITY_SUFFIXES:
                continue
            if path.name in _UTILITY_EXCLUDED:
                continue
            rel = path.relative_to(project_root).as_posix()
            if "/lib/hooks/" in rel and path.name != "isMobile.ts":
                continue
            if "/types/registry/" in rel:
                continue
            try:
                files.append(GeneratedFile(path=rel, content=path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping utility %s: %s", rel, e)
    logger.debug("Collected %d utility files", len(files))
    return files


def collect_config_files(project_root: Path) -> list[GeneratedFile]:
    """Production config: generated where the editor's copy is unsafe."""
    files: list[GeneratedFile] = []
    if any((project_root / f"frontend/next.config.{ext}").is_file() for ext in ("ts", "js", "mjs")):
        files.append(GeneratedFile(path="frontend/next.config.ts", content=NEXT_CONFIG))
    for rel in _COPIED_CONFIG:
        path = project_root / rel
        if path.is_file():
            try:
                files.append(GeneratedFile(path=rel, content=path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping config %s: %s", rel, e)
    if (project_root / "frontend/src/types/index.ts").is_file():
        files.append(GeneratedFile(path="frontend/src/types/index.ts", content=TYPES_INDEX))
    return files


def collect_deploy_files(
    component_files: Iterable[GeneratedFile],
    page_files: Iterable[GeneratedFile],
    project_root: Path,
) -> tuple[list[GeneratedFile], FilterSummary]:
    """The exact file set a push writes, in tree order.

    Dry runs and real pushes both call this, so both report the same
    file count.
    """
    merged: dict[str, GeneratedFile] = {}
    for f in (
        *component_files,
        *page_files,
        *collect_utility_files(project_root),
        *collect_config_files(project_root),
    ):
        merged[f.path] = f  # later sources win

    summary = filter_files_for_production(merged.values())
    files = sorted(summary.included, key=lambda f: f.path)
    return files, summary


# ── Versioning ──────────────────────────────────────────────────


def next_version(tag_names: Iterable[str], prefix: str = DEFAULT_TAG_PREFIX) -> int:
    """``max(existing {prefix}N) + 1``; 1 when there are none."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    versions = []
    for name in tag_names:
        m = pattern.match(name)
        if m:
            versions.append(int(m.group(1)))
    return max(versions, default=0) + 1


# ── Git objects ─────────────────────────────────────────────────


def git_blob_sha(content: str) -> str:
    """SHA git assigns to a blob with this content."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


def commit_files(client: GitHubClient, files: list[GeneratedFile], message: str) -> str:
    """Overlay ``files`` on the branch tip in one commit; return its SHA.

    Raises:
        GitHubError: On any API failure, including the branch having
            moved between reading the tip and updating the ref.
    """
    parent = client.get_ref()
    base_tree = client.get_commit(parent)["tree"]["sha"]
    logger.info("Committing %d files on %s (parent %s)", len(files), client.branch, parent[:7])

    entries = []
    for f in files:
        entries.append({
            "path": f.path,
            "mode": "100644",
            "type": "blob",
            "sha": client.create_blob(f.content),
        })

    tree = client.create_tree(base_tree, entries)
    commit = client.create_commit(message, tree, parent)
    client.update_ref(commit, force=False)
    logger.info("Branch %s → %s", client.branch, commit[:7])
    return commit


def diff_against_remote(client: GitHubClient, files: list[GeneratedFile]) -> list[FileChange]:
    """Read-only comparison of ``files`` with the branch tip."""
    head = client.get_ref()
    tree_sha = client.get_commit(head)["tree"]["sha"]
    tree = client.get_tree(tree_sha, recursive=True)
    if tree.get("truncated"):
        logger.warning("Remote tree listing truncated; some files may show as added")

    remote = {e["path"]: e["sha"] for e in tree.get("tree", []) if e.get("type") == "blob"}
    changes = []
    for f in files:
        sha = remote.get(f.path)
        if sha is None:
            status = "added"
        elif sha == git_blob_sha(f.content):
            status = "unchanged"
        else:
            status = "modified"
        changes.append(FileChange(path=f.path, status=status))
    return changes


# ── Push ────────────────────────────────────────────────────────


def push_to_github(
    client: GitHubClient | None,
    files: list[GeneratedFile],
    message: str,
    dry_run: bool = False,
    tag_prefix: str = DEFAULT_TAG_PREFIX,
) -> DeploymentResult:
    """Commit and tag ``files`` (already collected) on the production branch.

    With ``dry_run`` only read calls are made: the next version is
    computed from existing tags and every file is classified as
    added/modified/unchanged.  Without a client, a dry run reports the
    file set alone.
    """
    result = DeploymentResult(files_deployed=len(files), dry_run=dry_run)

    if dry_run:
        if client is not None:
            result.version = next_version(client.list_tags(), tag_prefix)
            result.tag_name = f"{tag_prefix}{result.version}"
            result.changes = diff_against_remote(client, files)
        else:
            result.changes = [FileChange(path=f.path, status="added") for f in files]
        result.success = True
        logger.info("Dry run: %d files would be committed", len(files))
        return result

    if client is None:
        raise ValueError("A GitHub client is required for a real push")

    version = next_version(client.list_tags(), tag_prefix)
    tag_name = f"{tag_prefix}{version}"
    full_message = f"{message}\n\nVersion: {tag_name}\nDeployed via GitHub API"

    commit_sha = commit_files(client, files, full_message)

    if client.tag_ref_exists(tag_name):
        logger.warning("Tag %s already exists, not re-creating it", tag_name)
    else:
        tag_sha = client.create_tag(tag_name, f"Production release v{version}", commit_sha)
        client.create_ref(f"refs/tags/{tag_name}", tag_sha)
        logger.info("Tagged %s as %s", commit_sha[:7], tag_name)

    result.success = True
    result.version = version
    result.commit_sha = commit_sha
    result.commit_url = f"{client.html_url}/commit/{commit_sha}"
    result.tag_name = tag_name
    result.tag_url = f"{client.html_url}/releases/tag/{tag_name}"
    return result

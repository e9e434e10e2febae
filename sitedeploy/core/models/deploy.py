"""
Deploy artifacts — generated files, commit results and snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GeneratedFile(BaseModel):
    """A file produced for the production tree.

    Attributes:
        path:    Repository-relative path (``frontend/...``).
        content: Full file content.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: str

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


class Snapshot(BaseModel):
    """A deployed copy of websiteData, stored in the repository by version."""

    model_config = ConfigDict(populate_by_name=True)

    version: int
    timestamp: str
    commit_sha: str = Field(alias="commitSha")
    website_data: dict[str, Any] = Field(alias="websiteData")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class FileChange:
    """One path in a dry-run diff against the remote tree."""

    path: str
    status: str  # added | modified | unchanged


@dataclass
class DeploymentResult:
    """Outcome of one push to the production branch."""

    success: bool = False
    version: int | None = None
    commit_sha: str = ""
    commit_url: str = ""
    tag_name: str = ""
    tag_url: str = ""
    files_deployed: int = 0
    dry_run: bool = False
    changes: list[FileChange] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {
            "success": self.success,
            "version": self.version,
            "commitSha": self.commit_sha,
            "commitUrl": self.commit_url,
            "tagName": self.tag_name,
            "tagUrl": self.tag_url,
            "filesDeployed": self.files_deployed,
            "dryRun": self.dry_run,
        }
        if self.dry_run:
            result["changes"] = [
                {"path": c.path, "status": c.status} for c in self.changes
            ]
        if self.error:
            result["error"] = self.error
        return result

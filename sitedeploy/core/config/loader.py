"""
Configuration loader — deploy settings from sitedeploy.yml and env.

Settings come from two layers:

    sitedeploy.yml (optional, found by walking up from cwd)
        ↓ overridden by
    environment variables (REPO_OWNER, REPO_NAME, PRODUCTION_BRANCH, …)

Tokens are read from the environment only, never from YAML.  A missing
token is not an error at load time; operations that need one call
``require_github()`` / ``require_vercel()`` and fail there.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "sitedeploy.yml"

# env var → settings field
_ENV_MAP = {
    "REPO_OWNER": "repo_owner",
    "REPO_NAME": "repo_name",
    "PRODUCTION_BRANCH": "branch",
    "GITHUB_TOKEN": "github_token",
    "VERCEL_TOKEN": "vercel_token",
    "VERCEL_TEAM_ID": "vercel_team_id",
    "DOMAIN_NAME": "domain_name",
    "TRACKING_URL": "tracking_url",
}

_SECRET_FIELDS = ("github_token", "vercel_token")


class ConfigError(Exception):
    """Raised when deploy configuration is invalid or missing."""


class HostingSettings(BaseModel):
    """Vercel polling behaviour."""

    poll_interval: float = 5.0
    poll_timeout: float = 300.0


class DeploySettings(BaseModel):
    """Everything the pipeline needs to reach GitHub and Vercel."""

    repo_owner: str = ""
    repo_name: str = ""
    branch: str = "main"
    github_token: str | None = None

    vercel_token: str | None = None
    vercel_team_id: str | None = None
    domain_name: str | None = None

    tracking_url: str | None = None

    tag_prefix: str = "production-v"
    home_slug: str = "index"
    snapshot_dir: str = "frontend/production-snapshots"
    skip_build_marker: str = "[vercel skip]"

    hosting: HostingSettings = Field(default_factory=HostingSettings)

    @property
    def repo_slug(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    def require_github(self) -> str:
        """Return the GitHub token, or raise if the target is incomplete."""
        if not self.github_token:
            raise ConfigError(
                "GITHUB_TOKEN is not set. Export a token with 'repo' scope "
                "to push to the production branch."
            )
        if not self.repo_owner or not self.repo_name:
            raise ConfigError(
                "Repository not configured. Set REPO_OWNER and REPO_NAME "
                f"or add them to {CONFIG_FILE}."
            )
        return self.github_token

    def require_vercel(self) -> str:
        if not self.vercel_token:
            raise ConfigError("VERCEL_TOKEN is not set; cannot trigger a Vercel build.")
        return self.vercel_token

    def public_dict(self) -> dict:
        """Settings with secrets replaced by a presence flag."""
        data = self.model_dump(exclude=set(_SECRET_FIELDS))
        for name in _SECRET_FIELDS:
            data[f"{name}_set"] = bool(getattr(self, name))
        return data


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for sitedeploy.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to sitedeploy.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading deploy config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "deploy" key or be flat
    section = data.get("deploy", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'deploy' in {path} must be a mapping")

    for name in _SECRET_FIELDS:
        if section.pop(name, None) is not None:
            logger.warning("Ignoring %s in %s; tokens are read from the environment", name, path)
    return section


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> DeploySettings:
    """Load and validate deploy settings.

    Args:
        path: Explicit path to sitedeploy.yml. If None, searches upward;
            a missing file is fine and yields env-only settings.
        env: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    env = os.environ if env is None else env

    if path is None:
        path = find_config_file()
    data = _read_yaml(path) if path is not None else {}

    for var, field_name in _ENV_MAP.items():
        value = env.get(var)
        if value:
            data[field_name] = value

    try:
        settings = DeploySettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid deploy configuration: {e}") from e

    logger.info(
        "Deploy target %s@%s (github token %s)",
        settings.repo_slug,
        settings.branch,
        "set" if settings.github_token else "missing",
    )
    return settings


def project_root(config_path: Path | None) -> Path:
    """Get the project root directory from a config file path."""
    if config_path is None:
        return Path.cwd().resolve()
    return config_path.parent.resolve()

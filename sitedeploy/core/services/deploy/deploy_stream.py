"""
Deploy stream — the production pipeline as a sequence of SSE events.

Stages run in a fixed order; each is announced ``in-progress`` and then
reported ``completed``, ``failed`` or ``skipped``::

    1 validation   every component type resolves in the registry
    2 components   production sources for the used types
    3 generate     data / page / route files + websiteData.json
    4 git          one atomic commit + annotated version tag
    5 snapshot     websiteData stored under the version   (soft)
    6 resync       data files re-checked against snapshot (soft)
    7 hosting      Vercel production build for the branch (soft)

A failed required stage ends the stream with ``complete`` and
``success: false``.  Soft stages run after the commit exists, so their
failures are reported as ``skipped`` with a warning and the deploy
still succeeds.

Caller wraps events with :func:`format_sse` for SSE transport.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterator

from sitedeploy.core.config.loader import ConfigError, DeploySettings
from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.deploy import DeploymentResult, GeneratedFile
from sitedeploy.core.models.website import WebsiteDataError, WebsiteMaster, parse_website_data
from sitedeploy.core.services.deploy.commit_builder import collect_deploy_files, push_to_github
from sitedeploy.core.services.deploy.component_copier import copy_components
from sitedeploy.core.services.deploy.github_api import GitHubClient
from sitedeploy.core.services.deploy.hosting import (
    HostingResult,
    VercelClient,
    VercelError,
    trigger_production_deploy,
)
from sitedeploy.core.services.deploy.import_check import check_generated_imports
from sitedeploy.core.services.deploy.page_generator import generate_page_files, website_data_file
from sitedeploy.core.services.deploy.snapshots import resync_data_files, save_snapshot
from sitedeploy.core.services.deploy.tracking import (
    DeploymentRecord,
    notify_tracking_endpoint,
    record_deployment,
)
from sitedeploy.core.services.deploy.validator import validate_website_data

logger = logging.getLogger(__name__)

Event = tuple[str, dict[str, Any]]

# Failures a stage reports as its own error message.
_EXPECTED_ERRORS = (RuntimeError, ValueError, ConfigError)


@dataclass(frozen=True)
class StageInfo:
    name: str
    label: str
    required: bool = True


STAGES: tuple[StageInfo, ...] = (
    StageInfo("validation", "Validation"),
    StageInfo("components", "Component Copying"),
    StageInfo("generate", "File Generation"),
    StageInfo("git", "GitHub Deployment"),
    StageInfo("snapshot", "Production Snapshot", required=False),
    StageInfo("resync", "Data Resync", required=False),
    StageInfo("hosting", "Vercel Deployment", required=False),
)


class StageFailed(RuntimeError):
    """A stage failed with a list of individual errors."""

    def __init__(self, message: str, errors: list[str] | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]
        self.details = details


class StageSkipped(Exception):
    """A stage does not apply to this run; the message says why."""


@dataclass
class DeployRequest:
    """Body of a deploy request."""

    website_data: dict[str, Any]
    dry_run: bool = False
    skip_code_review: bool = False
    skip_vercel_deploy: bool = False
    app_name: str | None = None

    @classmethod
    def from_json(cls, body: Any) -> DeployRequest:
        """Build from the HTTP JSON body.

        Raises:
            WebsiteDataError: If ``websiteData`` is missing or not an object.
        """
        if not isinstance(body, dict) or not isinstance(body.get("websiteData"), dict):
            raise WebsiteDataError("Invalid request: websiteData is required")
        app_name = str(body.get("appName") or "").strip()
        return cls(
            website_data=body["websiteData"],
            dry_run=bool(body.get("dryRun", False)),
            skip_code_review=bool(body.get("skipCodeReview", False)),
            skip_vercel_deploy=bool(body.get("skipVercelDeploy", False)),
            app_name=app_name or None,
        )


# ── Clients ─────────────────────────────────────────────────────


def github_client_for(settings: DeploySettings) -> GitHubClient:
    """Client for the configured production branch.

    Raises:
        ConfigError: If the token or repository is not configured.
    """
    token = settings.require_github()
    return GitHubClient(settings.repo_owner, settings.repo_name, settings.branch, token)


def vercel_client_for(settings: DeploySettings) -> VercelClient:
    return VercelClient(settings.require_vercel(), team_id=settings.vercel_team_id)


# ── Run ─────────────────────────────────────────────────────────


@dataclass
class _RunState:
    master: WebsiteMaster | None = None
    used_types: list[str] = field(default_factory=list)
    component_files: list[GeneratedFile] = field(default_factory=list)
    page_files: list[GeneratedFile] = field(default_factory=list)
    pages: list[str] = field(default_factory=list)
    files_generated: int = 0
    code_review_passed: bool | None = None
    deployment: DeploymentResult | None = None
    snapshot_version: int | None = None
    hosting: HostingResult | None = None
    warnings: list[str] = field(default_factory=list)


class DeployRun:
    """State and stage implementations for one deploy request."""

    def __init__(
        self,
        request: DeployRequest,
        settings: DeploySettings,
        project_root: Path,
        registry: ComponentRegistry,
        github: GitHubClient | None = None,
        vercel: VercelClient | None = None,
    ) -> None:
        self.request = request
        self.settings = settings
        self.project_root = project_root
        self.registry = registry
        self.state = _RunState()
        self._github = github
        self._vercel = vercel

    def run_stage(self, name: str) -> tuple[str, dict[str, Any] | None]:
        """Run stage ``name``; return its completion message and details."""
        handler = getattr(self, f"_stage_{name}", None)
        if handler is None:
            raise RuntimeError(f"Unknown stage: {name}")
        return handler()

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.state.warnings.append(message)

    def github(self, required: bool) -> GitHubClient | None:
        if self._github is None:
            if not required and not self.settings.github_token:
                return None
            self._github = github_client_for(self.settings)
        return self._github

    # ── Stages ──────────────────────────────────────────────────

    def _stage_validation(self) -> tuple[str, dict | None]:
        master = parse_website_data(self.request.website_data)
        result = validate_website_data(master, self.registry, self.settings.home_slug)
        if not result.valid:
            raise StageFailed(
                "; ".join(result.errors),
                errors=result.missing_types + result.invalid_slugs,
                details=result.to_dict(),
            )
        self.state.master = master
        self.state.used_types = result.used_types
        return (
            f"Validated {len(result.used_types)} component types "
            f"across {len(master.pages)} pages",
            result.to_dict(),
        )

    def _stage_components(self) -> tuple[str, dict | None]:
        result = copy_components(
            self.state.used_types, self.project_root, self.registry, dry_run=self.request.dry_run
        )
        for warning in result.warnings:
            self.warn(warning)
        if not result.success:
            raise StageFailed(
                f"Component copy failed ({len(result.errors)} errors)",
                errors=result.errors,
                details=result.to_dict(),
            )
        self.state.component_files = result.files
        return f"Copied {result.components_copied} components", result.to_dict()

    def _stage_generate(self) -> tuple[str, dict | None]:
        result = generate_page_files(
            self.state.master, self.registry, home_slug=self.settings.home_slug
        )
        for warning in result.warnings:
            self.warn(warning)
        self.state.page_files = [*result.files, website_data_file(self.request.website_data)]
        self.state.pages = result.pages
        self.state.files_generated = len(self.state.page_files)
        return (
            f"Generated {len(result.files)} files for {len(result.pages)} pages",
            result.to_dict(),
        )

    def _stage_git(self) -> tuple[str, dict | None]:
        dry_run = self.request.dry_run
        files, summary = collect_deploy_files(
            self.state.component_files, self.state.page_files, self.project_root
        )

        if self.request.skip_code_review:
            logger.info("Import check skipped by request")
        else:
            issues = check_generated_imports(files)
            if issues:
                raise StageFailed(
                    f"Generated files have {len(issues)} unresolved imports",
                    errors=issues,
                )
            self.state.code_review_passed = True

        client = self.github(required=not dry_run)
        if client is None:
            self.warn("GITHUB_TOKEN not set; dry run lists files without comparing to the remote")

        message = f"Deploy {len(self.state.pages)} pages ({len(files)} files)"
        result = push_to_github(
            client, files, message, dry_run=dry_run, tag_prefix=self.settings.tag_prefix
        )
        self.state.deployment = result

        details = result.to_dict()
        details["filtered"] = summary.stats
        if dry_run:
            if result.version is not None:
                return f"Dry run complete (would create v{result.version})", details
            return f"Dry run complete ({len(files)} files)", details
        return f"Deployed v{result.version} via GitHub API", details

    def _stage_snapshot(self) -> tuple[str, dict | None]:
        deployment = self.state.deployment
        if self.request.dry_run:
            raise StageSkipped("Dry run: no snapshot written")
        if deployment is None or deployment.version is None or not deployment.commit_sha:
            raise StageSkipped("No commit to snapshot")

        path, sha = save_snapshot(
            self.github(required=True),
            deployment.version,
            deployment.commit_sha,
            self.request.website_data,
            snapshot_dir=self.settings.snapshot_dir,
            skip_marker=self.settings.skip_build_marker,
            tag_prefix=self.settings.tag_prefix,
        )
        self.state.snapshot_version = deployment.version
        return f"Saved snapshot v{deployment.version}", {"path": path, "commitSha": sha}

    def _stage_resync(self) -> tuple[str, dict | None]:
        if self.request.dry_run:
            raise StageSkipped("Dry run: nothing to resync")
        version = self.state.snapshot_version
        if version is None:
            raise StageSkipped("No snapshot to resync from")

        result = resync_data_files(
            self.github(required=True),
            version,
            self.registry,
            snapshot_dir=self.settings.snapshot_dir,
            skip_marker=self.settings.skip_build_marker,
            only_changed=True,
        )
        if not result.files:
            return f"Data files already match snapshot v{version}", result.to_dict()
        return f"Resynced {len(result.files)} data files from v{version}", result.to_dict()

    def _stage_hosting(self) -> tuple[str, dict | None]:
        if self.request.skip_vercel_deploy:
            raise StageSkipped("Skipped by user")
        if not self.request.app_name:
            raise StageSkipped("No app name provided")
        if self.request.dry_run:
            raise StageSkipped("Dry run: no hosting build triggered")
        if self._vercel is None and not self.settings.vercel_token:
            raise StageSkipped("Vercel deployment disabled (VERCEL_TOKEN not set)")

        client = self._vercel or vercel_client_for(self.settings)
        result = trigger_production_deploy(
            client,
            self.request.app_name,
            self.settings.repo_slug,
            self.settings.branch,
            domain_name=self.settings.domain_name,
            interval=self.settings.hosting.poll_interval,
            timeout=self.settings.hosting.poll_timeout,
        )
        self.state.hosting = result
        if result.state in ("ERROR", "CANCELED"):
            raise VercelError(result.error or f"Deployment {result.state.lower()}")
        if not result.ready:
            self.warn(result.error or f"Deployment still {result.state.lower()}")
            return f"Deployment {result.state.lower()}: {result.url}", result.to_dict()
        return f"Live at {result.url}", result.to_dict()

    # ── Summary ─────────────────────────────────────────────────

    def summary(self, total_ms: int) -> dict[str, Any]:
        state = self.state
        deployment = state.deployment or DeploymentResult(dry_run=self.request.dry_run)
        details: dict[str, Any] = {
            "version": deployment.version,
            "commitSha": deployment.commit_sha,
            "commitUrl": deployment.commit_url,
            "tag": deployment.tag_name,
            "tagUrl": deployment.tag_url,
            "deploymentUrl": state.hosting.url if state.hosting else None,
            "filesGenerated": state.files_generated,
            "filesDeployed": deployment.files_deployed,
            "pagesDeployed": state.pages,
            "codeReviewPassed": state.code_review_passed,
            "vercelDeploymentId": state.hosting.deployment_id if state.hosting else None,
            "dryRun": self.request.dry_run,
            "totalDuration": f"{total_ms}ms",
            "snapshotAvailable": state.snapshot_version is not None,
            "snapshotVersion": state.snapshot_version,
            "warnings": state.warnings,
        }
        if self.request.dry_run:
            details["changes"] = [{"path": c.path, "status": c.status} for c in deployment.changes]
        return details


# ── Stream ──────────────────────────────────────────────────────


def _stage_event(
    index: int,
    si: StageInfo,
    status: str,
    message: str,
    duration_ms: int | None = None,
    details: Any = None,
) -> Event:
    payload: dict[str, Any] = {
        "stage": index,
        "name": si.label,
        "key": si.name,
        "status": status,
        "message": message,
    }
    if duration_ms is not None:
        payload["duration"] = f"{duration_ms}ms"
    if details is not None:
        payload["details"] = details
    return "stage", payload


def _finish_record(
    record: DeploymentRecord, run: DeployRun, status: str, total_ms: int, error: str | None = None
) -> None:
    deployment = run.state.deployment
    record.ended_at = datetime.now(UTC).isoformat()
    record.status = status
    record.duration_ms = total_ms
    record.error = error
    record.pages_deployed = len(run.state.pages)
    if deployment is not None:
        record.version = deployment.version
        record.commit_sha = deployment.commit_sha
        record.tag_name = deployment.tag_name
        record.files_deployed = deployment.files_deployed
    if run.state.hosting is not None:
        record.hosting_state = run.state.hosting.state


def stream_deploy(
    request: DeployRequest,
    settings: DeploySettings,
    project_root: Path,
    registry: ComponentRegistry | None = None,
    *,
    github: GitHubClient | None = None,
    vercel: VercelClient | None = None,
    record: bool = True,
) -> Iterator[Event]:
    """Generator that yields ``(event, payload)`` pairs for one deploy.

    Args:
        request: Parsed request body.
        settings: Repository, token and hosting settings.
        project_root: Root of the editor source tree.
        registry: Component registry (bundled catalog by default).
        github: Client to use instead of one built from ``settings``.
        vercel: Client to use instead of one built from ``settings``.
        record: If True, append the run to the deployment history.

    Yields:
        ``("stage", {...})`` per transition, then one ``("complete",
        {...})``, or ``("error", {...})`` if the pipeline itself broke.
    """
    run = DeployRun(
        request, settings, project_root, registry if registry is not None else ComponentRegistry(),
        github=github, vercel=vercel,
    )
    history = DeploymentRecord(dry_run=request.dry_run, app_name=request.app_name)
    started = time.monotonic()
    logger.info("Deploy started (dry_run=%s, app=%s)", request.dry_run, request.app_name)

    def elapsed_ms(since: float) -> int:
        return int((time.monotonic() - since) * 1000)

    def finish(status: str, error: str | None = None) -> None:
        if not record:
            return
        _finish_record(history, run, status, elapsed_ms(started), error)
        record_deployment(project_root, history)
        notify_tracking_endpoint(settings.tracking_url, history)

    try:
        for index, si in enumerate(STAGES, start=1):
            yield _stage_event(index, si, "in-progress", f"{si.label}...")
            stage_start = time.monotonic()

            failure: StageFailed | None = None
            details: Any = None
            try:
                message, details = run.run_stage(si.name)
                status = "completed"
            except StageSkipped as e:
                message, status = str(e), "skipped"
            except _EXPECTED_ERRORS as e:
                message, status = str(e), "failed"
                failure = e if isinstance(e, StageFailed) else StageFailed(str(e))
            except Exception as e:
                logger.exception("Stage %s raised", si.name)
                message, status = f"Unexpected: {e}", "failed"
                failure = StageFailed(message)

            if failure is not None and not si.required:
                run.warn(f"{si.label} failed: {message}")
                message, status, failure = f"{si.label} failed: {message}", "skipped", None

            yield _stage_event(index, si, status, message, elapsed_ms(stage_start), details)

            if failure is not None:
                logger.error("Deploy failed at %s: %s", si.name, message)
                finish("failed", message)
                yield "complete", {
                    "success": False,
                    "stage": si.name,
                    "errors": failure.errors,
                    "message": message,
                    "details": failure.details,
                }
                return

        total_ms = elapsed_ms(started)
        summary = run.summary(total_ms)
        finish("dry-run" if request.dry_run else "ok")
        logger.info("Deploy finished in %dms", total_ms)
        yield "complete", {
            "success": True,
            "message": (
                "Dry run successful (no changes made)" if request.dry_run
                else "Deployment successful"
            ),
            "details": summary,
        }
    except Exception as e:
        logger.exception("Deploy pipeline broke")
        yield "error", {"message": "Deployment failed", "details": str(e)}


def format_sse(event: str, payload: dict[str, Any]) -> str:
    """One named SSE frame."""
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"

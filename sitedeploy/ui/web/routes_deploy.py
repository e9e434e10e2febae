"""
Deploy API routes — production deploy, snapshots, history.

Blueprint: deploy_api_bp
Prefix: /api

Endpoints:
    POST /production/deploy-stream        — full deploy (SSE)
    POST /production/deploy               — full deploy, final result only
    POST /production/preview-data-files   — generated .data.ts files
    GET  /production/snapshots            — list stored snapshots
    GET  /production/snapshots/<v>        — one snapshot
    POST /production/resync/<v>           — regenerate data files from v
    GET  /production/check-first-deploy   — any snapshot yet?
    GET  /production/deployments          — local deploy history
    GET  /production/filter?path=         — production filter decision
    GET  /production/config               — effective settings (no secrets)

Thin HTTP wrappers over ``sitedeploy.core.services.deploy``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from sitedeploy.core.config.loader import ConfigError, DeploySettings
from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.props import PropsValidationError
from sitedeploy.core.models.website import WebsiteDataError, parse_website_data
from sitedeploy.core.services.deploy.deploy_stream import (
    DeployRequest,
    format_sse,
    github_client_for,
    stream_deploy,
)
from sitedeploy.core.services.deploy.github_api import GitHubClient, GitHubError
from sitedeploy.core.services.deploy.page_generator import (
    PageGenerationError,
    generate_data_files,
)
from sitedeploy.core.services.deploy.production_filter import should_include_in_production
from sitedeploy.core.services.deploy.snapshots import (
    check_first_deploy,
    get_snapshot,
    list_snapshots,
    resync_data_files,
)
from sitedeploy.core.services.deploy.tracking import load_deployments

logger = logging.getLogger(__name__)

deploy_api_bp = Blueprint("deploy_api", __name__)


def _project_root() -> Path:
    return Path(current_app.config["PROJECT_ROOT"])


def _settings() -> DeploySettings:
    return current_app.config["DEPLOY_SETTINGS"]


def _registry() -> ComponentRegistry:
    return current_app.config["COMPONENT_REGISTRY"]


def _github() -> GitHubClient:
    """Injected client, or one built from settings (raises ConfigError)."""
    return current_app.config["GITHUB_CLIENT"] or github_client_for(_settings())


def _github_error(e: GitHubError):  # type: ignore[no-untyped-def]
    status = 404 if e.status == 404 else 502
    return jsonify({"error": str(e)}), status


# ── Deploy ──────────────────────────────────────────────────────────


def _deploy_events(body: dict):  # type: ignore[no-untyped-def]
    deploy_request = DeployRequest.from_json(body)
    return stream_deploy(
        deploy_request,
        _settings(),
        _project_root(),
        _registry(),
        github=current_app.config["GITHUB_CLIENT"],
        vercel=current_app.config["VERCEL_CLIENT"],
    )


@deploy_api_bp.route("/production/deploy-stream", methods=["POST"])
def deploy_stream_route():  # type: ignore[no-untyped-def]
    """Run the production pipeline with per-stage SSE events."""
    data = request.get_json(silent=True) or {}
    try:
        events = _deploy_events(data)
    except WebsiteDataError as e:
        return jsonify({"error": str(e)}), 400

    def sse():  # type: ignore[no-untyped-def]
        for event, payload in events:
            yield format_sse(event, payload)

    return Response(
        stream_with_context(sse()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@deploy_api_bp.route("/production/deploy", methods=["POST"])
def deploy_route():  # type: ignore[no-untyped-def]
    """Run the production pipeline and return only the final event."""
    data = request.get_json(silent=True) or {}
    try:
        events = _deploy_events(data)
    except WebsiteDataError as e:
        return jsonify({"error": str(e)}), 400

    stages = []
    final: tuple[str, dict] = ("error", {"message": "Deployment produced no result"})
    for event, payload in events:
        if event == "stage" and payload["status"] != "in-progress":
            stages.append(payload)
        else:
            final = (event, payload)

    event, payload = final
    body = {**payload, "stages": stages}
    if event == "error":
        return jsonify(body), 500
    return jsonify(body), 200 if payload.get("success") else 422


@deploy_api_bp.route("/production/preview-data-files", methods=["POST"])
def preview_data_files_route():  # type: ignore[no-untyped-def]
    """Generate the .data.ts files for a document without deploying."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("websiteData"), dict):
        return jsonify({"error": "Invalid request: websiteData is required"}), 400

    try:
        master = parse_website_data(data["websiteData"])
        result = generate_data_files(master, _registry())
    except (WebsiteDataError, PageGenerationError, PropsValidationError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "success": True,
        "files": [
            {"path": f.path, "content": f.content, "size": f.size}
            for f in result.files
        ],
        "totalFiles": len(result.files),
        "websiteDataPages": len(master.pages),
        "warnings": result.warnings,
    })


# ── Snapshots ───────────────────────────────────────────────────────


@deploy_api_bp.route("/production/snapshots")
def list_snapshots_route():  # type: ignore[no-untyped-def]
    """List stored production snapshots, newest first."""
    try:
        snapshots = list_snapshots(_github(), _settings().snapshot_dir)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400
    except GitHubError as e:
        return _github_error(e)
    return jsonify({"success": True, "snapshots": snapshots, "count": len(snapshots)})


@deploy_api_bp.route("/production/snapshots/<int:version>")
def get_snapshot_route(version: int):  # type: ignore[no-untyped-def]
    """Fetch one snapshot with its websiteData."""
    try:
        snapshot = get_snapshot(_github(), version, _settings().snapshot_dir)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400
    except GitHubError as e:
        if e.status == 404:
            return jsonify({"error": f"Snapshot v{version} not found"}), 404
        return _github_error(e)
    return jsonify({"success": True, "snapshot": snapshot.to_json_dict()})


@deploy_api_bp.route("/production/resync/<int:version>", methods=["POST"])
def resync_route(version: int):  # type: ignore[no-untyped-def]
    """Regenerate and commit the .data.ts files stored for ``version``."""
    settings = _settings()
    try:
        result = resync_data_files(
            _github(),
            version,
            _registry(),
            snapshot_dir=settings.snapshot_dir,
            skip_marker=settings.skip_build_marker,
        )
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400
    except GitHubError as e:
        if e.status == 404:
            return jsonify({"error": f"Snapshot v{version} not found"}), 404
        return _github_error(e)
    except (WebsiteDataError, PageGenerationError, PropsValidationError) as e:
        return jsonify({"error": f"Snapshot v{version} cannot be regenerated: {e}"}), 422
    return jsonify({"success": True, **result.to_dict()})


@deploy_api_bp.route("/production/check-first-deploy")
def check_first_deploy_route():  # type: ignore[no-untyped-def]
    """Whether the production branch has ever received a snapshot."""
    try:
        info = check_first_deploy(_github(), _settings().snapshot_dir)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400
    except GitHubError as e:
        return _github_error(e)
    return jsonify({"success": True, **info})


# ── History / tools ─────────────────────────────────────────────────


@deploy_api_bp.route("/production/deployments")
def deployments_route():  # type: ignore[no-untyped-def]
    """Recent local deploy runs, newest first."""
    try:
        n = int(request.args.get("n", "50"))
    except ValueError:
        return jsonify({"error": "n must be an integer"}), 400
    return jsonify({"deployments": load_deployments(_project_root(), n=max(n, 1))})


@deploy_api_bp.route("/production/filter")
def filter_route():  # type: ignore[no-untyped-def]
    """Explain the production filter decision for one path."""
    path = request.args.get("path", "").strip()
    if not path:
        return jsonify({"error": "path is required"}), 400
    result = should_include_in_production(path)
    return jsonify({"path": path, "include": result.include, "reason": result.reason})


@deploy_api_bp.route("/production/config")
def config_route():  # type: ignore[no-untyped-def]
    """Effective deploy settings with secrets reduced to presence flags."""
    return jsonify(_settings().public_dict())

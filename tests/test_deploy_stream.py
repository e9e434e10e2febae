"""
Tests for the deploy stream — stage order, soft and hard failures,
dry runs and the final summary.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from fakes import FakeGitHubClient, FakeVercelClient

from sitedeploy.core.config.loader import DeploySettings
from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.website import WebsiteDataError
from sitedeploy.core.services.deploy import deploy_stream
from sitedeploy.core.services.deploy.deploy_stream import (
    STAGES,
    DeployRequest,
    format_sse,
    stream_deploy,
)
from sitedeploy.core.services.deploy.github_api import GitHubError
from sitedeploy.core.services.deploy.tracking import load_deployments


def _run(
    website_data: dict,
    settings: DeploySettings,
    project_dir: Path,
    registry: ComponentRegistry,
    github=None,
    vercel=None,
    record: bool = False,
    **request,
) -> list[tuple[str, dict]]:
    req = DeployRequest(website_data=website_data, **request)
    return list(stream_deploy(
        req, settings, project_dir, registry, github=github, vercel=vercel, record=record,
    ))


def _final_stages(events: list[tuple[str, dict]]) -> dict[str, dict]:
    return {
        p["key"]: p for e, p in events if e == "stage" and p["status"] != "in-progress"
    }


def _complete(events: list[tuple[str, dict]]) -> dict:
    event, payload = events[-1]
    assert event == "complete"
    return payload


# ── Request parsing ──────────────────────────────────────────────────


class TestDeployRequest:
    def test_from_json(self):
        req = DeployRequest.from_json({
            "websiteData": {"pages": {}},
            "dryRun": True,
            "skipVercelDeploy": 1,
            "appName": "  shop ",
        })
        assert req.dry_run is True
        assert req.skip_vercel_deploy is True
        assert req.skip_code_review is False
        assert req.app_name == "shop"

    def test_blank_app_name(self):
        assert DeployRequest.from_json({"websiteData": {}, "appName": " "}).app_name is None

    @pytest.mark.parametrize("body", [None, [], {}, {"websiteData": "x"}])
    def test_missing_website_data(self, body):
        with pytest.raises(WebsiteDataError, match="websiteData is required"):
            DeployRequest.from_json(body)


# ── Dry runs ─────────────────────────────────────────────────────────


class TestDryRun:
    def test_without_token(self, website_data, project_dir, registry):
        events = _run(website_data, DeploySettings(), project_dir, registry, dry_run=True)

        complete = _complete(events)
        assert complete["success"] is True
        assert complete["message"] == "Dry run successful (no changes made)"
        details = complete["details"]
        assert details["dryRun"] is True
        assert details["version"] is None
        assert details["filesDeployed"] == 18
        assert all(c["status"] == "added" for c in details["changes"])
        assert any("GITHUB_TOKEN not set" in w for w in details["warnings"])

    def test_with_client_makes_no_writes(self, website_data, settings, project_dir, registry, github):
        events = _run(
            website_data, settings, project_dir, registry, github=github, dry_run=True, app_name="shop",
        )

        stages = _final_stages(events)
        assert stages["git"]["status"] == "completed"
        assert stages["git"]["message"] == "Dry run complete (would create v3)"
        assert stages["snapshot"]["status"] == "skipped"
        assert stages["resync"]["status"] == "skipped"
        assert stages["hosting"]["message"] == "Dry run: no hosting build triggered"
        assert github.writes == []

        details = _complete(events)["details"]
        assert details["version"] == 3
        assert details["commitSha"] == ""
        assert len(details["changes"]) == details["filesDeployed"]


# ── Real runs ────────────────────────────────────────────────────────


class TestRealRun:
    def test_full_pipeline(self, website_data, settings, project_dir, registry, github, vercel):
        events = _run(
            website_data, settings, project_dir, registry,
            github=github, vercel=vercel, app_name="shop",
        )

        stages = _final_stages(events)
        assert list(stages) == [s.name for s in STAGES]
        assert all(s["status"] == "completed" for s in stages.values())
        assert stages["git"]["message"] == "Deployed v3 via GitHub API"
        assert stages["snapshot"]["message"] == "Saved snapshot v3"
        assert stages["resync"]["message"] == "Data files already match snapshot v3"
        assert stages["hosting"]["message"] == "Live at https://shop.dev.example.com"

        complete = _complete(events)
        assert complete["success"] is True
        assert complete["message"] == "Deployment successful"
        details = complete["details"]
        assert details["version"] == 3
        assert details["tag"] == "production-v3"
        assert details["filesGenerated"] == 7
        assert details["filesDeployed"] == 18
        assert details["pagesDeployed"] == ["index", "about-us"]
        assert details["codeReviewPassed"] is True
        assert details["snapshotAvailable"] is True
        assert details["vercelDeploymentId"] == "dpl_1"
        assert details["deploymentUrl"] == "https://shop.dev.example.com"
        assert "changes" not in details

        # deploy commit, then snapshot commit; resync found nothing to change
        assert github.calls.count("create_commit") == 2
        assert github.commit_messages[1].startswith("Deploy 2 pages (18 files)")
        assert "production-v3" in github.tags
        assert "frontend/production-snapshots/v3.json" in github.files
        assert ("add_domain", "prj_shop", "shop.dev.example.com") in vercel.calls

    def test_stage_events_announced_before_results(
        self, website_data, settings, project_dir, registry, github, vercel
    ):
        events = _run(website_data, settings, project_dir, registry, github=github, vercel=vercel)
        stage_events = [p for e, p in events if e == "stage"]
        assert len(stage_events) == 2 * len(STAGES)
        for i in range(0, len(stage_events), 2):
            start, end = stage_events[i], stage_events[i + 1]
            assert start["status"] == "in-progress"
            assert start["stage"] == end["stage"] == i // 2 + 1
            assert end["duration"].endswith("ms")
        assert stage_events[0]["name"] == "Validation"

    def test_missing_token_fails_git_stage(self, website_data, project_dir, registry):
        events = _run(website_data, DeploySettings(), project_dir, registry)
        complete = _complete(events)
        assert complete["success"] is False
        assert complete["stage"] == "git"
        assert "GITHUB_TOKEN" in complete["message"]
        assert "snapshot" not in _final_stages(events)

    def test_commit_conflict_fails(self, website_data, settings, project_dir, registry, github):
        github.fail_ref_update = 422
        complete = _complete(_run(website_data, settings, project_dir, registry, github=github))
        assert complete["success"] is False
        assert complete["stage"] == "git"
        assert "moved while deploying" in complete["message"]
        assert "production-v3" not in github.tags


# ── Failures ─────────────────────────────────────────────────────────


class TestRequiredStageFailures:
    def test_unknown_component_type(self, website_data, settings, project_dir, registry, github):
        website_data["pages"]["index"]["components"].append({"type": "ghostHero"})
        events = _run(website_data, settings, project_dir, registry, github=github)

        complete = _complete(events)
        assert complete["success"] is False
        assert complete["stage"] == "validation"
        assert complete["errors"] == ["ghostHero"]
        assert complete["message"] == "Missing component types: ghostHero"
        assert list(_final_stages(events)) == ["validation"]
        assert github.writes == []

    def test_reserved_slug_rejected_before_writes(self, settings, project_dir, registry, github):
        doc = {"pages": {"dashboard": {"components": [{"type": "auroraHero"}]}}}
        events = _run(doc, settings, project_dir, registry, github=github)

        complete = _complete(events)
        assert complete["success"] is False
        assert complete["stage"] == "validation"
        assert complete["errors"] == ["dashboard"]
        assert complete["message"] == "Invalid page slugs: dashboard"
        assert complete["details"]["invalidSlugs"] == ["dashboard"]
        assert github.writes == []

    def test_type_and_slug_errors_reported_together(self, settings, project_dir, registry, github):
        doc = {"pages": {
            "index": {"components": [{"type": "ghostHero"}]},
            "test-drive": {"components": [{"type": "auroraHero"}]},
        }}
        complete = _complete(_run(doc, settings, project_dir, registry, github=github))
        assert complete["stage"] == "validation"
        assert complete["errors"] == ["ghostHero", "test-drive"]
        assert complete["message"] == (
            "Missing component types: ghostHero; Invalid page slugs: test-drive"
        )

    def test_malformed_document(self, settings, project_dir, registry):
        events = _run({"pages": {"index": {"components": "x"}}}, settings, project_dir, registry)
        complete = _complete(events)
        assert complete["stage"] == "validation"
        assert complete["message"].startswith("Invalid websiteData")

    def test_missing_component_source(self, settings, project_dir, registry, github):
        doc = {"pages": {"index": {"components": [{"type": "carousel"}]}}}
        complete = _complete(_run(doc, settings, project_dir, registry, github=github))
        assert complete["stage"] == "components"
        assert complete["errors"][0].startswith("Component file not found")
        assert complete["details"]["componentsCopied"] == 0

    def test_unresolved_imports_block_push(
        self, website_data, settings, project_dir, registry, github, monkeypatch
    ):
        monkeypatch.setattr(
            deploy_stream, "check_generated_imports", lambda files: ["a.ts: cannot resolve '@/x'"]
        )
        complete = _complete(_run(website_data, settings, project_dir, registry, github=github))
        assert complete["stage"] == "git"
        assert complete["message"] == "Generated files have 1 unresolved imports"
        assert github.writes == []

    def test_import_check_skipped(
        self, website_data, settings, project_dir, registry, github, monkeypatch
    ):
        monkeypatch.setattr(
            deploy_stream, "check_generated_imports", lambda files: ["a.ts: cannot resolve '@/x'"]
        )
        events = _run(
            website_data, settings, project_dir, registry, github=github, skip_code_review=True,
        )
        complete = _complete(events)
        assert complete["success"] is True
        assert complete["details"]["codeReviewPassed"] is None

    def test_unexpected_error(self, website_data, settings, project_dir, registry, monkeypatch):
        def boom(*args, **kwargs):
            raise KeyError("registry")

        monkeypatch.setattr(deploy_stream, "copy_components", boom)
        complete = _complete(_run(website_data, settings, project_dir, registry))
        assert complete["stage"] == "components"
        assert complete["message"] == "Unexpected: 'registry'"


class TestSoftStages:
    def test_snapshot_failure_does_not_fail_deploy(
        self, website_data, settings, project_dir, registry, github, vercel, monkeypatch
    ):
        def fail(*args, **kwargs):
            raise GitHubError("contents API unavailable", status=503)

        monkeypatch.setattr(deploy_stream, "save_snapshot", fail)
        events = _run(
            website_data, settings, project_dir, registry, github=github, vercel=vercel,
            skip_vercel_deploy=True,
        )

        stages = _final_stages(events)
        assert stages["snapshot"]["status"] == "skipped"
        assert stages["snapshot"]["message"] == "Production Snapshot failed: contents API unavailable"
        assert stages["resync"]["message"] == "No snapshot to resync from"
        complete = _complete(events)
        assert complete["success"] is True
        assert complete["details"]["snapshotAvailable"] is False
        assert "Production Snapshot failed: contents API unavailable" in complete["details"]["warnings"]

    @pytest.mark.parametrize("request_kw, settings_kw, message", [
        ({"skip_vercel_deploy": True, "app_name": "shop"}, {}, "Skipped by user"),
        ({}, {}, "No app name provided"),
        ({"app_name": "shop"}, {"vercel_token": None},
         "Vercel deployment disabled (VERCEL_TOKEN not set)"),
    ])
    def test_hosting_skips(
        self, website_data, settings, project_dir, registry, github,
        request_kw, settings_kw, message,
    ):
        settings = settings.model_copy(update=settings_kw)
        events = _run(website_data, settings, project_dir, registry, github=github, **request_kw)
        hosting = _final_stages(events)["hosting"]
        assert hosting["status"] == "skipped"
        assert hosting["message"] == message
        assert _complete(events)["success"] is True

    def test_hosting_build_error(self, website_data, settings, project_dir, registry, github):
        events = _run(
            website_data, settings, project_dir, registry,
            github=github, vercel=FakeVercelClient(state="ERROR"), app_name="shop",
        )
        hosting = _final_stages(events)["hosting"]
        assert hosting["status"] == "skipped"
        assert hosting["message"] == "Vercel Deployment failed: Build failed"
        complete = _complete(events)
        assert complete["success"] is True
        assert complete["details"]["version"] == 3

    def test_hosting_still_building(self, website_data, settings, project_dir, registry, github):
        events = _run(
            website_data, settings, project_dir, registry,
            github=github, vercel=FakeVercelClient(state="BUILDING"), app_name="shop",
        )
        hosting = _final_stages(events)["hosting"]
        assert hosting["status"] == "completed"
        assert hosting["message"].startswith("Deployment building: ")
        assert "Deployment timeout after 300s" in _complete(events)["details"]["warnings"]


# ── History and transport ────────────────────────────────────────────


class TestHistory:
    def test_runs_recorded(self, website_data, settings, project_dir, registry, github):
        _run(website_data, settings, project_dir, registry, github=github, dry_run=True, record=True)
        _run(website_data, DeploySettings(), project_dir, registry, record=True)

        entries = load_deployments(project_dir)
        assert [e["status"] for e in entries] == ["failed", "dry-run"]
        assert entries[1]["version"] == 3
        assert entries[1]["pages_deployed"] == 2
        assert "GITHUB_TOKEN" in entries[0]["error"]


def test_format_sse():
    frame = format_sse("stage", {"stage": 1, "message": "Café"})
    assert frame.startswith("event: stage\ndata: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame.split("data: ", 1)[1]) == {"stage": 1, "message": "Café"}


def test_injected_client_used_without_token(website_data, project_dir, registry):
    github = FakeGitHubClient()
    events = _run(website_data, DeploySettings(), project_dir, registry, github=github, dry_run=True)
    assert _complete(events)["details"]["version"] == 1
    assert github.writes == []

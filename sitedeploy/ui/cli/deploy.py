"""
CLI commands for production deploys.

Thin wrappers over ``sitedeploy.core.services.deploy``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from sitedeploy.core.config.loader import ConfigError, DeploySettings

_STATUS_MARK = {
    "completed": ("✅", "green"),
    "failed": ("❌", "red"),
    "skipped": ("⏭️ ", "yellow"),
}


def _resolve_project_root(ctx: click.Context) -> Path:
    """Resolve project root from context or CWD."""
    config_path: Path | None = ctx.obj.get("config_path")
    if config_path is None:
        from sitedeploy.core.config.loader import find_config_file

        config_path = find_config_file()
    return config_path.parent.resolve() if config_path else Path.cwd()


def _settings(ctx: click.Context) -> DeploySettings:
    from sitedeploy.core.config.loader import load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _read_website(path: str) -> dict:
    """Load a websiteData JSON document, exiting on unreadable input."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        click.secho(f"❌ Cannot read {path}: {e}", fg="red")
        sys.exit(1)
    if not isinstance(data, dict):
        click.secho(f"❌ {path} does not contain a JSON object", fg="red")
        sys.exit(1)
    return data


def _github(settings: DeploySettings):  # type: ignore[no-untyped-def]
    from sitedeploy.core.services.deploy.deploy_stream import github_client_for

    try:
        return github_client_for(settings)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


# ── Deploy ──────────────────────────────────────────────────────


@click.command()
@click.argument("website_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Compute and diff without writing anything.")
@click.option("--app-name", default=None, help="Vercel project to build after the push.")
@click.option("--skip-hosting", is_flag=True, help="Do not trigger a Vercel build.")
@click.option("--skip-import-check", is_flag=True, help="Skip the generated-import check.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output events as JSON lines.")
@click.pass_context
def deploy(
    ctx: click.Context,
    website_json: str,
    dry_run: bool,
    app_name: str | None,
    skip_hosting: bool,
    skip_import_check: bool,
    as_json: bool,
) -> None:
    """Deploy a websiteData document to the production branch."""
    from sitedeploy.core.services.deploy.deploy_stream import DeployRequest, stream_deploy

    request = DeployRequest(
        website_data=_read_website(website_json),
        dry_run=dry_run,
        skip_code_review=skip_import_check,
        skip_vercel_deploy=skip_hosting,
        app_name=app_name,
    )
    settings = _settings(ctx)
    project_root = _resolve_project_root(ctx)

    if not as_json:
        label = "Dry run" if dry_run else "Deploying"
        click.secho(f"🚀 {label} → {settings.repo_slug}@{settings.branch}", bold=True)

    success = False
    for event, payload in stream_deploy(request, settings, project_root):
        if as_json:
            click.echo(json.dumps({"event": event, **payload}))
        elif event == "stage" and payload["status"] != "in-progress":
            mark, color = _STATUS_MARK.get(payload["status"], ("•", "white"))
            duration = f" ({payload['duration']})" if payload.get("duration") else ""
            click.secho(f"   {mark} {payload['name']}: {payload['message']}{duration}", fg=color)
        elif event == "error":
            click.secho(f"❌ {payload['message']}: {payload.get('details')}", fg="red", bold=True)

        if event == "complete":
            success = payload["success"]
            if not as_json:
                _print_complete(payload, verbose=ctx.obj.get("verbose", False))

    if not success:
        sys.exit(1)


def _print_complete(payload: dict, verbose: bool) -> None:
    click.echo()
    if not payload["success"]:
        click.secho(f"❌ {payload['message']}", fg="red", bold=True)
        for err in payload.get("errors") or []:
            click.echo(f"   • {err}")
        return

    details = payload["details"]
    click.secho(f"✅ {payload['message']}", fg="green", bold=True)
    if details.get("tag"):
        click.echo(f"   Version: {details['tag']}")
    if details.get("commitUrl"):
        click.echo(f"   Commit:  {details['commitUrl']}")
    if details.get("deploymentUrl"):
        click.echo(f"   Live:    {details['deploymentUrl']}")
    click.echo(f"   Files:   {details['filesDeployed']} ({details['totalDuration']})")
    for warning in details.get("warnings", []):
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    if details.get("dryRun") and (verbose or len(details.get("changes", [])) <= 40):
        for change in details.get("changes", []):
            if change["status"] != "unchanged":
                click.echo(f"     {change['status']:<9} {change['path']}")
    click.echo()


# ── Offline checks ──────────────────────────────────────────────


@click.command()
@click.argument("website_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, website_json: str, as_json: bool) -> None:
    """Check component types and page slugs in a document."""
    from sitedeploy.core.data import ComponentRegistry
    from sitedeploy.core.models.website import WebsiteDataError, parse_website_data
    from sitedeploy.core.services.deploy.validator import validate_website_data

    try:
        master = parse_website_data(_read_website(website_json))
    except WebsiteDataError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    result = validate_website_data(master, ComponentRegistry(), _settings(ctx).home_slug)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.valid:
        click.secho(
            f"✅ {len(result.used_types)} component types, all registered",
            fg="green", bold=True,
        )
        for t in result.used_types:
            click.echo(f"   • {t}")
    else:
        if result.missing_types:
            click.secho("❌ Unknown component types:", fg="red", bold=True)
            for t in result.missing_types:
                click.echo(f"   • {t}")
        if result.invalid_slugs:
            click.secho("❌ Page slugs that cannot be deployed:", fg="red", bold=True)
            for slug in result.invalid_slugs:
                click.echo(f"   • {slug}")

    if not result.valid:
        sys.exit(1)


@click.command()
@click.argument("website_json", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--out", "-o", "out_dir", required=True, type=click.Path(file_okay=False),
    help="Directory to write the generated files under.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(ctx: click.Context, website_json: str, out_dir: str, as_json: bool) -> None:
    """Write the generated page files for a document into a directory."""
    from sitedeploy.core.data import ComponentRegistry
    from sitedeploy.core.models.props import PropsValidationError
    from sitedeploy.core.models.website import WebsiteDataError, parse_website_data
    from sitedeploy.core.services.deploy.page_generator import (
        PageGenerationError,
        generate_page_files,
    )
    from sitedeploy.core.services.deploy.validator import validate_website_data

    settings = _settings(ctx)
    try:
        master = parse_website_data(_read_website(website_json))
        checked = validate_website_data(master, ComponentRegistry(), settings.home_slug)
        if checked.invalid_slugs:
            raise WebsiteDataError(f"Invalid page slugs: {', '.join(checked.invalid_slugs)}")
        result = generate_page_files(master, ComponentRegistry(), home_slug=settings.home_slug)
    except (WebsiteDataError, PageGenerationError, PropsValidationError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    out = Path(out_dir)
    for f in result.files:
        target = out / f.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(
        f"✅ Wrote {len(result.files)} files for {len(result.pages)} pages to {out}",
        fg="green", bold=True,
    )
    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")


@click.command("filter")
@click.argument("paths", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def filter_paths(paths: tuple[str, ...], as_json: bool) -> None:
    """Show whether each path would be deployed to production."""
    from sitedeploy.core.services.deploy.production_filter import should_include_in_production

    decisions = []
    for path in paths:
        result = should_include_in_production(path)
        decisions.append({"path": path, "include": result.include, "reason": result.reason})

    if as_json:
        click.echo(json.dumps(decisions, indent=2))
        return

    for d in decisions:
        if d["include"]:
            click.secho(f"   ✓ {d['path']}", fg="green")
        else:
            click.secho(f"   ✗ {d['path']}  ({d['reason']})", fg="red")


# ── Snapshots ───────────────────────────────────────────────────


@click.group()
def snapshots() -> None:
    """Production snapshots stored on the deploy branch."""


@snapshots.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_snapshots_cmd(ctx: click.Context, as_json: bool) -> None:
    """List stored snapshots, newest first."""
    from sitedeploy.core.services.deploy.github_api import GitHubError
    from sitedeploy.core.services.deploy.snapshots import list_snapshots

    settings = _settings(ctx)
    try:
        entries = list_snapshots(_github(settings), settings.snapshot_dir)
    except GitHubError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(entries, indent=2))
        return

    if not entries:
        click.secho("No production snapshots yet.", fg="yellow")
        return

    click.secho(f"📸 Snapshots ({len(entries)}):", fg="cyan", bold=True)
    for s in entries:
        click.echo(f"   • v{s['version']}  {s['path']}  ({s['size']} bytes)")
    click.echo()


@snapshots.command("show")
@click.argument("version", type=int)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_snapshot_cmd(ctx: click.Context, version: int, as_json: bool) -> None:
    """Show one snapshot."""
    from sitedeploy.core.services.deploy.github_api import GitHubError
    from sitedeploy.core.services.deploy.snapshots import get_snapshot

    settings = _settings(ctx)
    try:
        snapshot = get_snapshot(_github(settings), version, settings.snapshot_dir)
    except GitHubError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(snapshot.to_json_dict(), indent=2, ensure_ascii=False))
        return

    pages = snapshot.website_data.get("pages") or {}
    click.secho(f"📸 Snapshot v{snapshot.version}", fg="cyan", bold=True)
    click.echo(f"   Taken:  {snapshot.timestamp}")
    click.echo(f"   Commit: {snapshot.commit_sha}")
    click.echo(f"   Pages:  {len(pages)}")
    click.echo()


@click.command()
@click.argument("version", type=int)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resync(ctx: click.Context, version: int, as_json: bool) -> None:
    """Regenerate and commit the .data.ts files stored in snapshot VERSION."""
    from sitedeploy.core.data import ComponentRegistry
    from sitedeploy.core.services.deploy.github_api import GitHubError
    from sitedeploy.core.services.deploy.snapshots import resync_data_files

    settings = _settings(ctx)
    try:
        result = resync_data_files(
            _github(settings),
            version,
            ComponentRegistry(),
            snapshot_dir=settings.snapshot_dir,
            skip_marker=settings.skip_build_marker,
        )
    except (GitHubError, ValueError) as e:
        click.secho(f"❌ Resync failed: {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.files:
        click.secho(f"Snapshot v{version} has no data files to resync.", fg="yellow")
        return
    click.secho(f"✅ Resynced {len(result.files)} data files from v{version}", fg="green", bold=True)
    click.echo(f"   Commit: {result.commit_sha}")


@click.command()
@click.option("-n", "count", default=20, type=int, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent deploy runs recorded in this project."""
    from sitedeploy.core.services.deploy.tracking import load_deployments

    entries = load_deployments(_resolve_project_root(ctx), n=count)

    if as_json:
        click.echo(json.dumps(entries, indent=2))
        return

    if not entries:
        click.secho("No deployments recorded yet.", fg="yellow")
        return

    colors = {"ok": "green", "failed": "red", "dry-run": "cyan"}
    for e in entries:
        version = f"v{e['version']}" if e.get("version") else "-"
        click.echo(f"   {e.get('started_at', '?')[:19]}  ", nl=False)
        click.secho(f"{e.get('status', '?'):<8}", fg=colors.get(e.get("status"), "white"), nl=False)
        click.echo(f" {version:<6} {e.get('files_deployed', 0)} files")
        if e.get("error"):
            click.echo(f"      {e['error']}")
    click.echo()

"""
sitedeploy — CLI entrypoint.

Usage:
    python -m sitedeploy.main --help
    python -m sitedeploy.main validate site.json
    python -m sitedeploy.main deploy site.json --dry-run
    python -m sitedeploy.main web
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from sitedeploy import __version__
from sitedeploy.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="sitedeploy")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to sitedeploy.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """sitedeploy — publish editor websites to the production branch."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config(ctx: click.Context, as_json: bool) -> None:
    """Show the effective deploy settings (secrets hidden)."""
    from sitedeploy.core.config.loader import ConfigError, find_config_file, load_settings

    config_path = ctx.obj.get("config_path")
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    data = settings.public_dict()
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    source = config_path or find_config_file()
    click.secho("\n⚙️  Deploy settings", fg="cyan", bold=True)
    click.echo(f"   Config file: {source or '(none, environment only)'}")
    click.echo(f"   Repository:  {settings.repo_slug}@{settings.branch}")
    for name in ("github_token", "vercel_token"):
        mark = "✓" if data[f"{name}_set"] else "✗"
        click.echo(f"   {name.upper()}: {mark}")
    if settings.domain_name:
        click.echo(f"   Domain:      {settings.domain_name}")
    click.echo()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    "Start the deploy API server."
    from sitedeploy.core.config.loader import ConfigError, find_config_file
    from sitedeploy.ui.web.server import create_app, run_server

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    project_root = config_path.parent.resolve() if config_path else Path.cwd()

    try:
        app = create_app(project_root=project_root, config_path=config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ sitedeploy — Deploy API", bold=True)
    click.echo(f"   Endpoint: http://{host}:{port}/api/production/deploy-stream")
    click.echo(f"   Project:  {project_root}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from sitedeploy/ui/cli/ ───────────

from sitedeploy.ui.cli.deploy import (
    deploy,
    filter_paths,
    generate,
    history,
    resync,
    snapshots,
    validate,
)

cli.add_command(deploy)
cli.add_command(validate)
cli.add_command(generate)
cli.add_command(filter_paths)
cli.add_command(snapshots)
cli.add_command(resync)
cli.add_command(history)


if __name__ == "__main__":
    cli()

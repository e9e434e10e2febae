"""
Web server — Flask app factory.

Serves the production deploy API consumed by the editor dashboard.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from sitedeploy.core.config.loader import DeploySettings, load_settings
from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.services.deploy.github_api import GitHubClient
from sitedeploy.core.services.deploy.hosting import VercelClient

logger = logging.getLogger(__name__)


def create_app(
    project_root: Path | None = None,
    config_path: Path | None = None,
    settings: DeploySettings | None = None,
    registry: ComponentRegistry | None = None,
    github: GitHubClient | None = None,
    vercel: VercelClient | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        project_root: Root of the editor source tree.
        config_path: Path to sitedeploy.yml (default: auto-detect).
        settings: Pre-built settings; loaded from file + env when None.
        registry: Component registry (bundled catalog by default).
        github: Client used instead of one built from settings.
        vercel: Client used instead of one built from settings.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    # websiteData page order is display order
    app.json.sort_keys = False  # type: ignore[attr-defined]

    app.config["PROJECT_ROOT"] = str(project_root or Path.cwd())
    app.config["CONFIG_PATH"] = str(config_path) if config_path else None
    app.config["DEPLOY_SETTINGS"] = settings if settings is not None else load_settings(config_path)
    app.config["COMPONENT_REGISTRY"] = registry if registry is not None else ComponentRegistry()
    app.config["GITHUB_CLIENT"] = github
    app.config["VERCEL_CLIENT"] = vercel
    app.config["MAX_CONTENT_LENGTH"] = 20 * 1024 * 1024  # websiteData upper bound

    from sitedeploy.ui.web.routes_deploy import deploy_api_bp

    app.register_blueprint(deploy_api_bp, url_prefix="/api")

    logger.info("Deploy API app created (root=%s)", app.config["PROJECT_ROOT"])
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting deploy API on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)

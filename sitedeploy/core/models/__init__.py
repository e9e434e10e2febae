"""
Domain models — Pydantic types for the deployment pipeline.

All models are re-exported here for convenient access:

    from sitedeploy.core.models import WebsiteMaster, WebsitePage, GeneratedFile
"""

from sitedeploy.core.models.deploy import DeploymentResult, GeneratedFile, Snapshot
from sitedeploy.core.models.website import (
    ComponentInstance,
    SEOMetadata,
    WebsiteDataError,
    WebsiteMaster,
    WebsitePage,
    parse_website_data,
)

__all__ = [
    # website.py
    "ComponentInstance",
    # deploy.py
    "DeploymentResult",
    "GeneratedFile",
    "SEOMetadata",
    "Snapshot",
    "WebsiteDataError",
    "WebsiteMaster",
    "WebsitePage",
    "parse_website_data",
]

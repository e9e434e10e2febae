"""
Validation — every component type used must exist in the registry, and
every page slug must produce files the production filter keeps.

Runs before any file is read or written.  A single unknown type or
unusable slug fails the whole document.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.website import WebsiteMaster
from sitedeploy.core.services.deploy.page_generator import page_file_paths
from sitedeploy.core.services.deploy.production_filter import should_include_in_production

logger = logging.getLogger(__name__)

# One path segment: no separators, no dot segments, no leading dash.
SLUG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


@dataclass
class ValidationResult:
    valid: bool
    used_types: list[str] = field(default_factory=list)
    missing_types: list[str] = field(default_factory=list)
    invalid_slugs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "usedTypes": self.used_types,
            "missingTypes": self.missing_types,
            "invalidSlugs": self.invalid_slugs,
        }

    @property
    def errors(self) -> list[str]:
        errors = []
        if self.missing_types:
            errors.append(f"Missing component types: {', '.join(self.missing_types)}")
        if self.invalid_slugs:
            errors.append(f"Invalid page slugs: {', '.join(self.invalid_slugs)}")
        return errors


def slug_problem(slug: str, home_slug: str = "index") -> str | None:
    """Why ``slug`` cannot be deployed, or ``None`` when it can."""
    if not SLUG_PATTERN.match(slug):
        return "not a single path segment of letters, digits, '-' or '_'"
    for path in page_file_paths(slug, home_slug):
        decision = should_include_in_production(path)
        if not decision.include:
            return f"{path} would be dropped ({decision.reason})"
    return None


def validate_website_data(
    master: WebsiteMaster, registry: ComponentRegistry, home_slug: str = "index"
) -> ValidationResult:
    """Check component types against ``registry`` and page slugs against
    the production filter.

    ``used_types`` is de-duplicated, so a missing type is reported once
    however many instances reference it.  Pages without components are
    never generated, so their slugs are not checked.
    """
    used = master.used_types()
    missing = [t for t in used if not registry.has(t)]

    invalid: list[str] = []
    for page in master.pages.values():
        if not page.components or page.slug in invalid:
            continue
        problem = slug_problem(page.slug, home_slug)
        if problem:
            logger.warning("Page slug %r rejected: %s", page.slug, problem)
            invalid.append(page.slug)

    if missing:
        logger.warning("Unknown component types: %s", ", ".join(missing))
    if not missing and not invalid:
        logger.debug("All %d component types resolved", len(used))

    return ValidationResult(
        valid=not missing and not invalid,
        used_types=used,
        missing_types=missing,
        invalid_slugs=invalid,
    )

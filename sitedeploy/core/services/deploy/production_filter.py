"""
Production filter — which paths may enter the production tree.

Evaluation order:

1. blacklist — any match excludes, even if a whitelist rule also matches
2. whitelist — first match includes
3. default   — exclude

Under-deploying shows up as a missing page or component; leaking editor
or admin code into the public bundle does not show up at all.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Protocol, TypeVar

logger = logging.getLogger(__name__)


class _HasPath(Protocol):
    path: str


T = TypeVar("T", bound=_HasPath)


# ── Whitelist ───────────────────────────────────────────────────

PRODUCTION_WHITELIST: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        # production components
        r"^frontend/src/components/designs/",
        r"^frontend/src/components/pageComponents/",
        # generated page data and the deployed websiteData copy
        r"^frontend/src/data/[^/]+\.data\.ts$",
        r"^frontend/src/data/websiteData\.json$",
        # app routes
        r"^frontend/src/app/\[slug\]/",
        r"^frontend/src/app/[^/]+/page\.tsx$",
        r"^frontend/src/app/page\.tsx$",
        r"^frontend/src/app/layout\.tsx$",
        r"^frontend/src/app/not-found\.tsx$",
        r"^frontend/src/app/error\.tsx$",
        r"^frontend/src/app/globals?\.css$",
        # libraries
        r"^frontend/src/lib/colorUtils",
        r"^frontend/src/lib/hooks/isMobile\.ts$",
        # production-safe types
        r"^frontend/src/types/colors\.ts$",
        r"^frontend/src/types/componentTypes\.ts$",
        r"^frontend/src/types/forms\.ts$",
        r"^frontend/src/types/navbar\.ts$",
        r"^frontend/src/types/index\.ts$",
        # config
        r"^frontend/package\.json$",
        r"^frontend/package-lock\.json$",
        r"^frontend/next\.config\.(ts|js|mjs)$",
        r"^frontend/tsconfig\.json$",
        r"^frontend/tailwind\.config\.(ts|js)$",
        r"^frontend/postcss\.config\.(js|mjs)$",
        r"^frontend/\.nvmrc$",
        r"^frontend/vercel\.json$",
        # public assets
        r"^frontend/public/",
        # same tree without the frontend/ prefix
        r"^src/components/designs/",
        r"^src/components/pageComponents/",
        r"^src/app/\[slug\]/",
        r"^src/app/page\.tsx$",
        r"^src/app/layout\.tsx$",
        r"^src/lib/colorUtils",
        r"^src/lib/hooks/isMobile\.ts$",
    )
)

# ── Blacklist ───────────────────────────────────────────────────

PRODUCTION_BLACKLIST: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        # editor and admin surfaces
        r"/editor/",
        r"/admin/",
        r"/dashboard/",
        # API routes
        r"/api/",
        # database
        r"/models/",
        r"/db/",
        # deploy tooling
        r"/deploy/",
        r"/vercel/",
        r"/production/",
        r"/deployment/",
        # editor state
        r"/stores/",
        # analytics
        r"/analytics/",
        r"/tracking/",
        # editor-only types
        r"websiteDataTypes\.ts$",
        r"templateTypes\.ts$",
        r"llmOutputs\.ts$",
        r"user\.ts$",
        r"website\.ts$",
        r"helperBot\.ts$",
        r"usage\.ts$",
        r"/registry/",
        # docs and scripts
        r"^docs/",
        r"^scripts/",
        r"\.md$",
        # tests
        r"\.test\.(ts|tsx|js|jsx)$",
        r"\.spec\.(ts|tsx|js|jsx)$",
        r"__tests__/",
        r"test-.*\.ts$",
        # build artifacts
        r"\.next/",
        r"node_modules/",
        r"\.git/",
        r"\.vercel/",
        # env and secrets
        r"\.env",
        # editor variants of components
        r"Edit\.tsx$",
        r"\.edit\.tsx$",
    )
)


@dataclass(frozen=True)
class FilterResult:
    include: bool
    reason: str


@dataclass
class FilterSummary:
    included: list = field(default_factory=list)
    excluded: list = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "total": len(self.included) + len(self.excluded),
            "included": len(self.included),
            "excluded": len(self.excluded),
        }


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    return path[2:] if path.startswith("./") else path


def should_include_in_production(path: str) -> FilterResult:
    """Decide whether ``path`` belongs in the production tree."""
    normalized = _normalize(path)

    for pattern in PRODUCTION_BLACKLIST:
        if pattern.search(normalized):
            return FilterResult(False, f"Blacklisted: {pattern.pattern}")

    for pattern in PRODUCTION_WHITELIST:
        if pattern.search(normalized):
            return FilterResult(True, "Whitelisted for production")

    return FilterResult(False, "Not in production whitelist")


def filter_files_for_production(files: Iterable[T]) -> FilterSummary:
    """Split file records (anything with a ``path``) into included/excluded."""
    summary = FilterSummary()
    for f in files:
        result = should_include_in_production(f.path)
        if result.include:
            summary.included.append(f)
        else:
            logger.debug("Excluded %s (%s)", f.path, result.reason)
            summary.excluded.append(f)

    stats = summary.stats
    logger.info(
        "Production filter: %d of %d files included (%d excluded)",
        stats["included"], stats["total"], stats["excluded"],
    )
    return summary

"""
Pre-push review of the generated page files.

Every ``@/…`` import in a generated data, page-assembly or route file
must resolve to a file in the set about to be committed.  A miss means
the production build would fail (for example a component dropped by
the production filter), so the push is refused before anything is
written.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from sitedeploy.core.models.deploy import GeneratedFile
from sitedeploy.core.services.deploy.page_generator import (
    APP_DIR,
    DATA_DIR,
    PAGE_COMPONENT_DIR,
)

logger = logging.getLogger(__name__)

_IMPORT_FROM = re.compile(r"""^\s*import\s[^;]*?\sfrom\s+['"](@/[^'"]+)['"]""", re.MULTILINE)
_CANDIDATE_SUFFIXES = (".ts", ".tsx", "/index.ts", "/index.tsx")

_GENERATED_PREFIXES = (f"{DATA_DIR}/", f"{PAGE_COMPONENT_DIR}/", f"{APP_DIR}/")


def resolve_alias(specifier: str) -> list[str]:
    """Repo paths an ``@/x`` import may refer to."""
    base = "frontend/src/" + specifier[2:]
    if base.endswith((".ts", ".tsx", ".json")):
        return [base]
    return [base + suffix for suffix in _CANDIDATE_SUFFIXES]


def is_generated_path(path: str) -> bool:
    return path.startswith(_GENERATED_PREFIXES) and path.endswith((".ts", ".tsx"))


def check_generated_imports(files: Iterable[GeneratedFile]) -> list[str]:
    """One message per unresolved import; empty when the set is consistent."""
    files = list(files)
    present = {f.path for f in files}
    issues: list[str] = []

    for f in files:
        if not is_generated_path(f.path):
            continue
        for specifier in _IMPORT_FROM.findall(f.content):
            if not any(p in present for p in resolve_alias(specifier)):
                issues.append(f"{f.path}: cannot resolve '{specifier}'")

    if issues:
        logger.warning("Import check found %d unresolved imports", len(issues))
    return issues

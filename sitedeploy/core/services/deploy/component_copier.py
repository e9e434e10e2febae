"""
Component copier — production sources for every component in use.

For each component type:

- the production variant ``<base>.prod.tsx`` is preferred, with
  ``<base>.tsx`` as a fallback (warning, not error),
- the chosen file is emitted as ``<dir>/<base>.tsx`` with its content
  untouched,
- the folder's ``index.ts`` is emitted with editor-only exports removed.

Every type is attempted even after a failure, so one run reports all
missing components at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitedeploy.core.data import ComponentRegistry, resolve_import_path
from sitedeploy.core.models.deploy import GeneratedFile
from sitedeploy.core.services.deploy.export_surface import strip_editor_exports

logger = logging.getLogger(__name__)


@dataclass
class CopyResult:
    success: bool = True
    components_copied: int = 0
    files: list[GeneratedFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "componentsCopied": self.components_copied,
            "files": [f.path for f in self.files],
            "errors": self.errors,
            "warnings": self.warnings,
        }


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def copy_components(
    used_types: list[str],
    project_root: Path,
    registry: ComponentRegistry,
    dry_run: bool = False,
) -> CopyResult:
    """Collect production sources for ``used_types`` from ``project_root``.

    Nothing is written; the result holds the file contents.  ``dry_run``
    only changes what is logged.
    """
    result = CopyResult()
    logger.info(
        "Copying %d component types%s", len(used_types), " (dry run)" if dry_run else ""
    )

    for component_type in used_types:
        entry = registry.get(component_type)
        if entry is None:
            result.errors.append(f'Component type "{component_type}" not found in registry')
            result.success = False
            continue

        repo_path = resolve_import_path(entry.component_import_path)
        component_dir, _, base = repo_path.rpartition("/")
        prod_rel = f"{component_dir}/{base}.prod.tsx"
        plain_rel = f"{component_dir}/{base}.tsx"

        prod_path = project_root / prod_rel
        plain_path = project_root / plain_rel

        if prod_path.is_file():
            source = prod_path
        elif plain_path.is_file():
            source = plain_path
            result.warnings.append(
                f"No .prod.tsx file found for {component_type}, using regular .tsx file"
            )
            logger.warning("%s: no .prod.tsx, falling back to %s", component_type, plain_rel)
        else:
            result.errors.append(f"Component file not found: {prod_rel} or {plain_rel}")
            result.success = False
            logger.error("%s: neither %s nor %s exists", component_type, prod_rel, plain_rel)
            continue

        try:
            content = _read(source)
        except (OSError, UnicodeDecodeError) as e:
            result.errors.append(f"Cannot read {source.relative_to(project_root)}: {e}")
            result.success = False
            continue

        result.files.append(GeneratedFile(path=plain_rel, content=content))
        result.components_copied += 1
        logger.debug("%s: %s → %s (%d bytes)", component_type, source.name, plain_rel, len(content))

        index_rel = f"{component_dir}/index.ts"
        index_path = project_root / index_rel
        if not index_path.is_file():
            result.warnings.append(f"index.ts not found for {component_type}")
            continue

        try:
            stripped = strip_editor_exports(_read(index_path))
        except (OSError, UnicodeDecodeError) as e:
            result.warnings.append(f"Cannot read {index_rel}: {e}")
            continue

        if stripped.removed:
            logger.debug("%s: index.ts dropped %s", component_type, ", ".join(stripped.removed))
        result.files.append(GeneratedFile(path=index_rel, content=stripped.text))

    logger.info(
        "Copied %d/%d components (%d errors, %d warnings)",
        result.components_copied, len(used_types), len(result.errors), len(result.warnings),
    )
    return result

"""
Component registry — static catalog of deployable components.

Loads ``catalogs/components.json`` once at first access and caches it
for the lifetime of the instance.  Everything downstream (validator,
copier, generator, web, CLI) reads component identity from here.

Usage::

    from sitedeploy.core.data import ComponentRegistry

    registry = ComponentRegistry()
    entry = registry.get("auroraHero")
    entry.component_name        # "AuroraHero"
    registry.source_dir("auroraHero")
    # "frontend/src/components/designs/herobanners/auroraHero"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent

# Registry import paths are written against the Next.js "@/" alias.
_ALIAS_PREFIX = "@/"
_SOURCE_PREFIX = "frontend/src/"


@dataclass(frozen=True)
class ComponentRegistryEntry:
    """Where a component lives and how its props are typed."""

    type: str
    component_import_path: str
    component_name: str
    props_type_name: str
    category: str = ""

    @property
    def base_name(self) -> str:
        """Last segment of the import path (the source file stem)."""
        return self.component_import_path.rstrip("/").rsplit("/", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "componentImportPath": self.component_import_path,
            "componentName": self.component_name,
            "propsTypeName": self.props_type_name,
            "category": self.category,
        }


def _load_json(relative_path: str) -> dict:
    """Load a JSON file relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def resolve_import_path(import_path: str) -> str:
    """Map an ``@/`` import path to its repository path."""
    if import_path.startswith(_ALIAS_PREFIX):
        return _SOURCE_PREFIX + import_path[len(_ALIAS_PREFIX):]
    return import_path


class ComponentRegistry:
    """Read-only lookup of component type → registry entry.

    Pass ``entries`` to build a registry from an explicit mapping
    (tests, alternate catalogs); otherwise the shipped catalog is used.
    """

    def __init__(self, entries: dict[str, dict] | None = None) -> None:
        self._override = entries

    @cached_property
    def entries(self) -> dict[str, ComponentRegistryEntry]:
        raw = self._override if self._override is not None else _load_json(
            "catalogs/components.json"
        )
        entries = {
            type_: ComponentRegistryEntry(
                type=type_,
                component_import_path=item["componentImportPath"],
                component_name=item["componentName"],
                props_type_name=item["propsTypeName"],
                category=item.get("category", ""),
            )
            for type_, item in raw.items()
        }
        logger.debug("Loaded %d component registry entries", len(entries))
        return entries

    def get(self, component_type: str) -> ComponentRegistryEntry | None:
        return self.entries.get(component_type)

    def has(self, component_type: str) -> bool:
        return component_type in self.entries

    def types(self) -> list[str]:
        return sorted(self.entries)

    def by_category(self, category: str) -> list[ComponentRegistryEntry]:
        return [e for e in self.entries.values() if e.category == category]

    def source_dir(self, component_type: str) -> str | None:
        """Repository directory holding the component's sources."""
        entry = self.get(component_type)
        if entry is None:
            return None
        path = resolve_import_path(entry.component_import_path)
        return path.rsplit("/", 1)[0]

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, component_type: object) -> bool:
        return component_type in self.entries

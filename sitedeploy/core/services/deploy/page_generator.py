"""
Page file generator — websiteData → Next.js source files.

Per page with at least one component, three files:

    frontend/src/data/{slug}.data.ts                 typed props per instance
    frontend/src/components/pageComponents/{slug}.tsx renders instances in order
    frontend/src/app/page.tsx | app/{slug}/page.tsx  route + metadata

Generation is a pure function of the document and the registry: the
same input always yields byte-identical files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sitedeploy.core.data import ComponentRegistry, ComponentRegistryEntry
from sitedeploy.core.models.deploy import GeneratedFile
from sitedeploy.core.models.props import (
    apply_required_defaults,
    clean_component_props,
    validate_props,
)
from sitedeploy.core.models.website import SEOMetadata, WebsiteMaster, WebsitePage

logger = logging.getLogger(__name__)

DATA_DIR = "frontend/src/data"
PAGE_COMPONENT_DIR = "frontend/src/components/pageComponents"
APP_DIR = "frontend/src/app"
WEBSITE_DATA_PATH = f"{DATA_DIR}/websiteData.json"


class PageGenerationError(RuntimeError):
    """Raised when a page cannot be generated (unknown type, bad props)."""


@dataclass
class PageGenerationResult:
    files: list[GeneratedFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    pages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "files": [{"path": f.path, "size": f.size} for f in self.files],
            "warnings": self.warnings,
            "pages": self.pages,
        }


# ── Naming ──────────────────────────────────────────────────────


def page_component_name(slug: str) -> str:
    """``index`` → ``HomePage``; ``contact-us`` → ``ContactUsPage``."""
    if slug == "index":
        return "HomePage"
    words = slug.replace("_", "-").split("-")
    return "".join(w[:1].upper() + w[1:].lower() for w in words if w) + "Page"


def page_file_paths(slug: str, home_slug: str = "index") -> tuple[str, str, str]:
    """Data module, page component and route paths generated for ``slug``."""
    route = "page.tsx" if slug == home_slug else f"{slug}/page.tsx"
    return (
        f"{DATA_DIR}/{slug}.data.ts",
        f"{PAGE_COMPONENT_DIR}/{slug}.tsx",
        f"{APP_DIR}/{route}",
    )


def _props_var(index: int) -> str:
    return f"component{index + 1}Props"


def _js(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


# ── Per-instance props ──────────────────────────────────────────


def prepare_props(
    component_type: str,
    entry: ComponentRegistryEntry,
    props: dict[str, Any],
    validate: bool = True,
) -> dict[str, Any]:
    """Clean, complete and (optionally) validate one instance's props."""
    prepared = apply_required_defaults(component_type, clean_component_props(props))
    if validate:
        validate_props(component_type, entry.props_type_name, prepared)
    return prepared


def _resolved(
    page: WebsitePage, registry: ComponentRegistry
) -> list[tuple[int, str, ComponentRegistryEntry, dict[str, Any]]]:
    rows = []
    for i, comp in enumerate(page.sorted_components()):
        entry = registry.get(comp.type)
        if entry is None:
            raise PageGenerationError(
                f'Component type "{comp.type}" on page "{page.slug}" not found in registry'
            )
        rows.append((i, comp.type, entry, comp.props))
    return rows


# ── Templates ───────────────────────────────────────────────────


def render_data_file(
    page: WebsitePage, registry: ComponentRegistry, validate: bool = True
) -> GeneratedFile:
    imports: dict[str, str] = {}
    exports: list[str] = []

    for i, component_type, entry, props in _resolved(page, registry):
        imports.setdefault(
            entry.component_import_path,
            f"import {{ {entry.props_type_name} }} from '{entry.component_import_path}';",
        )
        prepared = prepare_props(component_type, entry, props, validate=validate)
        exports.append(
            f"export const {_props_var(i)}: {entry.props_type_name} = {_js(prepared)};"
        )

    import_block = "\n".join(imports.values())
    export_block = "\n\n".join(exports)
    content = f"""\
/**
 * Page Data for {page.display_name}
 *
 * Auto-generated from websiteData.json
 * DO NOT EDIT MANUALLY - This file is regenerated on each deployment
 */

{import_block}

{export_block}
"""
    return GeneratedFile(path=page_file_paths(page.slug)[0], content=content)


def render_page_component(page: WebsitePage, registry: ComponentRegistry) -> GeneratedFile:
    imports: dict[str, str] = {}
    props_vars: list[str] = []
    renders: list[str] = []

    for i, _type, entry, _props in _resolved(page, registry):
        imports.setdefault(
            entry.component_import_path,
            f"import {entry.component_name} from '{entry.component_import_path}';",
        )
        props_vars.append(_props_var(i))
        renders.append(f"      <{entry.component_name} {{...{_props_var(i)}}} />")

    props_import = (
        f"import {{ {', '.join(props_vars)} }} from '@/data/{page.slug}.data';"
        if props_vars else ""
    )
    component_imports = "\n".join(imports.values())
    render_block = "\n".join(renders)
    name = page_component_name(page.slug)
    content = f"""\
"use client";

{component_imports}
{props_import}

export default function {name}() {{
  return (
    <main>
{render_block}
    </main>
  );
}}
"""
    return GeneratedFile(path=page_file_paths(page.slug)[1], content=content)


def _metadata(page: WebsitePage, seo: SEOMetadata | None) -> dict[str, Any]:
    if seo is None:
        title = page.page_name or page_component_name(page.slug).replace("Page", "")
        return {"title": title, "description": f"Page: {title}"}
    meta: dict[str, Any] = {"title": seo.title, "description": seo.description}
    if seo.keywords is not None:
        meta["keywords"] = seo.keywords
    if seo.open_graph is not None:
        meta["openGraph"] = seo.open_graph
    return meta


def render_route(
    page: WebsitePage, seo: SEOMetadata | None = None, home_slug: str = "index"
) -> GeneratedFile:
    name = page_component_name(page.slug)
    content = f"""\
import {{ Metadata }} from "next";
import {name} from "@/components/pageComponents/{page.slug}";

export const metadata: Metadata = {_js(_metadata(page, seo))};

export default function Page() {{
  return <{name} />;
}}
"""
    return GeneratedFile(path=page_file_paths(page.slug, home_slug)[2], content=content)


# ── Entry points ────────────────────────────────────────────────


def _page_seo(
    master: WebsiteMaster, page: WebsitePage, seo: dict[str, SEOMetadata] | None
) -> SEOMetadata | None:
    if seo and page.slug in seo:
        return seo[page.slug]
    return master.seo_metadata.get(page.slug) or page.seo


def _pages_with_components(master: WebsiteMaster, result: PageGenerationResult):
    for page in master.pages.values():
        if not page.components:
            msg = f'Page "{page.slug}" has no components, skipping'
            logger.warning(msg)
            result.warnings.append(msg)
            continue
        yield page


def generate_page_files(
    master: WebsiteMaster,
    registry: ComponentRegistry,
    seo: dict[str, SEOMetadata] | None = None,
    home_slug: str = "index",
    validate: bool = True,
) -> PageGenerationResult:
    """Data, page-assembly and route files for every non-empty page.

    Raises:
        PageGenerationError: On an unknown component type.
        PropsValidationError: When ``validate`` and a props record fails
            its schema.
    """
    result = PageGenerationResult()
    for page in _pages_with_components(master, result):
        result.files.append(render_data_file(page, registry, validate=validate))
        result.files.append(render_page_component(page, registry))
        result.files.append(render_route(page, _page_seo(master, page, seo), home_slug))
        result.pages.append(page.slug)

    logger.info("Generated %d files for %d pages", len(result.files), len(result.pages))
    return result


def generate_data_files(
    master: WebsiteMaster, registry: ComponentRegistry, validate: bool = True
) -> PageGenerationResult:
    """Only the ``.data.ts`` modules (resync and preview)."""
    result = PageGenerationResult()
    for page in _pages_with_components(master, result):
        result.files.append(render_data_file(page, registry, validate=validate))
        result.pages.append(page.slug)
    return result


def website_data_file(website_data: dict[str, Any]) -> GeneratedFile:
    """The deployed copy of the source document itself."""
    return GeneratedFile(path=WEBSITE_DATA_PATH, content=_js(website_data))

"""
Tests for the component registry, data validation and the production
filter.
"""

from __future__ import annotations

import pytest

from sitedeploy.core.data import ComponentRegistry, resolve_import_path
from sitedeploy.core.models.deploy import GeneratedFile
from sitedeploy.core.models.website import parse_website_data
from sitedeploy.core.services.deploy.production_filter import (
    filter_files_for_production,
    should_include_in_production,
)
from sitedeploy.core.services.deploy.validator import slug_problem, validate_website_data


class TestComponentRegistry:
    def test_bundled_catalog_loads(self, registry: ComponentRegistry):
        assert len(registry) > 50
        entry = registry.get("auroraHero")
        assert entry is not None
        assert entry.component_name == "AuroraHero"
        assert entry.props_type_name == "AuroraHeroProps"
        assert entry.base_name == "auroraHero"

    def test_source_dir(self, registry: ComponentRegistry):
        assert registry.source_dir("auroraHero") == (
            "frontend/src/components/designs/herobanners/auroraHero"
        )
        assert registry.source_dir("nope") is None

    def test_membership(self, registry: ComponentRegistry):
        assert "imageTextBox" in registry
        assert registry.has("carousel")
        assert not registry.has("nope")
        assert registry.types() == sorted(registry.types())

    def test_by_category(self, registry: ComponentRegistry):
        heroes = registry.by_category("hero")
        assert heroes
        assert all(e.category == "hero" for e in heroes)

    def test_explicit_entries(self):
        registry = ComponentRegistry({
            "box": {
                "componentImportPath": "@/components/designs/misc/box/box",
                "componentName": "Box",
                "propsTypeName": "BoxProps",
            }
        })
        assert registry.types() == ["box"]
        assert registry.get("box").category == ""

    def test_resolve_import_path(self):
        assert resolve_import_path("@/components/x/y") == "frontend/src/components/x/y"
        assert resolve_import_path("lib/x") == "lib/x"


class TestValidateWebsiteData:
    def test_valid(self, website_data: dict, registry: ComponentRegistry):
        result = validate_website_data(parse_website_data(website_data), registry)
        assert result.valid
        assert result.used_types == ["auroraHero", "imageTextBox"]
        assert result.missing_types == []

    def test_missing_type_reported_once(self, registry: ComponentRegistry):
        master = parse_website_data({"pages": {
            "index": {"components": [{"type": "ghostHero"}, {"type": "auroraHero"}]},
            "about": {"components": [{"type": "ghostHero"}]},
        }})
        result = validate_website_data(master, registry)
        assert not result.valid
        assert result.missing_types == ["ghostHero"]
        assert result.to_dict() == {
            "valid": False,
            "usedTypes": ["ghostHero", "auroraHero"],
            "missingTypes": ["ghostHero"],
            "invalidSlugs": [],
        }

    def test_empty_site_is_valid(self, registry: ComponentRegistry):
        result = validate_website_data(parse_website_data({"pages": {}}), registry)
        assert result.valid
        assert result.used_types == []

    @pytest.mark.parametrize("slug", [
        "dashboard", "admin", "api", "editor", "deploy", "tracking", "registry", "test-drive",
    ])
    def test_slug_dropped_by_production_filter(self, registry: ComponentRegistry, slug: str):
        master = parse_website_data({"pages": {slug: {"components": [{"type": "auroraHero"}]}}})
        result = validate_website_data(master, registry)
        assert not result.valid
        assert result.invalid_slugs == [slug]
        assert result.missing_types == []

    @pytest.mark.parametrize("slug", ["a/b", "..", "../etc", "-x", "about us", ""])
    def test_slug_not_path_safe(self, slug: str):
        assert "single path segment" in slug_problem(slug)

    @pytest.mark.parametrize("slug", ["index", "about-us", "contact_us", "Blog2"])
    def test_ordinary_slugs_pass(self, slug: str):
        assert slug_problem(slug) is None

    def test_home_slug_routes_to_root(self):
        assert slug_problem("dashboard") is not None
        assert slug_problem("dashboard", home_slug="dashboard") is None

    def test_page_without_components_not_checked(self, registry: ComponentRegistry):
        master = parse_website_data({"pages": {
            "index": {"components": [{"type": "auroraHero"}]},
            "admin": {"components": []},
        }})
        assert validate_website_data(master, registry).valid


class TestProductionFilter:
    @pytest.mark.parametrize("path", [
        "frontend/src/components/designs/herobanners/auroraHero/auroraHero.tsx",
        "frontend/src/components/pageComponents/index.tsx",
        "frontend/src/data/index.data.ts",
        "frontend/src/data/websiteData.json",
        "frontend/src/app/page.tsx",
        "frontend/src/app/about-us/page.tsx",
        "frontend/src/lib/hooks/isMobile.ts",
        "frontend/package.json",
        "frontend/next.config.ts",
        "frontend/public/logo.svg",
    ])
    def test_production_paths_included(self, path: str):
        result = should_include_in_production(path)
        assert result.include, result.reason
        assert result.reason == "Whitelisted for production"

    @pytest.mark.parametrize("path", [
        "frontend/src/components/editor/Toolbar.tsx",
        "frontend/src/app/api/deploy/route.ts",
        "frontend/src/components/designs/herobanners/auroraHero/auroraHeroEdit.tsx",
        "frontend/src/components/designs/herobanners/auroraHero/auroraHero.test.tsx",
        "frontend/src/types/websiteDataTypes.ts",
        "frontend/.env.local",
        "frontend/public/README.md",
    ])
    def test_blacklist_wins_over_whitelist(self, path: str):
        result = should_include_in_production(path)
        assert not result.include
        assert result.reason.startswith("Blacklisted:")

    def test_default_excludes(self):
        result = should_include_in_production("frontend/src/lib/openai.ts")
        assert not result.include
        assert result.reason == "Not in production whitelist"

    def test_windows_separators(self):
        assert should_include_in_production("frontend\\src\\app\\page.tsx").include

    def test_filter_files(self):
        files = [
            GeneratedFile(path="frontend/src/app/page.tsx", content=""),
            GeneratedFile(path="frontend/src/stores/editor.ts", content=""),
        ]
        summary = filter_files_for_production(files)
        assert [f.path for f in summary.included] == ["frontend/src/app/page.tsx"]
        assert summary.stats == {"total": 2, "included": 1, "excluded": 1}

"""
Tests for the commit builder — file collection, versioning, the atomic
commit and dry-run diffs — and for the generated-import check.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import AURORA_DIR
from fakes import FakeGitHubClient

from sitedeploy.core.data import ComponentRegistry
from sitedeploy.core.models.deploy import GeneratedFile
from sitedeploy.core.models.website import parse_website_data
from sitedeploy.core.services.deploy.commit_builder import (
    NEXT_CONFIG,
    TYPES_INDEX,
    collect_config_files,
    collect_deploy_files,
    collect_utility_files,
    commit_files,
    diff_against_remote,
    git_blob_sha,
    next_version,
    push_to_github,
)
from sitedeploy.core.services.deploy.component_copier import copy_components
from sitedeploy.core.services.deploy.github_api import GitHubError
from sitedeploy.core.services.deploy.import_check import check_generated_imports
from sitedeploy.core.services.deploy.page_generator import generate_page_files, website_data_file


def _deploy_files(project_dir: Path, website_data: dict, registry: ComponentRegistry):
    master = parse_website_data(website_data)
    components = copy_components(master.used_types(), project_dir, registry).files
    pages = generate_page_files(master, registry).files + [website_data_file(website_data)]
    return collect_deploy_files(components, pages, project_dir)


# ── Collection ───────────────────────────────────────────────────────


class TestCollectFiles:
    def test_utility_files(self, project_dir: Path):
        paths = [f.path for f in collect_utility_files(project_dir)]
        assert "frontend/src/lib/hooks/isMobile.ts" in paths
        assert "frontend/src/lib/colorUtils/contrast.ts" in paths
        assert "frontend/src/types/colors.ts" in paths
        assert "frontend/src/lib/hooks/useEditor.ts" not in paths
        assert "frontend/src/types/websiteDataTypes.ts" not in paths
        assert not any("/types/registry/" in p for p in paths)

    def test_config_files(self, project_dir: Path):
        files = {f.path: f.content for f in collect_config_files(project_dir)}
        assert files["frontend/next.config.ts"] == NEXT_CONFIG
        assert files["frontend/src/types/index.ts"] == TYPES_INDEX
        assert files["frontend/.nvmrc"] == "20\n"
        assert "frontend/package.json" in files

    def test_config_files_missing_tree(self, tmp_path: Path):
        assert collect_config_files(tmp_path) == []

    def test_deploy_files_sorted_and_deduplicated(
        self, project_dir: Path, website_data: dict, registry: ComponentRegistry
    ):
        files, summary = _deploy_files(project_dir, website_data, registry)
        paths = [f.path for f in files]
        assert paths == sorted(paths)
        assert len(paths) == len(set(paths)) == 18
        assert summary.stats["excluded"] == 0
        types_index = next(f for f in files if f.path == "frontend/src/types/index.ts")
        assert types_index.content == TYPES_INDEX

    def test_filter_applied(self, project_dir: Path):
        extra = [GeneratedFile(path="frontend/src/components/editor/Panel.tsx", content="")]
        files, summary = collect_deploy_files(extra, [], project_dir)
        assert "frontend/src/components/editor/Panel.tsx" not in [f.path for f in files]
        assert summary.stats["excluded"] == 1


# ── Versioning ───────────────────────────────────────────────────────


class TestNextVersion:
    def test_no_tags(self):
        assert next_version([]) == 1

    def test_max_plus_one_ignoring_other_tags(self):
        tags = ["production-v2", "production-v10", "v99", "production-vx", "production-v3-hotfix"]
        assert next_version(tags) == 11

    def test_custom_prefix(self):
        assert next_version(["release-4", "production-v9"], prefix="release-") == 5


def test_git_blob_sha_matches_git():
    # `printf 'hello\n' | git hash-object --stdin`
    assert git_blob_sha("hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"


# ── Commit ───────────────────────────────────────────────────────────


class TestCommitFiles:
    def test_single_commit_on_top_of_tip(self, github: FakeGitHubClient):
        parent = github.head
        files = [GeneratedFile(path=f"f{i}.ts", content=str(i)) for i in range(3)]
        sha = commit_files(github, files, "msg")

        assert github.head == sha
        assert github.commits[sha]["parents"] == [parent]
        assert github.calls.count("create_commit") == 1
        assert github.calls.count("create_tree") == 1
        assert github.calls.count("update_ref") == 1
        assert github.files["f2.ts"] == "2"
        assert github.files["README.md"] == "# site\n"

    def test_ref_conflict_leaves_branch(self, github: FakeGitHubClient):
        github.fail_ref_update = 422
        before = github.head
        with pytest.raises(GitHubError, match="moved"):
            commit_files(github, [GeneratedFile(path="a.ts", content="a")], "msg")
        assert github.head == before


class TestDiffAgainstRemote:
    def test_added_modified_unchanged(self):
        client = FakeGitHubClient(files={"a.ts": "same", "b.ts": "old"})
        changes = diff_against_remote(client, [
            GeneratedFile(path="a.ts", content="same"),
            GeneratedFile(path="b.ts", content="new"),
            GeneratedFile(path="c.ts", content="c"),
        ])
        assert [(c.path, c.status) for c in changes] == [
            ("a.ts", "unchanged"), ("b.ts", "modified"), ("c.ts", "added"),
        ]
        assert client.writes == []


class TestPushToGitHub:
    def _files(self) -> list[GeneratedFile]:
        return [
            GeneratedFile(path="frontend/src/app/page.tsx", content="page"),
            GeneratedFile(path="frontend/src/data/index.data.ts", content="data"),
        ]

    def test_real_push(self, github: FakeGitHubClient):
        result = push_to_github(github, self._files(), "Deploy 1 pages")

        assert result.success
        assert result.version == 3
        assert result.tag_name == "production-v3"
        assert result.commit_sha == github.head
        assert result.commit_url == f"https://github.com/acme/site/commit/{github.head}"
        assert result.tag_url == "https://github.com/acme/site/releases/tag/production-v3"
        assert result.files_deployed == 2
        assert "production-v3" in github.tags
        assert github.tag_messages["production-v3"] == "Production release v3"

        message = github.commits[github.head]["message"]
        assert message.startswith("Deploy 1 pages\n\n")
        assert "Version: production-v3" in message

    def test_existing_tag_not_recreated(self, github: FakeGitHubClient, monkeypatch):
        monkeypatch.setattr(github, "tag_ref_exists", lambda tag: True)
        result = push_to_github(github, self._files(), "msg")
        assert result.success
        assert result.tag_name == "production-v3"
        assert "create_tag" not in github.calls
        assert "create_ref" not in github.calls

    def test_dry_run_makes_no_writes(self, github: FakeGitHubClient):
        github_before = dict(github.files)
        result = push_to_github(github, self._files(), "msg", dry_run=True)

        assert result.success and result.dry_run
        assert result.version == 3
        assert result.commit_sha == ""
        assert result.files_deployed == 2
        assert [c.status for c in result.changes] == ["added", "added"]
        assert github.writes == []
        assert github.files == github_before

    def test_dry_run_without_client(self):
        result = push_to_github(None, self._files(), "msg", dry_run=True)
        assert result.version is None
        assert [c.path for c in result.changes] == [f.path for f in self._files()]

    def test_dry_run_counts_match_real_run(
        self, project_dir: Path, website_data: dict, registry: ComponentRegistry
    ):
        files, _ = _deploy_files(project_dir, website_data, registry)
        dry = push_to_github(FakeGitHubClient(), files, "msg", dry_run=True)
        real_client = FakeGitHubClient()
        real = push_to_github(real_client, files, "msg")
        assert dry.files_deployed == real.files_deployed == real_client.calls.count("create_blob")

    def test_real_push_requires_client(self):
        with pytest.raises(ValueError):
            push_to_github(None, self._files(), "msg")


# ── Import check ─────────────────────────────────────────────────────


class TestImportCheck:
    def test_full_deploy_set_resolves(
        self, project_dir: Path, website_data: dict, registry: ComponentRegistry
    ):
        files, _ = _deploy_files(project_dir, website_data, registry)
        assert check_generated_imports(files) == []

    def test_missing_component_reported(
        self, project_dir: Path, website_data: dict, registry: ComponentRegistry
    ):
        files, _ = _deploy_files(project_dir, website_data, registry)
        files = [f for f in files if f.path != f"{AURORA_DIR}/auroraHero.tsx"]
        issues = check_generated_imports(files)
        assert issues
        assert all("auroraHero/auroraHero" in i for i in issues)
        assert any(i.startswith("frontend/src/data/index.data.ts:") for i in issues)

    def test_non_generated_files_ignored(self):
        files = [GeneratedFile(
            path="frontend/src/components/designs/x/x.tsx",
            content="import y from '@/lib/missing';\n",
        )]
        assert check_generated_imports(files) == []

"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import copy
import textwrap
from pathlib import Path

import pytest
from fakes import FakeGitHubClient, FakeVercelClient

from sitedeploy.core.config.loader import DeploySettings
from sitedeploy.core.data import ComponentRegistry

AURORA_DIR = "frontend/src/components/designs/herobanners/auroraHero"
IMAGE_TEXT_DIR = "frontend/src/components/designs/contentPieces/imageTextBox"

AURORA_INDEX = textwrap.dedent("""\
    import AuroraHero from './auroraHero';
    import AuroraHeroEdit from './auroraHeroEdit';
    import { EditableComponent } from '@/types/editorial';
    export type { AuroraHeroProps } from './auroraHero';

    export const auroraHeroComponent: EditableComponent = {
      name: 'AuroraHero',
      component: AuroraHero,
      editor: AuroraHeroEdit,
    };

    export { AuroraHero, AuroraHeroEdit };
    export default AuroraHero;
""")

WEBSITE_DATA = {
    "pages": {
        "index": {
            "pageName": "Home",
            "components": [
                {"id": "c1", "type": "auroraHero", "order": 1, "props": {"title": "Welcome"}},
                {
                    "id": "c2",
                    "type": "imageTextBox",
                    "order": 0,
                    "props": {
                        "title": "About us",
                        "images.main": {"src": "/stale.webp", "alt": "old"},
                        "images": {"main": {"src": "/a.webp", "alt": "A"}},
                    },
                },
            ],
        },
        "about-us": {
            "pageName": "About Us",
            "components": [
                {"id": "c3", "type": "imageTextBox", "order": 0, "props": {"title": "Team"}},
            ],
        },
        "blog": {"pageName": "Blog", "components": []},
    },
    "currentVersionNumber": 3,
}


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    """Editor source tree with two components, utilities and config."""
    _write(tmp_path, f"{AURORA_DIR}/auroraHero.prod.tsx", "export default function AuroraHero() {}\n")
    _write(tmp_path, f"{AURORA_DIR}/auroraHero.tsx", "// editor build with safeguards\n")
    _write(tmp_path, f"{AURORA_DIR}/auroraHeroEdit.tsx", "// editor variant\n")
    _write(tmp_path, f"{AURORA_DIR}/index.ts", AURORA_INDEX)

    _write(tmp_path, f"{IMAGE_TEXT_DIR}/imageTextBox.tsx", "export default function ImageTextBox() {}\n")

    _write(tmp_path, "frontend/package.json", '{"name": "site"}\n')
    _write(tmp_path, "frontend/tsconfig.json", "{}\n")
    _write(tmp_path, "frontend/next.config.ts", "// editor config with rewrites\n")
    _write(tmp_path, "frontend/.nvmrc", "20\n")

    _write(tmp_path, "frontend/src/lib/hooks/isMobile.ts", "export const isMobile = () => false;\n")
    _write(tmp_path, "frontend/src/lib/hooks/useEditor.ts", "export {};\n")
    _write(tmp_path, "frontend/src/lib/colorUtils/contrast.ts", "export const contrast = 1;\n")
    _write(tmp_path, "frontend/src/types/colors.ts", "export type Color = string;\n")
    _write(tmp_path, "frontend/src/types/index.ts", "export * from './websiteDataTypes';\n")
    _write(tmp_path, "frontend/src/types/websiteDataTypes.ts", "export type WebsiteData = {};\n")
    _write(tmp_path, "frontend/src/types/registry/mainRegistry.ts", "export {};\n")

    return tmp_path


@pytest.fixture()
def registry() -> ComponentRegistry:
    return ComponentRegistry()


@pytest.fixture()
def website_data() -> dict:
    return copy.deepcopy(WEBSITE_DATA)


@pytest.fixture()
def settings() -> DeploySettings:
    return DeploySettings(
        repo_owner="acme",
        repo_name="site",
        branch="main",
        github_token="ghp_test",
        vercel_token="vc_test",
        domain_name="example.com",
    )


@pytest.fixture()
def github() -> FakeGitHubClient:
    return FakeGitHubClient(
        files={"README.md": "# site\n"},
        tags=["production-v1", "production-v2", "v9-unrelated"],
    )


@pytest.fixture()
def vercel() -> FakeVercelClient:
    return FakeVercelClient()

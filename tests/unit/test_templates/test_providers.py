"""
test_providers.py - 로컬 템플릿 제공자 테스트
"""

from pathlib import Path

import pytest

from src.domain.errors import InvalidCacheKeyError, SourceNotFoundError
from src.templates.providers import LocalDirectoryProvider


@pytest.fixture
def templates_root(tmp_path: Path, make_tree) -> Path:
    root = tmp_path / "templates"
    make_tree(root / "react-app" / "1.0.0", {"package.json": "{}"})
    make_tree(root / "react-app" / "2.0.0", {"package.json": "{}"})
    make_tree(root / "plain", {"README.md": "# plain"})
    return root


class TestLocalDirectoryProvider:
    """경로 탐색 테스트."""

    def test_versioned_directory(self, templates_root: Path):
        provider = LocalDirectoryProvider(templates_root)

        assert provider.resolve("react-app", "2.0.0") == templates_root / "react-app" / "2.0.0"

    def test_unversioned_fallback(self, templates_root: Path):
        provider = LocalDirectoryProvider(templates_root)

        assert provider.resolve("plain", "latest") == templates_root / "plain"

    def test_not_found(self, templates_root: Path):
        provider = LocalDirectoryProvider(templates_root)

        with pytest.raises(SourceNotFoundError) as exc_info:
            provider.resolve("missing", "1.0.0")

        assert exc_info.value.context["template_id"] == "missing"

    def test_rejects_traversal(self, templates_root: Path):
        provider = LocalDirectoryProvider(templates_root)

        with pytest.raises(InvalidCacheKeyError):
            provider.resolve("../etc", "1.0.0")

    @pytest.mark.asyncio
    async def test_fetch(self, templates_root: Path, tmp_path: Path):
        provider = LocalDirectoryProvider(templates_root)

        path = await provider.fetch("react-app", "1.0.0", tmp_path / "work")

        assert path == templates_root / "react-app" / "1.0.0"

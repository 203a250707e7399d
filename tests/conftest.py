"""
Pytest fixtures for the template cache tests.

테스트 구성:
- 템플릿 소스 트리, 캐시 디렉터리는 tmp_path 아래에 생성
- CacheManager는 주기적 정리 없이 생성 (cleanup_interval_seconds=0)
"""

from pathlib import Path

import pytest
import yaml

from src.cache.config import CacheConfig
from src.cache.manager import CacheManager

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """캐시 루트 (아직 생성되지 않음)."""
    return tmp_path / "cache"


# =============================================================================
# Template Fixtures
# =============================================================================

def make_template(root: Path, files: dict[str, str | bytes]) -> Path:
    """
    템플릿 트리 생성.

    Args:
        root: 트리 루트
        files: 상대 경로 → 내용
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def template_source(tmp_path: Path) -> Path:
    """
    기본 템플릿 소스.

    포함:
    - package.json, README.md ({{ project_name }} placeholder)
    - src/index.js
    - .gitignore, .env.example (숨김 파일)
    """
    return make_template(
        tmp_path / "sources" / "react-app",
        {
            "package.json": '{\n  "name": "{{ project_name }}"\n}\n',
            "README.md": "# {{project_name}}\n\n{{ description }}\n",
            "src/index.js": "console.log('hello');\n",
            ".gitignore": "node_modules/\n",
            ".env.example": "API_KEY=\n",
        },
    )


@pytest.fixture
def other_source(tmp_path: Path) -> Path:
    """두 번째 템플릿 소스 (교체 테스트용)."""
    return make_template(
        tmp_path / "sources" / "vue-app",
        {
            "package.json": '{"name": "vue"}\n',
            "src/main.js": "export default {};\n",
        },
    )


# =============================================================================
# Cache Fixtures
# =============================================================================

@pytest.fixture
def cache_config(cache_dir: Path) -> CacheConfig:
    """테스트용 캐시 설정 (주기적 정리 비활성)."""
    return CacheConfig(
        cache_dir=cache_dir,
        ttl_millis=60 * 60 * 1000,
        max_size_bytes=10 * 1024 * 1024,
        max_entries=10,
        lru_size=5,
        cleanup_interval_seconds=0,
    )


@pytest.fixture
def cache(cache_config: CacheConfig) -> CacheManager:
    """CacheManager (유지보수 태스크 없음 → 별도 정리 불필요)."""
    return CacheManager(cache_config)


@pytest.fixture
def make_tree():
    """make_template 팩토리 (테스트 모듈에서 트리 생성용)."""
    return make_template

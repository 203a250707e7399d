"""
프로젝트 스캐폴더: 캐시된 템플릿 → 새 프로젝트 디렉터리.

흐름:
1. CacheManager.get_or_populate로 템플릿 트리 확보 (miss일 때만 fetch)
2. 트리를 대상 디렉터리로 복사
3. UTF-8 텍스트 파일의 {{ name }} placeholder 치환

규칙:
- 비어 있지 않은 대상 디렉터리는 거부 (기존 파일 덮어쓰기 금지)
- 숨김 파일/디렉터리는 복사하지 않음 (.gitignore 예외)
- 값이 없는 placeholder는 그대로 두고 결과에 보고
"""

import asyncio
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.cache.manager import CacheManager
from src.core.hashing import iter_tree_files
from src.domain.constants import SCAFFOLD_ALLOWED_DOTFILES
from src.templates.providers import SourceProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class ScaffoldError(Exception):
    """프로젝트 생성 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


# =============================================================================
# Types
# =============================================================================

@dataclass
class ScaffoldResult:
    """프로젝트 생성 결과."""

    target_dir: Path
    template_key: str
    files_written: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    missing_placeholders: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_dir": str(self.target_dir),
            "template_key": self.template_key,
            "files_written": list(self.files_written),
            "skipped_files": list(self.skipped_files),
            "missing_placeholders": list(self.missing_placeholders),
            "warnings": list(self.warnings),
        }


# =============================================================================
# Placeholder Detection
# =============================================================================

# {{name}}, {{ name }} 스타일 placeholder 패턴
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def detect_placeholders(text: str) -> list[str]:
    """
    텍스트에서 placeholder 감지.

    Returns:
        placeholder 이름 목록 (등장 순서, 중복 포함)
    """
    return PLACEHOLDER_PATTERN.findall(text)


def render_placeholders(text: str, variables: dict[str, str]) -> tuple[str, set[str]]:
    """
    placeholder 치환.

    Returns:
        (치환된 텍스트, 값이 없어 남겨 둔 이름들)
    """
    missing: set[str] = set()

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        missing.add(name)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text), missing


def is_skipped_path(rel_path: str) -> bool:
    """숨김 경로 여부 (.gitignore 파일은 허용)."""
    parts = rel_path.split("/")
    for part in parts[:-1]:
        if part.startswith("."):
            return True
    name = parts[-1]
    return name.startswith(".") and name not in SCAFFOLD_ALLOWED_DOTFILES


# =============================================================================
# Project Scaffolder
# =============================================================================

class ProjectScaffolder:
    """
    캐시를 통해 템플릿을 가져와 프로젝트 생성.

    Usage:
        scaffolder = ProjectScaffolder(cache, LocalDirectoryProvider(Path("templates")))
        result = await scaffolder.create_project(
            "react-app", "1.0.0", Path("my-app"), {"project_name": "my-app"}
        )
    """

    def __init__(self, cache: CacheManager, provider: SourceProvider) -> None:
        self.cache = cache
        self.provider = provider

    async def create_project(
        self,
        template_id: str,
        version: str,
        target_dir: Path,
        variables: dict[str, str] | None = None,
    ) -> ScaffoldResult:
        """
        프로젝트 생성.

        Args:
            template_id: 템플릿 ID
            version: 템플릿 버전
            target_dir: 생성할 디렉터리 (없거나 비어 있어야 함)
            variables: placeholder 값

        Raises:
            ScaffoldError: TARGET_NOT_EMPTY, TEMPLATE_TREE_MISSING
            CacheError: 캐시 키/소스/I/O 에러
        """
        entry = await self.cache.get_or_populate(template_id, version, self.provider)
        result = await asyncio.to_thread(
            self._copy_tree,
            Path(entry.cache_path),
            Path(target_dir),
            entry.key,
            variables or {},
        )

        if result.missing_placeholders:
            result.warnings.append(
                f"Placeholders without values: {result.missing_placeholders}"
            )
        logger.info(
            f"Created project at {result.target_dir} from {entry.key} "
            f"({len(result.files_written)} files)"
        )
        return result

    def _copy_tree(
        self,
        source: Path,
        target: Path,
        template_key: str,
        variables: dict[str, str],
    ) -> ScaffoldResult:
        if not source.is_dir():
            raise ScaffoldError(
                "TEMPLATE_TREE_MISSING",
                f"cached template tree is missing: {source}",
                template_key=template_key,
            )
        if target.exists() and (not target.is_dir() or any(target.iterdir())):
            raise ScaffoldError(
                "TARGET_NOT_EMPTY",
                f"target directory is not empty: {target}",
                target=str(target),
            )

        target.mkdir(parents=True, exist_ok=True)
        result = ScaffoldResult(target_dir=target, template_key=template_key)
        missing: set[str] = set()

        for rel_path, file_path in iter_tree_files(source):
            if is_skipped_path(rel_path):
                result.skipped_files.append(rel_path)
                continue

            dest = target / rel_path
            dest.parent.mkdir(parents=True, exist_ok=True)
            try:
                text = file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                # 바이너리는 그대로 복사
                shutil.copy2(file_path, dest)
            else:
                rendered, unresolved = render_placeholders(text, variables)
                missing |= unresolved
                dest.write_text(rendered, encoding="utf-8")
            result.files_written.append(rel_path)

        result.missing_placeholders = sorted(missing)
        return result

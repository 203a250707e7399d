"""
템플릿 소스 제공자.

CacheManager.get_or_populate가 miss일 때만 호출.
fetch 결과 디렉터리는 캐시로 복사되므로 제공자가 보관할 필요 없음.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from src.core.ids import validate_template_id, validate_version
from src.domain.errors import SourceNotFoundError

logger = logging.getLogger(__name__)


class SourceProvider(Protocol):
    """템플릿 소스 인터페이스 (git, 레지스트리 등은 별도 구현)."""

    async def fetch(self, template_id: str, version: str, workdir: Path) -> Path:
        """
        템플릿 트리를 준비하고 경로 반환.

        Args:
            template_id: 템플릿 ID
            version: 버전
            workdir: 임시 작업 디렉터리 (fetch 후 삭제됨)

        Returns:
            템플릿 트리 루트 디렉터리
        """
        ...


class LocalDirectoryProvider:
    """
    로컬 디렉터리 제공자.

    탐색 순서:
    1. <root>/<template_id>/<version>/
    2. <root>/<template_id>/  (버전 디렉터리가 없는 단일 버전 템플릿)
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()

    def resolve(self, template_id: str, version: str) -> Path:
        """
        Raises:
            InvalidCacheKeyError: ID/버전 형식 오류 (경로 탈출 방지)
            SourceNotFoundError: 템플릿 디렉터리 없음
        """
        validate_template_id(template_id)
        validate_version(version)

        versioned = self.root / template_id / version
        if versioned.is_dir():
            return versioned

        unversioned = self.root / template_id
        if unversioned.is_dir():
            logger.debug(f"No '{version}' directory for {template_id}, using {unversioned}")
            return unversioned

        raise SourceNotFoundError(
            f"template '{template_id}' not found under {self.root}",
            template_id=template_id,
            version=version,
            root=str(self.root),
        )

    async def fetch(self, template_id: str, version: str, workdir: Path) -> Path:
        # 로컬 트리는 그대로 캐시로 복사되므로 workdir 사용 안 함
        return await asyncio.to_thread(self.resolve, template_id, version)

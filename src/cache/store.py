"""
On-Disk Store: 캐시 디렉터리 + 메타데이터 파일.

구조:
<cache_dir>/
├── <key>/              # 템플릿 트리
├── <key>.meta.json     # CacheEntry JSON
└── .staging/           # 복사 중 임시 트리

규칙:
- 모든 메서드는 동기 (CacheManager가 asyncio.to_thread로 호출)
- 최종 경로에 반쯤 쓰인 트리가 보이지 않음: staging 복사 → rename으로 교체
- 교체 실패 시 이전 트리 복구
- persistent=False: 메타데이터는 메모리에만 보관 (트리는 그대로 디스크)
- 다른 프로세스와의 경쟁은 보호하지 않음 (프로세스 간 락 없음)
"""

import json
import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.core.atomic import atomic_write_json, fsync_dir
from src.core.hashing import compute_tree_checksum, compute_tree_size
from src.domain.constants import META_FILE_SUFFIX, STAGING_DIR_NAME
from src.domain.errors import CorruptedMetadataError
from src.domain.schemas import CacheEntry

logger = logging.getLogger(__name__)

# 이보다 오래된 staging 트리는 중단된 populate의 잔재로 간주 (1시간)
STALE_STAGING_THRESHOLD_SECONDS = 3600


@dataclass
class StagedTree:
    """staging 영역에 복사 완료된 트리."""

    path: Path
    checksum: str
    size_bytes: int


@dataclass
class ScannedEntry:
    """디스크 스캔 결과 한 건 (메타 손상/디렉터리 누락 포함)."""

    key: str
    entry: CacheEntry | None
    has_directory: bool
    has_metadata: bool
    corrupted: bool = False
    orphan_size_bytes: int = 0


class DiskStore:
    """캐시 루트 아래 파일시스템 작업."""

    def __init__(self, cache_dir: Path, persistent: bool = True) -> None:
        self.cache_dir = cache_dir
        self.persistent = persistent
        self.staging_root = cache_dir / STAGING_DIR_NAME
        self._memory_meta: dict[str, dict[str, Any]] = {}

    def ensure_root(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.staging_root.mkdir(exist_ok=True)

    # =========================================================================
    # Paths
    # =========================================================================

    def entry_dir(self, key: str) -> Path:
        return self.cache_dir / key

    def meta_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{META_FILE_SUFFIX}"

    def _new_staging_path(self, key: str, label: str) -> Path:
        return self.staging_root / f"{key}.{label}.{uuid.uuid4().hex[:12]}"

    # =========================================================================
    # Metadata
    # =========================================================================

    def read_meta(self, key: str) -> CacheEntry | None:
        """
        메타데이터 로드.

        Returns:
            CacheEntry 또는 None (메타 없음)

        Raises:
            CorruptedMetadataError: JSON 파싱/스키마 실패
        """
        if not self.persistent:
            data = self._memory_meta.get(key)
            return CacheEntry.from_dict(data) if data is not None else None

        path = self.meta_path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CorruptedMetadataError(
                f"metadata for '{key}' is unreadable",
                key=key,
                path=str(path),
                error=str(e),
            ) from e

        try:
            return CacheEntry.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CorruptedMetadataError(
                f"metadata for '{key}' failed to parse",
                key=key,
                path=str(path),
                error=str(e),
            ) from e

    def write_meta(self, entry: CacheEntry) -> None:
        """메타데이터 원자적 저장."""
        if not self.persistent:
            self._memory_meta[entry.key] = entry.to_dict()
            return
        atomic_write_json(self.meta_path(entry.key), entry.to_dict())

    def has_meta(self, key: str) -> bool:
        if not self.persistent:
            return key in self._memory_meta
        return self.meta_path(key).exists()

    def delete_meta(self, key: str) -> bool:
        if not self.persistent:
            return self._memory_meta.pop(key, None) is not None
        try:
            self.meta_path(key).unlink()
            return True
        except FileNotFoundError:
            return False

    # =========================================================================
    # Population
    # =========================================================================

    def stage(self, key: str, source: Path) -> StagedTree:
        """
        소스를 staging 영역에 복사 후 checksum/크기 계산.

        Raises:
            OSError: 복사/읽기 실패 (staging 트리는 정리됨)
        """
        self.ensure_root()
        staged = self._new_staging_path(key, "new")
        try:
            shutil.copytree(source, staged)
            checksum = compute_tree_checksum(staged)
            size_bytes = compute_tree_size(staged)
        except (OSError, shutil.Error):
            self.discard(staged)
            raise
        return StagedTree(path=staged, checksum=checksum, size_bytes=size_bytes)

    def install(self, key: str, staged: Path) -> Path | None:
        """
        staging 트리를 최종 경로로 교체.

        기존 트리는 staging으로 먼저 옮긴 뒤 rename.
        rename 실패 시 기존 트리 복구.

        Returns:
            옮겨 둔 기존 트리 경로 (없으면 None).
            메타데이터 쓰기 후 commit() 또는 rollback()으로 정리.

        Raises:
            OSError: rename 실패
        """
        final = self.entry_dir(key)
        backup: Path | None = None

        if final.exists():
            backup = self._new_staging_path(key, "old")
            os.rename(final, backup)

        try:
            os.rename(staged, final)
        except OSError:
            if backup is not None:
                self._restore(key, backup)
            raise

        fsync_dir(self.cache_dir)
        return backup

    def commit(self, backup: Path | None) -> None:
        """교체 확정: 옮겨 둔 기존 트리 삭제."""
        if backup is not None:
            self.discard(backup)

    def rollback(self, key: str, backup: Path | None) -> None:
        """교체 취소: 새 트리 삭제 후 기존 트리 복구."""
        final = self.entry_dir(key)
        if final.exists():
            doomed = self._new_staging_path(key, "new")
            os.rename(final, doomed)
            self.discard(doomed)
        if backup is not None:
            self._restore(key, backup)

    def _restore(self, key: str, backup: Path) -> None:
        try:
            os.rename(backup, self.entry_dir(key))
        except OSError as restore_error:
            logger.error(
                f"Failed to restore previous tree for {key}: {restore_error}. "
                f"Previous contents remain at {backup}"
            )

    def discard(self, path: Path) -> None:
        """staging 트리 삭제 (실패 시 경고만)."""
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {e}. Manual cleanup may be required.")

    def cleanup_stale_staging(
        self, threshold_seconds: float = STALE_STAGING_THRESHOLD_SECONDS
    ) -> int:
        """
        중단된 populate가 남긴 오래된 staging 트리 정리.

        다른 프로세스가 복사 중일 수 있으므로 mtime 기준 TTL이 지난 것만 삭제.

        Returns:
            삭제한 트리 수
        """
        if not self.staging_root.exists():
            return 0

        removed = 0
        now = time.time()
        for item in self.staging_root.iterdir():
            try:
                age_seconds = now - item.stat().st_mtime
            except OSError:
                continue
            if age_seconds <= threshold_seconds:
                continue
            if item.is_dir():
                self.discard(item)
            else:
                item.unlink(missing_ok=True)
            removed += 1
            logger.warning(f"Cleaned up stale staging tree: {item}")
        return removed

    # =========================================================================
    # Removal
    # =========================================================================

    def remove_entry(self, key: str) -> bool:
        """
        트리 + 메타데이터 삭제 (멱등).

        트리를 staging으로 rename → 메타 삭제 → 트리 삭제 순서로,
        최종 경로에서는 즉시 사라짐.

        Returns:
            실제로 무언가 삭제했는지 여부
        """
        removed = False
        final = self.entry_dir(key)
        doomed: Path | None = None

        if final.is_dir():
            self.ensure_root()
            doomed = self._new_staging_path(key, "del")
            os.rename(final, doomed)
            removed = True
        elif final.exists():
            final.unlink()
            removed = True

        if self.delete_meta(key):
            removed = True

        if doomed is not None:
            self.discard(doomed)
        return removed

    # =========================================================================
    # Listing
    # =========================================================================

    def list_keys(self) -> list[str]:
        """
        디스크 상의 모든 키 (트리만 있거나 메타만 있는 것 포함).

        '.'으로 시작하는 이름(staging, temp 파일)은 제외.
        """
        keys: set[str] = set(self._memory_meta) if not self.persistent else set()
        if not self.cache_dir.exists():
            return sorted(keys)

        for item in self.cache_dir.iterdir():
            name = item.name
            if name.startswith("."):
                continue
            if name.endswith(META_FILE_SUFFIX):
                if self.persistent:
                    keys.add(name[: -len(META_FILE_SUFFIX)])
            elif item.is_dir():
                keys.add(name)
        return sorted(keys)

    def scan(self) -> list[ScannedEntry]:
        """전체 키의 상태 스캔 (손상 메타는 corrupted=True)."""
        results = []
        for key in self.list_keys():
            has_directory = self.directory_readable(key)
            has_metadata = self.has_meta(key)
            entry = None
            corrupted = False
            if has_metadata:
                try:
                    entry = self.read_meta(key)
                except CorruptedMetadataError as e:
                    logger.warning(f"Corrupted cache metadata for {key}: {e.context.get('error')}")
                    corrupted = True

            orphan_size = 0
            if entry is None and has_directory:
                try:
                    orphan_size = compute_tree_size(self.entry_dir(key))
                except OSError:
                    orphan_size = 0

            results.append(
                ScannedEntry(
                    key=key,
                    entry=entry,
                    has_directory=has_directory,
                    has_metadata=has_metadata,
                    corrupted=corrupted,
                    orphan_size_bytes=orphan_size,
                )
            )
        return results

    def directory_readable(self, key: str) -> bool:
        """트리가 존재하고 목록 조회가 가능한지."""
        path = self.entry_dir(key)
        if not path.is_dir():
            return False
        try:
            with os.scandir(path) as it:
                next(it, None)
        except OSError:
            return False
        return True

"""
Eviction / Pruning Policy: 삭제 대상 선정만 담당 (실제 삭제는 CacheManager).

기준:
(a) 만료: now > expires_at
(b) 무결성 (aggressive일 때만): 디렉터리 누락/읽기 불가, 메타 손상, 메타 없는 디렉터리
(c) 용량 (max_size를 명시했을 때만): 남은 총 크기가 한도를 넘으면
    last_accessed 오름차순으로 제거. 기본 prune은 만료되지 않은 엔트리를 지우지 않음

쓰기 시 budget enforcement는 max_entries와 max_size_bytes를 모두 적용
(더 엄격한 쪽이 제거 개수를 결정).
"""

from collections.abc import Iterable
from datetime import datetime

from src.cache.store import ScannedEntry
from src.domain.constants import (
    PRUNE_REASON_CORRUPTED,
    PRUNE_REASON_ENTRY_LIMIT,
    PRUNE_REASON_EXPIRED,
    PRUNE_REASON_MISSING_DIRECTORY,
    PRUNE_REASON_ORPHANED,
    PRUNE_REASON_SIZE_LIMIT,
)
from src.domain.schemas import CacheEntry, PrunedEntry


def _by_last_accessed(entries: Iterable[CacheEntry]) -> list[CacheEntry]:
    # 정렬은 안정적 → 동일 시각이면 입력 순서 유지
    return sorted(entries, key=lambda e: e.last_accessed)


class EvictionPolicy:
    """캐시 정책: 삭제 대상 키와 사유 계산."""

    def __init__(self, max_size_bytes: int, max_entries: int) -> None:
        self.max_size_bytes = max_size_bytes
        self.max_entries = max_entries

    def select_for_prune(
        self,
        scanned: list[ScannedEntry],
        now: datetime,
        aggressive: bool = False,
        max_size: int | None = None,
        protected: set[str] | None = None,
    ) -> list[PrunedEntry]:
        """
        명시적 prune 대상 선정.

        Args:
            scanned: DiskStore.scan() 결과
            now: 기준 시각
            aggressive: 무결성 문제 엔트리도 제거
            max_size: 용량 한도 (None → 용량 기준 미적용)
            protected: 제외할 키 (populate 중인 키)

        Returns:
            PrunedEntry 목록 (선정 순서)
        """
        protected = protected or set()
        selected: list[PrunedEntry] = []
        survivors: list[CacheEntry] = []

        for item in scanned:
            if item.key in protected:
                if item.entry is not None:
                    survivors.append(item.entry)
                continue

            entry = item.entry
            if entry is None:
                if not aggressive:
                    continue
                reason = PRUNE_REASON_CORRUPTED if item.corrupted else PRUNE_REASON_ORPHANED
                selected.append(PrunedEntry(item.key, reason, item.orphan_size_bytes))
                continue

            if entry.is_expired(now):
                selected.append(PrunedEntry(item.key, PRUNE_REASON_EXPIRED, entry.size_bytes))
            elif aggressive and not item.has_directory:
                selected.append(
                    PrunedEntry(item.key, PRUNE_REASON_MISSING_DIRECTORY, entry.size_bytes)
                )
            else:
                survivors.append(entry)

        if max_size is None:
            return selected

        total_size = sum(e.size_bytes for e in survivors)
        if total_size <= max_size:
            return selected

        for entry in _by_last_accessed(e for e in survivors if e.key not in protected):
            if total_size <= max_size:
                break
            selected.append(PrunedEntry(entry.key, PRUNE_REASON_SIZE_LIMIT, entry.size_bytes))
            total_size -= entry.size_bytes

        return selected

    def select_for_budget(
        self,
        entries: list[CacheEntry],
        protected: set[str],
    ) -> list[PrunedEntry]:
        """
        쓰기 후 budget enforcement 대상 선정.

        protected 키는 개수/크기 합계에는 포함되지만 제거 대상은 아님.
        """
        total_size = sum(e.size_bytes for e in entries)
        count = len(entries)
        selected: list[PrunedEntry] = []

        for entry in _by_last_accessed(e for e in entries if e.key not in protected):
            over_size = total_size > self.max_size_bytes
            over_count = count > self.max_entries
            if not over_size and not over_count:
                break
            reason = PRUNE_REASON_SIZE_LIMIT if over_size else PRUNE_REASON_ENTRY_LIMIT
            selected.append(PrunedEntry(entry.key, reason, entry.size_bytes))
            total_size -= entry.size_bytes
            count -= 1

        return selected

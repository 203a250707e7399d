"""
Cache Manager: 템플릿 캐시의 유일한 진입점.

2단계 저장:
- LRU 레이어 (메모리): 최근 사용 레코드
- DiskStore (디스크): <cache_dir>/<key>/ + <key>.meta.json

규칙:
- 모든 상태(LRU, 락, 카운터, 유지보수 태스크)는 인스턴스 소유 (전역 싱글톤 없음)
- 읽기는 다른 키의 populate를 기다리지 않음
- 같은 키의 populate는 singleflight로 한 번만 실행
- 메타 손상 → 경고 로그 + miss (호출자에게 전파하지 않음)
- I/O 실패 → 현재 작업만 중단, 기존 상태 보존
- destroy() 이후 모든 작업은 MANAGER_DESTROYED
"""

import asyncio
import contextlib
import logging
import shutil
import tempfile
import time
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from src.cache.config import CacheConfig
from src.cache.locks import PopulationLockRegistry
from src.cache.lru import LRULayer
from src.cache.policy import EvictionPolicy
from src.cache.store import DiskStore
from src.core.hashing import compute_tree_checksum
from src.core.humanize import format_age, format_bytes
from src.core.ids import make_cache_key
from src.core.paths import ensure_source_exists, validate_source_path_syntax
from src.domain.constants import (
    CACHE_KEY_SEPARATOR,
    INTEGRITY_CHECKSUM_MISMATCH,
    INTEGRITY_CORRUPTED,
    INTEGRITY_MISSING_DIRECTORY,
    INTEGRITY_NOT_CACHED,
    INTEGRITY_OK,
    MANAGER_SAMPLE_LIMIT,
    RECENT_SAMPLE_COUNT,
)
from src.domain.errors import (
    CacheConfigError,
    CacheError,
    CacheIOError,
    CorruptedMetadataError,
    ErrorCodes,
)
from src.domain.schemas import (
    CacheEntry,
    ClearResult,
    IntegrityResult,
    PruneResult,
)

if TYPE_CHECKING:
    from src.templates.providers import SourceProvider

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CacheManager:
    """
    템플릿 캐시 관리자.

    Usage:
        async with CacheManager(config) as cache:
            entry = await cache.set_cache_entry("react-app", "1.0.0", "./templates/react")
            hit = await cache.get_cache_entry("react-app", "1.0.0")
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            config: 캐시 설정 (None이면 기본값)
            clock: 현재 시각 함수 (테스트용, aware datetime 반환)
        """
        self.config = config or CacheConfig()
        self._clock = clock or _utcnow

        self.store = DiskStore(self.config.cache_dir, persistent=self.config.persistent)
        self.lru: LRULayer[CacheEntry] = LRULayer(self.config.lru_size)
        self.locks: PopulationLockRegistry[CacheEntry] = PopulationLockRegistry()
        self.policy = EvictionPolicy(self.config.max_size_bytes, self.config.max_entries)

        # 카운터
        self.hits = 0
        self.misses = 0
        self.access_count = 0
        self.evictions = 0
        self.errors = 0
        self.populations = 0

        self._access_samples: deque[float] = deque(maxlen=MANAGER_SAMPLE_LIMIT)
        self._started_at = time.monotonic()
        self._maintenance_task: asyncio.Task[None] | None = None
        self._destroyed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def __aenter__(self) -> "CacheManager":
        self._ensure_active()
        await asyncio.to_thread(self.store.ensure_root)
        self.start_maintenance()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.destroy()

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _ensure_active(self) -> None:
        if self._destroyed:
            raise CacheError(ErrorCodes.MANAGER_DESTROYED, "CacheManager has been destroyed")

    def _now(self) -> datetime:
        return self._clock()

    def start_maintenance(self) -> asyncio.Task[None] | None:
        """
        주기적 prune 태스크 시작.

        cleanup_interval_seconds가 0이면 시작하지 않음.
        이미 실행 중이면 기존 태스크 반환.
        """
        self._ensure_active()
        if self.config.cleanup_interval_seconds <= 0:
            return None
        if self._maintenance_task is not None and not self._maintenance_task.done():
            return self._maintenance_task

        self._maintenance_task = asyncio.get_running_loop().create_task(
            self._maintenance_loop(), name="cache-maintenance"
        )
        logger.info(
            f"Cache maintenance started (every {self.config.cleanup_interval_seconds}s)"
        )
        return self._maintenance_task

    async def _maintenance_loop(self) -> None:
        interval = self.config.cleanup_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                result = await self.prune_cache()
                stale = await asyncio.to_thread(self.store.cleanup_stale_staging)
            except (CacheError, OSError) as e:
                logger.warning(f"Scheduled cache prune failed: {e}")
                continue
            if result.removed_count or stale:
                logger.info(
                    f"Scheduled prune removed {result.removed_count} entries "
                    f"({format_bytes(result.freed_bytes)}), {stale} stale staging trees"
                )

    async def destroy(self) -> None:
        """
        유지보수 태스크 중지 + LRU 비우기 (멱등).

        디스크의 캐시는 그대로 남음.
        """
        if self._destroyed:
            return
        self._destroyed = True

        task = self._maintenance_task
        self._maintenance_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self.lru.clear()
        logger.info(f"CacheManager destroyed ({self.config.cache_dir})")

    # =========================================================================
    # Reads
    # =========================================================================

    async def is_cached(self, template_id: str, version: str) -> bool:
        """만료되지 않은 엔트리가 있는지 (통계/최근 사용 순서 변경 없음)."""
        self._ensure_active()
        key = make_cache_key(template_id, version)
        now = self._now()

        entry = self.lru.peek(key)
        if entry is not None:
            return not entry.is_expired(now)

        try:
            entry = await asyncio.to_thread(self.store.read_meta, key)
        except CorruptedMetadataError:
            return False
        return entry is not None and not entry.is_expired(now)

    async def get_cache_entry(self, template_id: str, version: str) -> CacheEntry | None:
        """
        캐시 조회.

        순서: LRU → 디스크 메타데이터.
        hit이면 access_count/last_accessed 갱신 후 저장, 사본 반환.

        Returns:
            CacheEntry 사본 또는 None (miss: 없음, 만료, 메타 손상)
        """
        self._ensure_active()
        key = make_cache_key(template_id, version)
        started = time.perf_counter()
        now = self._now()
        generation = self.locks.generation(key)

        entry = self.lru.get(key)
        if entry is not None:
            if entry.is_expired(now):
                # 메모리 사본만 버림 (디스크는 prune 대상)
                self.lru.remove(key)
                logger.debug(f"Cache miss (expired in memory): {key}")
                return self._miss(started)
            return await self._hit(key, entry, now, started, generation)

        try:
            entry = await asyncio.to_thread(self.store.read_meta, key)
        except CorruptedMetadataError as e:
            self.errors += 1
            logger.warning(f"Ignoring corrupted cache metadata for {key}: {e.context.get('error')}")
            return self._miss(started)

        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return self._miss(started)
        if entry.is_expired(now):
            logger.debug(f"Cache miss (expired): {key}")
            return self._miss(started)

        return await self._hit(key, entry, now, started, generation, promote=True)

    def _miss(self, started: float) -> None:
        self.misses += 1
        self._record_access(started)
        return None

    async def _hit(
        self,
        key: str,
        entry: CacheEntry,
        now: datetime,
        started: float,
        generation: int,
        promote: bool = False,
    ) -> CacheEntry:
        self.hits += 1
        duration_ms = self._record_access(started)

        async with self.locks.entry_lock(key):
            if self.locks.generation(key) != generation:
                # 조회 도중 교체/삭제됨 → 오래된 레코드를 되살리지 않음
                logger.debug(f"Skipping access persistence for replaced entry: {key}")
                return entry.copy()

            entry.touch(now, duration_ms)
            if promote:
                for evicted in self.lru.put(key, entry):
                    logger.debug(f"LRU evicted {evicted} (memory only)")
            try:
                await asyncio.to_thread(self.store.write_meta, entry)
            except OSError as e:
                self.errors += 1
                logger.warning(f"Failed to persist access for {key}: {e}")

        logger.debug(f"Cache hit: {key}")
        return entry.copy()

    def _record_access(self, started: float) -> float:
        duration_ms = (time.perf_counter() - started) * 1000
        self.access_count += 1
        self._access_samples.append(duration_ms)
        return duration_ms

    # =========================================================================
    # Writes
    # =========================================================================

    async def set_cache_entry(
        self,
        template_id: str,
        version: str,
        source_path: str | Path,
    ) -> CacheEntry:
        """
        소스 디렉터리를 캐시에 저장 (기존 엔트리는 교체).

        Raises:
            InvalidCacheKeyError: 키 형식 오류
            InvalidSourcePathError: 소스 경로 형식 오류 / 디렉터리 아님
            SourceNotFoundError: 소스 경로 없음
            CacheIOError: 복사/교체/메타 쓰기 실패 (기존 엔트리 보존)
        """
        self._ensure_active()
        key = make_cache_key(template_id, version)
        source = validate_source_path_syntax(source_path)
        source = await asyncio.to_thread(ensure_source_exists, source)

        started = time.perf_counter()
        entry = await self._populate(
            key, lambda: self._materialize(key, template_id, version, source)
        )
        self._record_access(started)
        return entry.copy()

    async def get_or_populate(
        self,
        template_id: str,
        version: str,
        provider: "SourceProvider",
    ) -> CacheEntry:
        """
        캐시 조회, miss면 provider로 가져와서 저장.

        같은 키를 동시에 요청해도 fetch + 복사는 한 번만 실행.
        """
        entry = await self.get_cache_entry(template_id, version)
        if entry is not None:
            return entry

        key = make_cache_key(template_id, version)

        async def fetch_and_materialize() -> CacheEntry:
            # 앞선 populate가 막 끝났으면 다시 가져오지 않음
            existing = await self._read_valid(key)
            if existing is not None:
                return existing

            with tempfile.TemporaryDirectory(prefix="scaffold-kit-fetch-") as workdir:
                fetched = await provider.fetch(template_id, version, Path(workdir))
                source = validate_source_path_syntax(fetched)
                source = await asyncio.to_thread(ensure_source_exists, source)
                return await self._materialize(key, template_id, version, source)

        entry = await self._populate(key, fetch_and_materialize)
        return entry.copy()

    async def _read_valid(self, key: str) -> CacheEntry | None:
        entry = self.lru.peek(key)
        if entry is None:
            try:
                entry = await asyncio.to_thread(self.store.read_meta, key)
            except CorruptedMetadataError:
                return None
        if entry is None or entry.is_expired(self._now()):
            return None
        return entry.copy()

    async def _populate(
        self,
        key: str,
        populate: Callable[[], Awaitable[CacheEntry]],
    ) -> CacheEntry:
        """singleflight 실행 후 leader만 budget enforcement."""
        entry, is_leader = await self.locks.run(key, populate)
        if is_leader:
            await self._enforce_budget(protected={key})
        return entry

    async def _materialize(
        self,
        key: str,
        template_id: str,
        version: str,
        source: Path,
    ) -> CacheEntry:
        """
        staging 복사 → 트리 교체 → 메타 쓰기 → LRU 반영.

        복사는 entry lock 밖에서, 교체와 메타 쓰기만 lock 안에서 수행.
        """
        logger.info(f"Populating cache entry {key} from {source}")
        try:
            staged = await asyncio.to_thread(self.store.stage, key, source)
        except (OSError, shutil.Error) as e:
            self.errors += 1
            raise CacheIOError(
                f"failed to copy template into cache: {e}",
                key=key,
                source=str(source),
            ) from e

        try:
            async with self.locks.entry_lock(key):
                try:
                    backup = await asyncio.to_thread(self.store.install, key, staged.path)
                except OSError as e:
                    self.errors += 1
                    raise CacheIOError(
                        f"failed to install cache entry: {e}", key=key
                    ) from e

                now = self._now()
                entry = CacheEntry(
                    template_id=template_id,
                    version=version,
                    key=key,
                    source_path=str(source),
                    cache_path=str(self.store.entry_dir(key)),
                    checksum=staged.checksum,
                    size_bytes=staged.size_bytes,
                    cached_at=now,
                    last_accessed=now,
                    ttl_millis=self.config.ttl_millis,
                    access_count=0,
                )

                try:
                    await asyncio.to_thread(self.store.write_meta, entry)
                except OSError as e:
                    self.errors += 1
                    await asyncio.to_thread(self.store.rollback, key, backup)
                    raise CacheIOError(
                        f"failed to write cache metadata: {e}", key=key
                    ) from e

                await asyncio.to_thread(self.store.commit, backup)
                self.locks.bump_generation(key)
                for evicted in self.lru.put(key, entry):
                    logger.debug(f"LRU evicted {evicted} (memory only)")
        finally:
            await asyncio.to_thread(self.store.discard, staged.path)

        self.populations += 1
        logger.info(f"Cached {key} ({format_bytes(entry.size_bytes)}, checksum={entry.checksum[:12]})")
        return entry.copy()

    async def _enforce_budget(self, protected: set[str]) -> None:
        """쓰기 후 max_entries / max_size_bytes 초과분 제거."""
        scanned = await asyncio.to_thread(self.store.scan)
        entries = [item.entry for item in scanned if item.entry is not None]
        victims = self.policy.select_for_budget(
            entries, protected | self.locks.in_flight_keys()
        )

        for victim in victims:
            try:
                await self._remove_key(victim.key)
            except CacheIOError as e:
                logger.warning(f"Budget eviction of {victim.key} failed: {e}")
                continue
            self.evictions += 1
            logger.info(
                f"Evicted {victim.key} ({victim.reason}, {format_bytes(victim.size_bytes)})"
            )

    # =========================================================================
    # Removal
    # =========================================================================

    async def _remove_key(self, key: str) -> bool:
        async with self.locks.entry_lock(key):
            self.locks.bump_generation(key)
            self.lru.remove(key)
            try:
                return await asyncio.to_thread(self.store.remove_entry, key)
            except OSError as e:
                self.errors += 1
                raise CacheIOError(f"failed to remove cache entry: {e}", key=key) from e

    async def remove_cache_entry(self, template_id: str, version: str) -> bool:
        """
        엔트리 삭제 (멱등). 없는 키도 True.

        populate 중인 키는 populate 완료 후 삭제 가능 (staging은 건드리지 않음).
        """
        self._ensure_active()
        key = make_cache_key(template_id, version)
        if await self._remove_key(key):
            logger.info(f"Removed cache entry {key}")
        return True

    @staticmethod
    def _is_preserved(key: str, preserve: set[str]) -> bool:
        template_id = key.partition(CACHE_KEY_SEPARATOR)[0]
        return key in preserve or template_id in preserve

    async def clear_cache(self, preserve: list[str] | None = None) -> ClearResult:
        """
        전체 삭제 (preserve 대상 제외). LRU는 항상 비움.

        Args:
            preserve: 보존할 키 ("id@version") 또는 template_id (모든 버전)
        """
        self._ensure_active()
        preserve_set = set(preserve or [])
        keys = await asyncio.to_thread(self.store.list_keys)
        result = ClearResult(total_entries=len(keys))

        for key in keys:
            if self._is_preserved(key, preserve_set):
                result.preserved_entries += 1
                continue
            await self._remove_key(key)
            result.cleared_entries += 1
            result.cleared_keys.append(key)

        self.lru.clear()
        logger.info(
            f"Cleared {result.cleared_entries}/{result.total_entries} cache entries "
            f"({result.preserved_entries} preserved)"
        )
        return result

    async def prune_cache(
        self,
        dry_run: bool = False,
        aggressive: bool = False,
        max_size: int | None = None,
    ) -> PruneResult:
        """
        만료/무결성/용량 기준 정리.

        Args:
            dry_run: 대상만 계산 (디스크, LRU 변경 없음)
            aggressive: 무결성 문제 엔트리도 제거
            max_size: 용량 한도 (None → 용량 기준 미적용, 만료 엔트리만 제거)
        """
        self._ensure_active()
        if max_size is not None and max_size < 0:
            raise CacheConfigError("max_size cannot be negative", max_size=max_size)

        scanned = await asyncio.to_thread(self.store.scan)
        selected = self.policy.select_for_prune(
            scanned,
            self._now(),
            aggressive=aggressive,
            max_size=max_size,
            protected=self.locks.in_flight_keys(),
        )

        if not dry_run:
            for item in selected:
                await self._remove_key(item.key)
                self.evictions += 1
                logger.info(f"Pruned {item.key} ({item.reason})")

        result = PruneResult(
            removed_entries=selected,
            remaining_entries=len(scanned) - len(selected),
            dry_run=dry_run,
        )
        logger.info(
            f"Prune {'(dry run) ' if dry_run else ''}selected {result.removed_count} entries, "
            f"{format_bytes(result.freed_bytes)}"
        )
        return result

    # =========================================================================
    # Integrity
    # =========================================================================

    async def verify_integrity(self, template_id: str, version: str) -> IntegrityResult:
        """
        트리 checksum 재계산 후 메타데이터와 비교.

        불일치는 보고만 함 (자동 복구 없음).
        """
        self._ensure_active()
        key = make_cache_key(template_id, version)

        try:
            entry = await asyncio.to_thread(self.store.read_meta, key)
        except CorruptedMetadataError:
            return IntegrityResult(key=key, valid=False, reason=INTEGRITY_CORRUPTED)
        if entry is None:
            return IntegrityResult(key=key, valid=False, reason=INTEGRITY_NOT_CACHED)

        tree = self.store.entry_dir(key)
        try:
            if not tree.is_dir():
                raise FileNotFoundError(str(tree))
            actual = await asyncio.to_thread(compute_tree_checksum, tree)
        except OSError:
            return IntegrityResult(
                key=key,
                valid=False,
                reason=INTEGRITY_MISSING_DIRECTORY,
                expected=entry.checksum,
            )

        if actual != entry.checksum:
            logger.warning(f"Checksum mismatch for {key}: expected {entry.checksum}, got {actual}")
            return IntegrityResult(
                key=key,
                valid=False,
                reason=INTEGRITY_CHECKSUM_MISMATCH,
                expected=entry.checksum,
                actual=actual,
            )
        return IntegrityResult(
            key=key, valid=True, reason=INTEGRITY_OK, expected=entry.checksum, actual=actual
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    async def list_entries(self) -> list[CacheEntry]:
        """유효한 메타데이터가 있는 모든 엔트리 (키 순)."""
        self._ensure_active()
        scanned = await asyncio.to_thread(self.store.scan)
        return [item.entry for item in scanned if item.entry is not None]

    def _average_access_ms(self) -> float:
        if not self._access_samples:
            return 0.0
        return sum(self._access_samples) / len(self._access_samples)

    async def get_cache_stats(self) -> dict[str, Any]:
        """
        캐시 통계.

        Returns:
            {"basic", "performance", "policies", "lru", "entries"}
        """
        entries = await self.list_entries()
        now = self._now()
        total_size = sum(e.size_bytes for e in entries)
        lookups = self.hits + self.misses
        config = self.config

        return {
            "basic": {
                "total_entries": len(entries),
                "total_size_bytes": total_size,
                "total_size": format_bytes(total_size),
                "cache_dir": str(config.cache_dir),
                "persistent": config.persistent,
                "uptime_seconds": round(time.monotonic() - self._started_at, 3),
            },
            "performance": {
                "hits": self.hits,
                "misses": self.misses,
                "access_count": self.access_count,
                "hit_rate": round(self.hits / lookups, 4) if lookups else 0,
                "evictions": self.evictions,
                "errors": self.errors,
                "populations": self.populations,
                "average_access_time_ms": round(self._average_access_ms(), 3),
            },
            "policies": {
                "ttl_millis": config.ttl_millis,
                "max_size_bytes": config.max_size_bytes,
                "max_size": format_bytes(config.max_size_bytes),
                "max_entries": config.max_entries,
                "size_utilization": round(total_size / config.max_size_bytes * 100, 2),
                "entry_utilization": round(len(entries) / config.max_entries * 100, 2),
                "size_remaining_bytes": max(0, config.max_size_bytes - total_size),
                "cleanup_interval_seconds": config.cleanup_interval_seconds,
            },
            "lru": {
                "size": len(self.lru),
                "max_size": self.lru.max_size,
                "keys": self.lru.keys(),
            },
            "entries": [self._summarize(entry, now) for entry in entries],
        }

    def _summarize(self, entry: CacheEntry, now: datetime) -> dict[str, Any]:
        return {
            "key": entry.key,
            "template_id": entry.template_id,
            "version": entry.version,
            "size_bytes": entry.size_bytes,
            "size": format_bytes(entry.size_bytes),
            "cached_at": entry.cached_at.isoformat(),
            "age": format_age(entry.cached_at, now),
            "last_accessed": entry.last_accessed.isoformat(),
            "last_access": format_age(entry.last_accessed, now),
            "access_count": entry.access_count,
            "expired": entry.is_expired(now),
            "in_memory": entry.key in self.lru,
        }

    def get_performance_metrics(self) -> dict[str, Any]:
        """최근 접근 시간 샘플 (hit/miss 카운터와 별개)."""
        samples = list(self._access_samples)
        return {
            "sample_count": len(samples),
            "average_access_time_ms": round(self._average_access_ms(), 3),
            "min_access_time_ms": round(min(samples), 3) if samples else 0.0,
            "max_access_time_ms": round(max(samples), 3) if samples else 0.0,
            "recent_samples_ms": [round(s, 3) for s in samples[-RECENT_SAMPLE_COUNT:]],
        }

    def reset_metrics(self) -> None:
        """접근 시간 샘플만 초기화 (hits/misses 유지)."""
        self._access_samples.clear()
        logger.debug("Cache performance samples reset")


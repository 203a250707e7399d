"""
test_manager.py - CacheManager 테스트

테스트 케이스:
- TC1: set → get hit, checksum 일치, 접근 기록 저장
- TC2: TTL 만료 → miss (디스크에는 남음)
- TC3: 손상 메타 → miss + 경고 로그
- TC4: budget (max_entries) → 가장 오래 전에 사용한 엔트리 제거
- TC5: 삭제 멱등성, clear preserve, prune dry-run
- TC6: 무결성 검사, 통계, destroy 이후 에러
"""

import asyncio
import json
import logging
import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from src.cache.config import CacheConfig
from src.cache.manager import CacheManager
from src.core.hashing import compute_tree_checksum
from src.domain.errors import (
    CacheError,
    CacheIOError,
    ErrorCodes,
    InvalidCacheKeyError,
    InvalidSourcePathError,
    SourceNotFoundError,
)


class FakeClock:
    """조작 가능한 시계."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clocked_cache(cache_config: CacheConfig, clock: FakeClock) -> CacheManager:
    return CacheManager(cache_config, clock=clock)


# =============================================================================
# TC1: set / get
# =============================================================================


class TestSetAndGet:
    """기본 저장/조회 테스트."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, cache: CacheManager, template_source: Path):
        entry = await cache.set_cache_entry("react-app", "1.0.0", template_source)

        hit = await cache.get_cache_entry("react-app", "1.0.0")

        assert hit is not None
        assert hit.key == "react-app@1.0.0"
        assert hit.checksum == entry.checksum
        assert hit.access_count == 1
        assert cache.hits == 1
        assert cache.misses == 0

    @pytest.mark.asyncio
    async def test_set_result(self, cache: CacheManager, template_source: Path):
        entry = await cache.set_cache_entry("react-app", "1.0.0", template_source)

        cache_path = Path(entry.cache_path)
        assert cache_path == cache.store.entry_dir("react-app@1.0.0")
        assert entry.checksum == compute_tree_checksum(cache_path)
        assert entry.checksum == compute_tree_checksum(template_source)
        assert entry.access_count == 0
        assert entry.size_bytes > 0
        assert cache.store.meta_path(entry.key).exists()
        assert cache.populations == 1

    @pytest.mark.asyncio
    async def test_miss(self, cache: CacheManager):
        assert await cache.get_cache_entry("react-app", "1.0.0") is None
        assert cache.misses == 1
        assert cache.access_count == 1

    @pytest.mark.asyncio
    async def test_access_persisted(self, cache: CacheManager, template_source: Path):
        """get마다 access_count/last_accessed가 디스크에 저장."""
        await cache.set_cache_entry("react-app", "1.0.0", template_source)

        for _ in range(3):
            await cache.get_cache_entry("react-app", "1.0.0")

        data = json.loads(cache.store.meta_path("react-app@1.0.0").read_text(encoding="utf-8"))
        assert data["access_count"] == 3
        assert data["performance"]["count"] == 3
        assert len(data["performance"]["samples_ms"]) == 3

    @pytest.mark.asyncio
    async def test_disk_hit_promotes_into_lru(
        self, cache_config: CacheConfig, template_source: Path
    ):
        """새 매니저(빈 LRU)에서도 디스크 메타로 hit."""
        first = CacheManager(cache_config)
        await first.set_cache_entry("react-app", "1.0.0", template_source)
        await first.destroy()

        second = CacheManager(cache_config)
        assert "react-app@1.0.0" not in second.lru

        hit = await second.get_cache_entry("react-app", "1.0.0")

        assert hit is not None
        assert "react-app@1.0.0" in second.lru

    @pytest.mark.asyncio
    async def test_returned_entry_is_copy(self, cache: CacheManager, template_source: Path):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        hit = await cache.get_cache_entry("react-app", "1.0.0")

        hit.access_count = 999

        again = await cache.get_cache_entry("react-app", "1.0.0")
        assert again.access_count == 2

    @pytest.mark.asyncio
    async def test_replace_resets_access_count(
        self, cache: CacheManager, template_source: Path, other_source: Path
    ):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        await cache.get_cache_entry("react-app", "1.0.0")

        replaced = await cache.set_cache_entry("react-app", "1.0.0", other_source)

        assert replaced.access_count == 0
        assert replaced.checksum == compute_tree_checksum(other_source)
        assert (Path(replaced.cache_path) / "src" / "main.js").exists()
        assert not (Path(replaced.cache_path) / "src" / "index.js").exists()

    @pytest.mark.asyncio
    async def test_lru_bounded(self, cache_dir: Path, tmp_path: Path, make_tree):
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, lru_size=2, cleanup_interval_seconds=0)
        )
        source = make_tree(tmp_path / "src", {"a.txt": "a"})

        for name in ("a", "b", "c"):
            await cache.set_cache_entry(name, "1", source)

        assert cache.lru.keys() == ["b@1", "c@1"]
        # LRU에서 밀려나도 디스크에는 남음
        assert await cache.is_cached("a", "1")

    @pytest.mark.asyncio
    async def test_non_persistent(self, cache_dir: Path, template_source: Path):
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, persistent=False, cleanup_interval_seconds=0)
        )

        await cache.set_cache_entry("react-app", "1.0.0", template_source)

        assert await cache.get_cache_entry("react-app", "1.0.0") is not None
        assert not cache.store.meta_path("react-app@1.0.0").exists()


# =============================================================================
# 검증 에러
# =============================================================================


class TestValidation:
    """입력 검증 테스트 (I/O 이전에 실패)."""

    @pytest.mark.asyncio
    async def test_invalid_key(self, cache: CacheManager, template_source: Path):
        with pytest.raises(InvalidCacheKeyError):
            await cache.set_cache_entry("../evil", "1.0.0", template_source)

        assert not cache.config.cache_dir.exists()

    @pytest.mark.asyncio
    async def test_invalid_source_syntax(self, cache: CacheManager):
        with pytest.raises(InvalidSourcePathError):
            await cache.set_cache_entry("react-app", "1.0.0", "templates/../../etc")

    @pytest.mark.asyncio
    async def test_source_not_found(self, cache: CacheManager, tmp_path: Path):
        with pytest.raises(SourceNotFoundError):
            await cache.set_cache_entry("react-app", "1.0.0", tmp_path / "missing")

        assert not cache.locks.is_in_flight("react-app@1.0.0")
        assert cache.populations == 0

    @pytest.mark.asyncio
    async def test_invalid_key_on_get(self, cache: CacheManager):
        with pytest.raises(InvalidCacheKeyError):
            await cache.get_cache_entry("react-app", "")


# =============================================================================
# TC2: TTL 만료
# =============================================================================


class TestExpiry:
    """TTL 만료 테스트."""

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_expired_after_ttl(self, cache_dir: Path, template_source: Path):
        """ttl 100ms, 150ms 대기 → miss."""
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, ttl_millis=100, cleanup_interval_seconds=0)
        )
        await cache.set_cache_entry("react-app", "1.0.0", template_source)

        await asyncio.sleep(0.15)

        assert await cache.get_cache_entry("react-app", "1.0.0") is None
        assert not await cache.is_cached("react-app", "1.0.0")
        assert cache.misses == 1
        # 만료는 읽기 시점 분류일 뿐, 디스크에서 삭제하지 않음
        assert cache.store.entry_dir("react-app@1.0.0").exists()
        assert cache.store.meta_path("react-app@1.0.0").exists()
        assert "react-app@1.0.0" not in cache.lru

    @pytest.mark.asyncio
    async def test_expired_on_disk(
        self, clocked_cache: CacheManager, clock: FakeClock, template_source: Path
    ):
        """LRU에 없고 디스크 메타만 만료된 경우도 miss."""
        await clocked_cache.set_cache_entry("react-app", "1.0.0", template_source)
        clocked_cache.lru.clear()

        clock.advance(hours=2)

        assert await clocked_cache.get_cache_entry("react-app", "1.0.0") is None

    @pytest.mark.asyncio
    async def test_set_refreshes_expired(
        self, clocked_cache: CacheManager, clock: FakeClock, template_source: Path
    ):
        await clocked_cache.set_cache_entry("react-app", "1.0.0", template_source)
        clock.advance(hours=2)

        await clocked_cache.set_cache_entry("react-app", "1.0.0", template_source)

        assert await clocked_cache.get_cache_entry("react-app", "1.0.0") is not None


# =============================================================================
# TC3: 손상 메타데이터
# =============================================================================


class TestCorruptedMetadata:
    """손상 메타 → miss + 로그."""

    @pytest.mark.asyncio
    async def test_corrupted_is_miss(
        self, cache: CacheManager, template_source: Path, caplog
    ):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        cache.lru.clear()
        cache.store.meta_path("react-app@1.0.0").write_text("{broken", encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            result = await cache.get_cache_entry("react-app", "1.0.0")

        assert result is None
        assert cache.misses == 1
        assert "corrupted cache metadata" in caplog.text.lower()
        assert not await cache.is_cached("react-app", "1.0.0")

    @pytest.mark.asyncio
    async def test_repopulate_heals(self, cache: CacheManager, template_source: Path):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        cache.lru.clear()
        cache.store.meta_path("react-app@1.0.0").write_text("{broken", encoding="utf-8")

        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        cache.lru.clear()

        assert await cache.get_cache_entry("react-app", "1.0.0") is not None


# =============================================================================
# TC4: budget enforcement
# =============================================================================


class TestBudget:
    """쓰기 후 한도 적용 테스트."""

    @pytest.mark.asyncio
    async def test_max_entries_evicts_least_recently_accessed(
        self, cache_dir: Path, tmp_path: Path, make_tree, clock: FakeClock
    ):
        """max_entries=2: A, B, C 저장 → A 제거."""
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, max_entries=2, cleanup_interval_seconds=0),
            clock=clock,
        )
        source = make_tree(tmp_path / "src", {"a.txt": "a"})

        for name in ("a", "b", "c"):
            await cache.set_cache_entry(name, "1", source)
            clock.advance(seconds=1)

        assert not await cache.is_cached("a", "1")
        assert await cache.is_cached("b", "1")
        assert await cache.is_cached("c", "1")
        assert not cache.store.entry_dir("a@1").exists()
        assert cache.evictions == 1

    @pytest.mark.asyncio
    async def test_recent_access_protects(
        self, cache_dir: Path, tmp_path: Path, make_tree, clock: FakeClock
    ):
        """A를 다시 읽으면 B가 먼저 제거."""
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, max_entries=2, cleanup_interval_seconds=0),
            clock=clock,
        )
        source = make_tree(tmp_path / "src", {"a.txt": "a"})

        await cache.set_cache_entry("a", "1", source)
        clock.advance(seconds=1)
        await cache.set_cache_entry("b", "1", source)
        clock.advance(seconds=1)
        await cache.get_cache_entry("a", "1")
        clock.advance(seconds=1)
        await cache.set_cache_entry("c", "1", source)

        assert await cache.is_cached("a", "1")
        assert not await cache.is_cached("b", "1")

    @pytest.mark.asyncio
    async def test_max_size(self, cache_dir: Path, tmp_path: Path, make_tree, clock: FakeClock):
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, max_size_bytes=150, cleanup_interval_seconds=0),
            clock=clock,
        )
        source = make_tree(tmp_path / "src", {"data.bin": b"x" * 100})

        await cache.set_cache_entry("a", "1", source)
        clock.advance(seconds=1)
        await cache.set_cache_entry("b", "1", source)

        assert not await cache.is_cached("a", "1")
        assert await cache.is_cached("b", "1")

    @pytest.mark.asyncio
    async def test_new_entry_never_evicted(self, cache_dir: Path, tmp_path: Path, make_tree):
        """새 엔트리 하나가 한도를 넘어도 자신은 제거되지 않음."""
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, max_size_bytes=10, cleanup_interval_seconds=0)
        )
        source = make_tree(tmp_path / "src", {"data.bin": b"x" * 100})

        await cache.set_cache_entry("big", "1", source)

        assert await cache.is_cached("big", "1")


# =============================================================================
# TC5: 삭제 / clear / prune
# =============================================================================


class TestRemove:
    """remove_cache_entry 테스트."""

    @pytest.mark.asyncio
    async def test_remove(self, cache: CacheManager, template_source: Path):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)

        assert await cache.remove_cache_entry("react-app", "1.0.0") is True

        assert await cache.get_cache_entry("react-app", "1.0.0") is None
        assert not cache.store.entry_dir("react-app@1.0.0").exists()
        assert not cache.store.meta_path("react-app@1.0.0").exists()

    @pytest.mark.asyncio
    async def test_idempotent(self, cache: CacheManager):
        assert await cache.remove_cache_entry("react-app", "1.0.0") is True
        assert await cache.remove_cache_entry("react-app", "1.0.0") is True


class TestClear:
    """clear_cache 테스트."""

    @pytest.mark.asyncio
    async def test_clear_all(self, cache: CacheManager, template_source: Path):
        for version in ("1.0.0", "2.0.0"):
            await cache.set_cache_entry("react-app", version, template_source)

        result = await cache.clear_cache()

        assert result.cleared_entries == 2
        assert result.total_entries == 2
        assert len(cache.lru) == 0
        assert cache.store.list_keys() == []

    @pytest.mark.asyncio
    async def test_preserve_by_key(self, cache: CacheManager, template_source: Path):
        """preserve 대상만 남음."""
        for template_id in ("a", "b", "c"):
            await cache.set_cache_entry(template_id, "1", template_source)

        result = await cache.clear_cache(preserve=["b@1"])

        assert result.cleared_entries == 2
        assert result.preserved_entries == 1
        assert result.total_entries == 3
        assert sorted(result.cleared_keys) == ["a@1", "c@1"]
        assert cache.store.list_keys() == ["b@1"]
        # LRU는 preserve와 무관하게 비움
        assert len(cache.lru) == 0
        assert await cache.get_cache_entry("b", "1") is not None

    @pytest.mark.asyncio
    async def test_preserve_by_template_id(self, cache: CacheManager, template_source: Path):
        for key in (("a", "1"), ("a", "2"), ("b", "1")):
            await cache.set_cache_entry(*key, template_source)

        await cache.clear_cache(preserve=["a"])

        assert cache.store.list_keys() == ["a@1", "a@2"]

    @pytest.mark.asyncio
    async def test_clear_removes_broken_entries(self, cache: CacheManager):
        cache.store.ensure_root()
        cache.store.entry_dir("orphan@1").mkdir()
        cache.store.meta_path("broken@1").write_text("{", encoding="utf-8")

        result = await cache.clear_cache()

        assert result.cleared_entries == 2
        assert cache.store.list_keys() == []


class TestPrune:
    """prune_cache 테스트."""

    @pytest.mark.asyncio
    async def test_prune_expired(
        self, clocked_cache: CacheManager, clock: FakeClock, template_source: Path
    ):
        await clocked_cache.set_cache_entry("old", "1", template_source)
        clock.advance(hours=2)
        await clocked_cache.set_cache_entry("new", "1", template_source)

        result = await clocked_cache.prune_cache()

        assert result.reasons == {"old@1": "expired"}
        assert result.remaining_entries == 1
        assert clocked_cache.store.list_keys() == ["new@1"]
        assert "old@1" not in clocked_cache.lru

    @pytest.mark.asyncio
    async def test_dry_run_does_not_mutate(
        self, clocked_cache: CacheManager, clock: FakeClock, template_source: Path
    ):
        await clocked_cache.set_cache_entry("old", "1", template_source)
        clock.advance(hours=2)

        result = await clocked_cache.prune_cache(dry_run=True)

        assert result.dry_run is True
        assert result.reasons == {"old@1": "expired"}
        assert result.freed_bytes > 0
        assert clocked_cache.store.list_keys() == ["old@1"]
        assert "old@1" in clocked_cache.lru
        assert clocked_cache.evictions == 0

    @pytest.mark.asyncio
    async def test_aggressive(self, cache: CacheManager, template_source: Path):
        await cache.set_cache_entry("ok", "1", template_source)
        await cache.set_cache_entry("nodir", "1", template_source)
        shutil.rmtree(cache.store.entry_dir("nodir@1"))
        cache.store.entry_dir("orphan@1").mkdir()
        cache.store.meta_path("broken@1").write_text("{", encoding="utf-8")

        assert (await cache.prune_cache(dry_run=True)).removed_count == 0

        result = await cache.prune_cache(aggressive=True)

        assert result.reasons == {
            "broken@1": "corrupted_metadata",
            "nodir@1": "missing_directory",
            "orphan@1": "orphaned",
        }
        assert cache.store.list_keys() == ["ok@1"]

    @pytest.mark.asyncio
    async def test_max_size_override(
        self, clocked_cache: CacheManager, clock: FakeClock, tmp_path: Path, make_tree
    ):
        source = make_tree(tmp_path / "src", {"data.bin": b"x" * 100})
        for name in ("a", "b", "c"):
            await clocked_cache.set_cache_entry(name, "1", source)
            clock.advance(seconds=1)

        result = await clocked_cache.prune_cache(max_size=150)

        assert [e.key for e in result.removed_entries] == ["a@1", "b@1"]
        assert all(e.reason == "size_limit" for e in result.removed_entries)
        assert result.freed_bytes == 200

    @pytest.mark.asyncio
    async def test_default_keeps_unexpired_over_budget(
        self, cache_dir: Path, tmp_path: Path, make_tree
    ):
        """max_size 없이 prune → 한도를 넘는 엔트리라도 만료 전이면 유지."""
        cache = CacheManager(
            CacheConfig(cache_dir=cache_dir, max_size_bytes=100, cleanup_interval_seconds=0)
        )
        source = make_tree(tmp_path / "src", {"data.bin": b"x" * 500})
        entry = await cache.set_cache_entry("big", "1", source)

        result = await cache.prune_cache()

        assert entry.size_bytes == 500
        assert result.removed_count == 0
        assert await cache.is_cached("big", "1")

    @pytest.mark.asyncio
    async def test_negative_max_size(self, cache: CacheManager):
        with pytest.raises(CacheError) as exc_info:
            await cache.prune_cache(max_size=-1)

        assert exc_info.value.code == ErrorCodes.INVALID_CACHE_CONFIG


# =============================================================================
# TC6: 무결성 / 통계 / 수명
# =============================================================================


class TestVerifyIntegrity:
    """verify_integrity 테스트."""

    @pytest.mark.asyncio
    async def test_ok(self, cache: CacheManager, template_source: Path):
        entry = await cache.set_cache_entry("react-app", "1.0.0", template_source)

        result = await cache.verify_integrity("react-app", "1.0.0")

        assert result.valid is True
        assert result.reason == "ok"
        assert result.actual == entry.checksum

    @pytest.mark.asyncio
    async def test_mismatch_reported_not_repaired(
        self, cache: CacheManager, template_source: Path
    ):
        entry = await cache.set_cache_entry("react-app", "1.0.0", template_source)
        tampered = Path(entry.cache_path) / "package.json"
        tampered.write_text("tampered", encoding="utf-8")

        result = await cache.verify_integrity("react-app", "1.0.0")

        assert result.valid is False
        assert result.reason == "checksum_mismatch"
        assert result.expected == entry.checksum
        assert tampered.read_text(encoding="utf-8") == "tampered"

    @pytest.mark.asyncio
    async def test_not_cached(self, cache: CacheManager):
        result = await cache.verify_integrity("react-app", "1.0.0")

        assert result.reason == "not_cached"

    @pytest.mark.asyncio
    async def test_missing_directory(self, cache: CacheManager, template_source: Path):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        shutil.rmtree(cache.store.entry_dir("react-app@1.0.0"))

        result = await cache.verify_integrity("react-app", "1.0.0")

        assert result.reason == "missing_directory"


class TestStats:
    """통계 / 성능 지표 테스트."""

    @pytest.mark.asyncio
    async def test_stats_sections(self, cache: CacheManager, template_source: Path):
        entry = await cache.set_cache_entry("react-app", "1.0.0", template_source)
        await cache.get_cache_entry("react-app", "1.0.0")
        await cache.get_cache_entry("missing", "1.0.0")

        stats = await cache.get_cache_stats()

        assert set(stats) == {"basic", "performance", "policies", "lru", "entries"}
        assert stats["basic"]["total_entries"] == 1
        assert stats["basic"]["total_size_bytes"] == entry.size_bytes
        assert stats["performance"]["hits"] == 1
        assert stats["performance"]["misses"] == 1
        assert stats["performance"]["hit_rate"] == 0.5
        assert stats["policies"]["max_entries"] == cache.config.max_entries
        assert stats["lru"]["size"] == 1
        assert stats["entries"][0]["key"] == "react-app@1.0.0"
        assert stats["entries"][0]["age"] == "0 minutes ago"
        assert stats["entries"][0]["size"].endswith("B")

    @pytest.mark.asyncio
    async def test_hit_rate_zero_without_lookups(self, cache: CacheManager):
        stats = await cache.get_cache_stats()

        assert stats["performance"]["hit_rate"] == 0
        assert stats["basic"]["total_entries"] == 0

    @pytest.mark.asyncio
    async def test_access_samples(self, cache: CacheManager, template_source: Path):
        """N번 접근 → N개 샘플, 평균은 샘플에서 계산."""
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        for _ in range(4):
            await cache.get_cache_entry("react-app", "1.0.0")

        metrics = cache.get_performance_metrics()

        assert metrics["sample_count"] == 5
        assert cache.access_count == 5
        assert metrics["average_access_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_reset_metrics_keeps_counters(
        self, cache: CacheManager, template_source: Path
    ):
        await cache.set_cache_entry("react-app", "1.0.0", template_source)
        await cache.get_cache_entry("react-app", "1.0.0")

        cache.reset_metrics()

        assert cache.get_performance_metrics()["sample_count"] == 0
        assert cache.hits == 1


class TestLifecycle:
    """수명 관리 테스트."""

    @pytest.mark.asyncio
    async def test_destroy_idempotent(self, cache: CacheManager):
        await cache.destroy()
        await cache.destroy()

        assert cache.destroyed

    @pytest.mark.asyncio
    async def test_operations_after_destroy(self, cache: CacheManager):
        await cache.destroy()

        with pytest.raises(CacheError) as exc_info:
            await cache.get_cache_entry("react-app", "1.0.0")

        assert exc_info.value.code == ErrorCodes.MANAGER_DESTROYED

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops_maintenance(self, cache_dir: Path):
        config = CacheConfig(cache_dir=cache_dir, cleanup_interval_seconds=60)

        async with CacheManager(config) as cache:
            task = cache._maintenance_task
            assert task is not None and not task.done()
            assert cache_dir.exists()

        assert task.cancelled()
        assert cache.destroyed

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_maintenance_prunes(
        self, cache_dir: Path, template_source: Path, clock: FakeClock
    ):
        config = CacheConfig(
            cache_dir=cache_dir, ttl_millis=1000, cleanup_interval_seconds=0.05
        )
        async with CacheManager(config, clock=clock) as cache:
            await cache.set_cache_entry("react-app", "1.0.0", template_source)
            clock.advance(seconds=5)

            await asyncio.sleep(0.2)

            assert cache.store.list_keys() == []

    @pytest.mark.asyncio
    async def test_no_maintenance_when_disabled(self, cache: CacheManager):
        assert cache.start_maintenance() is None


# =============================================================================
# I/O 실패
# =============================================================================


class TestIOFailure:
    """복사/메타 쓰기 실패 → 기존 상태 보존."""

    @pytest.mark.asyncio
    async def test_metadata_write_failure_keeps_previous(
        self, cache: CacheManager, template_source: Path, other_source: Path, monkeypatch
    ):
        original = await cache.set_cache_entry("react-app", "1.0.0", template_source)

        def failing_write(entry):
            raise OSError("disk full")

        monkeypatch.setattr(cache.store, "write_meta", failing_write)

        with pytest.raises(CacheIOError) as exc_info:
            await cache.set_cache_entry("react-app", "1.0.0", other_source)

        assert exc_info.value.code == ErrorCodes.CACHE_IO_FAILURE
        tree = cache.store.entry_dir("react-app@1.0.0")
        assert compute_tree_checksum(tree) == original.checksum
        assert list(cache.store.staging_root.iterdir()) == []
        assert not cache.locks.is_in_flight("react-app@1.0.0")
        assert cache.errors == 1

    @pytest.mark.asyncio
    async def test_copy_failure(
        self, cache: CacheManager, template_source: Path, monkeypatch
    ):
        def failing_stage(key, source):
            raise OSError("permission denied")

        monkeypatch.setattr(cache.store, "stage", failing_stage)

        with pytest.raises(CacheIOError):
            await cache.set_cache_entry("react-app", "1.0.0", template_source)

        assert not await cache.is_cached("react-app", "1.0.0")
        assert not cache.locks.is_in_flight("react-app@1.0.0")

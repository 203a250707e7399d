"""
Data schemas for the template cache.

규칙:
- 메타데이터 레코드는 순수 값 객체 (dataclass), 상속 없음
- JSON 키는 snake_case, 시각은 ISO-8601 UTC 문자열
- expires_at은 항상 cached_at + ttl_millis에서 계산 (저장값은 참고용)
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from src.domain.constants import (
    CACHE_KEY_SEPARATOR,
    ENTRY_SAMPLE_LIMIT,
    METADATA_SCHEMA_VERSION,
)


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 문자열 → aware datetime (timezone 없으면 UTC로 간주)."""
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# Metadata Record
# =============================================================================

@dataclass
class AccessStats:
    """엔트리별 최근 접근 시간 + 누적 평균."""

    samples_ms: list[float] = field(default_factory=list)
    average_ms: float = 0.0
    count: int = 0

    def record(self, duration_ms: float, limit: int = ENTRY_SAMPLE_LIMIT) -> None:
        self.count += 1
        self.average_ms += (duration_ms - self.average_ms) / self.count
        self.samples_ms.append(round(duration_ms, 3))
        if len(self.samples_ms) > limit:
            del self.samples_ms[: len(self.samples_ms) - limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "samples_ms": list(self.samples_ms),
            "average_ms": round(self.average_ms, 3),
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AccessStats":
        if not data:
            return cls()
        return cls(
            samples_ms=[float(s) for s in data.get("samples_ms", [])],
            average_ms=float(data.get("average_ms", 0.0)),
            count=int(data.get("count", 0)),
        )


@dataclass
class CacheEntry:
    """
    캐시된 템플릿 버전 하나의 메타데이터 (<key>.meta.json).

    checksum은 마지막 populate 시점의 트리 기준.
    읽기마다 재계산하지 않음 (명시적 무결성 검사에서만 재계산).
    """

    template_id: str
    version: str
    key: str
    source_path: str
    cache_path: str
    checksum: str
    size_bytes: int
    cached_at: datetime
    last_accessed: datetime
    ttl_millis: int
    access_count: int = 0
    performance: AccessStats = field(default_factory=AccessStats)

    @property
    def expires_at(self) -> datetime:
        return self.cached_at + timedelta(milliseconds=self.ttl_millis)

    def is_expired(self, now: datetime) -> bool:
        """만료 여부 (읽기 시점 계산, 상태로 저장하지 않음)."""
        return now > self.expires_at

    def touch(self, now: datetime, duration_ms: float) -> None:
        """접근 기록: access_count, last_accessed, 접근 시간 샘플."""
        self.access_count += 1
        self.last_accessed = now
        self.performance.record(duration_ms)

    def copy(self) -> "CacheEntry":
        """호출자에게 돌려줄 사본 (내부 LRU 레코드 보호)."""
        return replace(
            self,
            performance=AccessStats(
                samples_ms=list(self.performance.samples_ms),
                average_ms=self.performance.average_ms,
                count=self.performance.count,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": METADATA_SCHEMA_VERSION,
            "template_id": self.template_id,
            "version": self.version,
            "key": self.key,
            "source_path": self.source_path,
            "cache_path": self.cache_path,
            "checksum": self.checksum,
            "size_bytes": self.size_bytes,
            "cached_at": self.cached_at.isoformat(),
            "last_accessed": self.last_accessed.isoformat(),
            "ttl_millis": self.ttl_millis,
            "expires_at": self.expires_at.isoformat(),
            "access_count": self.access_count,
            "performance": self.performance.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """
        JSON dict → CacheEntry.

        Raises:
            KeyError, ValueError, TypeError: 필수 필드 누락 또는 형식 오류
        """
        if not isinstance(data, dict):
            raise TypeError("metadata must be a JSON object")

        template_id = data["template_id"]
        version = data["version"]
        key = data["key"]
        if not isinstance(template_id, str) or not isinstance(version, str):
            raise TypeError("template_id and version must be strings")
        if key != f"{template_id}{CACHE_KEY_SEPARATOR}{version}":
            raise ValueError(f"key '{key}' does not match template_id/version")

        size_bytes = int(data["size_bytes"])
        ttl_millis = int(data["ttl_millis"])
        access_count = int(data.get("access_count", 0))
        if size_bytes < 0 or ttl_millis < 0 or access_count < 0:
            raise ValueError("size_bytes, ttl_millis and access_count must be non-negative")

        return cls(
            template_id=template_id,
            version=version,
            key=key,
            source_path=str(data.get("source_path", "")),
            cache_path=str(data["cache_path"]),
            checksum=str(data["checksum"]),
            size_bytes=size_bytes,
            cached_at=parse_timestamp(data["cached_at"]),
            last_accessed=parse_timestamp(data["last_accessed"]),
            ttl_millis=ttl_millis,
            access_count=access_count,
            performance=AccessStats.from_dict(data.get("performance")),
        )


# =============================================================================
# Operation Results
# =============================================================================

@dataclass
class ClearResult:
    """clear_cache 결과."""

    cleared_entries: int = 0
    preserved_entries: int = 0
    total_entries: int = 0
    cleared_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleared_entries": self.cleared_entries,
            "preserved_entries": self.preserved_entries,
            "total_entries": self.total_entries,
            "cleared_keys": list(self.cleared_keys),
        }


@dataclass
class PrunedEntry:
    """prune 대상 엔트리 하나."""

    key: str
    reason: str
    size_bytes: int = 0


@dataclass
class PruneResult:
    """prune_cache 결과 (dry_run이면 '삭제 예정' 목록)."""

    removed_entries: list[PrunedEntry] = field(default_factory=list)
    remaining_entries: int = 0
    dry_run: bool = False

    @property
    def removed_count(self) -> int:
        return len(self.removed_entries)

    @property
    def freed_bytes(self) -> int:
        return sum(e.size_bytes for e in self.removed_entries)

    @property
    def reasons(self) -> dict[str, str]:
        return {e.key: e.reason for e in self.removed_entries}

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed_entries": [
                {"key": e.key, "reason": e.reason, "size_bytes": e.size_bytes}
                for e in self.removed_entries
            ],
            "removed_count": self.removed_count,
            "remaining_entries": self.remaining_entries,
            "reasons": self.reasons,
            "freed_bytes": self.freed_bytes,
            "dry_run": self.dry_run,
        }


@dataclass
class IntegrityResult:
    """명시적 무결성 검사 결과. 불일치는 보고만 하고 복구하지 않음."""

    key: str
    valid: bool
    reason: str
    expected: str | None = None
    actual: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "valid": self.valid,
            "reason": self.reason,
            "expected": self.expected,
            "actual": self.actual,
        }

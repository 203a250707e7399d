"""
캐시 설정: default.yaml의 cache 섹션.

예시:
    cache:
      cache_dir: ~/.scaffold-kit/cache
      ttl_millis: 86400000
      max_size_bytes: 104857600
      max_entries: 100
      lru_size: 50
      persistent: true
      cleanup_interval_seconds: 3600
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.domain.constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_LRU_SIZE,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_MAX_SIZE_BYTES,
    DEFAULT_TTL_MILLIS,
)
from src.domain.errors import CacheConfigError

# 설정 파일보다 우선하는 환경 변수 (.env 포함)
CACHE_DIR_ENV_VAR = "SCAFFOLD_KIT_CACHE_DIR"


@dataclass
class CacheConfig:
    """CacheManager 생성 시 주입되는 설정."""

    cache_dir: Path = field(default_factory=lambda: Path(DEFAULT_CACHE_DIR).expanduser())
    ttl_millis: int = DEFAULT_TTL_MILLIS
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    max_entries: int = DEFAULT_MAX_ENTRIES
    lru_size: int = DEFAULT_LRU_SIZE
    persistent: bool = True  # False: 메타데이터를 디스크에 쓰지 않음
    cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS  # 0 이하: 비활성

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir).expanduser()
        self.validate()

    def validate(self) -> None:
        """
        설정값 검증.

        Raises:
            CacheConfigError: INVALID_CACHE_CONFIG
        """
        if self.ttl_millis <= 0:
            raise CacheConfigError("ttl_millis must be positive", ttl_millis=self.ttl_millis)
        if self.max_size_bytes <= 0:
            raise CacheConfigError(
                "max_size_bytes must be positive", max_size_bytes=self.max_size_bytes
            )
        if self.max_entries <= 0:
            raise CacheConfigError("max_entries must be positive", max_entries=self.max_entries)
        if self.lru_size < 0:
            raise CacheConfigError("lru_size cannot be negative", lru_size=self.lru_size)
        if self.cleanup_interval_seconds < 0:
            raise CacheConfigError(
                "cleanup_interval_seconds cannot be negative",
                cleanup_interval_seconds=self.cleanup_interval_seconds,
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cache_dir"] = str(self.cache_dir)
        return data


def cache_config_from_dict(data: dict[str, Any] | None) -> CacheConfig:
    """
    dict(cache 섹션) → CacheConfig. 누락 키는 기본값.

    Raises:
        CacheConfigError: 타입 변환 실패 또는 범위 오류
    """
    data = data or {}
    try:
        return CacheConfig(
            cache_dir=Path(data.get("cache_dir", DEFAULT_CACHE_DIR)),
            ttl_millis=int(data.get("ttl_millis", DEFAULT_TTL_MILLIS)),
            max_size_bytes=int(data.get("max_size_bytes", DEFAULT_MAX_SIZE_BYTES)),
            max_entries=int(data.get("max_entries", DEFAULT_MAX_ENTRIES)),
            lru_size=int(data.get("lru_size", DEFAULT_LRU_SIZE)),
            persistent=bool(data.get("persistent", True)),
            cleanup_interval_seconds=float(
                data.get("cleanup_interval_seconds", DEFAULT_CLEANUP_INTERVAL_SECONDS)
            ),
        )
    except (TypeError, ValueError) as e:
        raise CacheConfigError(f"invalid cache configuration: {e}") from e


def load_cache_config(config_path: Path | None) -> CacheConfig:
    """
    YAML 설정 파일에서 캐시 설정 로드.

    파일이 없거나 cache 섹션이 없으면 기본값.
    SCAFFOLD_KIT_CACHE_DIR 환경 변수가 있으면 cache_dir을 덮어씀.

    Args:
        config_path: default.yaml 경로

    Returns:
        CacheConfig
    """
    section: dict[str, Any] = {}
    if config_path is not None and config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise CacheConfigError("configuration root must be a mapping", path=str(config_path))
        section = dict(data.get("cache") or {})

    env_cache_dir = os.environ.get(CACHE_DIR_ENV_VAR)
    if env_cache_dir:
        section["cache_dir"] = env_cache_dir

    return cache_config_from_dict(section)

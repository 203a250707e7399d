"""
Cache layer: 템플릿 캐시.

역할:
- 설정 로드 (config.py)
- 디스크 저장소 (store.py), 메모리 LRU (lru.py)
- 키별 singleflight (locks.py), 정리 정책 (policy.py)
- 진입점 (manager.py)
"""

from .config import CacheConfig, cache_config_from_dict, load_cache_config
from .locks import PopulationLockRegistry
from .lru import LRULayer
from .manager import CacheManager
from .policy import EvictionPolicy
from .store import DiskStore, ScannedEntry, StagedTree

__all__ = [
    # config
    "CacheConfig",
    "cache_config_from_dict",
    "load_cache_config",
    # components
    "DiskStore",
    "ScannedEntry",
    "StagedTree",
    "LRULayer",
    "PopulationLockRegistry",
    "EvictionPolicy",
    # manager
    "CacheManager",
]

"""
Core layer: 캐시가 의존하는 저수준 유틸리티.

역할:
- 캐시 키 생성/검증, 소스 경로 검증
- 트리 checksum/크기, 원자적 JSON 쓰기
"""

from .atomic import atomic_write_json, fsync_dir
from .hashing import compute_tree_checksum, compute_tree_size, iter_tree_files
from .humanize import format_age, format_bytes
from .ids import make_cache_key, parse_cache_key, validate_template_id, validate_version
from .paths import ensure_source_exists, validate_source_path_syntax

__all__ = [
    # atomic
    "atomic_write_json",
    "fsync_dir",
    # hashing
    "compute_tree_checksum",
    "compute_tree_size",
    "iter_tree_files",
    # humanize
    "format_age",
    "format_bytes",
    # ids
    "make_cache_key",
    "parse_cache_key",
    "validate_template_id",
    "validate_version",
    # paths
    "ensure_source_exists",
    "validate_source_path_syntax",
]

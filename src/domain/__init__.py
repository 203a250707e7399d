"""Domain layer: errors, schemas, constants."""

from .errors import (
    CacheConfigError,
    CacheError,
    CacheIOError,
    CorruptedMetadataError,
    ErrorCodes,
    InvalidCacheKeyError,
    InvalidSourcePathError,
    SourceNotFoundError,
)
from .schemas import (
    AccessStats,
    CacheEntry,
    ClearResult,
    IntegrityResult,
    PrunedEntry,
    PruneResult,
)

__all__ = [
    # errors
    "CacheError",
    "CacheConfigError",
    "CacheIOError",
    "CorruptedMetadataError",
    "ErrorCodes",
    "InvalidCacheKeyError",
    "InvalidSourcePathError",
    "SourceNotFoundError",
    # schemas
    "AccessStats",
    "CacheEntry",
    "ClearResult",
    "IntegrityResult",
    "PrunedEntry",
    "PruneResult",
]

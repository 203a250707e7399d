"""
Cache Routes: 템플릿 캐시 관리 API.

- GET    /api/cache                              → 통계 + 엔트리 요약
- GET    /api/cache/{template_id}/{version}      → 엔트리 (miss면 404)
- GET    /api/cache/{template_id}/{version}/exists
- POST   /api/cache/{template_id}/{version}/verify
- DELETE /api/cache/{template_id}/{version}      → 멱등 삭제
- POST   /api/cache/clear?preserve=...
- POST   /api/cache/prune?dry_run=&aggressive=&max_size=

키 형식 검증은 매니저가 수행 → INVALID_CACHE_KEY는 400으로 변환.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from src.cache.manager import CacheManager
from src.domain.errors import (
    CacheConfigError,
    CacheError,
    CacheIOError,
    ErrorCodes,
    InvalidCacheKeyError,
)

api_router = APIRouter()


def get_cache(request: Request) -> CacheManager:
    """lifespan에서 생성한 CacheManager."""
    cache: CacheManager = request.app.state.cache
    return cache


def _to_http(e: CacheError) -> HTTPException:
    if isinstance(e, (InvalidCacheKeyError, CacheConfigError)):
        status_code = 400
    elif e.code == ErrorCodes.MANAGER_DESTROYED:
        status_code = 503
    elif isinstance(e, CacheIOError):
        status_code = 500
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail={"code": e.code, "message": e.message})


# =============================================================================
# Collection
# =============================================================================

@api_router.get("")
async def cache_stats(request: Request) -> dict[str, Any]:
    """캐시 통계 (basic, performance, policies, lru, entries)."""
    try:
        return await get_cache(request).get_cache_stats()
    except CacheError as e:
        raise _to_http(e) from e


@api_router.post("/clear")
async def clear_cache(
    request: Request,
    preserve: list[str] = Query(default=[]),
) -> dict[str, Any]:
    """전체 삭제 (preserve: 키 또는 template_id, 반복 지정 가능)."""
    try:
        result = await get_cache(request).clear_cache(preserve=preserve)
    except CacheError as e:
        raise _to_http(e) from e
    return result.to_dict()


@api_router.post("/prune")
async def prune_cache(
    request: Request,
    dry_run: bool = False,
    aggressive: bool = False,
    max_size: int | None = None,
) -> dict[str, Any]:
    """만료/무결성/용량 기준 정리."""
    try:
        result = await get_cache(request).prune_cache(
            dry_run=dry_run, aggressive=aggressive, max_size=max_size
        )
    except CacheError as e:
        raise _to_http(e) from e
    return result.to_dict()


# =============================================================================
# Single Entry
# =============================================================================

@api_router.get("/{template_id}/{version}")
async def get_entry(template_id: str, version: str, request: Request) -> dict[str, Any]:
    """캐시 엔트리 조회 (hit이면 접근 기록 갱신)."""
    try:
        entry = await get_cache(request).get_cache_entry(template_id, version)
    except CacheError as e:
        raise _to_http(e) from e

    if entry is None:
        raise HTTPException(
            status_code=404,
            detail={
                "code": ErrorCodes.CACHE_ENTRY_NOT_FOUND,
                "message": f"Cache entry '{template_id}@{version}' not found",
            },
        )
    return entry.to_dict()


@api_router.get("/{template_id}/{version}/exists")
async def entry_exists(template_id: str, version: str, request: Request) -> dict[str, Any]:
    """만료되지 않은 엔트리 존재 여부 (통계 변경 없음)."""
    try:
        cached = await get_cache(request).is_cached(template_id, version)
    except CacheError as e:
        raise _to_http(e) from e
    return {"key": f"{template_id}@{version}", "cached": cached}


@api_router.post("/{template_id}/{version}/verify")
async def verify_entry(template_id: str, version: str, request: Request) -> dict[str, Any]:
    """checksum 재계산 후 비교 (불일치는 보고만)."""
    try:
        result = await get_cache(request).verify_integrity(template_id, version)
    except CacheError as e:
        raise _to_http(e) from e
    return result.to_dict()


@api_router.delete("/{template_id}/{version}")
async def delete_entry(template_id: str, version: str, request: Request) -> dict[str, Any]:
    """엔트리 삭제 (없어도 성공)."""
    try:
        removed = await get_cache(request).remove_cache_entry(template_id, version)
    except CacheError as e:
        raise _to_http(e) from e
    return {"key": f"{template_id}@{version}", "removed": removed}

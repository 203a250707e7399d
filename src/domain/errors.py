"""
Error definitions for the template cache.

규칙:
- 조용한 실패 금지 → 코드가 붙은 CacheError로 명시적 실패
- 검증 에러(키, 소스 경로)는 I/O 이전에 즉시 발생
- 메타데이터 손상은 예외로 전파하지 않음 → 캐시 miss로 복구
- I/O 실패는 현재 작업만 중단, 기존 상태는 보존
"""

from typing import Any


class CacheError(Exception):
    """
    캐시 관련 에러의 기본 클래스.

    Usage:
        raise CacheError("MANAGER_DESTROYED", "CacheManager has been destroyed")
    """

    code = "CACHE_ERROR"

    def __init__(self, code: str | None = None, message: str = "", **context: Any) -> None:
        self.code = code or self.code
        self.message = message
        self.context = context
        super().__init__(f"[{self.code}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **self.context,
        }


class InvalidCacheKeyError(CacheError):
    """template_id 또는 version이 캐시 키로 사용할 수 없는 형식."""

    code = "INVALID_CACHE_KEY"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


class InvalidSourcePathError(CacheError):
    """소스 경로 형식 오류 (I/O 이전에 발생)."""

    code = "INVALID_SOURCE_PATH"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


class SourceNotFoundError(CacheError):
    """소스 경로가 존재하지 않음 (락 획득 이전에 발생)."""

    code = "SOURCE_NOT_FOUND"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


class CorruptedMetadataError(CacheError):
    """
    메타데이터 파일 파싱 실패.

    호출자에게 전파되지 않음: CacheManager가 로그 후 miss로 처리.
    """

    code = "CORRUPTED_METADATA"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


class CacheIOError(CacheError):
    """복사, 체크섬, 메타데이터 쓰기 중 디스크 에러."""

    code = "CACHE_IO_FAILURE"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


class CacheConfigError(CacheError):
    """잘못된 캐시 설정값."""

    code = "INVALID_CACHE_CONFIG"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(None, message, **context)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수. API 응답의 detail.code와 동일."""

    # === Validation ===
    INVALID_CACHE_KEY = InvalidCacheKeyError.code
    INVALID_SOURCE_PATH = InvalidSourcePathError.code
    SOURCE_NOT_FOUND = SourceNotFoundError.code

    # === Storage ===
    CORRUPTED_METADATA = CorruptedMetadataError.code
    CACHE_IO_FAILURE = CacheIOError.code

    # === Lifecycle / Config ===
    INVALID_CACHE_CONFIG = CacheConfigError.code
    MANAGER_DESTROYED = "MANAGER_DESTROYED"
    CACHE_ENTRY_NOT_FOUND = "CACHE_ENTRY_NOT_FOUND"

"""
캐시 키: template_id@version

규칙:
- 키는 불투명 문자열 (템플릿 의미 해석 안 함)
- 키가 곧 디렉터리 이름 → 단일 경로 컴포넌트여야 함
- template_id에는 '@' 금지 (키 분리 모호성 방지)
- '.'으로 시작하는 이름 금지 (.staging 등 예약)
- '.meta.json'으로 끝나는 이름 금지 (다른 키의 메타 파일 경로와 충돌)
"""

from src.domain.constants import CACHE_KEY_SEPARATOR, META_FILE_SUFFIX
from src.domain.errors import InvalidCacheKeyError

KEY_PART_MAX_LENGTH = 128
FORBIDDEN_CHARS = set('/\\:*?"<>|\x00')


def _validate_key_part(value: str, field_name: str) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidCacheKeyError(
            f"{field_name} cannot be empty",
            field=field_name,
        )

    if len(value) > KEY_PART_MAX_LENGTH:
        raise InvalidCacheKeyError(
            f"{field_name} exceeds {KEY_PART_MAX_LENGTH} characters",
            field=field_name,
            length=len(value),
        )

    found_forbidden = set(value) & FORBIDDEN_CHARS
    if found_forbidden or any(ch.isspace() for ch in value):
        raise InvalidCacheKeyError(
            f"{field_name} contains forbidden characters",
            field=field_name,
            forbidden=sorted(found_forbidden),
        )

    if value.startswith("."):
        raise InvalidCacheKeyError(
            f"{field_name} cannot start with '.'",
            field=field_name,
            value=value,
        )

    if value.endswith(META_FILE_SUFFIX):
        raise InvalidCacheKeyError(
            f"{field_name} cannot end with '{META_FILE_SUFFIX}'",
            field=field_name,
            value=value,
        )


def validate_template_id(template_id: str) -> None:
    """
    template_id 유효성 검증.

    Raises:
        InvalidCacheKeyError: 빈 값, 길이 초과, 금지 문자, '@' 포함
    """
    _validate_key_part(template_id, "template_id")
    if CACHE_KEY_SEPARATOR in template_id:
        raise InvalidCacheKeyError(
            f"template_id cannot contain '{CACHE_KEY_SEPARATOR}'",
            field="template_id",
            value=template_id,
        )


def validate_version(version: str) -> None:
    """
    version 유효성 검증.

    semver 형식을 강제하지 않음 ("latest", "main" 등 허용).

    Raises:
        InvalidCacheKeyError
    """
    _validate_key_part(version, "version")


def make_cache_key(template_id: str, version: str) -> str:
    """
    캐시 키 생성 (검증 포함).

    Returns:
        "template_id@version"
    """
    validate_template_id(template_id)
    validate_version(version)
    return f"{template_id}{CACHE_KEY_SEPARATOR}{version}"


def parse_cache_key(key: str) -> tuple[str, str]:
    """
    캐시 키 → (template_id, version).

    template_id에는 '@'가 없으므로 첫 번째 구분자에서 분리.

    Raises:
        InvalidCacheKeyError
    """
    template_id, sep, version = key.partition(CACHE_KEY_SEPARATOR)
    if not sep:
        raise InvalidCacheKeyError(
            f"cache key must look like 'template_id{CACHE_KEY_SEPARATOR}version'",
            key=key,
        )
    validate_template_id(template_id)
    validate_version(version)
    return template_id, version

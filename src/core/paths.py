"""
소스 경로 검증.

set_cache_entry 진입 시 두 단계:
1. 형식 검증 (I/O 없음) → InvalidSourcePathError
2. 존재 검증 (락 획득 전) → SourceNotFoundError
"""

import os
from pathlib import Path

from src.domain.errors import InvalidSourcePathError, SourceNotFoundError

PATH_MAX_LENGTH = 4096
INVALID_PATH_CHARS = set('<>"|?*\x00')


def validate_source_path_syntax(source_path: str | os.PathLike[str]) -> Path:
    """
    소스 경로 형식 검증 (파일시스템 접근 없음).

    규칙:
    - 빈 값 금지
    - 금지 문자: < > " | ? * NUL
    - 중간 위치의 '..' 금지 (선두 '..'만 허용)
    - 최대 4096자

    Returns:
        Path 객체

    Raises:
        InvalidSourcePathError
    """
    if source_path is None:
        raise InvalidSourcePathError("source path is required")

    try:
        raw = os.fspath(source_path)
    except TypeError:
        raise InvalidSourcePathError(
            "source path must be a string or path-like object",
            type=type(source_path).__name__,
        ) from None

    if not isinstance(raw, str) or not raw.strip():
        raise InvalidSourcePathError("source path cannot be empty")

    if len(raw) > PATH_MAX_LENGTH:
        raise InvalidSourcePathError(
            f"source path exceeds {PATH_MAX_LENGTH} characters",
            length=len(raw),
        )

    found = set(raw) & INVALID_PATH_CHARS
    if found:
        raise InvalidSourcePathError(
            "source path contains invalid characters",
            path=raw,
            invalid=sorted(found),
        )

    # 선두의 ../ 는 상대 경로로 허용, 중간의 .. 는 traversal로 간주
    parts = raw.replace("\\", "/").split("/")
    leading = True
    for part in parts:
        if part == "..":
            if not leading:
                raise InvalidSourcePathError(
                    "source path contains unsafe directory traversal",
                    path=raw,
                )
        elif part not in ("", "."):
            leading = False

    return Path(raw)


def ensure_source_exists(path: Path) -> Path:
    """
    소스 경로 존재 확인.

    Returns:
        절대 경로

    Raises:
        SourceNotFoundError: 경로 없음
        InvalidSourcePathError: 존재하지만 디렉터리가 아님
    """
    if not path.exists():
        raise SourceNotFoundError(
            f"source path does not exist: {path}",
            path=str(path),
        )
    if not path.is_dir():
        raise InvalidSourcePathError(
            f"source path is not a directory: {path}",
            path=str(path),
        )
    return path.resolve()

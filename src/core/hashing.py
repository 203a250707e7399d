"""
해시 계산: 템플릿 트리 checksum, 크기

규칙:
- 파일시스템 순회 순서와 무관 → 상대 경로 정렬 후 계산
- 경로/내용 경계 충돌 방지 → "경로 NUL 크기 NUL 내용" 프레이밍
- SHA-256, hex
- 읽기 실패는 삼키지 않음 (OSError 전파)
"""

import hashlib
import os
from pathlib import Path

CHUNK_SIZE = 64 * 1024


def _raise(error: OSError) -> None:
    raise error


def iter_tree_files(root: Path) -> list[tuple[str, Path]]:
    """
    트리 안의 모든 파일 목록.

    Args:
        root: 트리 루트 디렉터리

    Returns:
        [(POSIX 상대 경로, 절대 경로)] - 상대 경로 기준 정렬

    Raises:
        OSError: 디렉터리 읽기 실패
    """
    files: list[tuple[str, Path]] = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
        base = Path(dirpath)
        for name in filenames:
            full = base / name
            if not full.is_file():
                continue  # 깨진 심볼릭 링크, 소켓 등
            files.append((full.relative_to(root).as_posix(), full))
    files.sort(key=lambda item: item[0])
    return files


def compute_tree_checksum(root: Path) -> str:
    """
    디렉터리 트리 checksum.

    (상대 경로, 내용) 쌍을 정렬된 순서로 해시.

    Args:
        root: 트리 루트 디렉터리

    Returns:
        SHA-256 해시 문자열
    """
    h = hashlib.sha256()
    for rel_path, full_path in iter_tree_files(root):
        size = full_path.stat().st_size
        h.update(rel_path.encode("utf-8"))
        h.update(b"\0")
        h.update(str(size).encode("ascii"))
        h.update(b"\0")
        with open(full_path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                h.update(chunk)
    return h.hexdigest()


def compute_tree_size(root: Path) -> int:
    """트리 전체 크기 (bytes)."""
    return sum(full.stat().st_size for _rel, full in iter_tree_files(root))

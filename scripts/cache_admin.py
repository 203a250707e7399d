#!/usr/bin/env python3
"""
cache_admin.py - 템플릿 캐시 관리 스크립트

default.yaml의 cache 섹션 설정으로 CacheManager를 만들어:
1. 통계/목록 조회
2. 템플릿 디렉터리 추가, 무결성 검사, 삭제
3. 전체 삭제 (보존 대상 지정), 만료/용량 기준 정리

사용법:
    # 통계
    python scripts/cache_admin.py stats

    # 목록 (JSON)
    python scripts/cache_admin.py --json list

    # 추가 / 검사 / 삭제
    python scripts/cache_admin.py add react-app 1.0.0 ./templates/react-app
    python scripts/cache_admin.py verify react-app@1.0.0
    python scripts/cache_admin.py delete react-app@1.0.0

    # 전체 삭제 (react-app 모든 버전 보존, 확인 생략)
    python scripts/cache_admin.py clear --preserve react-app --force

    # 정리 미리보기
    python scripts/cache_admin.py prune --dry-run --aggressive

    # cron 예시 (매일 새벽 3시)
    0 3 * * * cd /path/to/project && python scripts/cache_admin.py prune >> /var/log/cache_prune.log 2>&1
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from src.cache.config import CacheConfig, load_cache_config
from src.cache.manager import CacheManager
from src.core.humanize import format_bytes
from src.core.ids import parse_cache_key
from src.domain.errors import CacheError

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent


# =============================================================================
# Output
# =============================================================================

def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def print_stats(stats: dict[str, Any]) -> None:
    basic = stats["basic"]
    perf = stats["performance"]
    policies = stats["policies"]
    print("=" * 50)
    print(f"Cache directory : {basic['cache_dir']}")
    print(f"Entries         : {basic['total_entries']} / {policies['max_entries']}")
    print(
        f"Size            : {basic['total_size']} / {policies['max_size']} "
        f"({policies['size_utilization']}%)"
    )
    print(f"TTL             : {policies['ttl_millis'] // 1000}s")
    print(f"Hit rate        : {perf['hit_rate'] * 100:.1f}% ({perf['hits']} hits, {perf['misses']} misses)")
    print(f"LRU             : {stats['lru']['size']} / {stats['lru']['max_size']}")
    print("=" * 50)


def print_entries(entries: list[dict[str, Any]]) -> None:
    if not entries:
        print("Cache is empty")
        return
    for summary in entries:
        status = " (expired)" if summary["expired"] else ""
        print(
            f"{summary['key']:<40} {summary['size']:>10}  "
            f"cached {summary['age']}, {summary['access_count']} hits{status}"
        )


# =============================================================================
# Commands
# =============================================================================

async def cmd_stats(cache: CacheManager, args: argparse.Namespace) -> int:
    stats = await cache.get_cache_stats()
    if args.json:
        print_json(stats)
    else:
        print_stats(stats)
    return 0


async def cmd_list(cache: CacheManager, args: argparse.Namespace) -> int:
    stats = await cache.get_cache_stats()
    if args.json:
        print_json(stats["entries"])
    else:
        print_entries(stats["entries"])
    return 0


async def cmd_add(cache: CacheManager, args: argparse.Namespace) -> int:
    entry = await cache.set_cache_entry(args.template_id, args.version, args.source)
    if args.json:
        print_json(entry.to_dict())
    else:
        print(f"Cached {entry.key} ({format_bytes(entry.size_bytes)}) → {entry.cache_path}")
    return 0


async def cmd_verify(cache: CacheManager, args: argparse.Namespace) -> int:
    template_id, version = parse_cache_key(args.key)
    result = await cache.verify_integrity(template_id, version)
    if args.json:
        print_json(result.to_dict())
    elif result.valid:
        print(f"{result.key}: OK")
    else:
        print(f"{result.key}: FAILED ({result.reason})")
    return 0 if result.valid else 1


async def cmd_delete(cache: CacheManager, args: argparse.Namespace) -> int:
    template_id, version = parse_cache_key(args.key)
    await cache.remove_cache_entry(template_id, version)
    if args.json:
        print_json({"key": args.key, "removed": True})
    else:
        print(f"Removed {args.key}")
    return 0


async def cmd_clear(cache: CacheManager, args: argparse.Namespace) -> int:
    if not args.force:
        stats = await cache.get_cache_stats()
        preserved = f" (preserving {', '.join(args.preserve)})" if args.preserve else ""
        answer = input(
            f"Clear {stats['basic']['total_entries']} cache entries{preserved}? [y/N] "
        )
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 0

    result = await cache.clear_cache(preserve=args.preserve)
    if args.json:
        print_json(result.to_dict())
    else:
        print(
            f"Cleared {result.cleared_entries} of {result.total_entries} entries "
            f"({result.preserved_entries} preserved)"
        )
    return 0


async def cmd_prune(cache: CacheManager, args: argparse.Namespace) -> int:
    result = await cache.prune_cache(
        dry_run=args.dry_run,
        aggressive=args.aggressive,
        max_size=args.max_size,
    )
    if args.json:
        print_json(result.to_dict())
        return 0

    prefix = "[DRY-RUN] would remove" if result.dry_run else "Removed"
    for item in result.removed_entries:
        print(f"{prefix}: {item.key} ({item.reason}, {format_bytes(item.size_bytes)})")
    print(
        f"{prefix} {result.removed_count} entries, {format_bytes(result.freed_bytes)}; "
        f"{result.remaining_entries} remaining"
    )
    return 0


COMMANDS = {
    "stats": cmd_stats,
    "list": cmd_list,
    "add": cmd_add,
    "verify": cmd_verify,
    "delete": cmd_delete,
    "clear": cmd_clear,
    "prune": cmd_prune,
}


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="템플릿 캐시 관리 스크립트",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "default.yaml"),
        help="설정 파일 경로 (기본: default.yaml)",
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        help="캐시 디렉터리 (설정 파일보다 우선)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="JSON으로 출력",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="디버그 로그 출력",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="캐시 통계")
    subparsers.add_parser("list", help="캐시 엔트리 목록")

    add = subparsers.add_parser("add", help="템플릿 디렉터리를 캐시에 추가")
    add.add_argument("template_id")
    add.add_argument("version")
    add.add_argument("source", help="템플릿 디렉터리 경로")

    verify = subparsers.add_parser("verify", help="checksum 재계산 후 비교")
    verify.add_argument("key", help="template_id@version")

    delete = subparsers.add_parser("delete", help="캐시 엔트리 삭제")
    delete.add_argument("key", help="template_id@version")

    clear = subparsers.add_parser("clear", help="전체 삭제")
    clear.add_argument(
        "--preserve",
        action="append",
        default=[],
        help="보존할 키 또는 template_id (반복 지정 가능)",
    )
    clear.add_argument("--force", action="store_true", help="확인 없이 삭제")

    prune = subparsers.add_parser("prune", help="만료/무결성/용량 기준 정리")
    prune.add_argument("--dry-run", action="store_true", help="삭제 대상만 출력")
    prune.add_argument("--aggressive", action="store_true", help="손상/고아 엔트리도 삭제")
    prune.add_argument("--max-size", type=int, help="용량 한도 (bytes, 지정 시에만 용량 기준 적용)")

    return parser


def resolve_config(args: argparse.Namespace) -> CacheConfig:
    """설정 파일 + --cache-dir. 스크립트 실행 중에는 주기적 정리를 돌리지 않음."""
    config = load_cache_config(Path(args.config))
    if args.cache_dir:
        config = replace(config, cache_dir=Path(args.cache_dir))
    return replace(config, cleanup_interval_seconds=0)


async def run(args: argparse.Namespace) -> int:
    cache = CacheManager(resolve_config(args))
    try:
        return await COMMANDS[args.command](cache, args)
    finally:
        await cache.destroy()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        return asyncio.run(run(args))
    except CacheError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

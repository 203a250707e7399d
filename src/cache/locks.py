"""
Population Lock Registry: 키 단위 singleflight.

동작:
- 키별 in-flight future 하나
- 첫 호출자가 populate 실행 → 결과로 future 완료 → 레지스트리에서 제거
- 이후 호출자는 같은 future를 기다림 (중복 복사 없음)
- 실패 시 모든 대기자가 같은 에러를 받고, 키는 즉시 재시도 가능
- 대기자가 취소되어도 공유 populate는 취소되지 않음 (shield)

추가로 키별 entry lock + generation 번호:
- 메타데이터 쓰기(접근 기록, 교체, 삭제)를 키 단위로 직렬화
- 교체/삭제 이후에 도착한 오래된 접근 기록이 레코드를 되살리지 않도록 함
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PopulationLockRegistry(Generic[T]):
    """키 → in-flight populate 핸들."""

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[T]] = {}
        self._entry_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._generations: dict[str, int] = {}

    # =========================================================================
    # Singleflight
    # =========================================================================

    async def run(self, key: str, populate: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """
        populate 실행 또는 진행 중인 populate에 합류.

        Args:
            key: 캐시 키
            populate: 실제 populate 코루틴 팩토리 (첫 호출자만 실행)

        Returns:
            (결과, leader 여부) - leader는 populate를 직접 실행한 호출자

        Raises:
            populate가 발생시킨 예외 (합류한 호출자 포함)
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            logger.debug(f"Joining in-flight population for {key}")
            return await asyncio.shield(existing), False

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            result = await populate()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()  # 대기자가 없어도 "never retrieved" 경고 방지
            raise
        else:
            future.set_result(result)
            return result, True
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight_keys(self) -> set[str]:
        return set(self._in_flight)

    # =========================================================================
    # Entry Lock + Generation
    # =========================================================================

    @asynccontextmanager
    async def entry_lock(self, key: str) -> AsyncGenerator[None, None]:
        """
        키별 메타데이터 쓰기 락.

        짧은 구간(교체, 메타 쓰기, 삭제)에만 사용. 복사 중에는 잡지 않음.
        """
        lock = self._entry_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._entry_locks[key] = lock
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._entry_locks[key]

    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def bump_generation(self, key: str) -> int:
        """교체/삭제 시 호출 → 이전 세대의 접근 기록 무효화."""
        self._generations[key] = self._generations.get(key, 0) + 1
        return self._generations[key]

    def stats(self) -> dict[str, Any]:
        return {
            "in_flight": sorted(self._in_flight),
            "locked_keys": sorted(self._entry_locks),
        }

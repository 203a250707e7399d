"""
In-Memory LRU 레이어.

OrderedDict 기반: promote/evict 모두 O(1).
- 앞쪽 = 가장 오래 전에 사용, 뒤쪽 = 최근 사용
- 크기는 max_size를 넘지 않음 (0이면 비활성)
- 여기서의 eviction은 메모리 사본만 버림 (디스크는 건드리지 않음)
"""

from collections import OrderedDict
from collections.abc import Iterator
from typing import Generic, TypeVar

V = TypeVar("V")


class LRULayer(Generic[V]):
    """크기 제한이 있는 최근 사용 순서 맵."""

    def __init__(self, max_size: int) -> None:
        if max_size < 0:
            raise ValueError("max_size cannot be negative")
        self.max_size = max_size
        self._store: OrderedDict[str, V] = OrderedDict()

    def get(self, key: str) -> V | None:
        """조회 + 최근 사용으로 이동."""
        value = self._store.get(key)
        if value is None:
            return None
        self._store.move_to_end(key)
        return value

    def peek(self, key: str) -> V | None:
        """조회만 (순서 변경 없음)."""
        return self._store.get(key)

    def put(self, key: str, value: V) -> list[str]:
        """
        삽입/교체 후 최근 사용으로 이동.

        Returns:
            용량 초과로 밀려난 키 목록
        """
        if self.max_size == 0:
            return []

        self._store[key] = value
        self._store.move_to_end(key)

        evicted: list[str] = []
        while len(self._store) > self.max_size:
            old_key, _ = self._store.popitem(last=False)
            evicted.append(old_key)
        return evicted

    def remove(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        """오래된 것 → 최근 순."""
        return list(self._store.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store.keys()))

"""
잔고 키별 직렬화 락

같은 (entity, shareholder, type, series) 키에 대한
잔고 확인 → 행 추가 순서를 프로세스 내에서 직렬화.
다른 키끼리는 서로 기다리지 않는다.
"""

import asyncio
from collections.abc import Hashable
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """키별 asyncio.Lock 레지스트리

    참조 카운트로 대기자가 없는 키의 락은 즉시 제거하여
    키 수만큼 메모리가 쌓이지 않게 한다.

    사용 예시:
    ```python
    locks = KeyedLock()
    async with locks.hold(balance_key):
        ...
    ```
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: Hashable) -> bool:
        """키 락 점유 여부"""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """키 락 획득 컨텍스트"""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

"""
주주별 원장 조회 캐시

읽기 경로가 소유하는 TTL + 최대 개수 제한 캐시.
쓰기 성공 시 영향받은 주주 항목을 명시적으로 무효화.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from core.constants import Defaults
from core.ledger.models import LedgerEntry

logger = logging.getLogger(__name__)

CacheKey = tuple[int, int]


class BookEntryCache:
    """주주별 원장 행 캐시

    키: (entity_id, shareholder_id)
    값: (저장 시각, LedgerEntry 리스트)

    조회 시작 이후 무효화가 발생했다면 조회 결과를 저장하지 않는다
    (오래된 결과가 무효화 직후 다시 들어가는 것을 방지).

    Args:
        ttl_seconds: 항목 유효 시간 (초)
        max_entries: 최대 항목 수 (초과 시 가장 오래된 항목 제거)
        clock: 현재 시각(초) 함수 (테스트 주입용)

    사용 예시:
    ```python
    cache = BookEntryCache(ttl_seconds=30)
    entries = await cache.get_or_load(entity_id, shareholder_id, loader)
    cache.invalidate(entity_id, shareholder_id)
    ```
    """

    def __init__(
        self,
        ttl_seconds: int = Defaults.CACHE_TTL_SEC,
        max_entries: int = Defaults.CACHE_MAX_ENTRIES,
        clock: Callable[[], float] | None = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or (lambda: datetime.now(timezone.utc).timestamp())
        self._cache: dict[CacheKey, tuple[float, list[LedgerEntry]]] = {}
        self._generation = 0

    def __len__(self) -> int:
        return len(self._cache)

    @property
    def generation(self) -> int:
        """무효화 세대 번호 (무효화마다 증가)"""
        return self._generation

    def get(self, entity_id: int, shareholder_id: int) -> list[LedgerEntry] | None:
        """캐시 조회 (만료 시 제거 후 None)"""
        key = (entity_id, shareholder_id)
        if key not in self._cache:
            return None

        timestamp, entries = self._cache[key]
        now = self._clock()

        # TTL 확인
        if now - timestamp > self.ttl_seconds:
            del self._cache[key]
            return None

        return list(entries)

    def set(
        self,
        entity_id: int,
        shareholder_id: int,
        entries: list[LedgerEntry],
        generation: int | None = None,
    ) -> bool:
        """캐시 저장

        Args:
            generation: 조회 시작 시점의 세대 번호.
                그 사이 무효화가 있었으면 저장하지 않음.

        Returns:
            저장 여부
        """
        if generation is not None and generation != self._generation:
            return False

        key = (entity_id, shareholder_id)
        self._cache.pop(key, None)
        while self._cache and len(self._cache) >= self.max_entries:
            oldest = next(iter(self._cache))
            del self._cache[oldest]

        self._cache[key] = (self._clock(), list(entries))
        return True

    async def get_or_load(
        self,
        entity_id: int,
        shareholder_id: int,
        loader: Callable[[], Awaitable[list[LedgerEntry]]],
    ) -> list[LedgerEntry]:
        """캐시 조회, 없으면 loader 실행 후 저장"""
        cached = self.get(entity_id, shareholder_id)
        if cached is not None:
            logger.debug(f"Book entry cache hit: {entity_id}:{shareholder_id}")
            return cached

        generation = self._generation
        entries = await loader()
        self.set(entity_id, shareholder_id, entries, generation)
        return entries

    def invalidate(self, entity_id: int, shareholder_id: int) -> None:
        """특정 주주 항목 무효화"""
        self._generation += 1
        self._cache.pop((entity_id, shareholder_id), None)

    def invalidate_entity(self, entity_id: int) -> None:
        """Entity 전체 항목 무효화 (주주 이름 변경 등)"""
        self._generation += 1
        for key in [k for k in self._cache if k[0] == entity_id]:
            del self._cache[key]

    def clear(self) -> None:
        """캐시 초기화"""
        self._generation += 1
        self._cache.clear()
        logger.debug("Book entry cache cleared")

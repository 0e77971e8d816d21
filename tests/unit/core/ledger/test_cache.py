"""BookEntryCache 테스트"""

import pytest

from core.ledger.cache import BookEntryCache


class FakeClock:
    """수동으로 진행하는 시계"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> BookEntryCache:
    return BookEntryCache(ttl_seconds=30, max_entries=3, clock=clock)


class TestGetSet:
    """get / set 테스트"""

    def test_miss(self, cache: BookEntryCache) -> None:
        """없는 키"""
        assert cache.get(1, 1) is None

    def test_hit_returns_copy(self, cache: BookEntryCache) -> None:
        """저장 후 조회 (복사본 반환)"""
        entries = ["e1", "e2"]
        cache.set(1, 1, entries)

        result = cache.get(1, 1)
        result.append("e3")

        assert cache.get(1, 1) == ["e1", "e2"]

    def test_ttl_expiry(self, cache: BookEntryCache, clock: FakeClock) -> None:
        """TTL 만료 시 제거"""
        cache.set(1, 1, ["e"])

        clock.now += 30
        assert cache.get(1, 1) == ["e"]

        clock.now += 1
        assert cache.get(1, 1) is None
        assert len(cache) == 0

    def test_max_entries_evicts_oldest(self, cache: BookEntryCache) -> None:
        """최대 개수 초과 시 가장 오래된 항목 제거"""
        for shareholder_id in range(1, 5):
            cache.set(1, shareholder_id, [shareholder_id])

        assert len(cache) == 3
        assert cache.get(1, 1) is None
        assert cache.get(1, 4) == [4]

    def test_stale_generation_not_stored(self, cache: BookEntryCache) -> None:
        """조회 중 무효화가 있었으면 저장 안 함"""
        generation = cache.generation
        cache.invalidate(1, 1)

        stored = cache.set(1, 1, ["stale"], generation)

        assert stored is False
        assert cache.get(1, 1) is None


class TestInvalidate:
    """무효화 테스트"""

    def test_invalidate_one(self, cache: BookEntryCache) -> None:
        """특정 주주 무효화"""
        cache.set(1, 1, ["a"])
        cache.set(1, 2, ["b"])

        cache.invalidate(1, 1)

        assert cache.get(1, 1) is None
        assert cache.get(1, 2) == ["b"]

    def test_invalidate_entity(self, cache: BookEntryCache) -> None:
        """Entity 전체 무효화"""
        cache.set(1, 1, ["a"])
        cache.set(1, 2, ["b"])
        cache.set(2, 1, ["c"])

        cache.invalidate_entity(1)

        assert cache.get(1, 1) is None
        assert cache.get(1, 2) is None
        assert cache.get(2, 1) == ["c"]

    def test_clear(self, cache: BookEntryCache) -> None:
        """전체 초기화"""
        cache.set(1, 1, ["a"])
        before = cache.generation

        cache.clear()

        assert len(cache) == 0
        assert cache.generation == before + 1


class TestGetOrLoad:
    """get_or_load 테스트"""

    @pytest.mark.asyncio
    async def test_loads_once(self, cache: BookEntryCache) -> None:
        """두 번째 호출은 캐시 사용"""
        calls = 0

        async def loader() -> list:
            nonlocal calls
            calls += 1
            return ["row"]

        first = await cache.get_or_load(1, 1, loader)
        second = await cache.get_or_load(1, 1, loader)

        assert first == second == ["row"]
        assert calls == 1

    @pytest.mark.asyncio
    async def test_invalidated_during_load(self, cache: BookEntryCache) -> None:
        """로드 중 무효화되면 결과는 반환하되 저장 안 함"""

        async def loader() -> list:
            cache.invalidate(1, 1)
            return ["stale"]

        result = await cache.get_or_load(1, 1, loader)

        assert result == ["stale"]
        assert cache.get(1, 1) is None

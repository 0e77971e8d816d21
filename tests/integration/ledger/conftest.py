"""원장 통합 테스트 fixture"""

import tempfile
from dataclasses import dataclass
from pathlib import Path

import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.ledger.engine import BalanceEngine
from core.ledger.entities import EntityRegistry
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.taxonomy import StockTaxonomyRegistry


@dataclass
class SeededEntity:
    """COMMON + PREFERRED(A, B) 종류와 주주 3명이 있는 Entity"""

    entity_id: int
    common_id: int
    preferred_id: int
    series_a_id: int
    series_b_id: int
    alice: int
    bob: int
    carol: int


@pytest_asyncio.fixture
async def db() -> SQLiteAdapter:
    """테스트용 임시 DB (스키마 초기화 완료)"""
    with tempfile.TemporaryDirectory() as tmpdir:
        adapter = SQLiteAdapter(Path(tmpdir) / "test_ledger.db")
        await adapter.connect()
        await init_schema(adapter)
        yield adapter
        await adapter.close()


@pytest_asyncio.fixture
async def seeded(db: SQLiteAdapter) -> SeededEntity:
    entity = await EntityRegistry(db).create("Acme Corp")
    taxonomy = StockTaxonomyRegistry(db)
    common = await taxonomy.create_type(entity.id, "COMMON", "Common Stock")
    preferred = await taxonomy.create_type(
        entity.id, "PREFERRED", "Preferred Stock", supports_series=True
    )
    series_a = await taxonomy.create_series(entity.id, preferred.id, "A")
    series_b = await taxonomy.create_series(entity.id, preferred.id, "B")

    shareholders = ShareholderRegistry(db)
    alice = await shareholders.create(entity.id, "Alice Kim")
    bob = await shareholders.create(entity.id, "Bob Lee")
    carol = await shareholders.create(entity.id, "Carol Park", shareholder_type="CORPORATION")

    return SeededEntity(
        entity_id=entity.id,
        common_id=common.id,
        preferred_id=preferred.id,
        series_a_id=series_a.id,
        series_b_id=series_b.id,
        alice=alice.id,
        bob=bob.id,
        carol=carol.id,
    )


@pytest_asyncio.fixture
async def engine(db: SQLiteAdapter) -> BalanceEngine:
    return BalanceEngine(db, retry_delay_ms=0)

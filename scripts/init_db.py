"""
원장 DB 초기화

사용법:
    python -m scripts.init_db
    python -m scripts.init_db --db data/shareledger.db --seed-entity "Acme Corp"
"""

import argparse
import asyncio
import logging
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.ledger.entities import EntityRegistry
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.logging import setup_logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (
    "entities",
    "stock_types",
    "stock_series",
    "shareholders",
    "share_transactions",
)
REQUIRED_VIEWS = ("v_share_ledger",)
REQUIRED_TRIGGERS = ("trg_share_tx_no_update", "trg_share_tx_no_delete")

# 시드 Entity 기본 주식 종류: (코드, 표시명, 시리즈)
DEFAULT_STOCK_TYPES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("COMMON", "Common Stock", ()),
    ("PREFERRED", "Preferred Stock", ("A", "B")),
)


async def verify_schema(db: SQLiteAdapter) -> bool:
    """스키마 검증 (테이블 / 수량 컬럼 / View / 트리거)"""
    # 테이블 검증
    for table in REQUIRED_TABLES:
        if not await db.table_exists(table):
            logger.error(f"테이블 누락: {table}")
            return False
        logger.info(f"테이블 확인: {table} ✓")

    # 수량은 TEXT 저장 (Decimal 정밀도 유지)
    columns = {c["name"]: c for c in await db.get_table_info("share_transactions")}
    shares = columns.get("shares")
    if shares is None or shares["type"].upper() != "TEXT":
        logger.error("share_transactions.shares 컬럼이 TEXT가 아님")
        return False
    logger.info("컬럼 확인: share_transactions.shares TEXT ✓")

    # View / 트리거 검증
    for kind, names in (("view", REQUIRED_VIEWS), ("trigger", REQUIRED_TRIGGERS)):
        for name in names:
            row = await db.fetchone(
                "SELECT name FROM sqlite_master WHERE type = ? AND name = ?",
                (kind, name),
            )
            if not row:
                logger.error(f"{kind} 누락: {name}")
                return False
            logger.info(f"{kind} 확인: {name} ✓")

    return True


async def seed_entity(db: SQLiteAdapter, name: str) -> int:
    """Entity + 기본 주식 종류/시리즈 생성

    Returns:
        생성된 entity_id
    """
    entity = await EntityRegistry(db).create(name)
    taxonomy = StockTaxonomyRegistry(db)

    for code, display_name, series_labels in DEFAULT_STOCK_TYPES:
        stock_type = await taxonomy.create_type(
            entity.id,
            code=code,
            display_name=display_name,
            supports_series=bool(series_labels),
        )
        for label in series_labels:
            await taxonomy.create_series(entity.id, stock_type.id, label)

    logger.info(f"시드 Entity 생성: {entity.id} ({entity.name})")
    return entity.id


async def main(db_path: Path, seed_name: str | None) -> None:
    """DB 초기화 실행"""
    logger.info(f"DB 초기화 시작: {db_path}")

    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)

        if not await verify_schema(db):
            logger.error("스키마 검증 실패!")
            raise RuntimeError("스키마 검증 실패")

        if seed_name:
            await seed_entity(db, seed_name)

    logger.info("DB 초기화 완료 ✓")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="주식 원장 DB 초기화"
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="DB 파일 경로 (기본: settings.yaml의 database.path)",
    )
    parser.add_argument(
        "--seed-entity",
        metavar="NAME",
        default=None,
        help="Entity를 생성하고 COMMON / PREFERRED(Series A, B) 종류 등록",
    )
    args = parser.parse_args()

    setup_logging("cli")
    asyncio.run(main(args.db or get_settings().db_path, args.seed_entity))

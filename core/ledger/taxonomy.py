"""
주식 종류/시리즈 레지스트리

Entity별 주식 종류(COMMON, PREFERRED 등)와 시리즈(A, B 등) 카탈로그.
쓰기 경로는 validate_type_and_series()로 문자열을 숫자 ID로 변환한 뒤에만
원장에 접근한다.
"""

import logging
from typing import TYPE_CHECKING, Any

from core.ledger.errors import (
    InactiveStockType,
    NotFoundError,
    SeriesNotAllowed,
    SeriesRequired,
    TaxonomyConflictError,
    UnknownSeries,
    UnknownStockType,
)
from core.ledger.models import ResolvedStock, StockSeries, StockType

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def normalize_type_code(code: str | None) -> str:
    """주식 종류 코드 정규화 (공백 제거 + 대문자)"""
    return (code or "").strip().upper()


def normalize_series_label(label: str | None) -> str:
    """시리즈 라벨 정규화 (공백 제거, 대소문자는 DB collation으로 무시)"""
    return (label or "").strip()


class StockTaxonomyRegistry:
    """주식 종류/시리즈 레지스트리

    Args:
        db: SQLite 어댑터

    사용 예시:
    ```python
    taxonomy = StockTaxonomyRegistry(db)
    resolved = await taxonomy.validate_type_and_series(1, "PREFERRED", "A")
    resolved.stock_type_id, resolved.stock_series_id
    ```
    """

    def __init__(self, db: "SQLiteAdapter"):
        self.db = db

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def list_types(self, entity_id: int) -> list[StockType]:
        """Entity의 모든 주식 종류 (활성/비활성, 표시명순)"""
        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM stock_types
            WHERE entity_id = ?
            ORDER BY display_name, code, id
            """,
            (entity_id,),
        )
        return [StockType.from_row(row) for row in rows]

    async def get_type(self, entity_id: int, stock_type_id: int) -> StockType:
        """주식 종류 조회

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM stock_types WHERE id = ? AND entity_id = ?",
            (stock_type_id, entity_id),
        )
        if row is None:
            raise NotFoundError(f"Stock type not found: {stock_type_id}")
        return StockType.from_row(row)

    async def list_series(self, entity_id: int, stock_type_id: int) -> list[StockSeries]:
        """주식 종류의 모든 시리즈 (라벨순)

        Raises:
            NotFoundError: 주식 종류가 호출자 Entity에 속하지 않음
        """
        await self.get_type(entity_id, stock_type_id)

        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM stock_series
            WHERE stock_type_id = ?
            ORDER BY label, id
            """,
            (stock_type_id,),
        )
        return [StockSeries.from_row(row) for row in rows]

    async def get_series(self, entity_id: int, series_id: int) -> StockSeries:
        """시리즈 조회 (상위 종류의 Entity 확인)

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
        """
        row = await self.db.fetchone_dict(
            """
            SELECT ss.* FROM stock_series ss
            JOIN stock_types st ON st.id = ss.stock_type_id
            WHERE ss.id = ? AND st.entity_id = ?
            """,
            (series_id, entity_id),
        )
        if row is None:
            raise NotFoundError(f"Stock series not found: {series_id}")
        return StockSeries.from_row(row)

    async def validate_type_and_series(
        self,
        entity_id: int,
        type_code: str,
        series_label: str | None = None,
    ) -> ResolvedStock:
        """주식 종류/시리즈 검증 후 숫자 ID 반환

        검증 순서:
            1. 활성 종류 존재 (UnknownStockType / InactiveStockType)
            2. 시리즈 지원 종류인데 라벨 없음 (SeriesRequired)
            3. 시리즈 미지원 종류인데 라벨 있음 (SeriesNotAllowed)
            4. 활성 시리즈 존재 (UnknownSeries)

        Returns:
            ResolvedStock (stock_type_id, stock_series_id)
        """
        code = normalize_type_code(type_code)
        label = normalize_series_label(series_label)

        if not code:
            raise UnknownStockType("Stock type code is required")

        row = await self.db.fetchone_dict(
            "SELECT * FROM stock_types WHERE entity_id = ? AND code = ?",
            (entity_id, code),
        )
        if row is None:
            raise UnknownStockType(f"Unknown stock type: {code}")

        stock_type = StockType.from_row(row)
        if not stock_type.is_active:
            raise InactiveStockType(f"Stock type is inactive: {code}")

        if stock_type.supports_series:
            if not label:
                raise SeriesRequired(f"Series is required for stock type {code}")
        elif label:
            raise SeriesNotAllowed(f"Stock type {code} does not support series")
        else:
            return ResolvedStock(
                stock_type_id=stock_type.id,
                stock_series_id=None,
                type_code=stock_type.code,
            )

        # label 컬럼은 COLLATE NOCASE
        series_row = await self.db.fetchone_dict(
            """
            SELECT * FROM stock_series
            WHERE stock_type_id = ? AND label = ? AND is_active = 1
            """,
            (stock_type.id, label),
        )
        if series_row is None:
            raise UnknownSeries(f"Unknown series {label!r} for stock type {code}")

        return ResolvedStock(
            stock_type_id=stock_type.id,
            stock_series_id=series_row["id"],
            type_code=stock_type.code,
            series_label=series_row["label"],
        )

    # -------------------------------------------------------------------------
    # 관리
    # -------------------------------------------------------------------------

    async def create_type(
        self,
        entity_id: int,
        code: str,
        display_name: str,
        supports_series: bool = False,
    ) -> StockType:
        """주식 종류 생성

        Raises:
            ValueError: 코드/표시명 누락
            NotFoundError: Entity 없음
            TaxonomyConflictError: 같은 코드 존재
        """
        code = normalize_type_code(code)
        display_name = (display_name or "").strip()
        if not code or not display_name:
            raise ValueError("Stock type code and display name are required")

        async with self.db.transaction():
            entity = await self.db.fetchone(
                "SELECT id FROM entities WHERE id = ?",
                (entity_id,),
            )
            if entity is None:
                raise NotFoundError(f"Entity not found: {entity_id}")

            existing = await self.db.fetchone(
                "SELECT id FROM stock_types WHERE entity_id = ? AND code = ?",
                (entity_id, code),
            )
            if existing is not None:
                raise TaxonomyConflictError(f"Stock type already exists: {code}")

            cursor = await self.db.execute(
                """
                INSERT INTO stock_types (entity_id, code, display_name, supports_series)
                VALUES (?, ?, ?, ?)
                """,
                (entity_id, code, display_name, 1 if supports_series else 0),
            )
            stock_type_id = cursor.lastrowid

        logger.info(
            f"Stock type created: {code}",
            extra={"entity_id": entity_id, "stock_type_id": stock_type_id},
        )
        return await self.get_type(entity_id, stock_type_id)

    async def update_type(
        self,
        entity_id: int,
        stock_type_id: int,
        display_name: str | None = None,
        supports_series: bool | None = None,
        is_active: bool | None = None,
    ) -> StockType:
        """주식 종류 수정

        원장 행이 있는 종류의 supports_series 변경은 거부
        (기존 행의 series 일관성이 깨짐).

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
            TaxonomyConflictError: supports_series 변경 불가
        """
        updates: dict[str, Any] = {}
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise ValueError("Display name must not be empty")
            updates["display_name"] = display_name
        if is_active is not None:
            updates["is_active"] = 1 if is_active else 0

        async with self.db.transaction():
            current = await self.get_type(entity_id, stock_type_id)

            if supports_series is not None and supports_series != current.supports_series:
                used = await self.db.fetchone(
                    "SELECT 1 FROM share_transactions WHERE stock_type_id = ? LIMIT 1",
                    (stock_type_id,),
                )
                if used is not None:
                    raise TaxonomyConflictError(
                        f"Cannot change series support of {current.code}: "
                        "ledger rows exist"
                    )
                updates["supports_series"] = 1 if supports_series else 0

            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                await self.db.execute(
                    f"UPDATE stock_types SET {assignments} WHERE id = ?",
                    (*updates.values(), stock_type_id),
                )

        logger.info(
            f"Stock type updated: {stock_type_id}",
            extra={"entity_id": entity_id, "fields": sorted(updates)},
        )
        return await self.get_type(entity_id, stock_type_id)

    async def create_series(
        self,
        entity_id: int,
        stock_type_id: int,
        label: str,
    ) -> StockSeries:
        """시리즈 생성

        Raises:
            NotFoundError: 주식 종류 없음
            SeriesNotAllowed: 시리즈 미지원 종류
            TaxonomyConflictError: 같은 라벨 존재 (대소문자 무시)
        """
        label = normalize_series_label(label)
        if not label:
            raise ValueError("Series label is required")

        async with self.db.transaction():
            stock_type = await self.get_type(entity_id, stock_type_id)
            if not stock_type.supports_series:
                raise SeriesNotAllowed(
                    f"Stock type {stock_type.code} does not support series"
                )

            existing = await self.db.fetchone(
                "SELECT id FROM stock_series WHERE stock_type_id = ? AND label = ?",
                (stock_type_id, label),
            )
            if existing is not None:
                raise TaxonomyConflictError(
                    f"Series {label!r} already exists for {stock_type.code}"
                )

            cursor = await self.db.execute(
                "INSERT INTO stock_series (stock_type_id, label) VALUES (?, ?)",
                (stock_type_id, label),
            )
            series_id = cursor.lastrowid

        logger.info(
            f"Stock series created: {stock_type.code} {label}",
            extra={"entity_id": entity_id, "stock_series_id": series_id},
        )
        return await self.get_series(entity_id, series_id)

    async def set_series_active(
        self,
        entity_id: int,
        series_id: int,
        active: bool,
    ) -> StockSeries:
        """시리즈 활성 상태 변경"""
        async with self.db.transaction():
            await self.get_series(entity_id, series_id)
            await self.db.execute(
                "UPDATE stock_series SET is_active = ? WHERE id = ?",
                (1 if active else 0, series_id),
            )

        logger.info(f"Stock series {series_id} active={active}")
        return await self.get_series(entity_id, series_id)

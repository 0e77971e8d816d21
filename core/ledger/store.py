"""
Transaction Log 저장소

부호 있는 주식 이동 행(share_transactions)의 추가 및 조회.
행은 추가만 가능하며 수정/삭제는 DB 트리거가 거부한다.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal, localcontext
from typing import TYPE_CHECKING, Any

from core.ledger.models import (
    Holding,
    LedgerEntry,
    ResolvedStock,
    ShareTransaction,
    TransactionMeta,
)
from core.ledger.query import TransactionFilter
from core.ledger.types import LEDGER_CONTEXT, BalanceKey, TransactionType, format_quantity

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TransactionLog:
    """Transaction Log 저장소

    잔고는 저장하지 않고 항상 원장 행을 (transaction_date, id) 순으로
    합산하여 계산한다.

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def append(
        self,
        entity_id: int,
        shareholder_id: int,
        transaction_type: TransactionType,
        stock: ResolvedStock,
        shares: Decimal,
        transaction_date: date,
        meta: TransactionMeta | None = None,
        created_by: str | None = None,
        from_shareholder_id: int | None = None,
        to_shareholder_id: int | None = None,
    ) -> ShareTransaction:
        """원장 행 추가

        호출자가 연 트랜잭션 안에서 실행해야 한다 (커밋하지 않음).

        Args:
            shares: 부호 있는 수량 (증가 +, 감소 -)

        Returns:
            서버가 부여한 id/created_at이 포함된 행
        """
        meta = meta or TransactionMeta()
        created_at = datetime.now(timezone.utc).isoformat()

        cursor = await self.db.execute(
            """
            INSERT INTO share_transactions (
                entity_id, shareholder_id, transaction_type,
                stock_type_id, stock_series_id, shares, transaction_date,
                certificate_number, from_shareholder_id, to_shareholder_id,
                notes, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entity_id,
                shareholder_id,
                TransactionType(transaction_type).value,
                stock.stock_type_id,
                stock.stock_series_id,
                format_quantity(shares),
                transaction_date.isoformat(),
                meta.certificate_number,
                from_shareholder_id,
                to_shareholder_id,
                meta.notes,
                created_by,
                created_at,
            ),
        )

        row = await self.db.fetchone_dict(
            "SELECT * FROM share_transactions WHERE id = ?",
            (cursor.lastrowid,),
        )
        return ShareTransaction.from_row(row)

    # -------------------------------------------------------------------------
    # 잔고
    # -------------------------------------------------------------------------

    async def _key_rows(self, key: BalanceKey) -> list[tuple[str, str]]:
        """잔고 키의 (거래일, 수량) 행 (replay 순서)"""
        return await self.db.fetchall(
            """
            SELECT transaction_date, shares FROM share_transactions
            WHERE entity_id = ? AND shareholder_id = ?
              AND stock_type_id = ? AND stock_series_id IS ?
            ORDER BY transaction_date, id
            """,
            (key.entity_id, key.shareholder_id, key.stock_type_id, key.stock_series_id),
        )

    async def balance(self, key: BalanceKey, as_of: date | None = None) -> Decimal:
        """잔고 = 키에 해당하는 수량 합계

        Args:
            as_of: 지정 시 해당 일자까지의 행만 합산
        """
        rows = await self._key_rows(key)
        limit = as_of.isoformat() if as_of is not None else None

        total = ZERO
        with localcontext(LEDGER_CONTEXT):
            for tx_date, shares in rows:
                if limit is not None and tx_date > limit:
                    break
                total += Decimal(str(shares))
        return total

    async def available_balance(self, key: BalanceKey, as_of_date: date) -> Decimal:
        """as_of_date 일자로 차감 가능한 최대 수량

        새 행은 같은 날짜 행들 뒤에 들어가므로 삽입 지점의 누적 잔고와
        그 이후 모든 누적 잔고 중 최솟값. 오늘 이후 날짜면 현재 잔고와 같다.
        """
        rows = await self._key_rows(key)
        limit = as_of_date.isoformat()

        running = ZERO
        at_point = ZERO
        later_min: Decimal | None = None

        with localcontext(LEDGER_CONTEXT):
            for tx_date, shares in rows:
                running += Decimal(str(shares))
                if tx_date <= limit:
                    at_point = running
                elif later_min is None or running < later_min:
                    later_min = running

        if later_min is None:
            return at_point
        return min(at_point, later_min)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def list_entries(
        self,
        query: TransactionFilter,
        newest_first: bool = True,
    ) -> list[LedgerEntry]:
        """원장 조회 (이름/라벨 조인 포함)"""
        sql, params = query.compile(newest_first=newest_first)
        rows = await self.db.fetchall_dict(sql, params)
        return [LedgerEntry.from_row(row) for row in rows]

    async def count_entries(self, query: TransactionFilter) -> int:
        """조건에 맞는 원장 행 수"""
        sql, params = query.compile_count()
        row = await self.db.fetchone(sql, params)
        return int(row[0]) if row else 0

    async def position_rows(
        self,
        entity_id: int,
        as_of: date | None = None,
    ) -> list[dict[str, Any]]:
        """Entity 전체 원장 행 (리포트 집계용, replay 순서)"""
        sql = """
            SELECT id, shareholder_id, transaction_type, stock_type_id,
                   stock_series_id, shares, transaction_date
            FROM share_transactions
            WHERE entity_id = ?
        """
        params: tuple[Any, ...] = (entity_id,)
        if as_of is not None:
            sql += " AND transaction_date <= ?"
            params = (entity_id, as_of.isoformat())
        sql += " ORDER BY transaction_date, id"

        return await self.db.fetchall_dict(sql, params)

    async def holdings(
        self,
        entity_id: int,
        shareholder_id: int,
        as_of: date | None = None,
    ) -> list[Holding]:
        """주주의 (종류, 시리즈)별 양수 잔고 목록

        종류 표시명, 시리즈 라벨 순으로 정렬.
        """
        sql = """
            SELECT t.stock_type_id, t.stock_series_id, t.shares,
                   st.code, st.display_name, st.supports_series, ss.label
            FROM share_transactions t
            JOIN stock_types st ON st.id = t.stock_type_id
            LEFT JOIN stock_series ss ON ss.id = t.stock_series_id
            WHERE t.entity_id = ? AND t.shareholder_id = ?
        """
        params: tuple[Any, ...] = (entity_id, shareholder_id)
        if as_of is not None:
            sql += " AND t.transaction_date <= ?"
            params = (*params, as_of.isoformat())

        rows = await self.db.fetchall_dict(sql, params)

        totals: dict[tuple[int, int | None], Decimal] = defaultdict(lambda: ZERO)
        labels: dict[tuple[int, int | None], dict[str, Any]] = {}
        with localcontext(LEDGER_CONTEXT):
            for row in rows:
                key = (row["stock_type_id"], row["stock_series_id"])
                totals[key] += Decimal(str(row["shares"]))
                labels[key] = row

        holdings = [
            Holding(
                stock_type_id=key[0],
                stock_type_code=labels[key]["code"],
                stock_type_name=labels[key]["display_name"],
                supports_series=bool(labels[key]["supports_series"]),
                stock_series_id=key[1],
                series_label=labels[key]["label"],
                shares=total,
            )
            for key, total in totals.items()
            if total > ZERO
        ]
        holdings.sort(key=lambda h: (
            h.stock_type_name,
            h.stock_type_code,
            (h.series_label or "").upper(),
        ))
        return holdings

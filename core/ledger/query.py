"""
원장 조회 필터

고정된 선택 조건 집합을 파라미터 바인딩 WHERE 절로 컴파일.
문자열 이어붙이기로 값을 넣지 않는다 (컬럼명은 고정 매핑).
"""

from dataclasses import dataclass
from datetime import date
from typing import Any

from core.ledger.types import TransactionType


@dataclass(frozen=True)
class TransactionFilter:
    """원장 조회 조건

    v_share_ledger View 기준 컬럼에 대해 컴파일.

    Attributes:
        entity_id: 대상 Entity (필수)
        shareholder_id: 원장 행 소유 주주
        stock_type_code: 주식 종류 코드
        series_label: 시리즈 라벨 (대소문자 무시)
        transaction_type: 거래 유형
        start_date: 거래일 하한 (포함)
        end_date: 거래일 상한 (포함)
        limit: 최대 행 수
        offset: 시작 위치
    """

    entity_id: int
    shareholder_id: int | None = None
    stock_type_code: str | None = None
    series_label: str | None = None
    transaction_type: TransactionType | None = None
    start_date: date | None = None
    end_date: date | None = None
    limit: int | None = None
    offset: int = 0

    def where(self) -> tuple[str, tuple[Any, ...]]:
        """WHERE 절 + 바인딩 파라미터

        Returns:
            ("entity_id = ? AND ...", (값, ...))
        """
        clauses: list[str] = ["entity_id = ?"]
        params: list[Any] = [self.entity_id]

        if self.shareholder_id is not None:
            clauses.append("shareholder_id = ?")
            params.append(self.shareholder_id)

        if self.stock_type_code:
            clauses.append("stock_type_code = ?")
            params.append(self.stock_type_code.strip().upper())

        if self.series_label:
            clauses.append("series_label = ? COLLATE NOCASE")
            params.append(self.series_label.strip())

        if self.transaction_type is not None:
            clauses.append("transaction_type = ?")
            params.append(TransactionType(self.transaction_type).value)

        if self.start_date is not None:
            clauses.append("transaction_date >= ?")
            params.append(self.start_date.isoformat())

        if self.end_date is not None:
            clauses.append("transaction_date <= ?")
            params.append(self.end_date.isoformat())

        return " AND ".join(clauses), tuple(params)

    def compile(
        self,
        newest_first: bool = True,
    ) -> tuple[str, tuple[Any, ...]]:
        """전체 SELECT 문 컴파일

        Args:
            newest_first: True면 (거래일, id) 내림차순, False면 replay 순서

        Returns:
            (SQL, 파라미터)
        """
        where_sql, params = self.where()
        direction = "DESC" if newest_first else "ASC"

        sql = (
            "SELECT * FROM v_share_ledger "
            f"WHERE {where_sql} "
            f"ORDER BY transaction_date {direction}, id {direction}"
        )

        if self.limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + (int(self.limit), int(self.offset))

        return sql, params

    def compile_count(self) -> tuple[str, tuple[Any, ...]]:
        """COUNT 쿼리 컴파일 (페이지네이션 총 개수)"""
        where_sql, params = self.where()
        return f"SELECT COUNT(*) FROM v_share_ledger WHERE {where_sql}", params

"""
Ownership Aggregator

원장을 주주 × (종류, 시리즈) 격자로 투영하는 읽기 전용 리포트.
동일한 원장 스냅샷이면 항상 같은 결과 (생성 시각 등 가변 값 없음).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, localcontext
from typing import TYPE_CHECKING, Any

from core.constants import Defaults
from core.ledger.entities import EntityRegistry
from core.ledger.models import Entity, ShareholderStatement
from core.ledger.query import TransactionFilter
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.store import ZERO, TransactionLog
from core.ledger.taxonomy import normalize_series_label, normalize_type_code
from core.ledger.types import (
    LEDGER_CONTEXT,
    HoldingStatus,
    TransactionType,
    format_quantity,
    stock_type_sort_key,
    sum_quantities,
)

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

PERCENT_PLACES = Decimal("0.0001")
HUNDRED = Decimal("100")

ColumnId = tuple[int, int | None]


def _percent(ratio: Decimal) -> str:
    """비율 → 백분율 문자열 (표시 시점에만 반올림)"""
    return str((ratio * HUNDRED).quantize(PERCENT_PLACES))


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# 리포트 모델
# =============================================================================


@dataclass(frozen=True)
class ReportFilters:
    """Ownership 리포트 필터 (모두 선택)"""

    stock_type_code: str | None = None
    series_label: str | None = None
    status: HoldingStatus | None = None
    as_of: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stock_type_code": self.stock_type_code,
            "series_label": self.series_label,
            "status": self.status.value if self.status else None,
            "as_of": _iso(self.as_of),
        }


@dataclass(frozen=True)
class OwnershipColumn:
    """리포트 컬럼 = 시리즈 미지원 종류 1개 또는 (종류, 시리즈) 1쌍"""

    stock_type_id: int
    stock_series_id: int | None
    type_code: str
    type_name: str
    series_label: str | None = None

    @property
    def key(self) -> str:
        """컬럼 키 (COMMON, PREFERRED:A)"""
        if self.series_label is None:
            return self.type_code
        return f"{self.type_code}:{self.series_label}"

    @property
    def header(self) -> str:
        if self.series_label is None:
            return self.type_name
        return f"{self.type_name} - Series {self.series_label}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "header": self.header,
            "stock_type_id": self.stock_type_id,
            "stock_series_id": self.stock_series_id,
            "type_code": self.type_code,
            "type_name": self.type_name,
            "series_label": self.series_label,
        }


@dataclass
class OwnershipRow:
    """주주 1명의 컬럼별 잔고"""

    shareholder_id: int
    external_id: str | None
    full_name: str
    shareholder_type: str
    is_active: bool
    balances: dict[str, Decimal]
    total_shares: Decimal = ZERO
    ownership_ratio: Decimal = ZERO
    first_issue_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "shareholder_id": self.shareholder_id,
            "external_id": self.external_id,
            "full_name": self.full_name,
            "shareholder_type": self.shareholder_type,
            "is_active": self.is_active,
            "balances": {key: format_quantity(value) for key, value in self.balances.items()},
            "total_shares": format_quantity(self.total_shares),
            "percentage": _percent(self.ownership_ratio),
            "first_issue_date": _iso(self.first_issue_date),
        }


@dataclass
class OwnershipReport:
    """Ownership 리포트

    불변식: grand_total == Σ column_totals == Σ rows.total_shares
    """

    entity_id: int
    filters: ReportFilters
    columns: list[OwnershipColumn] = field(default_factory=list)
    rows: list[OwnershipRow] = field(default_factory=list)
    column_totals: dict[str, Decimal] = field(default_factory=dict)
    grand_total: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "filters": self.filters.to_dict(),
            "columns": [column.to_dict() for column in self.columns],
            "shareholders": [row.to_dict() for row in self.rows],
            "column_totals": {
                key: format_quantity(value) for key, value in self.column_totals.items()
            },
            "grand_total": format_quantity(self.grand_total),
        }


@dataclass(frozen=True)
class CapitalStockLine:
    """컬럼별 발행 현황"""

    column: OwnershipColumn
    shares_outstanding: Decimal
    holder_count: int
    first_issue_date: date | None
    last_issue_date: date | None

    def to_dict(self) -> dict[str, Any]:
        data = self.column.to_dict()
        data.update({
            "shares_outstanding": format_quantity(self.shares_outstanding),
            "holder_count": self.holder_count,
            "first_issue_date": _iso(self.first_issue_date),
            "last_issue_date": _iso(self.last_issue_date),
        })
        return data


@dataclass(frozen=True)
class TopPosition:
    """상위 보유 포지션 (주주, 컬럼)"""

    shareholder_id: int
    full_name: str
    shareholder_type: str
    column: OwnershipColumn
    shares: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "shareholder_id": self.shareholder_id,
            "full_name": self.full_name,
            "shareholder_type": self.shareholder_type,
            "column": self.column.key,
            "type_code": self.column.type_code,
            "series_label": self.column.series_label,
            "shares": format_quantity(self.shares),
        }


@dataclass
class CapitalStockReport:
    """Capital Stock 리포트"""

    entity: Entity
    as_of: date | None
    lines: list[CapitalStockLine] = field(default_factory=list)
    top_positions: list[TopPosition] = field(default_factory=list)

    @property
    def total_outstanding(self) -> Decimal:
        return sum_quantities(line.shares_outstanding for line in self.lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.to_dict(),
            "as_of": _iso(self.as_of),
            "lines": [line.to_dict() for line in self.lines],
            "total_outstanding": format_quantity(self.total_outstanding),
            "top_positions": [p.to_dict() for p in self.top_positions],
        }


# =============================================================================
# Aggregator
# =============================================================================


class OwnershipAggregator:
    """Ownership Aggregator

    원장을 변경하지 않는 읽기 경로.

    Args:
        db: SQLite 어댑터 (읽기 전용 가능)
    """

    def __init__(self, db: "SQLiteAdapter"):
        self.db = db
        self.log = TransactionLog(db)
        self.shareholders = ShareholderRegistry(db)
        self.entities = EntityRegistry(db)

    async def load_columns(
        self,
        entity_id: int,
        stock_type_code: str | None = None,
        series_label: str | None = None,
    ) -> list[OwnershipColumn]:
        """활성 종류/시리즈로 컬럼 목록 구성

        정렬: COMMON, PREFERRED, WARRANT 우선 → 나머지 코드 알파벳순
              → 종류 내 시리즈 라벨 알파벳순
        """
        rows = await self.db.fetchall_dict(
            """
            SELECT st.id AS stock_type_id, st.code, st.display_name,
                   st.supports_series, ss.id AS stock_series_id, ss.label
            FROM stock_types st
            LEFT JOIN stock_series ss
                ON ss.stock_type_id = st.id AND ss.is_active = 1
            WHERE st.entity_id = ? AND st.is_active = 1
            """,
            (entity_id,),
        )

        code_filter = normalize_type_code(stock_type_code)
        label_filter = normalize_series_label(series_label).upper()

        columns: list[OwnershipColumn] = []
        for row in rows:
            if code_filter and row["code"] != code_filter:
                continue

            if row["supports_series"]:
                # 활성 시리즈가 없는 종류는 컬럼 없음
                if row["stock_series_id"] is None:
                    continue
                if label_filter and row["label"].upper() != label_filter:
                    continue
                columns.append(OwnershipColumn(
                    stock_type_id=row["stock_type_id"],
                    stock_series_id=row["stock_series_id"],
                    type_code=row["code"],
                    type_name=row["display_name"],
                    series_label=row["label"],
                ))
            else:
                if label_filter:
                    continue
                columns.append(OwnershipColumn(
                    stock_type_id=row["stock_type_id"],
                    stock_series_id=None,
                    type_code=row["code"],
                    type_name=row["display_name"],
                ))

        columns.sort(key=lambda c: (
            stock_type_sort_key(c.type_code),
            c.stock_type_id,
            (c.series_label or "").upper(),
            c.series_label or "",
        ))
        return columns

    async def _fold_positions(
        self,
        entity_id: int,
        as_of: date | None,
    ) -> tuple[dict[tuple[int, ColumnId], Decimal], list[dict[str, Any]]]:
        """원장 행 → (주주, 컬럼)별 잔고"""
        rows = await self.log.position_rows(entity_id, as_of)

        balances: dict[tuple[int, ColumnId], Decimal] = defaultdict(lambda: ZERO)
        with localcontext(LEDGER_CONTEXT):
            for row in rows:
                column_id = (row["stock_type_id"], row["stock_series_id"])
                balances[(row["shareholder_id"], column_id)] += Decimal(str(row["shares"]))
        return balances, rows

    async def build_ownership_report(
        self,
        entity_id: int,
        filters: ReportFilters | None = None,
    ) -> OwnershipReport:
        """Ownership 리포트 생성

        1. 활성 종류/시리즈로 컬럼 구성
        2. Entity의 모든 주주에 대해 컬럼별 잔고 계산
        3. status 필터 (ACTIVE: 합계 > 0, INACTIVE: 합계 == 0)
        4. 컬럼 합계, 총합계, 지분율 (총합계 0이면 0)

        데이터가 없으면 빈 리포트 (오류 없음).
        """
        filters = filters or ReportFilters()
        columns = await self.load_columns(
            entity_id, filters.stock_type_code, filters.series_label
        )
        shareholders = await self.shareholders.list_shareholders(
            entity_id, include_inactive=True
        )
        balances, position_rows = await self._fold_positions(entity_id, filters.as_of)

        first_issue: dict[int, date] = {}
        for row in position_rows:
            if row["transaction_type"] == TransactionType.ISSUANCE.value:
                first_issue.setdefault(
                    row["shareholder_id"], date.fromisoformat(row["transaction_date"])
                )

        report_rows: list[OwnershipRow] = []
        for shareholder in shareholders:
            row_balances = {
                column.key: balances.get(
                    (shareholder.id, (column.stock_type_id, column.stock_series_id)),
                    ZERO,
                )
                for column in columns
            }
            total = sum_quantities(row_balances.values())

            if filters.status == HoldingStatus.ACTIVE and total <= ZERO:
                continue
            if filters.status == HoldingStatus.INACTIVE and total != ZERO:
                continue

            report_rows.append(OwnershipRow(
                shareholder_id=shareholder.id,
                external_id=shareholder.external_id,
                full_name=shareholder.full_name,
                shareholder_type=shareholder.shareholder_type,
                is_active=shareholder.is_active,
                balances=row_balances,
                total_shares=total,
                first_issue_date=first_issue.get(shareholder.id),
            ))

        column_totals = {
            column.key: sum_quantities(r.balances[column.key] for r in report_rows)
            for column in columns
        }
        grand_total = sum_quantities(r.total_shares for r in report_rows)

        for report_row in report_rows:
            if grand_total != ZERO:
                report_row.ownership_ratio = report_row.total_shares / grand_total

        logger.debug(
            f"Ownership report built: entity={entity_id} "
            f"columns={len(columns)} rows={len(report_rows)} total={grand_total}"
        )

        return OwnershipReport(
            entity_id=entity_id,
            filters=filters,
            columns=columns,
            rows=report_rows,
            column_totals=column_totals,
            grand_total=grand_total,
        )

    async def build_capital_stock_report(
        self,
        entity_id: int,
        as_of: date | None = None,
        top_n: int = Defaults.TOP_SHAREHOLDERS,
    ) -> CapitalStockReport:
        """Capital Stock 리포트

        컬럼별 발행 주식 수, 보유 주주 수, 최초/최종 발행일과
        상위 top_n 보유 포지션 (수량 내림차순, 동률은 이름 → id).
        발행 주식이 0인 컬럼은 제외.

        Raises:
            NotFoundError: Entity 없음
        """
        entity = await self.entities.get(entity_id)
        columns = await self.load_columns(entity_id)
        shareholders = {
            s.id: s
            for s in await self.shareholders.list_shareholders(entity_id, include_inactive=True)
        }
        balances, position_rows = await self._fold_positions(entity_id, as_of)

        issue_dates: dict[ColumnId, list[date]] = defaultdict(list)
        for row in position_rows:
            if row["transaction_type"] == TransactionType.ISSUANCE.value:
                column_id = (row["stock_type_id"], row["stock_series_id"])
                issue_dates[column_id].append(date.fromisoformat(row["transaction_date"]))

        lines: list[CapitalStockLine] = []
        positions: list[TopPosition] = []
        for column in columns:
            column_id = (column.stock_type_id, column.stock_series_id)
            holders = [
                (shareholder_id, shares)
                for (shareholder_id, cid), shares in balances.items()
                if cid == column_id and shares > ZERO
            ]
            outstanding = sum_quantities(shares for _, shares in holders)
            if outstanding <= ZERO:
                continue

            dates = issue_dates.get(column_id, [])
            lines.append(CapitalStockLine(
                column=column,
                shares_outstanding=outstanding,
                holder_count=len(holders),
                first_issue_date=min(dates) if dates else None,
                last_issue_date=max(dates) if dates else None,
            ))

            for shareholder_id, shares in holders:
                shareholder = shareholders[shareholder_id]
                positions.append(TopPosition(
                    shareholder_id=shareholder_id,
                    full_name=shareholder.full_name,
                    shareholder_type=shareholder.shareholder_type,
                    column=column,
                    shares=shares,
                ))

        positions.sort(key=lambda p: (-p.shares, p.full_name, p.shareholder_id, p.column.key))

        return CapitalStockReport(
            entity=entity,
            as_of=as_of,
            lines=lines,
            top_positions=positions[:max(top_n, 0)],
        )

    async def build_shareholder_statement(
        self,
        entity_id: int,
        shareholder_id: int,
    ) -> ShareholderStatement:
        """주주 명세서 (정보 + replay 순서 거래 이력 + 현재 보유)

        Raises:
            NotFoundError: Entity 또는 주주 없음
        """
        entity = await self.entities.get(entity_id)
        shareholder = await self.shareholders.get(entity_id, shareholder_id)

        transactions = await self.log.list_entries(
            TransactionFilter(entity_id=entity_id, shareholder_id=shareholder_id),
            newest_first=False,
        )
        holdings = await self.log.holdings(entity_id, shareholder_id)

        return ShareholderStatement(
            entity=entity,
            shareholder=shareholder,
            transactions=transactions,
            holdings=holdings,
        )

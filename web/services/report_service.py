"""
Report 서비스

Ownership / Capital Stock / 주주 명세서 리포트 (JSON)
"""

from datetime import date
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.aggregator import OwnershipAggregator, ReportFilters
from core.ledger.types import HoldingStatus


class ReportService:
    """Report 서비스

    Args:
        db: SQLite 어댑터 (읽기 전용)
    """

    def __init__(self, db: SQLiteAdapter):
        self.aggregator = OwnershipAggregator(db)

    async def get_ownership_report(
        self,
        entity_id: int,
        stock_type: str | None = None,
        series: str | None = None,
        status: HoldingStatus | None = None,
        as_of: date | None = None,
    ) -> dict[str, Any]:
        """Ownership 리포트"""
        report = await self.aggregator.build_ownership_report(
            entity_id,
            ReportFilters(
                stock_type_code=stock_type,
                series_label=series,
                status=status,
                as_of=as_of,
            ),
        )
        return report.to_dict()

    async def get_capital_stock_report(
        self,
        entity_id: int,
        as_of: date | None = None,
        top_n: int = 10,
    ) -> dict[str, Any]:
        """Capital Stock 리포트"""
        report = await self.aggregator.build_capital_stock_report(entity_id, as_of, top_n)
        return report.to_dict()

    async def get_shareholder_statement(
        self,
        entity_id: int,
        shareholder_id: int,
    ) -> dict[str, Any]:
        """주주 명세서"""
        statement = await self.aggregator.build_shareholder_statement(entity_id, shareholder_id)
        return statement.to_dict()

"""
리포트 API 라우트

Ownership / Capital Stock / 주주 명세서 (JSON)
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.ledger.types import HoldingStatus
from web.dependencies import get_db, get_entity_id
from web.services.report_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/ownership")
async def get_ownership_report(
    stock_type: str | None = Query(default=None, description="주식 종류 코드"),
    series: str | None = Query(default=None, description="시리즈 라벨"),
    status: HoldingStatus | None = Query(default=None, description="ACTIVE / INACTIVE"),
    as_of: date | None = Query(default=None, description="기준일"),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """Ownership 리포트

    주주 × (종류, 시리즈) 격자, 컬럼 합계, 총합계, 지분율.
    """
    service = ReportService(db)
    return await service.get_ownership_report(entity_id, stock_type, series, status, as_of)


@router.get("/capital-stock")
async def get_capital_stock_report(
    as_of: date | None = Query(default=None, description="기준일"),
    top_n: int = Query(default=Defaults.TOP_SHAREHOLDERS, ge=1, le=100),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """Capital Stock 리포트 (컬럼별 발행 현황 + 상위 보유자)"""
    service = ReportService(db)
    return await service.get_capital_stock_report(entity_id, as_of, top_n)


@router.get("/shareholder-statement/{shareholder_id}")
async def get_shareholder_statement(
    shareholder_id: int,
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주주 명세서 (정보 + 거래 이력 + 보유 현황)"""
    service = ReportService(db)
    return await service.get_shareholder_statement(entity_id, shareholder_id)

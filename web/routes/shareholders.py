"""
주주 API 라우트

주주 CRUD, 보유 현황, 주주별 원장, 잔고 조회
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.cache import BookEntryCache
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.store import TransactionLog
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.ledger.types import BalanceKey, format_quantity
from core.types import Caller
from web.dependencies import (
    get_book_cache,
    get_db,
    get_db_write,
    get_entity_id,
    require_super_admin,
    require_write,
)
from web.models.requests import ShareholderCreateRequest, ShareholderUpdateRequest
from web.models.responses import ShareBalanceResponse, ShareholderDeleteResponse
from web.services.ledger_service import LedgerService

router = APIRouter(prefix="/api/shareholders", tags=["Shareholders"])


@router.get("")
async def list_shareholders(
    include_inactive: bool = Query(default=False, description="비활성 주주 포함"),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주주 목록 (이름순)"""
    registry = ShareholderRegistry(db)
    shareholders = await registry.list_shareholders(entity_id, include_inactive)
    return [s.to_dict() for s in shareholders]


@router.post("", status_code=201)
async def create_shareholder(
    request: ShareholderCreateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
):
    """주주 생성

    external_id 미지정 시 SH-000001 형식 자동 생성.
    """
    registry = ShareholderRegistry(db)
    fields = request.model_dump(exclude={"full_name"}, exclude_none=True)
    shareholder = await registry.create(entity_id, request.full_name, **fields)
    return shareholder.to_dict()


@router.get("/{shareholder_id}")
async def get_shareholder(
    shareholder_id: int,
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주주 조회"""
    registry = ShareholderRegistry(db)
    shareholder = await registry.get(entity_id, shareholder_id)
    return shareholder.to_dict()


@router.patch("/{shareholder_id}")
async def update_shareholder(
    shareholder_id: int,
    request: ShareholderUpdateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
    cache: BookEntryCache = Depends(get_book_cache),
):
    """주주 정보 수정 (지정한 필드만)"""
    registry = ShareholderRegistry(db)
    fields = request.model_dump(exclude_unset=True)
    shareholder = await registry.update(entity_id, shareholder_id, **fields)

    # 원장 조회 행에 주주 이름이 포함되므로 Entity 단위 무효화
    cache.invalidate_entity(entity_id)
    return shareholder.to_dict()


@router.delete("/{shareholder_id}", response_model=ShareholderDeleteResponse)
async def delete_shareholder(
    shareholder_id: int,
    caller: Caller = Depends(require_super_admin),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
    cache: BookEntryCache = Depends(get_book_cache),
) -> ShareholderDeleteResponse:
    """주주 삭제

    원장 기록이 없으면 물리 삭제, 있으면 비활성화.
    """
    registry = ShareholderRegistry(db)
    outcome = await registry.delete(entity_id, shareholder_id)
    cache.invalidate(entity_id, shareholder_id)
    return ShareholderDeleteResponse(shareholder_id=shareholder_id, outcome=outcome.value)


@router.get("/{shareholder_id}/holdings")
async def get_holdings(
    shareholder_id: int,
    as_of: date | None = Query(default=None, description="기준일"),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주주의 (종류, 시리즈)별 보유 현황 (양수 잔고만)"""
    await ShareholderRegistry(db).get(entity_id, shareholder_id)
    holdings = await TransactionLog(db).holdings(entity_id, shareholder_id, as_of)
    return [h.to_dict() for h in holdings]


@router.get("/{shareholder_id}/book-entries")
async def get_book_entries(
    shareholder_id: int,
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
    cache: BookEntryCache = Depends(get_book_cache),
):
    """주주별 원장 행 (최신순, 캐시 경유)"""
    service = LedgerService(db, cache)
    return await service.get_book_entries(entity_id, shareholder_id)


@router.get("/{shareholder_id}/balance", response_model=ShareBalanceResponse)
async def get_balance(
    shareholder_id: int,
    stock_type: str = Query(..., description="주식 종류 코드"),
    series: str | None = Query(default=None, description="시리즈 라벨"),
    as_of: date | None = Query(default=None, description="기준일"),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
) -> ShareBalanceResponse:
    """특정 (종류, 시리즈) 잔고"""
    resolved = await StockTaxonomyRegistry(db).validate_type_and_series(
        entity_id, stock_type, series
    )
    await ShareholderRegistry(db).get(entity_id, shareholder_id)

    key = BalanceKey(
        entity_id=entity_id,
        shareholder_id=shareholder_id,
        stock_type_id=resolved.stock_type_id,
        stock_series_id=resolved.stock_series_id,
    )
    balance = await TransactionLog(db).balance(key, as_of)

    return ShareBalanceResponse(
        shareholder_id=shareholder_id,
        stock_type=resolved.type_code,
        series=resolved.series_label,
        as_of=as_of.isoformat() if as_of else None,
        balance=format_quantity(balance),
    )

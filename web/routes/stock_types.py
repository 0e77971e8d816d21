"""
주식 종류 / 시리즈 API 라우트

Entity별 주식 종류 카탈로그 관리 및 검증
"""

from fastapi import APIRouter, Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.types import Caller
from web.dependencies import get_db, get_db_write, get_entity_id, require_write
from web.models.requests import (
    StockSeriesCreateRequest,
    StockSeriesUpdateRequest,
    StockTypeCreateRequest,
    StockTypeUpdateRequest,
)
from web.models.responses import StockValidationResponse

router = APIRouter(prefix="/api", tags=["Stock Types"])


@router.get("/stock-types")
async def list_stock_types(
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주식 종류 목록 (활성/비활성 모두, 표시명순)"""
    taxonomy = StockTaxonomyRegistry(db)
    return [t.to_dict() for t in await taxonomy.list_types(entity_id)]


@router.get("/stock-types/validate", response_model=StockValidationResponse)
async def validate_stock_type(
    stock_type: str = Query(..., description="주식 종류 코드"),
    series: str | None = Query(default=None, description="시리즈 라벨"),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
) -> StockValidationResponse:
    """주식 종류/시리즈 검증

    성공 시 원장 쓰기에 사용할 숫자 ID 반환.
    """
    taxonomy = StockTaxonomyRegistry(db)
    resolved = await taxonomy.validate_type_and_series(entity_id, stock_type, series)
    return StockValidationResponse(**resolved.to_dict())


@router.post("/stock-types", status_code=201)
async def create_stock_type(
    request: StockTypeCreateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
):
    """주식 종류 생성"""
    taxonomy = StockTaxonomyRegistry(db)
    stock_type = await taxonomy.create_type(
        entity_id,
        code=request.code,
        display_name=request.display_name,
        supports_series=request.supports_series,
    )
    return stock_type.to_dict()


@router.patch("/stock-types/{stock_type_id}")
async def update_stock_type(
    stock_type_id: int,
    request: StockTypeUpdateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
):
    """주식 종류 수정

    원장 행이 있는 종류의 supports_series 변경은 409.
    """
    taxonomy = StockTaxonomyRegistry(db)
    stock_type = await taxonomy.update_type(
        entity_id,
        stock_type_id,
        display_name=request.display_name,
        supports_series=request.supports_series,
        is_active=request.is_active,
    )
    return stock_type.to_dict()


@router.get("/stock-types/{stock_type_id}/series")
async def list_stock_series(
    stock_type_id: int,
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
):
    """주식 종류의 시리즈 목록"""
    taxonomy = StockTaxonomyRegistry(db)
    return [s.to_dict() for s in await taxonomy.list_series(entity_id, stock_type_id)]


@router.post("/stock-types/{stock_type_id}/series", status_code=201)
async def create_stock_series(
    stock_type_id: int,
    request: StockSeriesCreateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
):
    """시리즈 생성 (시리즈 지원 종류만)"""
    taxonomy = StockTaxonomyRegistry(db)
    series = await taxonomy.create_series(entity_id, stock_type_id, request.label)
    return series.to_dict()


@router.patch("/stock-series/{series_id}")
async def update_stock_series(
    series_id: int,
    request: StockSeriesUpdateRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db_write),
):
    """시리즈 활성 상태 변경"""
    taxonomy = StockTaxonomyRegistry(db)
    series = await taxonomy.set_series_active(entity_id, series_id, request.is_active)
    return series.to_dict()

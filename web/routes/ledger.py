"""
원장 API 라우트

원장 조회 및 발행 / 양도 / 소각
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.engine import BalanceEngine
from core.ledger.query import TransactionFilter
from core.ledger.types import TransactionType
from core.types import Caller
from web.dependencies import get_db, get_engine, get_entity_id, require_write
from web.models.requests import CancelRequest, IssueRequest, TransferRequest
from web.models.responses import LedgerListResponse, ShareTransactionResponse, TransferResponse
from web.services.ledger_service import LedgerService

router = APIRouter(prefix="/api/ledger", tags=["Ledger"])


@router.get("", response_model=LedgerListResponse)
async def list_ledger(
    shareholder_id: int | None = Query(default=None),
    stock_type: str | None = Query(default=None),
    series: str | None = Query(default=None),
    transaction_type: TransactionType | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    entity_id: int = Depends(get_entity_id),
    db: SQLiteAdapter = Depends(get_db),
) -> LedgerListResponse:
    """원장 목록 (최신순)"""
    service = LedgerService(db)
    query = TransactionFilter(
        entity_id=entity_id,
        shareholder_id=shareholder_id,
        stock_type_code=stock_type,
        series_label=series,
        transaction_type=transaction_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return LedgerListResponse(**await service.list_ledger(query))


@router.post("/issue", status_code=201, response_model=ShareTransactionResponse)
async def issue_shares(
    request: IssueRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    engine: BalanceEngine = Depends(get_engine),
) -> ShareTransactionResponse:
    """주식 발행"""
    row = await engine.issue_shares(
        entity_id,
        request.shareholder_id,
        request.stock_type,
        request.series,
        request.shares,
        meta=request.to_meta(),
        created_by=caller.actor_id,
    )
    return ShareTransactionResponse(**row.to_dict())


@router.post("/transfer", status_code=201, response_model=TransferResponse)
async def transfer_shares(
    request: TransferRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    engine: BalanceEngine = Depends(get_engine),
) -> TransferResponse:
    """주식 양도

    잔고 부족 시 409 (available / requested 포함).
    """
    result = await engine.transfer_shares(
        entity_id,
        request.from_shareholder_id,
        request.to_shareholder_id,
        request.stock_type,
        request.series,
        request.shares,
        meta=request.to_meta(),
        created_by=caller.actor_id,
    )
    return TransferResponse(
        transfer_out=ShareTransactionResponse(**result.transfer_out.to_dict()),
        transfer_in=ShareTransactionResponse(**result.transfer_in.to_dict()),
    )


@router.post("/cancel", status_code=201, response_model=ShareTransactionResponse)
async def cancel_shares(
    request: CancelRequest,
    caller: Caller = Depends(require_write),
    entity_id: int = Depends(get_entity_id),
    engine: BalanceEngine = Depends(get_engine),
) -> ShareTransactionResponse:
    """주식 소각"""
    row = await engine.cancel_shares(
        entity_id,
        request.shareholder_id,
        request.stock_type,
        request.series,
        request.shares,
        meta=request.to_meta(),
        created_by=caller.actor_id,
    )
    return ShareTransactionResponse(**row.to_dict())

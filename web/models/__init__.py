"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    CancelRequest,
    IssueRequest,
    LedgerWriteRequest,
    ShareholderCreateRequest,
    ShareholderUpdateRequest,
    StockSeriesCreateRequest,
    StockSeriesUpdateRequest,
    StockTypeCreateRequest,
    StockTypeUpdateRequest,
    TransferRequest,
)
from web.models.responses import (
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    LedgerListResponse,
    ShareBalanceResponse,
    ShareholderDeleteResponse,
    ShareTransactionResponse,
    StockValidationResponse,
    TransferResponse,
)

__all__ = [
    # Requests
    "StockTypeCreateRequest",
    "StockTypeUpdateRequest",
    "StockSeriesCreateRequest",
    "StockSeriesUpdateRequest",
    "ShareholderCreateRequest",
    "ShareholderUpdateRequest",
    "LedgerWriteRequest",
    "IssueRequest",
    "TransferRequest",
    "CancelRequest",
    # Responses
    "HealthResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ShareTransactionResponse",
    "TransferResponse",
    "ShareBalanceResponse",
    "StockValidationResponse",
    "ShareholderDeleteResponse",
    "LedgerListResponse",
]

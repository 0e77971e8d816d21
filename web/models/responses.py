"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    version: str = Field(..., description="애플리케이션 버전")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class ErrorDetail(BaseModel):
    """오류 상세"""

    code: str = Field(..., description="에러 코드 (INSUFFICIENT_SHARES 등)")
    message: str = Field(..., description="에러 메시지")
    available: str | None = Field(default=None, description="사용 가능 잔고 (잔고 부족 시)")
    requested: str | None = Field(default=None, description="요청 수량 (잔고 부족 시)")


class ErrorResponse(BaseModel):
    """오류 응답"""

    success: bool = Field(default=False, description="성공 여부")
    error: ErrorDetail = Field(..., description="오류 상세")


class ShareTransactionResponse(BaseModel):
    """원장 행 응답"""

    id: int = Field(..., description="원장 행 ID")
    entity_id: int = Field(..., description="Entity ID")
    shareholder_id: int = Field(..., description="행 소유 주주 ID")
    transaction_type: str = Field(..., description="거래 유형 (ISSUANCE/TRANSFER/CANCELLATION)")
    stock_type_id: int = Field(..., description="주식 종류 ID")
    stock_series_id: int | None = Field(default=None, description="시리즈 ID")
    shares: str = Field(..., description="부호 있는 수량")
    transaction_date: str = Field(..., description="거래일")
    certificate_number: str | None = Field(default=None, description="증서 번호")
    from_shareholder_id: int | None = Field(default=None, description="양도인 (양도만)")
    to_shareholder_id: int | None = Field(default=None, description="양수인 (양도만)")
    notes: str | None = Field(default=None, description="메모")
    created_by: str | None = Field(default=None, description="작성자")
    created_at: str | None = Field(default=None, description="기록 시각 (UTC)")


class TransferResponse(BaseModel):
    """양도 응답 (출고 행 + 입고 행)"""

    transfer_out: ShareTransactionResponse = Field(..., description="양도인 행 (-수량)")
    transfer_in: ShareTransactionResponse = Field(..., description="양수인 행 (+수량)")


class ShareBalanceResponse(BaseModel):
    """잔고 응답"""

    shareholder_id: int = Field(..., description="주주 ID")
    stock_type: str = Field(..., description="주식 종류 코드")
    series: str | None = Field(default=None, description="시리즈 라벨")
    as_of: str | None = Field(default=None, description="기준일 (없으면 현재)")
    balance: str = Field(..., description="잔고")


class StockValidationResponse(BaseModel):
    """주식 종류/시리즈 검증 결과"""

    stock_type_id: int = Field(..., description="주식 종류 ID")
    stock_series_id: int | None = Field(default=None, description="시리즈 ID")
    type_code: str = Field(..., description="정규화된 종류 코드")
    series_label: str | None = Field(default=None, description="저장된 시리즈 라벨")


class ShareholderDeleteResponse(BaseModel):
    """주주 삭제 결과"""

    shareholder_id: int = Field(..., description="주주 ID")
    outcome: str = Field(..., description="DELETED (물리 삭제) / DEACTIVATED (비활성화)")


class LedgerListResponse(BaseModel):
    """원장 목록 응답"""

    items: list[dict[str, Any]] = Field(default_factory=list, description="원장 행 목록")
    total: int = Field(..., description="전체 개수")
    limit: int = Field(..., description="조회 개수")
    offset: int = Field(..., description="시작 위치")

"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from core.ledger.models import TransactionMeta
from core.types import ShareholderType


# =========================================================================
# 주식 종류 / 시리즈
# =========================================================================


class StockTypeCreateRequest(BaseModel):
    """주식 종류 생성 요청"""

    code: str = Field(..., min_length=1, max_length=32, description="종류 코드 (대문자로 정규화)")
    display_name: str = Field(..., min_length=1, description="표시명")
    supports_series: bool = Field(default=False, description="시리즈 지원 여부")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"code": "PREFERRED", "display_name": "Preferred Stock", "supports_series": True},
            ]
        }
    }


class StockTypeUpdateRequest(BaseModel):
    """주식 종류 수정 요청 (지정한 필드만 변경)"""

    display_name: str | None = Field(default=None, description="표시명")
    supports_series: bool | None = Field(
        default=None,
        description="시리즈 지원 여부 (원장 행이 있으면 변경 불가)",
    )
    is_active: bool | None = Field(default=None, description="활성 여부")


class StockSeriesCreateRequest(BaseModel):
    """시리즈 생성 요청"""

    label: str = Field(..., min_length=1, max_length=32, description="시리즈 라벨 (예: A)")


class StockSeriesUpdateRequest(BaseModel):
    """시리즈 활성 상태 변경 요청"""

    is_active: bool = Field(..., description="활성 여부")


# =========================================================================
# 주주
# =========================================================================


class ShareholderCreateRequest(BaseModel):
    """주주 생성 요청"""

    full_name: str = Field(..., min_length=1, description="이름/법인명")
    external_id: str | None = Field(default=None, description="계좌번호 (없으면 SH-000001 형식 자동 생성)")
    email: str | None = Field(default=None, description="이메일")
    phone: str | None = Field(default=None, description="전화번호")
    address: str | None = Field(default=None, description="주소")
    city: str | None = Field(default=None, description="도시")
    state: str | None = Field(default=None, description="주/도")
    zip_code: str | None = Field(default=None, description="우편번호")
    country: str | None = Field(default=None, description="국가")
    tax_id: str | None = Field(default=None, description="납세자 번호")
    shareholder_type: ShareholderType = Field(
        default=ShareholderType.INDIVIDUAL,
        description="주주 유형",
    )


class ShareholderUpdateRequest(BaseModel):
    """주주 수정 요청 (지정한 필드만 변경)"""

    full_name: str | None = Field(default=None, description="이름/법인명")
    external_id: str | None = Field(default=None, description="계좌번호")
    email: str | None = Field(default=None, description="이메일")
    phone: str | None = Field(default=None, description="전화번호")
    address: str | None = Field(default=None, description="주소")
    city: str | None = Field(default=None, description="도시")
    state: str | None = Field(default=None, description="주/도")
    zip_code: str | None = Field(default=None, description="우편번호")
    country: str | None = Field(default=None, description="국가")
    tax_id: str | None = Field(default=None, description="납세자 번호")
    shareholder_type: ShareholderType | None = Field(default=None, description="주주 유형")
    is_active: bool | None = Field(default=None, description="활성 여부")


# =========================================================================
# 원장 쓰기
# =========================================================================


class LedgerWriteRequest(BaseModel):
    """원장 쓰기 공통 필드"""

    stock_type: str = Field(..., description="주식 종류 코드 (예: COMMON)")
    series: str | None = Field(default=None, description="시리즈 라벨 (시리즈 지원 종류만)")
    shares: Decimal = Field(..., description="수량 (양수)")
    transaction_date: date | None = Field(default=None, description="거래일 (없으면 오늘, UTC)")
    certificate_number: str | None = Field(default=None, description="증서 번호")
    notes: str | None = Field(default=None, description="메모")

    def to_meta(self) -> TransactionMeta:
        """부가 정보 변환 (그대로 전달)"""
        return TransactionMeta(
            certificate_number=self.certificate_number,
            notes=self.notes,
            transaction_date=self.transaction_date,
        )


class IssueRequest(LedgerWriteRequest):
    """주식 발행 요청"""

    shareholder_id: int = Field(..., description="주주 ID")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shareholder_id": 1,
                    "stock_type": "COMMON",
                    "shares": "1000",
                    "certificate_number": "C-001",
                },
            ]
        }
    }


class TransferRequest(LedgerWriteRequest):
    """주식 양도 요청"""

    from_shareholder_id: int = Field(..., description="양도인 주주 ID")
    to_shareholder_id: int = Field(..., description="양수인 주주 ID")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "from_shareholder_id": 1,
                    "to_shareholder_id": 2,
                    "stock_type": "PREFERRED",
                    "series": "A",
                    "shares": "400",
                },
            ]
        }
    }


class CancelRequest(LedgerWriteRequest):
    """주식 소각 요청"""

    shareholder_id: int = Field(..., description="주주 ID")

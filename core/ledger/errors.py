"""
원장 예외 정의

Balance Engine, Taxonomy Registry, Ownership Aggregator가 발생시키는
타입별 예외. Web 계층이 HTTP 상태 코드로 변환.
"""

from decimal import Decimal
from typing import Any

from core.ledger.types import format_quantity


class LedgerError(Exception):
    """원장 예외 기본 클래스

    Attributes:
        code: 안정적인 에러 코드 (API 응답용)
        message: 사람이 읽을 수 있는 메시지
    """

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """API 응답용 딕셔너리 변환"""
        return {"code": self.code, "message": self.message}


class NotFoundError(LedgerError):
    """대상이 없거나 호출자 Entity에 속하지 않음"""

    code = "NOT_FOUND"


class UnknownStockType(LedgerError):
    """활성 상태의 해당 코드 주식 종류 없음"""

    code = "UNKNOWN_STOCK_TYPE"


class InactiveStockType(UnknownStockType):
    """주식 종류가 존재하지만 비활성"""

    code = "INACTIVE_STOCK_TYPE"


class SeriesRequired(LedgerError):
    """시리즈 필수 종류에 시리즈 미지정"""

    code = "SERIES_REQUIRED"


class UnknownSeries(LedgerError):
    """활성 상태의 해당 시리즈 없음"""

    code = "UNKNOWN_SERIES"


class SeriesNotAllowed(LedgerError):
    """시리즈를 지원하지 않는 종류에 시리즈 지정"""

    code = "SERIES_NOT_ALLOWED"


class InactiveShareholder(LedgerError):
    """비활성 주주"""

    code = "INACTIVE_SHAREHOLDER"


class InvalidQuantityError(LedgerError):
    """수량이 0 이하이거나 유한하지 않음"""

    code = "INVALID_QUANTITY"


class SelfTransferError(LedgerError):
    """동일 주주 간 양도"""

    code = "SELF_TRANSFER"


class InsufficientSharesError(LedgerError):
    """잔고 부족

    Attributes:
        available: 사용 가능 잔고
        requested: 요청 수량
    """

    code = "INSUFFICIENT_SHARES"

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient shares: available {format_quantity(available)}, "
            f"requested {format_quantity(requested)}"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["available"] = format_quantity(self.available)
        data["requested"] = format_quantity(self.requested)
        return data


class TaxonomyConflictError(LedgerError):
    """주식 종류/시리즈 중복 또는 변경 불가"""

    code = "TAXONOMY_CONFLICT"


class DuplicateShareholderError(LedgerError):
    """Entity 내 계좌번호(external_id) 중복"""

    code = "DUPLICATE_SHAREHOLDER"


class LedgerConflictError(LedgerError):
    """쓰기 재시도 소진 (DB 잠금 충돌 지속)"""

    code = "LEDGER_CONFLICT"

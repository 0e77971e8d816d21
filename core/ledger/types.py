"""
주식 원장 타입 정의

TransactionType 등 Ledger 시스템에서 사용하는 Enum 및 키 정의
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Context, Decimal, Inexact, InvalidOperation, Overflow, localcontext
from enum import Enum


class TransactionType(str, Enum):
    """원장 거래 유형

    모든 주식 이동을 분류하는 거래 타입.
    str을 상속하여 JSON 직렬화 가능.
    """

    ISSUANCE = "ISSUANCE"  # 발행 (+)
    TRANSFER = "TRANSFER"  # 양도 (출고 -, 입고 +)
    CANCELLATION = "CANCELLATION"  # 소각/취소 (-)


class HoldingStatus(str, Enum):
    """보유 상태 (Ownership 리포트 필터)"""

    ACTIVE = "ACTIVE"  # 잔고 > 0
    INACTIVE = "INACTIVE"  # 잔고 == 0


class DeleteOutcome(str, Enum):
    """주주 삭제 결과"""

    DELETED = "DELETED"  # 원장 기록 없음 → 물리 삭제
    DEACTIVATED = "DEACTIVATED"  # 원장 기록 있음 → 비활성화


# 수량 허용 범위: 정수부 최대 18자리, 소수점 이하 최대 8자리
QUANTITY_INTEGER_DIGITS = 18
QUANTITY_PLACES = 8
QUANTITY_QUANTUM = Decimal(1).scaleb(-QUANTITY_PLACES)

# 잔고 합산용 컨텍스트: 반올림이 일어나면 Inexact 예외
LEDGER_CONTEXT = Context(prec=60, traps=[Inexact, InvalidOperation, Overflow])


def sum_quantities(values: Iterable[Decimal]) -> Decimal:
    """수량 합계 (반올림 없이 정확하게)"""
    with localcontext(LEDGER_CONTEXT):
        return sum(values, Decimal(0))


def format_quantity(value: Decimal) -> str:
    """수량 → 고정 소수점 문자열 (1E+3 → 1000)"""
    return format(value, "f")


# Ownership 리포트 컬럼 우선순위 (나머지는 코드 알파벳순)
PRIORITY_STOCK_TYPES: tuple[str, ...] = ("COMMON", "PREFERRED", "WARRANT")


def stock_type_sort_key(code: str) -> tuple[int, str]:
    """주식 종류 정렬 키

    COMMON, PREFERRED, WARRANT 순으로 먼저, 이후 코드 알파벳순.
    """
    try:
        return (PRIORITY_STOCK_TYPES.index(code), code)
    except ValueError:
        return (len(PRIORITY_STOCK_TYPES), code)


@dataclass(frozen=True)
class BalanceKey:
    """잔고 키 (불변)

    (entity, shareholder, stock type, series) 단위로 잔고를 계산하고
    쓰기 직렬화 락을 잡는다.
    """

    entity_id: int
    shareholder_id: int
    stock_type_id: int
    stock_series_id: int | None

    def __str__(self) -> str:
        series = self.stock_series_id if self.stock_series_id is not None else "-"
        return f"{self.entity_id}:{self.shareholder_id}:{self.stock_type_id}:{series}"

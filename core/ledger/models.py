"""
원장 레코드 모델

DB 행 ↔ Dataclass 변환.
수량은 Decimal로 다루고 DB에는 문자열로 저장 (정밀도 유지).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.ledger.types import TransactionType, format_quantity


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Entity:
    """발행 회사 (테넌트)"""

    id: int
    name: str
    is_active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Entity":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            name=row["name"],
            is_active=bool(row["is_active"]),
            created_at=_parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


@dataclass
class StockType:
    """주식 종류 (COMMON, PREFERRED 등)"""

    id: int
    entity_id: int
    code: str
    display_name: str
    supports_series: bool
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StockType":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            entity_id=row["entity_id"],
            code=row["code"],
            display_name=row["display_name"],
            supports_series=bool(row["supports_series"]),
            is_active=bool(row["is_active"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "code": self.code,
            "display_name": self.display_name,
            "supports_series": self.supports_series,
            "is_active": self.is_active,
        }


@dataclass
class StockSeries:
    """주식 시리즈 (Series A, Series B 등)"""

    id: int
    stock_type_id: int
    label: str
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StockSeries":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            stock_type_id=row["stock_type_id"],
            label=row["label"],
            is_active=bool(row["is_active"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "stock_type_id": self.stock_type_id,
            "label": self.label,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ResolvedStock:
    """검증된 주식 종류/시리즈 식별자

    쓰기 경로는 문자열이 아닌 숫자 ID만 사용.
    """

    stock_type_id: int
    stock_series_id: int | None
    type_code: str
    series_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stock_type_id": self.stock_type_id,
            "stock_series_id": self.stock_series_id,
            "type_code": self.type_code,
            "series_label": self.series_label,
        }


@dataclass
class Shareholder:
    """주주"""

    id: int
    entity_id: int
    full_name: str
    external_id: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_id: str | None = None
    shareholder_type: str = "INDIVIDUAL"
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Shareholder":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            entity_id=row["entity_id"],
            full_name=row["full_name"],
            external_id=row.get("external_id"),
            email=row.get("email"),
            phone=row.get("phone"),
            address=row.get("address"),
            city=row.get("city"),
            state=row.get("state"),
            zip_code=row.get("zip_code"),
            country=row.get("country"),
            tax_id=row.get("tax_id"),
            shareholder_type=row.get("shareholder_type") or "INDIVIDUAL",
            is_active=bool(row["is_active"]),
            created_at=_parse_datetime(row.get("created_at")),
            updated_at=_parse_datetime(row.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "external_id": self.external_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "tax_id": self.tax_id,
            "shareholder_type": self.shareholder_type,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class TransactionMeta:
    """거래 부가 정보 (그대로 기록)

    transaction_date가 None이면 오늘 날짜(UTC).
    """

    certificate_number: str | None = None
    notes: str | None = None
    transaction_date: date | None = None


@dataclass(frozen=True)
class ShareTransaction:
    """원장 행 (불변)

    shares는 부호 있는 수량: 증가 +, 감소 -.
    """

    id: int
    entity_id: int
    shareholder_id: int
    transaction_type: TransactionType
    stock_type_id: int
    stock_series_id: int | None
    shares: Decimal
    transaction_date: date
    certificate_number: str | None = None
    from_shareholder_id: int | None = None
    to_shareholder_id: int | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ShareTransaction":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            entity_id=row["entity_id"],
            shareholder_id=row["shareholder_id"],
            transaction_type=TransactionType(row["transaction_type"]),
            stock_type_id=row["stock_type_id"],
            stock_series_id=row.get("stock_series_id"),
            shares=Decimal(str(row["shares"])),
            transaction_date=_parse_date(row["transaction_date"]),
            certificate_number=row.get("certificate_number"),
            from_shareholder_id=row.get("from_shareholder_id"),
            to_shareholder_id=row.get("to_shareholder_id"),
            notes=row.get("notes"),
            created_by=row.get("created_by"),
            created_at=_parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "shareholder_id": self.shareholder_id,
            "transaction_type": self.transaction_type.value,
            "stock_type_id": self.stock_type_id,
            "stock_series_id": self.stock_series_id,
            "shares": format_quantity(self.shares),
            "transaction_date": _iso(self.transaction_date),
            "certificate_number": self.certificate_number,
            "from_shareholder_id": self.from_shareholder_id,
            "to_shareholder_id": self.to_shareholder_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class TransferResult:
    """양도 결과 (출고 행 + 입고 행)"""

    transfer_out: ShareTransaction
    transfer_in: ShareTransaction

    def to_dict(self) -> dict[str, Any]:
        return {
            "transfer_out": self.transfer_out.to_dict(),
            "transfer_in": self.transfer_in.to_dict(),
        }


@dataclass(frozen=True)
class LedgerEntry:
    """원장 조회 행 (이름/라벨 조인 포함)"""

    transaction: ShareTransaction
    shareholder_name: str
    stock_type_code: str
    stock_type_name: str
    series_label: str | None = None
    from_shareholder_name: str | None = None
    to_shareholder_name: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "LedgerEntry":
        """조인된 DB 행에서 생성"""
        return cls(
            transaction=ShareTransaction.from_row(row),
            shareholder_name=row["shareholder_name"],
            stock_type_code=row["stock_type_code"],
            stock_type_name=row["stock_type_name"],
            series_label=row.get("series_label"),
            from_shareholder_name=row.get("from_shareholder_name"),
            to_shareholder_name=row.get("to_shareholder_name"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.transaction.to_dict()
        data.update({
            "shareholder_name": self.shareholder_name,
            "stock_type_code": self.stock_type_code,
            "stock_type_name": self.stock_type_name,
            "series_label": self.series_label,
            "from_shareholder_name": self.from_shareholder_name,
            "to_shareholder_name": self.to_shareholder_name,
        })
        return data


@dataclass(frozen=True)
class Holding:
    """주주의 (종류, 시리즈)별 보유 수량"""

    stock_type_id: int
    stock_type_code: str
    stock_type_name: str
    supports_series: bool
    stock_series_id: int | None
    series_label: str | None
    shares: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "stock_type_id": self.stock_type_id,
            "stock_type_code": self.stock_type_code,
            "stock_type_name": self.stock_type_name,
            "supports_series": self.supports_series,
            "stock_series_id": self.stock_series_id,
            "series_label": self.series_label,
            "shares": format_quantity(self.shares),
        }


@dataclass
class ShareholderStatement:
    """주주 명세서 (정보 + 거래 이력 + 보유 현황)"""

    entity: Entity
    shareholder: Shareholder
    transactions: list[LedgerEntry] = field(default_factory=list)
    holdings: list[Holding] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.to_dict(),
            "shareholder": self.shareholder.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
            "holdings": [h.to_dict() for h in self.holdings],
        }

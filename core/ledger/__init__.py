"""
주식 원장 (Share Ledger) 시스템

Entity별 주식 종류/시리즈 단위로 발행, 양도, 소각을 추적하는
append-only 원장과 잔고 계산, Ownership 리포트.

사용 예시:
```python
from core.ledger import BalanceEngine, OwnershipAggregator, ReportFilters

engine = BalanceEngine(db)

# 발행 / 양도 / 소각
await engine.issue_shares(entity_id, s1, "COMMON", None, Decimal("1000"))
await engine.transfer_shares(entity_id, s1, s2, "COMMON", None, Decimal("400"))
await engine.cancel_shares(entity_id, s1, "COMMON", None, Decimal("200"))

# 잔고 조회
balance = await engine.get_balance(entity_id, s1, "COMMON")

# Ownership 리포트
report = await OwnershipAggregator(db).build_ownership_report(
    entity_id, ReportFilters(status=HoldingStatus.ACTIVE)
)
```
"""

from core.ledger.aggregator import (
    CapitalStockReport,
    OwnershipAggregator,
    OwnershipColumn,
    OwnershipReport,
    OwnershipRow,
    ReportFilters,
)
from core.ledger.cache import BookEntryCache
from core.ledger.engine import BalanceEngine, parse_quantity
from core.ledger.entities import EntityRegistry
from core.ledger.errors import (
    DuplicateShareholderError,
    InactiveShareholder,
    InactiveStockType,
    InsufficientSharesError,
    InvalidQuantityError,
    LedgerConflictError,
    LedgerError,
    NotFoundError,
    SelfTransferError,
    SeriesNotAllowed,
    SeriesRequired,
    TaxonomyConflictError,
    UnknownSeries,
    UnknownStockType,
)
from core.ledger.locks import KeyedLock
from core.ledger.models import (
    Entity,
    Holding,
    LedgerEntry,
    ResolvedStock,
    Shareholder,
    ShareholderStatement,
    ShareTransaction,
    StockSeries,
    StockType,
    TransactionMeta,
    TransferResult,
)
from core.ledger.query import TransactionFilter
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.store import TransactionLog
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.ledger.types import BalanceKey, DeleteOutcome, HoldingStatus, TransactionType

__all__ = [
    # 핵심 클래스
    "BalanceEngine",
    "OwnershipAggregator",
    "StockTaxonomyRegistry",
    "ShareholderRegistry",
    "EntityRegistry",
    "TransactionLog",
    "TransactionFilter",
    "BookEntryCache",
    "KeyedLock",
    "parse_quantity",
    # 모델
    "Entity",
    "StockType",
    "StockSeries",
    "ResolvedStock",
    "Shareholder",
    "ShareTransaction",
    "TransactionMeta",
    "TransferResult",
    "LedgerEntry",
    "Holding",
    "ShareholderStatement",
    "ReportFilters",
    "OwnershipColumn",
    "OwnershipRow",
    "OwnershipReport",
    "CapitalStockReport",
    # Enum / 키
    "TransactionType",
    "HoldingStatus",
    "DeleteOutcome",
    "BalanceKey",
    # 예외
    "LedgerError",
    "NotFoundError",
    "UnknownStockType",
    "InactiveStockType",
    "SeriesRequired",
    "UnknownSeries",
    "SeriesNotAllowed",
    "InactiveShareholder",
    "InvalidQuantityError",
    "SelfTransferError",
    "InsufficientSharesError",
    "TaxonomyConflictError",
    "DuplicateShareholderError",
    "LedgerConflictError",
]

"""
Balance Engine

주식 발행/양도/소각.

쓰기 순서 (모든 연산 공통):
    1. 수량/자기양도/종류·시리즈/주주 검증 (쓰기 전 거부)
    2. 잔고 키 락 획득 (프로세스 내 직렬화)
    3. BEGIN IMMEDIATE 트랜잭션 (프로세스 간 직렬화)
       - 주주 활성 재확인, 잔고 확인, 행 추가
    4. 커밋 후 캐시 무효화

database is locked / busy 오류는 3단계 전체를 재시도하고,
재시도 소진 시 LedgerConflictError.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import aiosqlite

from adapters.db.sqlite_adapter import is_busy_error
from core.constants import Defaults
from core.ledger.cache import BookEntryCache
from core.ledger.errors import (
    InsufficientSharesError,
    InvalidQuantityError,
    LedgerConflictError,
    SelfTransferError,
)
from core.ledger.locks import KeyedLock
from core.ledger.models import ResolvedStock, ShareTransaction, TransactionMeta, TransferResult
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.store import TransactionLog
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.ledger.types import (
    QUANTITY_INTEGER_DIGITS,
    QUANTITY_PLACES,
    QUANTITY_QUANTUM,
    BalanceKey,
    TransactionType,
    format_quantity,
)

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

Quantity = Decimal | int | str


def parse_quantity(quantity: Any) -> Decimal:
    """수량 검증 및 Decimal 변환

    정수부 18자리, 소수점 이하 8자리까지 허용.

    Raises:
        InvalidQuantityError: 숫자가 아니거나, 유한하지 않거나, 0 이하이거나,
            허용 자릿수 초과
    """
    if isinstance(quantity, bool):
        raise InvalidQuantityError(f"Invalid quantity: {quantity!r}")

    try:
        value = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(f"Invalid quantity: {quantity!r}")

    if not value.is_finite() or value <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive number: {quantity}")
    if value.adjusted() >= QUANTITY_INTEGER_DIGITS:
        raise InvalidQuantityError(
            f"Quantity exceeds {QUANTITY_INTEGER_DIGITS} integer digits: {quantity}"
        )
    if value.quantize(QUANTITY_QUANTUM) != value:
        raise InvalidQuantityError(
            f"Quantity has more than {QUANTITY_PLACES} decimal places: {quantity}"
        )
    return value


def utc_today() -> date:
    """오늘 날짜 (UTC)"""
    return datetime.now(timezone.utc).date()


class BalanceEngine:
    """Balance Engine

    locks와 cache는 요청 간에 공유해야 의미가 있으므로
    앱 수준에서 하나를 만들어 주입한다.

    Args:
        db: SQLite 어댑터 (쓰기 가능)
        locks: 잔고 키 락 (None이면 인스턴스 전용)
        cache: 주주별 원장 캐시 (쓰기 후 무효화 대상)
        write_retries: 잠금 충돌 시 추가 시도 횟수
        retry_delay_ms: 재시도 간격 (밀리초)

    사용 예시:
    ```python
    engine = BalanceEngine(db, locks=locks, cache=cache)
    row = await engine.issue_shares(1, 10, "COMMON", None, Decimal("1000"))
    result = await engine.transfer_shares(1, 10, 11, "COMMON", None, Decimal("400"))
    ```
    """

    def __init__(
        self,
        db: "SQLiteAdapter",
        locks: KeyedLock | None = None,
        cache: BookEntryCache | None = None,
        write_retries: int = Defaults.WRITE_RETRIES,
        retry_delay_ms: int = Defaults.RETRY_DELAY_MS,
    ):
        self.db = db
        self.taxonomy = StockTaxonomyRegistry(db)
        self.shareholders = ShareholderRegistry(db)
        self.log = TransactionLog(db)
        self.locks = locks or KeyedLock()
        self.cache = cache
        self.write_retries = write_retries
        self.retry_delay_ms = retry_delay_ms

    # -------------------------------------------------------------------------
    # 발행
    # -------------------------------------------------------------------------

    async def issue_shares(
        self,
        entity_id: int,
        shareholder_id: int,
        type_code: str,
        series_label: str | None,
        quantity: Quantity,
        meta: TransactionMeta | None = None,
        created_by: str | None = None,
    ) -> ShareTransaction:
        """주식 발행 (+quantity 행 1개)

        발행은 잔고를 늘리기만 하므로 잔고 확인 없음.

        Raises:
            InvalidQuantityError, UnknownStockType, InactiveStockType,
            SeriesRequired, SeriesNotAllowed, UnknownSeries,
            NotFoundError, InactiveShareholder, LedgerConflictError
        """
        qty = parse_quantity(quantity)
        meta = meta or TransactionMeta()
        stock = await self.taxonomy.validate_type_and_series(entity_id, type_code, series_label)
        await self.shareholders.require_active(entity_id, shareholder_id)

        key = self._key(entity_id, shareholder_id, stock)
        tx_date = meta.transaction_date or utc_today()

        async def write() -> ShareTransaction:
            async with self.db.transaction():
                await self.shareholders.require_active(entity_id, shareholder_id)
                return await self.log.append(
                    entity_id=entity_id,
                    shareholder_id=shareholder_id,
                    transaction_type=TransactionType.ISSUANCE,
                    stock=stock,
                    shares=qty,
                    transaction_date=tx_date,
                    meta=meta,
                    created_by=created_by,
                )

        async with self.locks.hold(key):
            row = await self._run_write(write, key)

        self._invalidate(entity_id, shareholder_id)
        logger.info(
            f"Shares issued: {qty} {self._label(stock)} to shareholder {shareholder_id}",
            extra={
                "entity_id": entity_id,
                "shareholder_id": shareholder_id,
                "stock_type_id": stock.stock_type_id,
                "stock_series_id": stock.stock_series_id,
                "quantity": format_quantity(qty),
                "transaction_id": row.id,
            },
        )
        return row

    # -------------------------------------------------------------------------
    # 양도
    # -------------------------------------------------------------------------

    async def transfer_shares(
        self,
        entity_id: int,
        from_shareholder_id: int,
        to_shareholder_id: int,
        type_code: str,
        series_label: str | None,
        quantity: Quantity,
        meta: TransactionMeta | None = None,
        created_by: str | None = None,
    ) -> TransferResult:
        """주식 양도 (출고 -quantity, 입고 +quantity 행 2개를 한 트랜잭션으로)

        양도인 잔고만 감소하므로 양도인 키만 락.

        Raises:
            InvalidQuantityError, SelfTransferError, 종류/시리즈 검증 오류,
            NotFoundError, InactiveShareholder, InsufficientSharesError,
            LedgerConflictError
        """
        qty = parse_quantity(quantity)
        if from_shareholder_id == to_shareholder_id:
            raise SelfTransferError(
                f"Cannot transfer shares to the same shareholder: {from_shareholder_id}"
            )

        meta = meta or TransactionMeta()
        stock = await self.taxonomy.validate_type_and_series(entity_id, type_code, series_label)
        await self.shareholders.require_active(entity_id, from_shareholder_id)
        await self.shareholders.require_active(entity_id, to_shareholder_id)

        key = self._key(entity_id, from_shareholder_id, stock)
        tx_date = meta.transaction_date or utc_today()

        async def write() -> TransferResult:
            async with self.db.transaction():
                await self.shareholders.require_active(entity_id, from_shareholder_id)
                await self.shareholders.require_active(entity_id, to_shareholder_id)
                await self._ensure_available(key, tx_date, qty)

                legs = {
                    "entity_id": entity_id,
                    "transaction_type": TransactionType.TRANSFER,
                    "stock": stock,
                    "transaction_date": tx_date,
                    "meta": meta,
                    "created_by": created_by,
                    "from_shareholder_id": from_shareholder_id,
                    "to_shareholder_id": to_shareholder_id,
                }
                transfer_out = await self.log.append(
                    shareholder_id=from_shareholder_id, shares=-qty, **legs
                )
                transfer_in = await self.log.append(
                    shareholder_id=to_shareholder_id, shares=qty, **legs
                )
                return TransferResult(transfer_out=transfer_out, transfer_in=transfer_in)

        async with self.locks.hold(key):
            result = await self._run_write(write, key)

        self._invalidate(entity_id, from_shareholder_id, to_shareholder_id)
        logger.info(
            f"Shares transferred: {qty} {self._label(stock)} "
            f"{from_shareholder_id} -> {to_shareholder_id}",
            extra={
                "entity_id": entity_id,
                "from_shareholder_id": from_shareholder_id,
                "to_shareholder_id": to_shareholder_id,
                "stock_type_id": stock.stock_type_id,
                "stock_series_id": stock.stock_series_id,
                "quantity": format_quantity(qty),
                "transaction_ids": [result.transfer_out.id, result.transfer_in.id],
            },
        )
        return result

    # -------------------------------------------------------------------------
    # 소각
    # -------------------------------------------------------------------------

    async def cancel_shares(
        self,
        entity_id: int,
        shareholder_id: int,
        type_code: str,
        series_label: str | None,
        quantity: Quantity,
        meta: TransactionMeta | None = None,
        created_by: str | None = None,
    ) -> ShareTransaction:
        """주식 소각 (-quantity 행 1개)

        소각은 항상 잔고를 감소시킨다.

        Raises:
            InvalidQuantityError, 종류/시리즈 검증 오류, NotFoundError,
            InactiveShareholder, InsufficientSharesError, LedgerConflictError
        """
        qty = parse_quantity(quantity)
        meta = meta or TransactionMeta()
        stock = await self.taxonomy.validate_type_and_series(entity_id, type_code, series_label)
        await self.shareholders.require_active(entity_id, shareholder_id)

        key = self._key(entity_id, shareholder_id, stock)
        tx_date = meta.transaction_date or utc_today()

        async def write() -> ShareTransaction:
            async with self.db.transaction():
                await self.shareholders.require_active(entity_id, shareholder_id)
                await self._ensure_available(key, tx_date, qty)
                return await self.log.append(
                    entity_id=entity_id,
                    shareholder_id=shareholder_id,
                    transaction_type=TransactionType.CANCELLATION,
                    stock=stock,
                    shares=-qty,
                    transaction_date=tx_date,
                    meta=meta,
                    created_by=created_by,
                )

        async with self.locks.hold(key):
            row = await self._run_write(write, key)

        self._invalidate(entity_id, shareholder_id)
        logger.info(
            f"Shares cancelled: {qty} {self._label(stock)} of shareholder {shareholder_id}",
            extra={
                "entity_id": entity_id,
                "shareholder_id": shareholder_id,
                "stock_type_id": stock.stock_type_id,
                "stock_series_id": stock.stock_series_id,
                "quantity": format_quantity(qty),
                "transaction_id": row.id,
            },
        )
        return row

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_balance(
        self,
        entity_id: int,
        shareholder_id: int,
        type_code: str,
        series_label: str | None = None,
        as_of: date | None = None,
    ) -> Decimal:
        """현재 잔고 (as_of 지정 시 해당 일자 기준)

        비활성 주주도 조회 가능.
        """
        stock = await self.taxonomy.validate_type_and_series(entity_id, type_code, series_label)
        await self.shareholders.get(entity_id, shareholder_id)
        return await self.log.balance(self._key(entity_id, shareholder_id, stock), as_of)

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    @staticmethod
    def _key(entity_id: int, shareholder_id: int, stock: ResolvedStock) -> BalanceKey:
        return BalanceKey(
            entity_id=entity_id,
            shareholder_id=shareholder_id,
            stock_type_id=stock.stock_type_id,
            stock_series_id=stock.stock_series_id,
        )

    @staticmethod
    def _label(stock: ResolvedStock) -> str:
        if stock.series_label:
            return f"{stock.type_code}/{stock.series_label}"
        return stock.type_code

    async def _ensure_available(self, key: BalanceKey, tx_date: date, qty: Decimal) -> None:
        """차감 가능 수량 확인 (트랜잭션 안에서 호출)"""
        available = await self.log.available_balance(key, tx_date)
        if available < qty:
            logger.info(
                f"Insufficient shares for {key}: available {available}, requested {qty}"
            )
            raise InsufficientSharesError(available=available, requested=qty)

    async def _run_write(self, operation: Callable[[], Awaitable[T]], key: BalanceKey) -> T:
        """쓰기 트랜잭션 실행 (잠금 충돌 시 재시도)"""
        attempt = 0
        while True:
            try:
                return await operation()
            except aiosqlite.OperationalError as e:
                if not is_busy_error(e):
                    logger.error(f"Ledger write failed for {key}: {e}")
                    raise

                attempt += 1
                if attempt > self.write_retries:
                    logger.error(
                        f"Ledger write conflict for {key}: "
                        f"gave up after {self.write_retries} retries"
                    )
                    raise LedgerConflictError(
                        f"Ledger is busy, retries exhausted for {key}"
                    ) from e

                logger.warning(
                    f"Ledger busy for {key}, retry {attempt}/{self.write_retries}"
                )
                await asyncio.sleep(self.retry_delay_ms / 1000)
            except aiosqlite.Error as e:
                logger.error(f"Ledger write failed for {key}: {e}")
                raise

    def _invalidate(self, entity_id: int, *shareholder_ids: int) -> None:
        if self.cache is None:
            return
        for shareholder_id in shareholder_ids:
            self.cache.invalidate(entity_id, shareholder_id)

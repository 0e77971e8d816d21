"""Balance Engine 통합 테스트"""

import asyncio
from collections import defaultdict
from datetime import date
from decimal import Decimal

import aiosqlite
import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.cache import BookEntryCache
from core.ledger.engine import BalanceEngine, utc_today
from core.ledger.errors import (
    InactiveShareholder,
    InactiveStockType,
    InsufficientSharesError,
    InvalidQuantityError,
    LedgerConflictError,
    NotFoundError,
    SelfTransferError,
    SeriesNotAllowed,
    SeriesRequired,
)
from core.ledger.models import TransactionMeta
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.taxonomy import StockTaxonomyRegistry
from core.ledger.types import TransactionType


async def _row_count(db: SQLiteAdapter) -> int:
    row = await db.fetchone("SELECT COUNT(*) FROM share_transactions")
    return row[0]


class TestScenarios:
    """발행 / 양도 / 소각 기본 시나리오"""

    @pytest.mark.asyncio
    async def test_issue(self, seeded, engine: BalanceEngine) -> None:
        """1000주 발행 → 잔고 1000"""
        row = await engine.issue_shares(
            seeded.entity_id, seeded.alice, "COMMON", None, 1000, created_by="user:admin"
        )

        assert row.transaction_type == TransactionType.ISSUANCE
        assert row.shares == Decimal("1000")
        assert row.transaction_date == utc_today()
        assert row.created_by == "user:admin"
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 1000

    @pytest.mark.asyncio
    async def test_transfer(self, seeded, engine: BalanceEngine) -> None:
        """1000주 보유 → 400주 양도 → 600 / 400, 행 2개 (-400, +400)"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 1000)

        result = await engine.transfer_shares(
            seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 400
        )

        assert result.transfer_out.shares == Decimal("-400")
        assert result.transfer_in.shares == Decimal("400")
        assert result.transfer_out.shareholder_id == seeded.alice
        assert result.transfer_in.shareholder_id == seeded.bob
        for leg in (result.transfer_out, result.transfer_in):
            assert leg.transaction_type == TransactionType.TRANSFER
            assert leg.from_shareholder_id == seeded.alice
            assert leg.to_shareholder_id == seeded.bob
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 600
        assert await engine.get_balance(seeded.entity_id, seeded.bob, "COMMON") == 400

    @pytest.mark.asyncio
    async def test_transfer_insufficient(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """600주 보유 → 900주 양도 시도 → 거부, 행 없음"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 600)
        before = await _row_count(db)

        with pytest.raises(InsufficientSharesError) as exc_info:
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 900
            )

        assert exc_info.value.available == Decimal("600")
        assert exc_info.value.requested == Decimal("900")
        assert await _row_count(db) == before
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 600
        assert await engine.get_balance(seeded.entity_id, seeded.bob, "COMMON") == 0

    @pytest.mark.asyncio
    async def test_issue_series_required(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """시리즈 필수 종류에 시리즈 없이 발행 → 거부"""
        with pytest.raises(SeriesRequired):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "PREFERRED", None, 10)

        assert await _row_count(db) == 0

    @pytest.mark.asyncio
    async def test_self_transfer_before_balance_check(
        self, seeded, engine: BalanceEngine
    ) -> None:
        """자기 양도는 잔고 확인 전에 거부 (잔고 0이어도 SelfTransferError)"""
        with pytest.raises(SelfTransferError):
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.alice, "COMMON", None, 10
            )

    @pytest.mark.asyncio
    async def test_self_transfer_before_stock_validation(
        self, seeded, engine: BalanceEngine
    ) -> None:
        """알 수 없는 종류여도 자기 양도가 먼저 거부"""
        with pytest.raises(SelfTransferError):
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.alice, "NOPE", None, 10
            )

    @pytest.mark.asyncio
    async def test_cancel(self, seeded, engine: BalanceEngine) -> None:
        """600주 중 200주 소각 → 400, -200 CANCELLATION 행"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 600)

        row = await engine.cancel_shares(seeded.entity_id, seeded.alice, "COMMON", None, 200)

        assert row.transaction_type == TransactionType.CANCELLATION
        assert row.shares == Decimal("-200")
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 400

    @pytest.mark.asyncio
    async def test_cancel_insufficient(self, seeded, engine: BalanceEngine) -> None:
        """잔고 초과 소각"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)

        with pytest.raises(InsufficientSharesError):
            await engine.cancel_shares(seeded.entity_id, seeded.alice, "COMMON", None, 11)


class TestValidation:
    """쓰기 전 검증"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -5, "abc", Decimal("NaN")])
    async def test_invalid_quantity(self, seeded, engine: BalanceEngine, quantity) -> None:
        """수량 검증"""
        with pytest.raises(InvalidQuantityError):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, quantity)

    @pytest.mark.asyncio
    async def test_fractional_quantity(self, seeded, engine: BalanceEngine) -> None:
        """소수 수량 허용 (정밀도 유지)"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, "0.1")
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, "0.2")

        assert await engine.get_balance(
            seeded.entity_id, seeded.alice, "COMMON"
        ) == Decimal("0.3")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "quantity",
        [Decimal("0." + "9" * 29), "0.000000001", "1" + "0" * 18],
    )
    async def test_quantity_out_of_range(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine, quantity
    ) -> None:
        """소수점 이하 8자리 / 정수부 18자리 초과 거부, 행 미기록"""
        with pytest.raises(InvalidQuantityError):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, quantity)

        assert await _row_count(db) == 0

    @pytest.mark.asyncio
    async def test_near_one_cannot_cover_cancel_of_one(
        self, seeded, engine: BalanceEngine
    ) -> None:
        """1에 가까운 잔고로 1주 소각 불가"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, "0.99999999")

        with pytest.raises(InsufficientSharesError):
            await engine.cancel_shares(seeded.entity_id, seeded.alice, "COMMON", None, 1)

        assert await engine.get_balance(
            seeded.entity_id, seeded.alice, "COMMON"
        ) == Decimal("0.99999999")

    @pytest.mark.asyncio
    async def test_quantity_at_limits(self, seeded, engine: BalanceEngine) -> None:
        """정수부 18자리 + 소수점 8자리까지 허용"""
        largest = Decimal("999999999999999999.99999999")
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, largest)
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, "0.00000001")

        assert await engine.get_balance(
            seeded.entity_id, seeded.alice, "COMMON"
        ) == Decimal("1000000000000000000")

    @pytest.mark.asyncio
    async def test_exponent_notation_stored_plain(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """지수 표기 입력은 일반 표기로 저장"""
        tx = await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, "1E3")

        row = await db.fetchone("SELECT shares FROM share_transactions WHERE id = ?", (tx.id,))
        assert row[0] == "1000"
        assert tx.to_dict()["shares"] == "1000"

    @pytest.mark.asyncio
    async def test_series_not_allowed(self, seeded, engine: BalanceEngine) -> None:
        with pytest.raises(SeriesNotAllowed):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", "A", 10)

    @pytest.mark.asyncio
    async def test_inactive_stock_type(self, seeded, db: SQLiteAdapter, engine: BalanceEngine) -> None:
        await StockTaxonomyRegistry(db).update_type(
            seeded.entity_id, seeded.common_id, is_active=False
        )

        with pytest.raises(InactiveStockType):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)

    @pytest.mark.asyncio
    async def test_inactive_recipient(self, seeded, db: SQLiteAdapter, engine: BalanceEngine) -> None:
        """비활성 주주에게 양도 불가"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)
        await ShareholderRegistry(db).update(seeded.entity_id, seeded.bob, is_active=False)

        with pytest.raises(InactiveShareholder):
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 5
            )

    @pytest.mark.asyncio
    async def test_unknown_shareholder(self, seeded, engine: BalanceEngine) -> None:
        with pytest.raises(NotFoundError):
            await engine.issue_shares(seeded.entity_id, 9999, "COMMON", None, 10)

    @pytest.mark.asyncio
    async def test_inactive_shareholder_balance_readable(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """비활성 주주도 잔고 조회 가능"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)
        await ShareholderRegistry(db).update(seeded.entity_id, seeded.alice, is_active=False)

        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 10


class TestBackDated:
    """과거 일자 거래"""

    @pytest.mark.asyncio
    async def test_backdated_cancel_limited_by_later_transfer(
        self, seeded, engine: BalanceEngine
    ) -> None:
        """과거 일자 소각이 이후 잔고를 음수로 만들면 거부"""
        await engine.issue_shares(
            seeded.entity_id, seeded.alice, "COMMON", None, 100,
            TransactionMeta(transaction_date=date(2024, 1, 10)),
        )
        await engine.transfer_shares(
            seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 80,
            TransactionMeta(transaction_date=date(2024, 3, 1)),
        )

        with pytest.raises(InsufficientSharesError) as exc_info:
            await engine.cancel_shares(
                seeded.entity_id, seeded.alice, "COMMON", None, 50,
                TransactionMeta(transaction_date=date(2024, 2, 1)),
            )
        assert exc_info.value.available == Decimal("20")

        await engine.cancel_shares(
            seeded.entity_id, seeded.alice, "COMMON", None, 20,
            TransactionMeta(transaction_date=date(2024, 2, 1)),
        )
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 0
        assert await engine.get_balance(
            seeded.entity_id, seeded.alice, "COMMON", as_of=date(2024, 2, 15)
        ) == 80

    @pytest.mark.asyncio
    async def test_transfer_before_issue_rejected(self, seeded, engine: BalanceEngine) -> None:
        """발행일 이전 일자 양도 불가"""
        await engine.issue_shares(
            seeded.entity_id, seeded.alice, "COMMON", None, 100,
            TransactionMeta(transaction_date=date(2024, 5, 1)),
        )

        with pytest.raises(InsufficientSharesError):
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 10,
                TransactionMeta(transaction_date=date(2024, 4, 30)),
            )


class TestInvariants:
    """불변식"""

    @pytest.mark.asyncio
    async def test_conservation_and_non_negative(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """양도 행 합계 0, 모든 키의 누적 잔고 ≥ 0"""
        people = [seeded.alice, seeded.bob, seeded.carol]
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 500)
        await engine.issue_shares(seeded.entity_id, seeded.bob, "PREFERRED", "A", 300)

        for i in range(12):
            sender = people[i % 3]
            receiver = people[(i + 1) % 3]
            for code, label in (("COMMON", None), ("PREFERRED", "A")):
                try:
                    await engine.transfer_shares(
                        seeded.entity_id, sender, receiver, code, label, 37 + i
                    )
                except InsufficientSharesError:
                    pass
            try:
                await engine.cancel_shares(seeded.entity_id, receiver, "COMMON", None, 13)
            except InsufficientSharesError:
                pass

        rows = await db.fetchall_dict(
            "SELECT * FROM share_transactions ORDER BY transaction_date, id"
        )

        running: dict[tuple, Decimal] = defaultdict(Decimal)
        for row in rows:
            key = (row["shareholder_id"], row["stock_type_id"], row["stock_series_id"])
            running[key] += Decimal(row["shares"])
            assert running[key] >= 0

        # 양도 행은 출고 → 입고 순으로 연속 id
        transfers = [r for r in rows if r["transaction_type"] == TransactionType.TRANSFER.value]
        transfers.sort(key=lambda r: r["id"])
        assert transfers
        for out_leg, in_leg in zip(transfers[0::2], transfers[1::2]):
            assert in_leg["id"] == out_leg["id"] + 1
            assert out_leg["shareholder_id"] == out_leg["from_shareholder_id"]
            assert in_leg["shareholder_id"] == in_leg["to_shareholder_id"]
            assert Decimal(out_leg["shares"]) + Decimal(in_leg["shares"]) == 0


class TestConcurrency:
    """동시 쓰기 직렬화"""

    @pytest.mark.asyncio
    async def test_concurrent_cancels_same_key(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine
    ) -> None:
        """같은 키 동시 소각 → 잔고 초과 차감 없음"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 100)

        results = await asyncio.gather(
            *(
                engine.cancel_shares(seeded.entity_id, seeded.alice, "COMMON", None, 15)
                for _ in range(10)
            ),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, InsufficientSharesError)]
        assert len(succeeded) == 6
        assert len(failed) == 4
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 10

    @pytest.mark.asyncio
    async def test_concurrent_transfers_across_connections(
        self, seeded, db: SQLiteAdapter
    ) -> None:
        """서로 다른 연결 / 락 인스턴스에서도 DB 쓰기 락으로 직렬화"""
        await BalanceEngine(db).issue_shares(
            seeded.entity_id, seeded.alice, "COMMON", None, 100
        )

        async with SQLiteAdapter(db.db_path) as first, SQLiteAdapter(db.db_path) as second:
            engines = [BalanceEngine(first), BalanceEngine(second)]
            results = await asyncio.gather(
                *(
                    engines[i % 2].transfer_shares(
                        seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 30
                    )
                    for i in range(6)
                ),
                return_exceptions=True,
            )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 3
        assert all(isinstance(r, InsufficientSharesError) for r in failed)

        engine = BalanceEngine(db)
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 10
        assert await engine.get_balance(seeded.entity_id, seeded.bob, "COMMON") == 90


class TestAtomicity:
    """부분 기록 없음 / 재시도"""

    @pytest.mark.asyncio
    async def test_transfer_second_leg_failure_rolls_back(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine, monkeypatch
    ) -> None:
        """입고 행 기록 실패 시 출고 행도 롤백"""
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 100)
        before = await _row_count(db)

        original_append = engine.log.append
        calls = 0

        async def failing_append(**kwargs):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise RuntimeError("storage failure")
            return await original_append(**kwargs)

        monkeypatch.setattr(engine.log, "append", failing_append)

        with pytest.raises(RuntimeError):
            await engine.transfer_shares(
                seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 40
            )

        assert await _row_count(db) == before
        assert db.in_transaction is False
        assert await engine.get_balance(seeded.entity_id, seeded.alice, "COMMON") == 100

    @pytest.mark.asyncio
    async def test_busy_error_retried(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine, monkeypatch
    ) -> None:
        """잠금 충돌은 재시도 후 성공"""
        original_append = engine.log.append
        failures = 2

        async def busy_append(**kwargs):
            nonlocal failures
            if failures > 0:
                failures -= 1
                raise aiosqlite.OperationalError("database is locked")
            return await original_append(**kwargs)

        monkeypatch.setattr(engine.log, "append", busy_append)

        row = await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)

        assert row.shares == Decimal("10")
        assert await _row_count(db) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self, seeded, db: SQLiteAdapter, monkeypatch
    ) -> None:
        """재시도 소진 → LedgerConflictError, 행 없음"""
        engine = BalanceEngine(db, write_retries=2, retry_delay_ms=0)

        async def always_busy(**kwargs):
            raise aiosqlite.OperationalError("database is locked")

        monkeypatch.setattr(engine.log, "append", always_busy)

        with pytest.raises(LedgerConflictError):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)

        assert await _row_count(db) == 0

    @pytest.mark.asyncio
    async def test_other_storage_error_not_retried(
        self, seeded, db: SQLiteAdapter, engine: BalanceEngine, monkeypatch
    ) -> None:
        """잠금 외 DB 오류는 그대로 전파"""
        calls = 0

        async def broken_append(**kwargs):
            nonlocal calls
            calls += 1
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(engine.log, "append", broken_append)

        with pytest.raises(aiosqlite.OperationalError):
            await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 10)

        assert calls == 1


class TestCacheInvalidation:
    """쓰기 후 캐시 무효화"""

    @pytest.mark.asyncio
    async def test_transfer_invalidates_both_parties(self, seeded, db: SQLiteAdapter) -> None:
        cache = BookEntryCache()
        engine = BalanceEngine(db, cache=cache, retry_delay_ms=0)
        await engine.issue_shares(seeded.entity_id, seeded.alice, "COMMON", None, 100)

        cache.set(seeded.entity_id, seeded.alice, [])
        cache.set(seeded.entity_id, seeded.bob, [])
        cache.set(seeded.entity_id, seeded.carol, [])

        await engine.transfer_shares(
            seeded.entity_id, seeded.alice, seeded.bob, "COMMON", None, 10
        )

        assert cache.get(seeded.entity_id, seeded.alice) is None
        assert cache.get(seeded.entity_id, seeded.bob) is None
        assert cache.get(seeded.entity_id, seeded.carol) == []

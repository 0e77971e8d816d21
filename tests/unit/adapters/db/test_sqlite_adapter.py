"""
SQLite 어댑터 테스트

SQLiteAdapter 및 관련 함수 테스트.
"""

from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import (
    MEMORY_DB,
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
    is_busy_error,
)
from core.constants import Paths


class TestGetDbPath:
    """get_db_path 테스트"""

    def test_default_path(self) -> None:
        """기본 원장 DB 경로"""
        path = get_db_path()

        assert path == Paths.LEDGER_DB
        assert isinstance(path, Path)

    def test_explicit_path(self, tmp_path: Path) -> None:
        """지정 경로"""
        path = get_db_path(str(tmp_path / "x.db"))

        assert path == tmp_path / "x.db"


class TestIsBusyError:
    """is_busy_error 테스트"""

    def test_locked_message(self) -> None:
        """database is locked"""
        assert is_busy_error(aiosqlite.OperationalError("database is locked")) is True

    def test_busy_message(self) -> None:
        """database is busy"""
        assert is_busy_error(aiosqlite.OperationalError("database is busy")) is True

    def test_other_operational_error(self) -> None:
        """다른 OperationalError"""
        assert is_busy_error(aiosqlite.OperationalError("no such table: x")) is False

    def test_not_operational_error(self) -> None:
        """OperationalError 아님"""
        assert is_busy_error(ValueError("database is locked")) is False


class TestCreateConnection:
    """create_connection 테스트"""

    @pytest.mark.asyncio
    async def test_create_connection(self, tmp_path: Path) -> None:
        """연결 생성"""
        db_path = tmp_path / "test.db"

        conn = await create_connection(db_path)

        assert conn is not None

        # WAL 모드 확인
        cursor = await conn.execute("PRAGMA journal_mode")
        row = await cursor.fetchone()
        assert row[0].upper() == "WAL"

        # 외래 키 확인
        cursor = await conn.execute("PRAGMA foreign_keys")
        row = await cursor.fetchone()
        assert row[0] == 1

        await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """부모 디렉토리 생성"""
        db_path = tmp_path / "subdir" / "test.db"

        conn = await create_connection(db_path)

        assert db_path.parent.exists()

        await conn.close()

    @pytest.mark.asyncio
    async def test_memory_database(self) -> None:
        """인메모리 DB"""
        conn = await create_connection(MEMORY_DB)

        cursor = await conn.execute("SELECT 1")
        row = await cursor.fetchone()
        assert row[0] == 1

        await conn.close()

    @pytest.mark.asyncio
    async def test_readonly_rejects_write(self, tmp_path: Path) -> None:
        """읽기 전용 연결은 쓰기 불가"""
        db_path = tmp_path / "ro.db"
        async with SQLiteAdapter(db_path) as adapter:
            await adapter.execute("CREATE TABLE t (id INTEGER)")
            await adapter.commit()

        conn = await create_connection(db_path, readonly=True)
        with pytest.raises(aiosqlite.OperationalError):
            await conn.execute("INSERT INTO t (id) VALUES (1)")
        await conn.close()


class TestSQLiteAdapter:
    """SQLiteAdapter 테스트"""

    @pytest_asyncio.fixture
    async def adapter(self, tmp_path: Path) -> SQLiteAdapter:
        """어댑터 픽스처"""
        db_path = tmp_path / "test.db"
        adapter = SQLiteAdapter(db_path)
        await adapter.connect()
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connect_and_close(self, tmp_path: Path) -> None:
        """연결 및 종료"""
        db_path = tmp_path / "test.db"
        adapter = SQLiteAdapter(db_path)

        assert adapter.is_connected is False

        await adapter.connect()
        assert adapter.is_connected is True

        await adapter.close()
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_execute_without_connection(self, tmp_path: Path) -> None:
        """연결 전 실행 시 RuntimeError"""
        adapter = SQLiteAdapter(tmp_path / "none.db")

        with pytest.raises(RuntimeError):
            await adapter.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute(self, adapter: SQLiteAdapter) -> None:
        """SQL 실행"""
        await adapter.execute(
            "CREATE TABLE test (id INTEGER PRIMARY KEY, name TEXT)"
        )
        await adapter.execute(
            "INSERT INTO test (name) VALUES (?)",
            ("테스트",),
        )
        await adapter.commit()

        row = await adapter.fetchone("SELECT name FROM test WHERE id = 1")
        assert row[0] == "테스트"

    @pytest.mark.asyncio
    async def test_fetchall(self, adapter: SQLiteAdapter) -> None:
        """전체 조회"""
        await adapter.execute("CREATE TABLE items (value TEXT)")
        for value in ("A", "B", "C"):
            await adapter.execute("INSERT INTO items (value) VALUES (?)", (value,))
        await adapter.commit()

        rows = await adapter.fetchall("SELECT value FROM items ORDER BY value")

        assert [r[0] for r in rows] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_fetch_dict(self, adapter: SQLiteAdapter) -> None:
        """컬럼명 dict 조회"""
        await adapter.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)")
        for name in ("Kim", "Lee"):
            await adapter.execute("INSERT INTO people (name) VALUES (?)", (name,))
        await adapter.commit()

        one = await adapter.fetchone_dict("SELECT * FROM people WHERE name = ?", ("Lee",))
        many = await adapter.fetchall_dict("SELECT * FROM people ORDER BY id")
        missing = await adapter.fetchone_dict("SELECT * FROM people WHERE id = 99")

        assert one == {"id": 2, "name": "Lee"}
        assert many == [{"id": 1, "name": "Kim"}, {"id": 2, "name": "Lee"}]
        assert missing is None

    @pytest.mark.asyncio
    async def test_transaction_commit(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 커밋"""
        await adapter.execute("CREATE TABLE tx_test (id INTEGER)")
        await adapter.commit()

        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO tx_test (id) VALUES (1)")
            await conn.execute("INSERT INTO tx_test (id) VALUES (2)")

        assert adapter.in_transaction is False
        rows = await adapter.fetchall("SELECT id FROM tx_test")
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 롤백"""
        await adapter.execute("CREATE TABLE tx_test2 (id INTEGER)")
        await adapter.commit()

        with pytest.raises(ValueError):
            async with adapter.transaction() as conn:
                await conn.execute("INSERT INTO tx_test2 (id) VALUES (1)")
                raise ValueError("의도적 에러")

        rows = await adapter.fetchall("SELECT id FROM tx_test2")
        assert len(rows) == 0

    @pytest.mark.asyncio
    async def test_transaction_rejects_open_implicit_transaction(
        self, adapter: SQLiteAdapter
    ) -> None:
        """커밋되지 않은 암묵적 트랜잭션이 있으면 거부"""
        await adapter.execute("CREATE TABLE tx_test3 (id INTEGER)")
        await adapter.commit()
        await adapter.execute("INSERT INTO tx_test3 (id) VALUES (1)")

        with pytest.raises(RuntimeError):
            async with adapter.transaction():
                pass

        await adapter.rollback()

    @pytest.mark.asyncio
    async def test_immediate_transaction_blocks_other_writer(self, tmp_path: Path) -> None:
        """BEGIN IMMEDIATE는 다른 연결의 쓰기 트랜잭션 시작을 막음"""
        db_path = tmp_path / "lock.db"

        async with SQLiteAdapter(db_path) as first, SQLiteAdapter(
            db_path, busy_timeout_ms=0
        ) as second:
            await first.execute("CREATE TABLE t (id INTEGER)")
            await first.commit()

            async with first.transaction():
                with pytest.raises(aiosqlite.OperationalError) as exc_info:
                    async with second.transaction():
                        pass

            assert is_busy_error(exc_info.value) is True

            # 첫 트랜잭션 종료 후에는 가능
            async with second.transaction() as conn:
                await conn.execute("INSERT INTO t (id) VALUES (1)")

    @pytest.mark.asyncio
    async def test_table_exists(self, adapter: SQLiteAdapter) -> None:
        """테이블 존재 확인"""
        assert await adapter.table_exists("nonexistent") is False

        await adapter.execute("CREATE TABLE existing (id INTEGER)")
        await adapter.commit()

        assert await adapter.table_exists("existing") is True

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        """컨텍스트 매니저"""
        db_path = tmp_path / "ctx_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            assert adapter.is_connected is True
            await adapter.execute("CREATE TABLE ctx (id INTEGER)")

        assert adapter.is_connected is False


class TestInitSchema:
    """init_schema 테스트"""

    @pytest.mark.asyncio
    async def test_init_schema_creates_tables(self, tmp_path: Path) -> None:
        """스키마 초기화 - 테이블 생성"""
        db_path = tmp_path / "schema_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            await init_schema(adapter)

            for table in (
                "entities",
                "stock_types",
                "stock_series",
                "shareholders",
                "share_transactions",
            ):
                assert await adapter.table_exists(table) is True

    @pytest.mark.asyncio
    async def test_init_schema_idempotent(self, tmp_path: Path) -> None:
        """스키마 초기화 멱등성 (여러 번 실행 가능)"""
        db_path = tmp_path / "idempotent_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            await init_schema(adapter)
            await init_schema(adapter)

            assert await adapter.table_exists("share_transactions") is True

    @pytest.mark.asyncio
    async def test_share_transactions_schema(self, tmp_path: Path) -> None:
        """share_transactions 스키마 확인"""
        db_path = tmp_path / "tx_schema_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            await init_schema(adapter)

            columns = await adapter.get_table_info("share_transactions")
            column_names = [c["name"] for c in columns]

            for name in (
                "entity_id",
                "shareholder_id",
                "transaction_type",
                "stock_type_id",
                "stock_series_id",
                "shares",
                "transaction_date",
                "from_shareholder_id",
                "to_shareholder_id",
                "created_at",
            ):
                assert name in column_names

    @pytest.mark.asyncio
    async def test_stock_type_code_unique(self, tmp_path: Path) -> None:
        """(entity_id, code) UNIQUE 제약조건"""
        db_path = tmp_path / "unique_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            await init_schema(adapter)
            await adapter.execute("INSERT INTO entities (name) VALUES ('E1')")
            await adapter.execute(
                "INSERT INTO stock_types (entity_id, code, display_name) VALUES (1, 'COMMON', 'Common')"
            )
            await adapter.commit()

            with pytest.raises(aiosqlite.IntegrityError):
                await adapter.execute(
                    "INSERT INTO stock_types (entity_id, code, display_name) VALUES (1, 'COMMON', 'Dup')"
                )
            await adapter.rollback()

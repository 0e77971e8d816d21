"""
주식 원장 스키마 초기화

Web 시작 시 / scripts/init_db.py 실행 시 자동으로 테이블, 트리거, View 생성.
CREATE IF NOT EXISTS / DROP VIEW IF EXISTS 패턴으로 안전하게 동작.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """원장 스키마 초기화 (테이블 + 트리거 + View)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_tables(db)
    await _create_indexes(db)
    await _create_append_only_triggers(db)
    await _create_views(db)
    await db.commit()
    logger.info("원장 스키마 초기화 완료")


async def _create_tables(db: "SQLiteAdapter") -> None:
    """원장 테이블 생성"""

    # entities 테이블 (테넌트)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS entities (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            name             TEXT NOT NULL,
            is_active        INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # stock_types 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS stock_types (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_id        INTEGER NOT NULL,
            code             TEXT NOT NULL,
            display_name     TEXT NOT NULL,
            supports_series  INTEGER NOT NULL DEFAULT 0,
            is_active        INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(entity_id, code),
            FOREIGN KEY (entity_id) REFERENCES entities(id)
        )
    """)

    # stock_series 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS stock_series (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            stock_type_id    INTEGER NOT NULL,
            label            TEXT NOT NULL COLLATE NOCASE,
            is_active        INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(stock_type_id, label),
            FOREIGN KEY (stock_type_id) REFERENCES stock_types(id)
        )
    """)

    # shareholders 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS shareholders (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_id        INTEGER NOT NULL,
            external_id      TEXT,
            full_name        TEXT NOT NULL,
            email            TEXT,
            phone            TEXT,
            address          TEXT,
            city             TEXT,
            state            TEXT,
            zip_code         TEXT,
            country          TEXT,
            tax_id           TEXT,
            shareholder_type TEXT NOT NULL DEFAULT 'INDIVIDUAL',
            is_active        INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at       TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(entity_id, external_id),
            FOREIGN KEY (entity_id) REFERENCES entities(id)
        )
    """)

    # share_transactions 테이블 (append-only 원장)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS share_transactions (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_id           INTEGER NOT NULL,
            shareholder_id      INTEGER NOT NULL,
            transaction_type    TEXT NOT NULL
                CHECK (transaction_type IN ('ISSUANCE', 'TRANSFER', 'CANCELLATION')),
            stock_type_id       INTEGER NOT NULL,
            stock_series_id     INTEGER,
            shares              TEXT NOT NULL,
            transaction_date    TEXT NOT NULL,
            certificate_number  TEXT,
            from_shareholder_id INTEGER,
            to_shareholder_id   INTEGER,
            notes               TEXT,
            created_by          TEXT,
            created_at          TEXT NOT NULL,
            CHECK (
                (transaction_type = 'TRANSFER'
                    AND from_shareholder_id IS NOT NULL
                    AND to_shareholder_id IS NOT NULL)
                OR (transaction_type <> 'TRANSFER'
                    AND from_shareholder_id IS NULL
                    AND to_shareholder_id IS NULL)
            ),
            FOREIGN KEY (entity_id) REFERENCES entities(id),
            FOREIGN KEY (shareholder_id) REFERENCES shareholders(id),
            FOREIGN KEY (stock_type_id) REFERENCES stock_types(id),
            FOREIGN KEY (stock_series_id) REFERENCES stock_series(id),
            FOREIGN KEY (from_shareholder_id) REFERENCES shareholders(id),
            FOREIGN KEY (to_shareholder_id) REFERENCES shareholders(id)
        )
    """)


async def _create_indexes(db: "SQLiteAdapter") -> None:
    """인덱스 생성"""

    # 잔고 키 조회 (replay 순서 포함)
    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_share_tx_balance_key
        ON share_transactions(
            entity_id, shareholder_id, stock_type_id, stock_series_id,
            transaction_date, id
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_share_tx_entity_date
        ON share_transactions(entity_id, transaction_date, id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_shareholders_entity
        ON shareholders(entity_id, full_name)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_stock_types_entity
        ON stock_types(entity_id, display_name)
    """)


async def _create_append_only_triggers(db: "SQLiteAdapter") -> None:
    """원장 행 수정/삭제 금지 트리거

    정정은 상쇄 행 추가로만 가능.
    """
    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_share_tx_no_update
        BEFORE UPDATE ON share_transactions
        BEGIN
            SELECT RAISE(ABORT, 'share_transactions is append-only');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_share_tx_no_delete
        BEFORE DELETE ON share_transactions
        BEGIN
            SELECT RAISE(ABORT, 'share_transactions is append-only');
        END
    """)


async def _create_views(db: "SQLiteAdapter") -> None:
    """조회용 View 생성"""

    # v_share_ledger: 원장 + 주주/상대방 이름 + 종류/시리즈 라벨
    await db.execute("DROP VIEW IF EXISTS v_share_ledger")
    await db.execute("""
        CREATE VIEW v_share_ledger AS
        SELECT
            t.id,
            t.entity_id,
            t.shareholder_id,
            t.transaction_type,
            t.stock_type_id,
            t.stock_series_id,
            t.shares,
            t.transaction_date,
            t.certificate_number,
            t.from_shareholder_id,
            t.to_shareholder_id,
            t.notes,
            t.created_by,
            t.created_at,
            sh.full_name AS shareholder_name,
            st.code AS stock_type_code,
            st.display_name AS stock_type_name,
            ss.label AS series_label,
            fs.full_name AS from_shareholder_name,
            ts.full_name AS to_shareholder_name
        FROM share_transactions t
        JOIN shareholders sh ON sh.id = t.shareholder_id
        JOIN stock_types st ON st.id = t.stock_type_id
        LEFT JOIN stock_series ss ON ss.id = t.stock_series_id
        LEFT JOIN shareholders fs ON fs.id = t.from_shareholder_id
        LEFT JOIN shareholders ts ON ts.id = t.to_shareholder_id
    """)

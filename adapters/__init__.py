"""
어댑터 레이어

외부 저장소와의 연동을 담당.
- db: aiosqlite 기반 SQLite 어댑터 (WAL, BEGIN IMMEDIATE 트랜잭션)
"""

from adapters.db import SQLiteAdapter, init_schema

__all__ = [
    "SQLiteAdapter",
    "init_schema",
]

"""
Ledger 서비스

원장 목록 / 주주별 원장 조회 (캐시 경유)
"""

import logging
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.cache import BookEntryCache
from core.ledger.query import TransactionFilter
from core.ledger.shareholders import ShareholderRegistry
from core.ledger.store import TransactionLog

logger = logging.getLogger(__name__)


class LedgerService:
    """Ledger 서비스

    Args:
        db: SQLite 어댑터 (읽기 전용)
        cache: 주주별 원장 캐시 (None이면 캐시 미사용)
    """

    def __init__(self, db: SQLiteAdapter, cache: BookEntryCache | None = None):
        self.db = db
        self.cache = cache
        self.log = TransactionLog(db)
        self.shareholders = ShareholderRegistry(db)

    async def list_ledger(self, query: TransactionFilter) -> dict[str, Any]:
        """원장 목록 (최신순, 페이지네이션)

        Returns:
            {"items", "total", "limit", "offset"}
        """
        entries = await self.log.list_entries(query)
        total = await self.log.count_entries(query)

        return {
            "items": [entry.to_dict() for entry in entries],
            "total": total,
            "limit": query.limit if query.limit is not None else total,
            "offset": query.offset,
        }

    async def get_book_entries(
        self,
        entity_id: int,
        shareholder_id: int,
    ) -> list[dict[str, Any]]:
        """주주별 원장 행 (최신순)

        Raises:
            NotFoundError: 주주 없음
        """
        await self.shareholders.get(entity_id, shareholder_id)

        async def load():
            return await self.log.list_entries(
                TransactionFilter(entity_id=entity_id, shareholder_id=shareholder_id)
            )

        if self.cache is None:
            entries = await load()
        else:
            entries = await self.cache.get_or_load(entity_id, shareholder_id, load)

        return [entry.to_dict() for entry in entries]

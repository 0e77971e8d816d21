"""
Entity 레지스트리

발행 회사(테넌트) 생성/조회/비활성화.
의존 데이터가 생긴 Entity는 삭제하지 않고 비활성화만 한다.
"""

import logging
from typing import TYPE_CHECKING

from core.ledger.errors import NotFoundError
from core.ledger.models import Entity

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class EntityRegistry:
    """Entity 레지스트리

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: "SQLiteAdapter"):
        self.db = db

    async def create(self, name: str) -> Entity:
        """Entity 생성

        Raises:
            ValueError: 이름이 비어 있음
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Entity name is required")

        async with self.db.transaction():
            cursor = await self.db.execute(
                "INSERT INTO entities (name) VALUES (?)",
                (name,),
            )
            entity_id = cursor.lastrowid

        logger.info(f"Entity created: {entity_id} ({name})")
        return await self.get(entity_id)

    async def get(self, entity_id: int) -> Entity:
        """Entity 조회

        Raises:
            NotFoundError: 존재하지 않음
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM entities WHERE id = ?",
            (entity_id,),
        )
        if row is None:
            raise NotFoundError(f"Entity not found: {entity_id}")
        return Entity.from_row(row)

    async def list_entities(self, include_inactive: bool = True) -> list[Entity]:
        """Entity 목록 (이름순)"""
        sql = "SELECT * FROM entities"
        if not include_inactive:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY name, id"

        rows = await self.db.fetchall_dict(sql)
        return [Entity.from_row(row) for row in rows]

    async def set_active(self, entity_id: int, active: bool) -> Entity:
        """활성 상태 변경 (soft deactivation)"""
        await self.get(entity_id)

        async with self.db.transaction():
            await self.db.execute(
                "UPDATE entities SET is_active = ? WHERE id = ?",
                (1 if active else 0, entity_id),
            )

        logger.info(f"Entity {entity_id} active={active}")
        return await self.get(entity_id)

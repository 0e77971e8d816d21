"""
주주 레지스트리

주주 생성/조회/수정/삭제.
원장 기록이 있는 주주는 비활성화만 가능 (이력 보존).
"""

import logging
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from core.constants import Defaults
from core.ledger.errors import DuplicateShareholderError, InactiveShareholder, NotFoundError
from core.ledger.models import Shareholder
from core.ledger.types import DeleteOutcome
from core.types import ShareholderType

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

# 생성/수정 시 허용 필드 (id, entity_id, 타임스탬프 제외)
SHAREHOLDER_FIELDS: tuple[str, ...] = (
    "external_id",
    "full_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "tax_id",
    "shareholder_type",
    "is_active",
)


def format_external_id(number: int) -> str:
    """계좌번호 생성: SH-000001"""
    return f"{Defaults.EXTERNAL_ID_PREFIX}-{number:0{Defaults.EXTERNAL_ID_WIDTH}d}"


class ShareholderRegistry:
    """주주 레지스트리

    Args:
        db: SQLite 어댑터
    """

    _AUTO_ID_PATTERN = re.compile(rf"^{Defaults.EXTERNAL_ID_PREFIX}-(\d+)$")

    def __init__(self, db: "SQLiteAdapter"):
        self.db = db

    async def get(self, entity_id: int, shareholder_id: int) -> Shareholder:
        """주주 조회

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM shareholders WHERE id = ? AND entity_id = ?",
            (shareholder_id, entity_id),
        )
        if row is None:
            raise NotFoundError(f"Shareholder not found: {shareholder_id}")
        return Shareholder.from_row(row)

    async def require_active(self, entity_id: int, shareholder_id: int) -> Shareholder:
        """활성 주주 조회

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
            InactiveShareholder: 비활성 주주
        """
        shareholder = await self.get(entity_id, shareholder_id)
        if not shareholder.is_active:
            raise InactiveShareholder(
                f"Shareholder is inactive: {shareholder_id} ({shareholder.full_name})"
            )
        return shareholder

    async def list_shareholders(
        self,
        entity_id: int,
        include_inactive: bool = False,
    ) -> list[Shareholder]:
        """주주 목록 (이름순, 동명이인은 id순)"""
        sql = "SELECT * FROM shareholders WHERE entity_id = ?"
        if not include_inactive:
            sql += " AND is_active = 1"
        sql += " ORDER BY full_name, id"

        rows = await self.db.fetchall_dict(sql, (entity_id,))
        return [Shareholder.from_row(row) for row in rows]

    async def has_transactions(self, entity_id: int, shareholder_id: int) -> bool:
        """원장 기록 존재 여부 (상대방으로 기록된 행 포함)"""
        row = await self.db.fetchone(
            """
            SELECT 1 FROM share_transactions
            WHERE entity_id = ?
              AND (shareholder_id = ? OR from_shareholder_id = ? OR to_shareholder_id = ?)
            LIMIT 1
            """,
            (entity_id, shareholder_id, shareholder_id, shareholder_id),
        )
        return row is not None

    async def create(
        self,
        entity_id: int,
        full_name: str,
        **fields: Any,
    ) -> Shareholder:
        """주주 생성

        external_id 미지정 시 SH-000001 형식으로 자동 생성.

        Raises:
            ValueError: 이름 누락 / 허용되지 않은 필드
            NotFoundError: Entity 없음
            DuplicateShareholderError: 계좌번호 중복
        """
        data = self._clean_fields(fields)
        data["full_name"] = (full_name or "").strip()
        if not data["full_name"]:
            raise ValueError("Shareholder full name is required")
        data.setdefault("shareholder_type", ShareholderType.INDIVIDUAL.value)

        async with self.db.transaction():
            entity = await self.db.fetchone(
                "SELECT id FROM entities WHERE id = ?",
                (entity_id,),
            )
            if entity is None:
                raise NotFoundError(f"Entity not found: {entity_id}")

            if not data.get("external_id"):
                data["external_id"] = await self._next_external_id(entity_id)
            else:
                await self._ensure_unique_external_id(entity_id, data["external_id"])

            columns = ["entity_id", *data.keys()]
            placeholders = ", ".join("?" for _ in columns)
            cursor = await self.db.execute(
                f"INSERT INTO shareholders ({', '.join(columns)}) VALUES ({placeholders})",
                (entity_id, *data.values()),
            )
            shareholder_id = cursor.lastrowid

        logger.info(
            f"Shareholder created: {data['external_id']}",
            extra={"entity_id": entity_id, "shareholder_id": shareholder_id},
        )
        return await self.get(entity_id, shareholder_id)

    async def update(
        self,
        entity_id: int,
        shareholder_id: int,
        **fields: Any,
    ) -> Shareholder:
        """주주 정보 수정 (허용 필드만)

        Raises:
            NotFoundError: 없거나 다른 Entity 소속
            DuplicateShareholderError: 계좌번호 중복
        """
        data = self._clean_fields(fields)
        if "full_name" in data and not (data["full_name"] or "").strip():
            raise ValueError("Shareholder full name must not be empty")

        async with self.db.transaction():
            current = await self.get(entity_id, shareholder_id)

            external_id = data.get("external_id")
            if external_id and external_id != current.external_id:
                await self._ensure_unique_external_id(entity_id, external_id)

            if data:
                data["updated_at"] = datetime.now(timezone.utc).isoformat()
                assignments = ", ".join(f"{column} = ?" for column in data)
                await self.db.execute(
                    f"UPDATE shareholders SET {assignments} WHERE id = ?",
                    (*data.values(), shareholder_id),
                )

        logger.info(
            f"Shareholder updated: {shareholder_id}",
            extra={"entity_id": entity_id, "fields": sorted(data)},
        )
        return await self.get(entity_id, shareholder_id)

    async def delete(self, entity_id: int, shareholder_id: int) -> DeleteOutcome:
        """주주 삭제

        원장 기록이 없으면 물리 삭제, 있으면 비활성화.

        Returns:
            DeleteOutcome.DELETED / DeleteOutcome.DEACTIVATED
        """
        async with self.db.transaction():
            await self.get(entity_id, shareholder_id)

            if await self.has_transactions(entity_id, shareholder_id):
                await self.db.execute(
                    """
                    UPDATE shareholders SET is_active = 0, updated_at = ?
                    WHERE id = ?
                    """,
                    (datetime.now(timezone.utc).isoformat(), shareholder_id),
                )
                outcome = DeleteOutcome.DEACTIVATED
            else:
                await self.db.execute(
                    "DELETE FROM shareholders WHERE id = ?",
                    (shareholder_id,),
                )
                outcome = DeleteOutcome.DELETED

        logger.info(
            f"Shareholder {shareholder_id} {outcome.value.lower()}",
            extra={"entity_id": entity_id},
        )
        return outcome

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    def _clean_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - set(SHAREHOLDER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown shareholder fields: {sorted(unknown)}")

        data: dict[str, Any] = {}
        for name in SHAREHOLDER_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if isinstance(value, str):
                value = value.strip() or None
            if name == "shareholder_type" and value is not None:
                value = ShareholderType(str(value).upper()).value
            if name == "is_active" and value is not None:
                value = 1 if value else 0
            data[name] = value
        return data

    async def _ensure_unique_external_id(self, entity_id: int, external_id: str) -> None:
        row = await self.db.fetchone(
            "SELECT id FROM shareholders WHERE entity_id = ? AND external_id = ?",
            (entity_id, external_id),
        )
        if row is not None:
            raise DuplicateShareholderError(
                f"Shareholder external id already exists: {external_id}"
            )

    async def _next_external_id(self, entity_id: int) -> str:
        """Entity 내 다음 자동 계좌번호"""
        rows = await self.db.fetchall(
            "SELECT external_id FROM shareholders WHERE entity_id = ? AND external_id LIKE ?",
            (entity_id, f"{Defaults.EXTERNAL_ID_PREFIX}-%"),
        )

        highest = 0
        for (external_id,) in rows:
            match = self._AUTO_ID_PATTERN.match(external_id or "")
            if match:
                highest = max(highest, int(match.group(1)))

        return format_external_id(highest + 1)
